"""
Diagnostic logging for the monitor.

One "slotwatch" logger tree, written to stdout and optionally to a file.
Level comes from the caller or SLOTWATCH_LOG_LEVEL.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER = "slotwatch"

_initialized: bool = False


class MonitorLogFormatter(logging.Formatter):
    """
    `[time] [LEVEL] [thread] module: message`

    Module names drop the package prefix; the console shows time of day
    only, files carry the full date.
    """

    def __init__(self, include_thread: bool = True, with_date: bool = False):
        super().__init__()
        self.include_thread = include_thread
        self.time_format = "%Y-%m-%d %H:%M:%S.%f" if with_date else "%H:%M:%S.%f"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime(self.time_format)[:-3]
        module = record.name
        if module.startswith(PACKAGE_LOGGER + "."):
            module = module[len(PACKAGE_LOGGER) + 1:]

        fields = [f"[{stamp}]", f"[{record.levelname:<8}]"]
        if self.include_thread:
            fields.append(f"[{record.threadName[:12]:<12}]")
        text = f"{' '.join(fields)} {module}: {record.getMessage()}"

        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def resolve_level(level: Union[int, str, None]) -> int:
    """Accept a logging level number or name; default INFO."""
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    level: Union[int, str, None] = None,
    log_file: Optional[Path] = None,
    include_thread: bool = True,
) -> None:
    """
    Initialize package logging once.

    Args:
        level: Console and file level; defaults to SLOTWATCH_LOG_LEVEL or INFO
        log_file: Optional log file path
        include_thread: Include thread names in console output
    """
    global _initialized

    if _initialized:
        return

    resolved = resolve_level(level if level is not None else os.getenv("SLOTWATCH_LOG_LEVEL"))
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(resolved)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(MonitorLogFormatter(include_thread=include_thread))
    package_logger.addHandler(console)

    if log_file is not None:
        path = Path(log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError as e:
            package_logger.warning(f"Log file {path} unavailable, console only: {e}")
        else:
            handler.setFormatter(MonitorLogFormatter(include_thread=True, with_date=True))
            package_logger.addHandler(handler)

    _initialized = True
    package_logger.debug(f"Logging initialized at {logging.getLevelName(resolved)}")
