"""
@file actionlogger.py
@brief Structured event log of UI actions, state transitions and alerts.

Diagnostic logging (logsetup.py) explains what the engine is thinking.
This log records what it did to the device, one event per action or
transition, in `line` or `jsonl` form. It is off unless enabled.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
import traceback
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

FORMATS = ("line", "jsonl")
SENSITIVE_KEYS = frozenset({"token", "bot_token", "secret", "chat_id"})
# Actions whose "text" metadata is user content and gets truncated.
TEXT_ACTIONS = frozenset({"set_text", "alert"})
MAX_VISIBLE_TEXT = 10

# Field order of the line format after the leading time, level and action.
_LINE_FIELDS = ("event", "state", "element", "status", "duration_ms", "cycle")


def mask_text(text: str, max_visible: int = MAX_VISIBLE_TEXT) -> str:
    return text if len(text) <= max_visible else f"{text[:max_visible]}..."


def redact(action: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of metadata with secrets replaced and typed text truncated."""
    clean: Dict[str, Any] = {}
    for key, value in metadata.items():
        if key.lower() in SENSITIVE_KEYS:
            clean[key] = "***"
        elif key == "text" and action in TEXT_ACTIONS:
            clean[key] = mask_text(str(value))
        else:
            clean[key] = value
    return clean


def format_line(event: Dict[str, Any]) -> str:
    """`HH:MM:SS | LEVEL | action | key=value | ...`, empty fields omitted."""
    parts = [event["time"], event["level"], event["action"]]
    for name in _LINE_FIELDS:
        value = event.get(name)
        if value is not None and value != "":
            parts.append(f"{name}={value}")
    for key, value in (event.get("metadata") or {}).items():
        parts.append(f"{key}={value}")
    exc = event.get("exception")
    if exc:
        parts.append(f"exc={exc['type']}: {exc['message']}")
    return " | ".join(parts)


def format_jsonl(event: Dict[str, Any]) -> str:
    return json.dumps(event, ensure_ascii=False, separators=(",", ":"), default=str)


class ActionLogger:
    """
    Process-wide, thread-safe event sink.

    Besides console/file output it keeps the last `history_size` events in
    memory so callers can inspect what happened in a cycle.
    """

    def __init__(self, history_size: int = 200) -> None:
        self._lock = threading.Lock()
        self._enabled = False
        self._console = True
        self._file_path: Optional[str] = None
        self._level = "INFO"
        self._format = "line"
        self._cycle: Optional[str] = None
        self._max_traceback_chars = 4000
        self._history: Deque[Dict[str, Any]] = deque(maxlen=history_size)

    def configure(
        self,
        *,
        console: bool = True,
        file_path: Optional[str] = None,
        level: str = "INFO",
        format: str = "line",
        max_traceback_chars: int = 4000,
    ) -> None:
        fmt = (format or "line").lower()
        if fmt not in FORMATS:
            raise ValueError(f"ActionLogger format must be one of {FORMATS}")
        with self._lock:
            self._console = bool(console)
            self._file_path = file_path
            self._level = level.upper()
            self._format = fmt
            self._max_traceback_chars = max(256, int(max_traceback_chars))

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def is_enabled(self) -> bool:
        return self._enabled

    def set_run_id(self, cycle: str) -> None:
        """Tag subsequent events with the monitoring cycle id."""
        with self._lock:
            self._cycle = cycle or None

    def recent(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._lock:
            events = list(self._history)
        return events if limit is None else events[-limit:]

    def log(
        self,
        *,
        action: str,
        element: Optional[str] = None,
        state: Optional[str] = None,
        status: str = "ok",
        duration_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        exception: Optional[BaseException] = None,
        event: str = "action",
    ) -> None:
        """Record one event; a no-op while disabled."""
        if not self._enabled:
            return

        record: Dict[str, Any] = {
            "time": time.strftime("%H:%M:%S"),
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": self._level,
            "event": event,
            "action": action,
            "state": state,
            "element": element,
            "status": status,
            "duration_ms": duration_ms,
            "cycle": self._cycle,
            "metadata": redact(action, dict(metadata or {})),
        }
        if exception is not None:
            record["exception"] = self._describe(exception)

        line = format_jsonl(record) if self._format == "jsonl" else format_line(record)
        with self._lock:
            self._history.append(record)
            if self._console:
                print(line, flush=True)
            if self._file_path:
                self._append(line)

    def _append(self, line: str) -> None:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self._file_path)), exist_ok=True)
            with open(self._file_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.warning(f"Action log write failed ({self._file_path}): {e}")

    def _describe(self, exception: BaseException) -> Dict[str, Any]:
        tb = "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
        if len(tb) > self._max_traceback_chars:
            tb = tb[: self._max_traceback_chars] + "...<truncated>"
        cause = exception.__cause__
        return {
            "type": type(exception).__name__,
            "message": str(exception),
            "cause": f"{type(cause).__name__}: {cause}" if cause is not None else None,
            "traceback": tb.strip(),
        }


ACTION_LOGGER = ActionLogger()
