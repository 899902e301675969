"""
@file adb.py
@brief Snapshot and action provider backed by the adb binary.

Snapshots come from `uiautomator dump`; input goes through `adb shell input`.
`input text` only handles ASCII, so non-ASCII text is sent as an
ADB_INPUT_TEXT broadcast, which needs the ADBKeyBoard IME on the device.
"""

from __future__ import annotations

import logging
import subprocess
from typing import List, Optional

from .element import UIElement, parse_uiautomator_xml
from .exceptions import ActionError, SnapshotError
from .interfaces import IActionProvider, ISnapshotProvider

logger = logging.getLogger(__name__)

KEYCODE_HOME = 3
KEYCODE_BACK = 4
KEYCODE_DEL = 67
KEYCODE_MOVE_END = 123
DUMP_TIMEOUT_SECONDS = 20
INPUT_TIMEOUT_SECONDS = 10


def shell_quote(text: str) -> str:
    """Single-quote text for the device shell that `adb shell` hands it to."""
    return "'" + text.replace("'", "'\\''") + "'"


class AdbDevice(ISnapshotProvider, IActionProvider):
    """
    @param serial Device serial (adb -s); None uses the only attached device
    @param adb_path adb executable
    """

    def __init__(self, serial: Optional[str] = None, adb_path: str = "adb"):
        self.serial = serial
        self.adb_path = adb_path

    def _cmd(self, args: List[str]) -> List[str]:
        if self.serial:
            return [self.adb_path, "-s", self.serial] + args
        return [self.adb_path] + args

    def _run(self, args: List[str], timeout: float = INPUT_TIMEOUT_SECONDS) -> subprocess.CompletedProcess:
        cmd = self._cmd(args)
        logger.debug(f"adb: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            encoding="utf-8",
            errors="ignore",
        )

    def _shell(self, action: str, args: List[str], element: Optional[UIElement] = None) -> bool:
        try:
            result = self._run(["shell"] + args)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ActionError(action, element=element.label() if element else None, cause=e) from e
        if result.returncode != 0:
            logger.warning(f"adb {action} failed ({result.returncode}): {result.stderr.strip()}")
            return False
        return True

    # -------------------------
    # Snapshots
    # -------------------------

    def current_snapshot(self) -> Optional[UIElement]:
        try:
            result = self._run(["exec-out", "uiautomator", "dump", "/dev/tty"], timeout=DUMP_TIMEOUT_SECONDS)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SnapshotError(f"uiautomator dump failed: {e}") from e
        if result.returncode != 0 or "<hierarchy" not in result.stdout:
            logger.warning(f"uiautomator dump returned no hierarchy: {result.stderr.strip() or result.stdout[:120]}")
            return None
        # The dump is followed by "UI hierchary dumped to: /dev/tty"
        xml_text = result.stdout[: result.stdout.rfind("</hierarchy>") + len("</hierarchy>")]
        return parse_uiautomator_xml(xml_text)

    # -------------------------
    # Actions
    # -------------------------

    def click(self, element: UIElement) -> bool:
        if element.bounds.is_empty:
            return False
        x, y = element.bounds.center
        return self._shell("click", ["input", "tap", str(x), str(y)], element)

    def tap_at(self, x: int, y: int) -> bool:
        return self._shell("tap", ["input", "tap", str(int(x)), str(int(y))])

    def set_text(self, element: UIElement, text: str) -> bool:
        # `input text` appends at the cursor, so the old content is deleted first.
        if element.text:
            deletes = [str(KEYCODE_DEL)] * len(element.text)
            if not self._shell("set_text", ["input", "keyevent", str(KEYCODE_MOVE_END)] + deletes, element):
                return False
        if text.isascii():
            return self._shell("set_text", ["input", "text", shell_quote(text.replace(" ", "%s"))], element)
        return self._shell(
            "set_text",
            ["am", "broadcast", "-a", "ADB_INPUT_TEXT", "--es", "msg", shell_quote(text)],
            element,
        )

    def scroll_forward(self, element: UIElement) -> bool:
        b = element.bounds
        if b.is_empty:
            return False
        x = (b.left + b.right) // 2
        height = b.bottom - b.top
        start_y = b.top + height * 3 // 4
        end_y = b.top + height // 4
        return self._shell("scroll_forward", ["input", "swipe", str(x), str(start_y), str(x), str(end_y), "300"], element)

    def global_back(self) -> bool:
        return self._shell("back", ["input", "keyevent", str(KEYCODE_BACK)])

    def global_home(self) -> bool:
        return self._shell("home", ["input", "keyevent", str(KEYCODE_HOME)])

    def launch_app(self, app_id: str) -> bool:
        return self._shell(
            "launch_app",
            ["monkey", "-p", app_id, "-c", "android.intent.category.LAUNCHER", "1"],
        )
