"""
@file simulator.py
@brief Scripted in-memory device for dry runs and tests.

A ScriptedDevice is a set of named screens (element trees) and a
transition table keyed by action. Action keys, most specific first:

    click:<text>      click on an element whose first text or description is <text>
    click             any other click
    tap:<x>,<y>       tap at exact coordinates
    tap               any other tap
    set_text:<text>   set text to <text>
    set_text          any other set_text
    scroll, back, home
    launch:<app_id>, launch

Transitions listed under "*" apply on every screen unless the screen
defines the same key. An action with no matching transition leaves the
screen unchanged and still counts as delivered.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, List, Optional

import yaml

from .element import UIElement, collect_texts, load_snapshot
from .exceptions import ConfigError
from .interfaces import IActionProvider, ISnapshotProvider

logger = logging.getLogger(__name__)

WILDCARD = "*"


class ScriptedDevice(ISnapshotProvider, IActionProvider):
    """
    @param screens Screen name to element tree
    @param transitions Screen name (or "*") to {action key: next screen}
    @param start Initial screen name
    @param undeliverable Action keys that report non-delivery (return False)
    """

    def __init__(
        self,
        screens: Dict[str, Optional[UIElement]],
        transitions: Dict[str, Dict[str, str]],
        start: str,
        undeliverable: Optional[List[str]] = None,
    ):
        if start not in screens:
            raise ConfigError(f"start screen '{start}' is not defined")
        for source, table in transitions.items():
            if source != WILDCARD and source not in screens:
                raise ConfigError(f"transitions.{source}: unknown screen")
            for key, target in table.items():
                if target not in screens:
                    raise ConfigError(f"transitions.{source}.{key}: unknown target screen '{target}'")
        self.screens = screens
        self.transitions = transitions
        self.current = start
        self.undeliverable = set(undeliverable or [])
        self.journal: List[str] = []
        self._listeners: List[Callable[[], None]] = []

    # -------------------------
    # Loading
    # -------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: str = ".") -> ScriptedDevice:
        if not isinstance(data, dict):
            raise ConfigError("Device script must be a mapping at root.")
        raw_screens = data.get("screens")
        if not isinstance(raw_screens, dict) or not raw_screens:
            raise ConfigError("'screens' must be a non-empty mapping")

        screens: Dict[str, Optional[UIElement]] = {}
        for name, spec in raw_screens.items():
            if spec is None:
                screens[name] = None
            elif isinstance(spec, str):
                screens[name] = load_snapshot(os.path.join(base_dir, spec))
            elif isinstance(spec, dict):
                screens[name] = UIElement.from_dict(spec.get("root", spec))
            else:
                raise ConfigError(f"screens.{name}: must be a mapping, a file path or null")

        transitions = data.get("transitions") or {}
        if not isinstance(transitions, dict):
            raise ConfigError("'transitions' must be a mapping")
        table = {str(k): {str(a): str(t) for a, t in (v or {}).items()} for k, v in transitions.items()}

        start = data.get("start") or next(iter(screens))
        return cls(screens, table, start, undeliverable=data.get("undeliverable"))

    @classmethod
    def load(cls, path: str) -> ScriptedDevice:
        path = os.path.abspath(path)
        if not os.path.exists(path):
            raise ConfigError(f"Device script not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        return cls.from_dict(data, base_dir=os.path.dirname(path))

    # -------------------------
    # Provider API
    # -------------------------

    def on_tree_changed(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def current_snapshot(self) -> Optional[UIElement]:
        return self.screens[self.current]

    def click(self, element: UIElement) -> bool:
        texts = collect_texts(element)
        label = texts[0] if texts else ""
        return self._apply(f"click:{label}", "click")

    def tap_at(self, x: int, y: int) -> bool:
        return self._apply(f"tap:{x},{y}", "tap")

    def set_text(self, element: UIElement, text: str) -> bool:
        return self._apply(f"set_text:{text}", "set_text")

    def scroll_forward(self, element: UIElement) -> bool:
        return self._apply("scroll")

    def global_back(self) -> bool:
        return self._apply("back")

    def global_home(self) -> bool:
        return self._apply("home")

    def launch_app(self, app_id: str) -> bool:
        return self._apply(f"launch:{app_id}", "launch")

    # -------------------------
    # Internals
    # -------------------------

    def _lookup(self, key: str) -> Optional[str]:
        for source in (self.current, WILDCARD):
            table = self.transitions.get(source) or {}
            if key in table:
                return table[key]
        return None

    def _apply(self, *keys: str) -> bool:
        self.journal.append(keys[0])
        if any(k in self.undeliverable for k in keys):
            logger.debug(f"{keys[0]}: not delivered (scripted)")
            return False

        target = None
        for key in keys:
            target = self._lookup(key)
            if target is not None:
                break
        if target is None or target == self.current:
            return True

        logger.debug(f"{keys[0]}: {self.current} -> {target}")
        self.current = target
        for listener in list(self._listeners):
            listener()
        return True


class VirtualClock:
    """Manually advanced clock for running the engine without waiting."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
