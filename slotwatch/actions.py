"""
@file actions.py
@brief Action dispatch layer between the state machine and the action provider.

Every action is fire-and-forget. A method returns True when the action
was dispatched and False when it could not be delivered; provider
exceptions never escape into the tick.
"""

from __future__ import annotations

import functools
import inspect
import logging
import time
from typing import Any, Callable, Optional

from .actionlogger import ACTION_LOGGER
from .element import UIElement, clickable_target
from .exceptions import ActionError, FailureKind
from .interfaces import IActionProvider

logger = logging.getLogger(__name__)


def tracked_action(action_name: Optional[str] = None):
    """Decorator that logs an action, its outcome and duration."""
    def decorator(func: Callable[..., bool]) -> Callable[..., bool]:
        name = action_name or func.__name__
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(self: "Actions", *args: Any, **kwargs: Any) -> bool:
            element = None
            metadata = {}
            for key, value in signature.bind(self, *args, **kwargs).arguments.items():
                if key == "self" or value is None:
                    continue
                if isinstance(value, UIElement):
                    element = element or value.label()
                else:
                    metadata[key] = value

            start_time = time.time()
            try:
                delivered = bool(func(self, *args, **kwargs))
            except ActionError as exc:
                delivered = False
                logger.warning(f"{name} failed: {exc}")
                ACTION_LOGGER.log(
                    action=name,
                    element=element,
                    status="error",
                    duration_ms=int((time.time() - start_time) * 1000),
                    exception=exc,
                    event="action_finish",
                    metadata={**metadata, "failure": FailureKind.ACTION_DELIVERY_FAILURE.value},
                )
                return delivered

            ACTION_LOGGER.log(
                action=name,
                element=element,
                status="ok" if delivered else "not_delivered",
                duration_ms=int((time.time() - start_time) * 1000),
                metadata=metadata,
                event="action_finish",
            )
            return delivered

        return wrapper
    return decorator


def _call(action: str, fn: Callable[[], Any], element: Optional[UIElement] = None) -> bool:
    """Invoke a provider call, normalising any failure into ActionError."""
    try:
        return bool(fn())
    except ActionError:
        raise
    except Exception as e:
        raise ActionError(action, element=element.label() if element else None, cause=e) from e


class Actions:
    """
    Keyword action library over an IActionProvider.
    """

    def __init__(self, provider: IActionProvider):
        """
        @param provider Device action provider
        """
        self.provider = provider

    @tracked_action("click")
    def click(self, element: UIElement, root: Optional[UIElement] = None) -> bool:
        """
        Click element via its nearest clickable ancestor.

        Falls back to one coordinate tap on the element centre when there is no
        clickable ancestor or the click does not register.
        """
        target = clickable_target(root, element) if root is not None else (element if element.clickable else None)
        if target is not None:
            try:
                if _call("click", lambda: self.provider.click(target), target):
                    return True
            except ActionError as e:
                logger.info(f"Click on {target.label()} failed ({e}), falling back to tap")
        if element.bounds.is_empty:
            return False
        x, y = element.bounds.center
        return self.tap_at(x, y)

    @tracked_action("tap")
    def tap_at(self, x: int, y: int) -> bool:
        return _call("tap", lambda: self.provider.tap_at(x, y))

    @tracked_action("set_text")
    def set_text(self, element: UIElement, text: str) -> bool:
        return _call("set_text", lambda: self.provider.set_text(element, text), element)

    @tracked_action("scroll_forward")
    def scroll_forward(self, element: UIElement) -> bool:
        return _call("scroll_forward", lambda: self.provider.scroll_forward(element), element)

    @tracked_action("back")
    def back(self) -> bool:
        return _call("back", self.provider.global_back)

    @tracked_action("home")
    def home(self) -> bool:
        return _call("home", self.provider.global_home)

    @tracked_action("launch_app")
    def launch_app(self, app_id: str) -> bool:
        return _call("launch_app", lambda: self.provider.launch_app(app_id))
