"""
@file exceptions.py
@brief Exception classes and failure taxonomy for the slot monitoring engine.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """Failure conditions the engine recognises. None of them is fatal."""
    TRANSIENT_MISSING_ELEMENT = "transient_missing_element"
    STUCK_NO_PROGRESS = "stuck_no_progress"
    AMBIGUOUS_CLASSIFICATION = "ambiguous_classification"
    RECOVERY_EXHAUSTED = "recovery_exhausted"
    ACTION_DELIVERY_FAILURE = "action_delivery_failure"
    UNEXPECTED_TICK_EXCEPTION = "unexpected_tick_exception"


class SlotWatchError(Exception):
    """Base exception for the engine."""
    pass


class ConfigError(SlotWatchError):
    """Raised when YAML configuration is invalid."""
    pass


class SnapshotError(SlotWatchError):
    """Raised when a provider cannot produce an element tree."""
    pass


class ActionError(SlotWatchError):
    """
    Raised when a provider fails to dispatch a UI action.

    @param action Action name (click, tap, set_text, ...)
    @param element Short description of the target element, if any
    @param details Provider-specific explanation
    @param cause Underlying exception
    """

    def __init__(
        self,
        action: str,
        element: Optional[str] = None,
        details: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.action = action
        self.element = element
        self.details = details
        self.cause = cause
        parts = [f"{action} not delivered"]
        if element:
            parts.append(f"on {element}")
        if details:
            parts.append(f"({details})")
        if cause is not None:
            parts.append(f"caused by {type(cause).__name__}: {cause}")
        super().__init__(" ".join(parts))


class AlertDeliveryError(SlotWatchError):
    """Raised when the alert channel rejects or fails to deliver a message."""

    def __init__(self, channel: str, message: str, status_code: Optional[int] = None):
        self.channel = channel
        self.status_code = status_code
        msg = f"{channel}: {message}"
        if status_code is not None:
            msg += f" (HTTP {status_code})"
        super().__init__(msg)


class StatsError(SlotWatchError):
    """Raised when the statistics store cannot be read or written."""
    pass
