"""
@file interfaces.py
@brief Abstract base classes for the collaborators the engine drives.

The engine never talks to a device directly. It pulls snapshots from an
ISnapshotProvider, issues input through an IActionProvider and hands
alerts to an INotifier. Concrete implementations (adb, the scripted
simulator, test doubles) implement these.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from .element import UIElement


class ISnapshotProvider(ABC):
    """
    Source of read-only UI element trees.
    """

    @abstractmethod
    def current_snapshot(self) -> Optional[UIElement]:
        """
        Capture the current UI tree.

        Returns:
            Root element, or None when no window is available
        """
        pass

    def on_tree_changed(self, callback: Callable[[], None]) -> None:
        """
        Register a callback fired when the UI tree changes.

        Providers without change notifications ignore it; the engine then
        relies on its watchdog tick.
        """
        pass


class IActionProvider(ABC):
    """
    Input simulation on the target interface.

    Actions are fire-and-forget: a True return only means the action was
    dispatched. Implementations signal an undelivered action by returning
    False or raising ActionError.
    """

    @abstractmethod
    def click(self, element: UIElement) -> bool:
        """Click an element (accessibility click, not a gesture)."""
        pass

    @abstractmethod
    def set_text(self, element: UIElement, text: str) -> bool:
        """
        Replace the text of an editable element.

        Args:
            element: Editable target
            text: New text content
        """
        pass

    @abstractmethod
    def scroll_forward(self, element: UIElement) -> bool:
        """Scroll a scrollable container one page forward."""
        pass

    @abstractmethod
    def global_back(self) -> bool:
        """System-level back navigation."""
        pass

    @abstractmethod
    def global_home(self) -> bool:
        """System-level home navigation."""
        pass

    @abstractmethod
    def launch_app(self, app_id: str) -> bool:
        """
        Bring the target application to the foreground.

        Args:
            app_id: Application/package identifier
        """
        pass

    @abstractmethod
    def tap_at(self, x: int, y: int) -> bool:
        """Tap raw screen coordinates."""
        pass


class INotifier(ABC):
    """
    Outbound alert channel.
    """

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """True when the channel is configured to send."""
        pass

    @abstractmethod
    def send(self, text: str) -> None:
        """
        Deliver one message.

        Raises:
            AlertDeliveryError: If the channel rejects the message
        """
        pass
