"""Toast notifications passed into workflows instead of read from global state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from billkhata.runtime.logging import get_logger

logger = get_logger(__name__)

ToastKind = Literal["success", "error", "warning", "info"]


@dataclass(frozen=True)
class Toast:
    kind: ToastKind
    title: str
    message: str


class NotificationSink(Protocol):
    """Anything that can show a toast to the current user."""

    def add_toast(self, toast: Toast) -> None: ...


class LoggingNotificationSink:
    """Send toasts to the log (used by the CLI)."""

    def add_toast(self, toast: Toast) -> None:
        if toast.kind == "error":
            logger.error("%s: %s", toast.title, toast.message)
        elif toast.kind == "warning":
            logger.warning("%s: %s", toast.title, toast.message)
        else:
            logger.info("%s: %s", toast.title, toast.message)


class CollectingNotificationSink:
    """Keep toasts in memory, newest last."""

    def __init__(self) -> None:
        self.toasts: list[Toast] = []

    def add_toast(self, toast: Toast) -> None:
        self.toasts.append(toast)

    def kinds(self) -> list[ToastKind]:
        return [toast.kind for toast in self.toasts]

    def clear(self) -> None:
        self.toasts.clear()
