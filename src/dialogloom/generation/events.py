"""Lifecycle events and the progress channel.

Bulk runs announce themselves through a typed event channel instead of
untyped global events. The progress channel carries percentages, status
messages and terminal summaries to whatever UI is attached.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from dialogloom.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

log = get_logger(__name__)


@dataclass(frozen=True)
class BulkStarted:
    """A bulk regeneration run began; observers may pause validation."""

    start_id: str
    node_ids: tuple[str, ...]


@dataclass(frozen=True)
class BulkCompleted:
    """A bulk regeneration run finished."""

    count: int


@dataclass(frozen=True)
class FocusRequested:
    """The UI should bring *node_id* into view."""

    node_id: str


LifecycleEvent = BulkStarted | BulkCompleted | FocusRequested


class EventChannel:
    """Fire-and-forget delivery of lifecycle events to subscribers.

    Handlers run synchronously in subscription order. A failing handler is
    logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: list[Callable[[LifecycleEvent], None]] = []

    def subscribe(self, handler: Callable[[LifecycleEvent], None]) -> Callable[[], None]:
        """Add a handler.

        Returns:
            A function that removes the handler again.
        """
        self._handlers.append(handler)
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: Callable[[LifecycleEvent], None]) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, event: LifecycleEvent) -> None:
        log.debug("lifecycle_event", event_type=type(event).__name__)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                log.warning(
                    "lifecycle_handler_failed",
                    event_type=type(event).__name__,
                    error=str(e),
                )


class ProgressReporter(Protocol):
    """User-visible progress and status channel."""

    def progress(self, percent: int) -> None:
        """Report percentage complete (0-100)."""
        ...

    def message(self, text: str) -> None:
        """Report a human-readable status line."""
        ...

    def success(self, text: str) -> None:
        """Report a terminal success summary."""
        ...

    def failure(self, text: str) -> None:
        """Report a failure visible to the user."""
        ...


class NullProgressReporter:
    """Progress reporter that discards everything."""

    def progress(self, percent: int) -> None:
        pass

    def message(self, text: str) -> None:
        pass

    def success(self, text: str) -> None:
        pass

    def failure(self, text: str) -> None:
        pass


class LoggingProgressReporter:
    """Progress reporter that forwards to the structured log."""

    def progress(self, percent: int) -> None:
        log.info("progress", percent=percent)

    def message(self, text: str) -> None:
        log.info("progress_message", text=text)

    def success(self, text: str) -> None:
        log.info("progress_success", text=text)

    def failure(self, text: str) -> None:
        log.warning("progress_failure", text=text)
