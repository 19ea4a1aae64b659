"""Session lifecycle event log.

Host notifications are pushed onto a queue from the notification callbacks
and written to the diagnostic log by a drain task, so a slow log sink never
holds up the host or a request handler. Nothing here changes bridge state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .dap.events import StoppedEventBody
from .dap.protocol import Events
from .host.base import DebugHost, DebugSession, Disposable, SessionCustomEvent

logger = logging.getLogger(__name__)

EVENT_LOGGER_NAME = "debug_bridge.events"


class EventKind(str, Enum):
    """Classes of host notification."""
    SESSION_STARTED = "session-started"
    SESSION_TERMINATED = "session-terminated"
    CUSTOM = "custom-event"


@dataclass
class LifecycleEvent:
    """A host notification queued for the event log."""
    kind: EventKind
    session_name: str
    session_type: str | None = None
    event: str | None = None
    body: dict[str, Any] = field(default_factory=dict)
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_stop(self) -> bool:
        return self.kind == EventKind.CUSTOM and self.event == Events.STOPPED

    def render(self) -> tuple[int, str]:
        """Return (log level, line) for this event."""
        if self.kind == EventKind.SESSION_STARTED:
            return logging.INFO, f"Debug session started: {self.session_name} ({self.session_type})"
        if self.kind == EventKind.SESSION_TERMINATED:
            return logging.INFO, f"Debug session ended: {self.session_name}"
        if self.is_stop:
            details = StoppedEventBody.from_dict(self.body).describe()
            return logging.WARNING, f"=== STOPPED === {self.session_name}: {details}"
        if self.event == Events.OUTPUT:
            category = self.body.get("category", "console")
            output = str(self.body.get("output", "")).rstrip()
            return logging.INFO, f"Output [{category}]: {output}"
        return logging.INFO, f"Custom debug event: {self.event}"


class LifecycleLog:
    """Subscribes to host notifications and writes them to the event log."""

    def __init__(self, host: DebugHost, event_logger: logging.Logger | None = None):
        self.host = host
        self.event_logger = event_logger or logging.getLogger(EVENT_LOGGER_NAME)
        self._queue: asyncio.Queue[LifecycleEvent] = asyncio.Queue()
        self._subscriptions: list[Disposable] = []
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Subscribe to the host and start draining. Subsequent calls are no-ops."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self.host.on_session_started(self._on_started),
            self.host.on_session_terminated(self._on_terminated),
            self.host.on_custom_event(self._on_custom_event),
        ]
        self._task = asyncio.create_task(self._drain())

    async def stop(self) -> None:
        """Unsubscribe, flush queued events and stop the drain task."""
        for dispose in self._subscriptions:
            dispose()
        self._subscriptions = []

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        while not self._queue.empty():
            self._write(self._queue.get_nowait())

    def _on_started(self, session: DebugSession) -> None:
        self._queue.put_nowait(
            LifecycleEvent(EventKind.SESSION_STARTED, session.name, session_type=session.type)
        )

    def _on_terminated(self, session: DebugSession) -> None:
        self._queue.put_nowait(
            LifecycleEvent(EventKind.SESSION_TERMINATED, session.name, session_type=session.type)
        )

    def _on_custom_event(self, event: SessionCustomEvent) -> None:
        self._queue.put_nowait(
            LifecycleEvent(
                EventKind.CUSTOM,
                event.session.name,
                session_type=event.session.type,
                event=event.event,
                body=dict(event.body),
            )
        )

    async def _drain(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._write(event)
            finally:
                self._queue.task_done()

    def _write(self, event: LifecycleEvent) -> None:
        try:
            level, line = event.render()
            self.event_logger.log(level, line)
        except Exception:
            logger.exception(f"Failed to log {event.kind.value} event")
