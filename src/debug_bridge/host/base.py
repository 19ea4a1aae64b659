"""Interface of the debug host the bridge drives.

The bridge never implements debugging itself. It talks to a host that owns
the active debug session, the breakpoint set and the stepping commands, the
way an editor's debug service does. ``DapDebugHost`` is the stock
implementation; tests use in-memory fakes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from .state import SourceBreakpoint

logger = logging.getLogger(__name__)

T = TypeVar("T")

Disposable = Callable[[], None]


class HostCommands:
    """Symbolic command names understood by ``DebugHost.execute_command``."""
    STEP_OVER = "debug.stepOver"
    STEP_INTO = "debug.stepInto"
    STEP_OUT = "debug.stepOut"
    CONTINUE = "debug.continue"
    PAUSE = "debug.pause"
    STOP = "debug.stop"
    RESTART = "debug.restart"
    START = "debug.start"


@runtime_checkable
class DebugSession(Protocol):
    """A live debug session that accepts raw DAP requests."""

    id: str
    name: str
    type: str

    async def custom_request(
        self, command: str, arguments: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Send a DAP request and return the response body.

        Raises on failure; the exception type is host specific.
        """
        ...


@dataclass
class SessionCustomEvent:
    """A DAP event relayed from a session."""
    session: DebugSession
    event: str
    body: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class DebugHost(Protocol):
    """Debug service collaborator consumed by the bridge."""

    @property
    def active_session(self) -> DebugSession | None: ...

    @property
    def breakpoints(self) -> list[SourceBreakpoint]: ...

    async def add_breakpoints(self, breakpoints: Sequence[SourceBreakpoint]) -> None: ...

    async def remove_breakpoints(self, breakpoints: Sequence[SourceBreakpoint]) -> None: ...

    async def execute_command(self, command: str) -> None: ...

    def on_session_started(self, listener: Callable[[DebugSession], None]) -> Disposable: ...

    def on_session_terminated(self, listener: Callable[[DebugSession], None]) -> Disposable: ...

    def on_custom_event(self, listener: Callable[[SessionCustomEvent], None]) -> Disposable: ...


class EventEmitter(Generic[T]):
    """Listener list with disposable subscriptions."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Callable[[T], None]] = []

    def subscribe(self, listener: Callable[[T], None]) -> Disposable:
        self._listeners.append(listener)

        def dispose() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass  # Already disposed

        return dispose

    def fire(self, value: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception(f"{self.name} listener error")

    def __len__(self) -> int:
        return len(self._listeners)
