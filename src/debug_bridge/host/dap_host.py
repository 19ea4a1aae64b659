"""Debug host backed by a stdio DAP adapter.

Plays the role an editor's debug service plays for the bridge: it launches
or attaches a single debug session through the adapter, owns the breakpoint
set, executes symbolic stepping commands and relays adapter events.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Sequence
from typing import Any

from ..dap import DAPClient, DAPEvent
from ..dap.events import ExitedEventBody, StoppedEventBody
from ..dap.protocol import Commands, Events
from .base import (
    DebugSession,
    Disposable,
    EventEmitter,
    HostCommands,
    SessionCustomEvent,
)
from .state import BreakpointRegistry, DebugState, SourceBreakpoint

logger = logging.getLogger(__name__)

# Thread used when the adapter has not reported a stopped thread yet
DEFAULT_THREAD_ID = 1

INITIALIZE_TIMEOUT = 10.0

# Adapter events forwarded to custom-event subscribers
RELAYED_EVENTS = (
    Events.STOPPED,
    Events.CONTINUED,
    Events.EXITED,
    Events.TERMINATED,
    Events.OUTPUT,
    Events.THREAD,
    Events.BREAKPOINT,
)


class DapDebugSession:
    """Session handle that forwards raw requests to the adapter."""

    def __init__(self, client: DAPClient, session_id: str, name: str, type: str):
        self._client = client
        self.id = session_id
        self.name = name
        self.type = type
        self.terminated = False

    async def custom_request(
        self, command: str, arguments: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        response = await self._client.send_request(command, arguments)
        return response.raise_on_failure()

    def __repr__(self) -> str:
        return f"DapDebugSession(id={self.id!r}, name={self.name!r}, type={self.type!r})"


class DapDebugHost:
    """Single-session debug host driving a DAP adapter process."""

    def __init__(
        self,
        adapter_command: Sequence[str],
        launch_config: dict[str, Any] | None = None,
        adapter_id: str = "bridge",
    ):
        self._client = DAPClient(adapter_command, adapter_id=adapter_id)
        self._launch_config = launch_config
        self._last_config: dict[str, Any] | None = None
        self._breakpoints = BreakpointRegistry()
        self._state = DebugState.IDLE
        self._session: DapDebugSession | None = None
        self._session_count = 0
        self._current_thread_id: int | None = None
        self._exit_code: int | None = None
        self._initialized_event = asyncio.Event()
        self._handlers_registered = False
        self._started = EventEmitter[DebugSession]("session-started")
        self._terminated = EventEmitter[DebugSession]("session-terminated")
        self._custom = EventEmitter[SessionCustomEvent]("custom-event")

    @property
    def state(self) -> DebugState:
        return self._state

    @property
    def is_active(self) -> bool:
        """Check if session is active."""
        return self._state not in (DebugState.IDLE, DebugState.TERMINATED)

    @property
    def active_session(self) -> DapDebugSession | None:
        if self._session is None or not self.is_active or not self._client.is_running:
            return None
        return self._session

    @property
    def breakpoints(self) -> list[SourceBreakpoint]:
        return self._breakpoints.get_all()

    @property
    def current_thread_id(self) -> int:
        return self._current_thread_id or DEFAULT_THREAD_ID

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    # Subscriptions

    def on_session_started(self, listener: Callable[[DebugSession], None]) -> Disposable:
        return self._started.subscribe(listener)

    def on_session_terminated(self, listener: Callable[[DebugSession], None]) -> Disposable:
        return self._terminated.subscribe(listener)

    def on_custom_event(self, listener: Callable[[SessionCustomEvent], None]) -> Disposable:
        return self._custom.subscribe(listener)

    def _set_state(self, new_state: DebugState) -> None:
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.info(f"State changed: {old_state.value} -> {new_state.value}")

    # Session lifecycle

    async def start_session(self, config: dict[str, Any] | None = None) -> DapDebugSession:
        """Launch or attach a debug session.

        Args:
            config: Launch configuration. ``request`` selects launch/attach
                (default launch); every other key is passed to the adapter.
                Defaults to the configuration given at construction.

        Raises:
            RuntimeError: If no configuration exists, a session is already
                active, or the adapter rejects the request.
        """
        config = config or self._launch_config
        if not config:
            raise RuntimeError("No launch configuration; pass --launch to start a session")
        if self.is_active:
            raise RuntimeError("A debug session is already active")

        request = config.get("request", Commands.LAUNCH)
        if request not in (Commands.LAUNCH, Commands.ATTACH):
            raise ValueError(f"Unsupported request type: {request}")
        arguments = {k: v for k, v in config.items() if k != "request"}

        # A previous adapter may linger after its session or read loop ended
        await self._client.stop()

        await self._client.start()
        self._register_event_handlers()
        self._initialized_event.clear()
        self._current_thread_id = None
        self._exit_code = None
        self._session_count += 1
        self._session = DapDebugSession(
            self._client,
            session_id=f"session-{self._session_count}",
            name=_session_name(config),
            type=config.get("type") or self._client.adapter_id,
        )
        self._set_state(DebugState.INITIALIZING)

        # Some adapters only answer launch/attach after configurationDone,
        # so the request is sent before configuration and awaited last.
        launch_task: asyncio.Task | None = None
        try:
            await self._client.initialize()
            launch_task = asyncio.create_task(self._client.send_request(request, arguments))
            await self._wait_initialized(launch_task)

            await self._sync_all_breakpoints()
            await self._client.set_exception_breakpoints([])
            await self._client.configuration_done()

            response = await launch_task
            if not response.success:
                raise RuntimeError(f"{request.capitalize()} failed: {response.message}")
        except BaseException:
            if launch_task is not None and not launch_task.done():
                launch_task.cancel()
            self._session = None
            await self._client.stop()
            self._set_state(DebugState.IDLE)
            raise

        if self._state == DebugState.INITIALIZING:
            self._set_state(DebugState.RUNNING)
        self._last_config = dict(config)
        logger.info(f"Debug session started: {self._session.name}")
        self._started.fire(self._session)
        return self._session

    async def _wait_initialized(self, launch_task: asyncio.Task) -> None:
        """Wait for the initialized event, failing fast if launch errors first."""
        waiter = asyncio.create_task(self._initialized_event.wait())
        try:
            done, _ = await asyncio.wait(
                {waiter, launch_task},
                timeout=INITIALIZE_TIMEOUT,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not waiter.done():
                waiter.cancel()

        if self._initialized_event.is_set():
            return
        if launch_task in done:
            response = launch_task.result()
            if not response.success:
                raise RuntimeError(f"Launch failed: {response.message}")
            try:
                await asyncio.wait_for(self._initialized_event.wait(), timeout=INITIALIZE_TIMEOUT)
                return
            except asyncio.TimeoutError:
                pass
        raise RuntimeError("Timeout waiting for DAP initialization")

    async def stop_session(self) -> None:
        """Stop the debug session and the adapter process."""
        if self._client.is_running:
            try:
                await self._client.disconnect(terminate=True)
            except Exception as e:
                logger.warning(f"Error during disconnect: {e}")
            await self._client.stop()

        session = self._session
        self._session = None
        self._initialized_event.clear()
        self._current_thread_id = None
        self._set_state(DebugState.IDLE)
        if session is not None:
            self._announce_terminated(session)

    async def restart_session(self) -> DapDebugSession:
        """Restart with the last configuration used."""
        config = self._last_config or self._launch_config
        if not config:
            raise RuntimeError("No previous launch configuration for restart")
        await self.stop_session()
        return await self.start_session(config)

    def _announce_terminated(self, session: DapDebugSession) -> None:
        if session.terminated:
            return
        session.terminated = True
        logger.info(f"Debug session ended: {session.name}")
        self._terminated.fire(session)

    # Event handling

    def _register_event_handlers(self) -> None:
        """Register DAP event handlers once per client."""
        if self._handlers_registered:
            return
        self._client.on_event(Events.INITIALIZED, self._on_initialized)
        self._client.on_event(Events.STOPPED, self._on_stopped)
        self._client.on_event(Events.CONTINUED, self._on_continued)
        self._client.on_event(Events.EXITED, self._on_exited)
        self._client.on_event(Events.TERMINATED, self._on_terminated)
        for event_name in RELAYED_EVENTS:
            self._client.on_event(event_name, self._relay)
        self._handlers_registered = True

    def _on_initialized(self, event: DAPEvent) -> None:
        logger.info("DAP adapter initialized")
        self._initialized_event.set()

    def _on_stopped(self, event: DAPEvent) -> None:
        body = StoppedEventBody.from_dict(event.body)
        if body.thread_id is not None:
            self._current_thread_id = body.thread_id
        self._set_state(DebugState.STOPPED)

    def _on_continued(self, event: DAPEvent) -> None:
        self._set_state(DebugState.RUNNING)

    def _on_exited(self, event: DAPEvent) -> None:
        self._exit_code = ExitedEventBody.from_dict(event.body).exit_code
        logger.info(f"Process exited with code {self._exit_code}")

    def _on_terminated(self, event: DAPEvent) -> None:
        self._set_state(DebugState.TERMINATED)
        if self._session is not None:
            self._announce_terminated(self._session)

    def _relay(self, event: DAPEvent) -> None:
        if self._session is not None:
            self._custom.fire(SessionCustomEvent(self._session, event.event, event.body))

    # Breakpoints

    async def add_breakpoints(self, breakpoints: Sequence[SourceBreakpoint]) -> None:
        files = set()
        for bp in breakpoints:
            self._breakpoints.add(bp)
            files.add(bp.file)
        if self.is_active:
            for file_path in files:
                await self._sync_file_breakpoints(file_path)

    async def remove_breakpoints(self, breakpoints: Sequence[SourceBreakpoint]) -> None:
        files = set()
        for bp in breakpoints:
            if self._breakpoints.remove(bp.location):
                files.add(bp.file)
        if self.is_active:
            for file_path in files:
                await self._sync_file_breakpoints(file_path)

    async def _sync_all_breakpoints(self) -> None:
        for file_path in self._breakpoints.get_files():
            await self._sync_file_breakpoints(file_path)

    async def _sync_file_breakpoints(self, file_path: str) -> None:
        """Send the enabled breakpoints of one file to the adapter."""
        breakpoints = [bp for bp in self._breakpoints.get_for_file(file_path) if bp.enabled]
        response = await self._client.set_breakpoints(
            file_path, [bp.to_dap() for bp in breakpoints]
        )
        if response.success:
            self._breakpoints.update_from_dap(file_path, response.body.get("breakpoints", []))
        else:
            logger.warning(f"setBreakpoints failed for {file_path}: {response.message}")

    # Commands

    async def execute_command(self, command: str) -> None:
        """Run a symbolic debug command (see ``HostCommands``)."""
        handlers = {
            HostCommands.STEP_OVER: self._step_over,
            HostCommands.STEP_INTO: self._step_into,
            HostCommands.STEP_OUT: self._step_out,
            HostCommands.CONTINUE: self._continue,
            HostCommands.PAUSE: self._pause,
            HostCommands.STOP: self.stop_session,
            HostCommands.RESTART: self.restart_session,
            HostCommands.START: self._start,
        }
        handler = handlers.get(command)
        if handler is None:
            raise ValueError(f"Unknown debug command: {command}")
        await handler()

    def _ready_for(self, command: str) -> bool:
        if not self.is_active or not self._client.is_running:
            logger.info(f"No active debug session, ignoring {command}")
            return False
        return True

    async def _step_over(self) -> None:
        if self._ready_for(HostCommands.STEP_OVER):
            (await self._client.step_over(self.current_thread_id)).raise_on_failure()

    async def _step_into(self) -> None:
        if self._ready_for(HostCommands.STEP_INTO):
            (await self._client.step_in(self.current_thread_id)).raise_on_failure()

    async def _step_out(self) -> None:
        if self._ready_for(HostCommands.STEP_OUT):
            (await self._client.step_out(self.current_thread_id)).raise_on_failure()

    async def _continue(self) -> None:
        if self._ready_for(HostCommands.CONTINUE):
            (await self._client.continue_execution(self.current_thread_id)).raise_on_failure()
            self._set_state(DebugState.RUNNING)

    async def _pause(self) -> None:
        if self._ready_for(HostCommands.PAUSE):
            (await self._client.pause(self.current_thread_id)).raise_on_failure()

    async def _start(self) -> None:
        if self.is_active:
            logger.info("Debug session already active, ignoring start")
            return
        await self.start_session()


def _session_name(config: dict[str, Any]) -> str:
    if config.get("name"):
        return str(config["name"])
    program = config.get("program")
    if program:
        return os.path.basename(str(program))
    if config.get("processId"):
        return f"pid {config['processId']}"
    return "debug"
