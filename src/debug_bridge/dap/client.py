"""DAP Client - talks to a debug adapter over stdio."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from typing import Any

from .protocol import (
    Commands,
    DAPEvent,
    DAPRequest,
    DAPResponse,
    parse_content_length,
    parse_message,
)

logger = logging.getLogger(__name__)

# Limits for security
MAX_CONTENT_LENGTH = 10_000_000  # 10MB max DAP message size


class DAPClient:
    """Async DAP client for a stdio debug adapter process."""

    def __init__(self, command: Sequence[str], adapter_id: str = "bridge"):
        if not command:
            raise ValueError("Adapter command must not be empty")
        self.command = list(command)
        self.adapter_id = adapter_id
        self._seq = 0
        self._request_lock = asyncio.Lock()  # Protect sequence number
        self._pending: dict[int, asyncio.Future[DAPResponse]] = {}
        self._event_handlers: dict[str, list[Callable[[DAPEvent], None]]] = {}
        self._process: asyncio.subprocess.Process | None = None
        self._read_task: asyncio.Task | None = None
        self._stderr_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """Check if the adapter process is alive."""
        if self._process is None or self._process.returncode is not None:
            return False
        return self._read_task is None or not self._read_task.done()

    async def start(self) -> None:
        """Start the adapter process."""
        if self.is_running:
            return

        logger.info(f"Starting debug adapter: {' '.join(self.command)}")
        self._process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        self._read_task = asyncio.create_task(self._read_loop())
        self._stderr_task = asyncio.create_task(self._drain_stderr())
        logger.info(f"Debug adapter started with PID {self._process.pid}")

    async def stop(self) -> None:
        """Stop the adapter process."""
        for task in (self._read_task, self._stderr_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._read_task = None
        self._stderr_task = None

        if self._process:
            pid = self._process.pid
            if self._process.returncode is None:
                try:
                    self._process.terminate()
                    await asyncio.wait_for(self._process.wait(), timeout=5.0)
                except ProcessLookupError:
                    pass
                except asyncio.TimeoutError:
                    logger.warning(f"Process {pid} did not terminate, killing...")
                    self._process.kill()
                    try:
                        await asyncio.wait_for(self._process.wait(), timeout=2.0)
                    except asyncio.TimeoutError:
                        logger.exception(f"Failed to kill process {pid}")
            self._process = None

        self._cancel_pending()
        self._seq = 0
        logger.info("Debug adapter stopped")

    def on_event(self, event_name: str, handler: Callable[[DAPEvent], None]) -> None:
        """Register event handler."""
        if event_name not in self._event_handlers:
            self._event_handlers[event_name] = []
        self._event_handlers[event_name].append(handler)

    async def send_request(
        self, command: str, arguments: dict[str, Any] | None = None, timeout: float = 30.0
    ) -> DAPResponse:
        """Send DAP request and wait for response."""
        if not self.is_running:
            raise RuntimeError("Debug adapter not running")

        # Atomically increment seq and register future
        async with self._request_lock:
            self._seq += 1
            seq = self._seq
            future: asyncio.Future[DAPResponse] = asyncio.get_running_loop().create_future()
            self._pending[seq] = future

        request = DAPRequest(seq=seq, command=command, arguments=arguments or {})
        try:
            await self._send(request)
        except Exception:
            self._pending.pop(seq, None)
            raise

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._pending.pop(seq, None)
            raise TimeoutError(f"Request {command} timed out after {timeout}s") from None

    async def _send(self, request: DAPRequest) -> None:
        """Write a request to the adapter's stdin."""
        if not self._process or not self._process.stdin:
            raise RuntimeError("Process not running")

        logger.debug(f">>> {request.command}: {request.arguments}")
        self._process.stdin.write(request.to_bytes())
        await self._process.stdin.drain()

    async def _read_loop(self) -> None:
        """Read messages from the adapter."""
        assert self._process and self._process.stdout
        stdout = self._process.stdout

        try:
            while True:
                try:
                    header_line = await stdout.readline()
                    if not header_line:
                        logger.warning("Debug adapter stdout closed")
                        break

                    content_length = parse_content_length(header_line.decode("utf-8"))
                    if content_length is None:
                        continue

                    # Validate Content-Length (security: prevent DoS)
                    if content_length < 0 or content_length > MAX_CONTENT_LENGTH:
                        logger.error(f"Invalid Content-Length: {content_length}")
                        raise ValueError(f"Invalid Content-Length: {content_length}")

                    # Skip remaining headers up to the blank line
                    while (await stdout.readline()).strip():
                        pass

                    content = await stdout.readexactly(content_length)
                    data = json.loads(content.decode("utf-8"))

                    self._handle_message(data)

                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Error reading DAP message")
                    break
        finally:
            self._fail_pending(RuntimeError("Debug adapter connection closed"))
            if self._process and self._process.returncode is None:
                logger.warning("Read loop exited, terminating adapter process")
                try:
                    self._process.terminate()
                except ProcessLookupError:
                    pass

    async def _drain_stderr(self) -> None:
        """Forward adapter stderr to the log so the pipe never fills."""
        assert self._process and self._process.stderr
        while True:
            line = await self._process.stderr.readline()
            if not line:
                return
            logger.debug(f"[adapter] {line.decode('utf-8', errors='replace').rstrip()}")

    def _handle_message(self, data: dict[str, Any]) -> None:
        """Handle incoming DAP message."""
        if data.get("type") == "request":
            # Reverse requests (runInTerminal, startDebugging) are not supported
            logger.debug(f"<<< Ignoring reverse request {data.get('command')}")
            return

        try:
            message = parse_message(data)

            if isinstance(message, DAPResponse):
                logger.debug(f"<<< Response {message.command}: success={message.success}")
                future = self._pending.pop(message.request_seq, None)
                if future and not future.done():
                    future.set_result(message)

            elif isinstance(message, DAPEvent):
                logger.debug(f"<<< Event {message.event}: {message.body}")
                handlers = self._event_handlers.get(message.event, [])
                for handler in list(handlers):
                    try:
                        handler(message)
                    except Exception:
                        logger.exception("Event handler error")

        except Exception:
            logger.exception(f"Error handling message, data: {data}")

    def _fail_pending(self, exc: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(exc)
        self._pending.clear()

    def _cancel_pending(self) -> None:
        for future in self._pending.values():
            if not future.done():
                future.cancel()
        self._pending.clear()

    # High-level DAP commands

    async def initialize(self) -> dict[str, Any]:
        """Initialize DAP session."""
        response = await self.send_request(
            Commands.INITIALIZE,
            {
                "clientID": "debug-bridge",
                "clientName": "Debug Bridge",
                "adapterID": self.adapter_id,
                "pathFormat": "path",
                "linesStartAt1": True,
                "columnsStartAt1": True,
                "supportsVariableType": True,
                "supportsVariablePaging": False,
                "supportsRunInTerminalRequest": False,
                "supportsProgressReporting": False,
            },
        )
        return response.body if response.success else {}

    async def configuration_done(self) -> DAPResponse:
        """Signal that configuration is complete."""
        return await self.send_request(Commands.CONFIGURATION_DONE)

    async def disconnect(self, terminate: bool = True) -> DAPResponse:
        """Disconnect from debuggee."""
        return await self.send_request(
            Commands.DISCONNECT, {"terminateDebuggee": terminate}, timeout=10.0
        )

    async def set_breakpoints(
        self, source_path: str, breakpoints: list[dict[str, Any]]
    ) -> DAPResponse:
        """Set breakpoints in a source file."""
        return await self.send_request(
            Commands.SET_BREAKPOINTS,
            {
                "source": {"path": source_path},
                "breakpoints": breakpoints,
            },
        )

    async def set_exception_breakpoints(
        self, filters: list[str] | None = None
    ) -> DAPResponse:
        """Set exception breakpoints."""
        return await self.send_request(
            Commands.SET_EXCEPTION_BREAKPOINTS,
            {"filters": filters or []},
        )

    async def continue_execution(self, thread_id: int) -> DAPResponse:
        """Continue execution."""
        return await self.send_request(Commands.CONTINUE, {"threadId": thread_id})

    async def step_over(self, thread_id: int) -> DAPResponse:
        """Step over (next line)."""
        return await self.send_request(Commands.NEXT, {"threadId": thread_id})

    async def step_in(self, thread_id: int) -> DAPResponse:
        """Step into function."""
        return await self.send_request(Commands.STEP_IN, {"threadId": thread_id})

    async def step_out(self, thread_id: int) -> DAPResponse:
        """Step out of function."""
        return await self.send_request(Commands.STEP_OUT, {"threadId": thread_id})

    async def pause(self, thread_id: int) -> DAPResponse:
        """Pause execution."""
        return await self.send_request(Commands.PAUSE, {"threadId": thread_id})
