"""Bridge service lifecycle: listener, descriptor and handlers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import uvicorn

from .api import create_app
from .commands import CommandTranslator
from .config import BridgeConfig
from .discovery import (
    PortDescriptor,
    bind_first_free,
    remove_descriptor,
    write_descriptor,
)
from .host.base import DebugHost
from .lifecycle import LifecycleLog

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT = 10.0


class ServiceStatus(str, Enum):
    """Bridge service states."""
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ServiceState:
    """Everything request handlers need, owned by the process lifecycle."""
    host: DebugHost
    translator: CommandTranslator
    status: ServiceStatus = ServiceStatus.STARTING
    port: int | None = None
    descriptor_path: Path | None = None

    @classmethod
    def for_host(cls, host: DebugHost, follow_up_delay: float | None = None) -> ServiceState:
        translator = (
            CommandTranslator(host)
            if follow_up_delay is None
            else CommandTranslator(host, follow_up_delay=follow_up_delay)
        )
        return cls(host=host, translator=translator)


class _BridgeUvicornServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the bridge process."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class BridgeServer:
    """Serves the HTTP API for one debug host.

    ``start`` binds the first free candidate port, begins serving and
    publishes the port descriptor. ``stop`` closes the listener and removes
    the descriptor; it is safe to call more than once.
    """

    def __init__(self, host: DebugHost, config: BridgeConfig | None = None):
        self.config = config or BridgeConfig()
        self.state = ServiceState.for_host(host, self.config.follow_up_delay)
        self.lifecycle = LifecycleLog(host)
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task | None = None

    @property
    def port(self) -> int | None:
        return self.state.port

    async def start(self) -> int:
        """Start serving and return the bound port.

        Raises:
            NoPortAvailable: If every candidate port is taken. Nothing is
                written in that case.
        """
        if self.state.status != ServiceStatus.STARTING:
            raise RuntimeError(f"Bridge cannot start from state {self.state.status.value}")

        self._socket = bind_first_free(self.config.ports, self.config.host)
        port = self._socket.getsockname()[1]
        self.state.port = port

        uv_config = uvicorn.Config(
            create_app(self.state),
            log_config=None,
            access_log=False,
            lifespan="off",
        )
        self._server = _BridgeUvicornServer(uv_config)
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[self._socket]))
        try:
            await self._wait_started()
        except BaseException:
            await self._close_listener()
            self.state.status = ServiceStatus.STOPPED
            raise

        self.state.descriptor_path = write_descriptor(
            PortDescriptor(port=port), self.config.descriptor_path
        )
        self.lifecycle.start()
        self.state.status = ServiceStatus.RUNNING
        logger.info(f"Debug bridge listening on http://{self.config.host}:{port}")
        return port

    async def _wait_started(self) -> None:
        assert self._server is not None and self._serve_task is not None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + STARTUP_TIMEOUT
        while not self._server.started:
            if self._serve_task.done():
                # Surfaces the serve error, if any
                self._serve_task.result()
                raise RuntimeError("HTTP server exited during startup")
            if loop.time() > deadline:
                raise RuntimeError("Timeout waiting for HTTP server startup")
            await asyncio.sleep(0.01)

    async def wait_closed(self) -> None:
        """Wait until the HTTP server stops serving."""
        if self._serve_task is not None:
            await asyncio.shield(self._serve_task)

    async def stop(self) -> None:
        """Close the listener and remove the descriptor."""
        if self.state.status == ServiceStatus.STOPPED:
            return
        was_running = self.state.status == ServiceStatus.RUNNING
        self.state.status = ServiceStatus.STOPPED

        await self.lifecycle.stop()
        await self.state.translator.cancel_follow_ups()
        await self._close_listener()

        if was_running and self.state.descriptor_path is not None:
            remove_descriptor(self.state.descriptor_path)
        logger.info("Debug bridge stopped")

    async def _close_listener(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None:
            try:
                await self._serve_task
            except Exception:
                logger.exception("HTTP server error during shutdown")
            self._serve_task = None
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError as e:
                logger.debug(f"Error closing listener: {e}")
            self._socket = None
