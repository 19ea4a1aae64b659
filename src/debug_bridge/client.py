"""HTTP client for a running bridge, located through the port descriptor."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from .discovery import read_descriptor

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class BridgeClientError(Exception):
    """Raised when the bridge answers with an error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")


class BridgeNotRunning(BridgeClientError):
    """Raised when no port descriptor is published."""

    def __init__(self, path: Path | None = None):
        where = f" at {path}" if path else ""
        super().__init__(0, f"Debug bridge is not running (no port descriptor{where})")


class BridgeClient:
    """Async client for the bridge HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    @classmethod
    def discover(
        cls,
        descriptor_path: Path | None = None,
        host: str = "127.0.0.1",
        **kwargs: Any,
    ) -> BridgeClient:
        """Build a client from the published port descriptor.

        Raises:
            BridgeNotRunning: If no descriptor is published.
        """
        descriptor = read_descriptor(descriptor_path)
        if descriptor is None:
            raise BridgeNotRunning(descriptor_path)
        logger.debug(f"Discovered bridge on port {descriptor.port} (pid {descriptor.process_id})")
        return cls(f"http://{host}:{descriptor.port}", **kwargs)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BridgeClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        response = await self._client.request(method, path, json=json)
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code != 200:
            message = data.get("error") if isinstance(data, dict) else None
            raise BridgeClientError(response.status_code, message or response.reason_phrase)
        return data

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/health")

    async def status(self) -> dict[str, Any]:
        return await self._request("GET", "/debug/status")

    async def context(self) -> dict[str, Any]:
        return await self._request("GET", "/debug/context")

    async def step(self, action: str) -> dict[str, Any]:
        return await self._request("POST", "/debug/step", {"action": action})

    async def control(self, action: str) -> dict[str, Any]:
        return await self._request("POST", "/debug/control", {"action": action})

    async def set_breakpoint(self, file: str, line: int) -> dict[str, Any]:
        return await self._request(
            "POST", "/debug/breakpoint", {"file": file, "line": line, "action": "set"}
        )

    async def remove_breakpoint(self, file: str, line: int) -> dict[str, Any]:
        return await self._request(
            "POST", "/debug/breakpoint", {"file": file, "line": line, "action": "remove"}
        )

    async def breakpoints(self) -> dict[str, Any]:
        return await self._request("GET", "/debug/breakpoints")

    async def evaluate(
        self, expression: str, context: str = "watch", frame_id: int | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"expression": expression, "context": context}
        if frame_id is not None:
            body["frameId"] = frame_id
        return await self._request("POST", "/debug/evaluate", body)
