"""MCP front-end for a running debug bridge.

Exposes the bridge's HTTP API as MCP tools so an agent can drive the
debugger without composing HTTP calls. The bridge is located through its
port descriptor on every call, so a restarted bridge on a new port is picked
up transparently.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import BridgeClient

logger = logging.getLogger(__name__)


def create_server(descriptor_path: Path | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        descriptor_path: Port descriptor of the bridge. Defaults to the
            well-known temp-dir location.
    """
    mcp = FastMCP("debug-bridge")

    async def call_bridge(
        operation: Callable[[BridgeClient], Awaitable[dict[str, Any]]],
    ) -> dict:
        try:
            async with BridgeClient.discover(descriptor_path) as client:
                data = await operation(client)
            return {"success": True, "data": data}
        except Exception as e:
            return {"success": False, "error": str(e)}

    # ============== Session Tools ==============

    @mcp.tool()
    async def get_debug_status() -> dict:
        """
        Get whether a debug session is active, its name and type, and the
        number of breakpoints.
        """
        return await call_bridge(lambda client: client.status())

    @mcp.tool()
    async def get_debug_context() -> dict:
        """
        Capture where the paused program is: current file/function/line, the
        call stack, the top frame's scopes and the variables of its first scope.

        Only meaningful while the program is paused. After step or continue,
        call this again; ids from an earlier capture are no longer valid.
        """
        return await call_bridge(lambda client: client.context())

    @mcp.tool()
    async def step(action: str = "over") -> dict:
        """
        Step the paused program.

        Returns as soon as the step is issued. Call get_debug_context
        afterwards to see where execution landed.

        Args:
            action: "over", "into" or "out"
        """
        return await call_bridge(lambda client: client.step(action))

    @mcp.tool()
    async def control(action: str) -> dict:
        """
        Control the debug session.

        Args:
            action: "continue", "pause", "stop", "restart" or "start"
        """
        return await call_bridge(lambda client: client.control(action))

    # ============== Breakpoint Tools ==============

    @mcp.tool()
    async def set_breakpoint(file: str, line: int) -> dict:
        """
        Set a breakpoint.

        Args:
            file: Absolute path to the source file
            line: Line number (1-based)
        """
        return await call_bridge(lambda client: client.set_breakpoint(file, line))

    @mcp.tool()
    async def remove_breakpoint(file: str, line: int) -> dict:
        """
        Remove a breakpoint. Removing a breakpoint that was never set succeeds.

        Args:
            file: Absolute path to the source file
            line: Line number (1-based)
        """
        return await call_bridge(lambda client: client.remove_breakpoint(file, line))

    @mcp.tool()
    async def list_breakpoints() -> dict:
        """List all breakpoints currently set in the debugger."""
        return await call_bridge(lambda client: client.breakpoints())

    # ============== Inspection Tools ==============

    @mcp.tool()
    async def evaluate_expression(
        expression: str, context: str = "watch", frame_id: int | None = None
    ) -> dict:
        """
        Evaluate an expression in the debugged program.

        WARNING: the expression runs inside the program with full side effects.

        Args:
            expression: Expression in the debuggee's language
            context: DAP evaluation context ("watch", "repl", "hover")
            frame_id: Optional frame id from get_debug_context
        """
        return await call_bridge(
            lambda client: client.evaluate(expression, context, frame_id)
        )

    # ============== Resources ==============

    @mcp.resource("debug://status", mime_type="application/json")
    async def status_resource() -> str:
        """Debug session status reported by the bridge."""
        return json.dumps(await call_bridge(lambda client: client.status()), indent=2)

    @mcp.resource("debug://breakpoints", mime_type="application/json")
    async def breakpoints_resource() -> str:
        """All breakpoints currently set in the debugger."""
        return json.dumps(await call_bridge(lambda client: client.breakpoints()), indent=2)

    return mcp


async def main(descriptor_path: Path | None = None) -> None:
    """Run the MCP server over stdio."""
    logger.info("Starting debug bridge MCP server...")
    mcp = create_server(descriptor_path)
    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        logger.info("MCP server stopped")


def run() -> None:
    """Console entry point for the MCP server."""
    from .__main__ import configure_logging

    configure_logging()
    try:
        port_file = os.environ.get("DEBUG_BRIDGE_PORT_FILE")
        asyncio.run(main(Path(port_file) if port_file else None))
    except KeyboardInterrupt:
        pass
