"""Translation of bridge operations into debug host calls."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from .context import capture_context
from .dap.protocol import Commands
from .errors import BridgeError, InvalidArgument, NoActiveSession, ProtocolError
from .host.base import DebugHost, HostCommands
from .host.state import SourceBreakpoint, SourceLocation

logger = logging.getLogger(__name__)

# Delay before the diagnostic capture that follows a step
FOLLOW_UP_DELAY = 0.5

STEP_COMMANDS = {
    "over": HostCommands.STEP_OVER,
    "into": HostCommands.STEP_INTO,
    "out": HostCommands.STEP_OUT,
}

CONTROL_COMMANDS = {
    "continue": HostCommands.CONTINUE,
    "pause": HostCommands.PAUSE,
    "stop": HostCommands.STOP,
    "restart": HostCommands.RESTART,
    "start": HostCommands.START,
}

BREAKPOINT_ACTIONS = ("set", "remove")

DEFAULT_EVALUATE_CONTEXT = "watch"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CommandTranslator:
    """Validates bridge operations and dispatches them to a debug host.

    Every operation validates its input before touching the host, so an
    ``InvalidArgument`` never has side effects.
    """

    def __init__(self, host: DebugHost, follow_up_delay: float = FOLLOW_UP_DELAY):
        self.host = host
        self.follow_up_delay = follow_up_delay
        self._follow_ups: set[asyncio.Task] = set()

    @property
    def has_active_session(self) -> bool:
        return self.host.active_session is not None

    def status(self) -> dict[str, Any]:
        session = self.host.active_session
        return {
            "hasActiveSession": session is not None,
            "sessionName": session.name if session else None,
            "sessionType": session.type if session else None,
            "breakpoints": len(self.host.breakpoints),
            "timestamp": _now(),
        }

    async def step(self, action: Any) -> dict[str, Any]:
        """Issue a step and return without waiting for it to land.

        A detached task captures the context after ``follow_up_delay`` for
        the diagnostic log only; callers poll the context endpoint to see
        the post-step state.
        """
        command = STEP_COMMANDS.get(action) if isinstance(action, str) else None
        if command is None:
            raise InvalidArgument(
                f"Invalid step action: {action!r}. Use one of: {', '.join(STEP_COMMANDS)}"
            )

        await self.host.execute_command(command)
        self._schedule_follow_up(f"step_{action}")
        return {
            "success": True,
            "action": f"step_{action}",
            "message": f"Step {action} executed",
        }

    async def control(self, action: Any) -> dict[str, Any]:
        command = CONTROL_COMMANDS.get(action) if isinstance(action, str) else None
        if command is None:
            raise InvalidArgument(
                f"Invalid control action: {action!r}. "
                f"Use one of: {', '.join(CONTROL_COMMANDS)}"
            )

        await self.host.execute_command(command)
        return {
            "success": True,
            "action": action,
            "message": f"Debug {action} executed",
        }

    async def breakpoint(self, action: Any, file: Any, line: Any) -> dict[str, Any]:
        """Set or remove a line breakpoint. ``line`` is 1-based."""
        if action is None:
            action = "set"
        if action not in BREAKPOINT_ACTIONS:
            raise InvalidArgument(f"Invalid breakpoint action: {action!r}. Use 'set' or 'remove'")
        if not isinstance(file, str) or not file:
            raise InvalidArgument("Missing required field: file")
        if line is None:
            raise InvalidArgument("Missing required field: line")
        if isinstance(line, bool) or not isinstance(line, int) or line < 1:
            raise InvalidArgument(f"Invalid line: {line!r}. Lines are 1-based integers")

        bp = SourceBreakpoint(SourceLocation(file, line - 1))
        if action == "set":
            await self.host.add_breakpoints([bp])
            message = f"Breakpoint set at {file}:{line}"
        else:
            await self.host.remove_breakpoints([bp])
            message = f"Breakpoint removed from {file}:{line}"

        return {
            "success": True,
            "action": action,
            "file": file,
            "line": line,
            "message": message,
        }

    def list_breakpoints(self) -> dict[str, Any]:
        """List the host's breakpoints as they are right now."""
        breakpoints = [
            {
                "type": "source",
                "file": bp.file,
                "line": bp.line,
                "enabled": bp.enabled,
            }
            for bp in self.host.breakpoints
        ]
        return {"breakpoints": breakpoints, "count": len(breakpoints)}

    async def evaluate(
        self,
        expression: Any,
        context: Any = None,
        frame_id: int | None = None,
    ) -> dict[str, Any]:
        """Evaluate an expression in the debuggee.

        The expression runs with the full side effects of the target
        program. Result and type are returned as the adapter reports them.
        """
        if not isinstance(expression, str) or not expression.strip():
            raise InvalidArgument("Missing required field: expression")
        if context is None:
            context = DEFAULT_EVALUATE_CONTEXT
        if not isinstance(context, str):
            raise InvalidArgument(f"Invalid evaluation context: {context!r}")

        session = self.host.active_session
        if session is None:
            raise NoActiveSession()

        arguments: dict[str, Any] = {"expression": expression, "context": context}
        if frame_id is not None:
            arguments["frameId"] = frame_id

        try:
            body = await session.custom_request(Commands.EVALUATE, arguments)
        except BridgeError:
            raise
        except Exception as e:
            raise ProtocolError(f"evaluate request failed: {e}") from e
        body = body or {}

        return {
            "success": True,
            "expression": expression,
            "result": body.get("result"),
            "type": body.get("type"),
        }

    # Step follow-up

    def _schedule_follow_up(self, label: str) -> None:
        task = asyncio.create_task(self._follow_up(label))
        self._follow_ups.add(task)
        task.add_done_callback(self._follow_ups.discard)

    async def _follow_up(self, label: str) -> None:
        """Log where execution landed after a step. Failures are only logged."""
        await asyncio.sleep(self.follow_up_delay)
        try:
            snapshot = await capture_context(self.host.active_session)
        except NoActiveSession:
            logger.info(f"After {label}: no active debug session")
        except Exception as e:
            logger.warning(f"After {label}: context capture failed: {e}")
        else:
            logger.info(f"After {label}: {snapshot.current_frame.describe()}")

    async def cancel_follow_ups(self) -> None:
        """Cancel pending follow-up captures."""
        tasks = list(self._follow_ups)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
