"""Debug context capture.

Builds a snapshot of the paused program from the three chained DAP requests
``stackTrace`` -> ``scopes`` -> ``variables``. Each request needs an id from
the previous answer, so they run strictly in sequence.

Frame ids and variable references are only valid while the program stays
paused where they were obtained. A snapshot is built fresh on every call and
nothing from it is reused. If the program resumes mid-capture the adapter's
error is surfaced as ``ProtocolError``; callers that need consistency must not
step while capturing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

from .dap.protocol import Commands
from .errors import BridgeError, EmptyScopes, EmptyStack, NoActiveSession, ProtocolError
from .host.base import DebugSession

logger = logging.getLogger(__name__)

# Only the first thread is inspected; real thread ids are never discovered.
CONTEXT_THREAD_ID = 1

T = TypeVar("T")


@dataclass
class Frame:
    """One entry of the call stack."""
    id: int
    name: str
    line: int
    column: int
    source_path: str | None = None

    @classmethod
    def from_dap(cls, data: dict[str, Any]) -> Frame:
        source = data.get("source") or {}
        return cls(
            id=data["id"],
            name=data.get("name", "<unknown>"),
            line=data.get("line", 0),
            column=data.get("column", 0),
            source_path=source.get("path"),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "line": self.line,
            "column": self.column,
        }
        if self.source_path:
            d["source"] = {"path": self.source_path}
        return d


@dataclass
class Scope:
    """A named group of variables visible at a frame."""
    name: str
    variables_reference: int

    @classmethod
    def from_dap(cls, data: dict[str, Any]) -> Scope:
        return cls(name=data["name"], variables_reference=data["variablesReference"])

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "variablesReference": self.variables_reference}


@dataclass
class Variable:
    """A variable as rendered by the adapter."""
    name: str
    value: str
    type: str | None = None
    variables_reference: int = 0

    @classmethod
    def from_dap(cls, data: dict[str, Any]) -> Variable:
        return cls(
            name=data["name"],
            value=str(data.get("value", "")),
            type=data.get("type"),
            variables_reference=data.get("variablesReference", 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "type": self.type,
            "variablesReference": self.variables_reference,
        }


@dataclass
class CurrentFrame:
    """Summary of the top frame."""
    function_name: str
    line: int
    column: int
    file_path: str | None = None

    @classmethod
    def from_frame(cls, frame: Frame) -> CurrentFrame:
        return cls(
            function_name=frame.name,
            line=frame.line,
            column=frame.column,
            file_path=frame.source_path,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        if self.file_path:
            d["file"] = self.file_path
        d["function"] = self.function_name
        d["line"] = self.line
        d["column"] = self.column
        return d

    def describe(self) -> str:
        return (
            f"File: {self.file_path or '<no source>'}, Function: {self.function_name}, "
            f"Line: {self.line}, Column: {self.column}"
        )


@dataclass
class DebugContextSnapshot:
    """Execution state of the paused program at one point in time."""
    captured_at: datetime
    session_name: str
    session_type: str
    current_frame: CurrentFrame
    stack_frames: list[Frame] = field(default_factory=list)
    top_scopes: list[Scope] = field(default_factory=list)
    top_scope_variables: list[Variable] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape served by the context endpoint."""
        return {
            "timestamp": self.captured_at.isoformat(),
            "session": {"name": self.session_name, "type": self.session_type},
            "currentFrame": self.current_frame.to_dict(),
            "stackTrace": {"stackFrames": [f.to_dict() for f in self.stack_frames]},
            "scopes": {"scopes": [s.to_dict() for s in self.top_scopes]},
            "variables": {"variables": [v.to_dict() for v in self.top_scope_variables]},
        }


async def capture_context(
    session: DebugSession | None, thread_id: int = CONTEXT_THREAD_ID
) -> DebugContextSnapshot:
    """Capture stack, top scopes and top-scope variables of a paused session.

    Raises:
        NoActiveSession: If ``session`` is None.
        EmptyStack: If the stack trace has no frames.
        EmptyScopes: If the top frame has no scopes.
        ProtocolError: If a request fails or returns malformed data.
    """
    if session is None:
        raise NoActiveSession()

    stack_body = await _request(session, Commands.STACK_TRACE, {"threadId": thread_id})
    frames = _parse_items(stack_body, "stackFrames", Frame.from_dap, Commands.STACK_TRACE)
    if not frames:
        raise EmptyStack()
    top_frame = frames[0]

    scopes_body = await _request(session, Commands.SCOPES, {"frameId": top_frame.id})
    scopes = _parse_items(scopes_body, "scopes", Scope.from_dap, Commands.SCOPES)
    if not scopes:
        raise EmptyScopes()

    variables_body = await _request(
        session, Commands.VARIABLES, {"variablesReference": scopes[0].variables_reference}
    )
    variables = _parse_items(variables_body, "variables", Variable.from_dap, Commands.VARIABLES)

    snapshot = DebugContextSnapshot(
        captured_at=datetime.now(timezone.utc),
        session_name=session.name,
        session_type=session.type,
        current_frame=CurrentFrame.from_frame(top_frame),
        stack_frames=frames,
        top_scopes=scopes,
        top_scope_variables=variables,
    )
    logger.debug(
        f"Captured context: {len(frames)} frames, {len(scopes)} scopes, "
        f"{len(variables)} variables"
    )
    return snapshot


async def _request(
    session: DebugSession, command: str, arguments: dict[str, Any]
) -> dict[str, Any]:
    try:
        body = await session.custom_request(command, arguments)
    except BridgeError:
        raise
    except Exception as e:
        raise ProtocolError(f"{command} request failed: {e}") from e
    if not isinstance(body, dict):
        raise ProtocolError(f"{command} returned an empty response")
    return body


def _parse_items(
    body: dict[str, Any], key: str, parse: Callable[[dict[str, Any]], T], command: str
) -> list[T]:
    items = body.get(key)
    if not isinstance(items, list):
        raise ProtocolError(f"{command} response is missing '{key}'")
    try:
        return [parse(item) for item in items]
    except (KeyError, TypeError, AttributeError) as e:
        raise ProtocolError(f"Malformed {command} response: {e!r}") from e
