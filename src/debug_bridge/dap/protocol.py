"""DAP message types and wire framing."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

HEADER_PREFIX = "Content-Length:"
HEADER_SEPARATOR = b"\r\n\r\n"


class DAPRequestError(RuntimeError):
    """Raised when the adapter answers a request with success=false."""

    def __init__(self, command: str, message: str | None = None):
        self.command = command
        self.message = message or "request failed"
        super().__init__(f"{command} failed: {self.message}")


@dataclass
class DAPRequest:
    """DAP request message."""
    seq: int
    command: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "seq": self.seq,
            "type": "request",
            "command": self.command,
        }
        if self.arguments:
            d["arguments"] = self.arguments
        return d

    def to_bytes(self) -> bytes:
        content = json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")
        # Content-Length counts bytes, not characters
        header = f"{HEADER_PREFIX} {len(content)}".encode("ascii")
        return header + HEADER_SEPARATOR + content


@dataclass
class DAPResponse:
    """DAP response message."""
    seq: int
    request_seq: int
    success: bool
    command: str
    message: str | None = None
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DAPResponse:
        return cls(
            seq=data["seq"],
            request_seq=data["request_seq"],
            success=data["success"],
            command=data["command"],
            message=data.get("message"),
            body=data.get("body") or {},
        )

    def raise_on_failure(self) -> dict[str, Any]:
        """Return the body, or raise DAPRequestError for a failed response."""
        if not self.success:
            raise DAPRequestError(self.command, self.message)
        return self.body


@dataclass
class DAPEvent:
    """DAP event message."""
    seq: int
    event: str
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DAPEvent:
        return cls(
            seq=data["seq"],
            event=data["event"],
            body=data.get("body") or {},
        )


def parse_message(data: dict[str, Any]) -> DAPResponse | DAPEvent:
    """Parse a DAP message from dict."""
    msg_type = data.get("type")
    if msg_type == "response":
        return DAPResponse.from_dict(data)
    elif msg_type == "event":
        return DAPEvent.from_dict(data)
    else:
        raise ValueError(f"Unknown message type: {msg_type}")


def parse_content_length(header: str) -> int | None:
    """Return the length from a Content-Length header line, or None."""
    header = header.strip()
    if not header.startswith(HEADER_PREFIX):
        return None
    return int(header[len(HEADER_PREFIX):].strip())


# DAP requests issued by the bridge
class Commands:
    INITIALIZE = "initialize"
    LAUNCH = "launch"
    ATTACH = "attach"
    DISCONNECT = "disconnect"
    SET_BREAKPOINTS = "setBreakpoints"
    SET_EXCEPTION_BREAKPOINTS = "setExceptionBreakpoints"
    CONFIGURATION_DONE = "configurationDone"
    CONTINUE = "continue"
    NEXT = "next"  # step over
    STEP_IN = "stepIn"
    STEP_OUT = "stepOut"
    PAUSE = "pause"
    STACK_TRACE = "stackTrace"
    SCOPES = "scopes"
    VARIABLES = "variables"
    EVALUATE = "evaluate"


# DAP events the host reacts to
class Events:
    INITIALIZED = "initialized"
    STOPPED = "stopped"
    CONTINUED = "continued"
    EXITED = "exited"
    TERMINATED = "terminated"
    THREAD = "thread"
    OUTPUT = "output"
    BREAKPOINT = "breakpoint"
