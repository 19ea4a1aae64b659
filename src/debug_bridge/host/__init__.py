"""Debug host collaborators."""

from .base import DebugHost, DebugSession, EventEmitter, HostCommands, SessionCustomEvent
from .dap_host import DapDebugHost, DapDebugSession
from .state import BreakpointRegistry, DebugState, SourceBreakpoint, SourceLocation

__all__ = [
    "BreakpointRegistry",
    "DapDebugHost",
    "DapDebugSession",
    "DebugHost",
    "DebugSession",
    "DebugState",
    "EventEmitter",
    "HostCommands",
    "SessionCustomEvent",
    "SourceBreakpoint",
    "SourceLocation",
]
