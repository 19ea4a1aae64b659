"""Pytest fixtures for debug-bridge tests."""

import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from debug_bridge.host.base import EventEmitter, SessionCustomEvent  # noqa: E402
from debug_bridge.host.state import BreakpointRegistry  # noqa: E402


class FakeDebugSession:
    """Session that answers DAP requests from canned bodies."""

    def __init__(self, responses=None, name="app.js", type="node", id="session-1"):
        self.id = id
        self.name = name
        self.type = type
        self.responses = dict(responses or {})
        self.requests = []

    async def custom_request(self, command, arguments=None):
        self.requests.append((command, arguments))
        response = self.responses.get(command)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(arguments)
        return response


class FakeDebugHost:
    """In-memory debug host recording every call it receives."""

    def __init__(self, session=None):
        self.session = session
        self.registry = BreakpointRegistry()
        self.commands = []
        self.added = []
        self.removed = []
        self.command_error = None
        self.started = EventEmitter("session-started")
        self.terminated = EventEmitter("session-terminated")
        self.custom = EventEmitter("custom-event")

    @property
    def active_session(self):
        return self.session

    @property
    def breakpoints(self):
        return self.registry.get_all()

    async def add_breakpoints(self, breakpoints):
        for bp in breakpoints:
            self.added.append(bp)
            self.registry.add(bp)

    async def remove_breakpoints(self, breakpoints):
        for bp in breakpoints:
            self.removed.append(bp)
            self.registry.remove(bp.location)

    async def execute_command(self, command):
        self.commands.append(command)
        if self.command_error is not None:
            raise self.command_error

    def on_session_started(self, listener):
        return self.started.subscribe(listener)

    def on_session_terminated(self, listener):
        return self.terminated.subscribe(listener)

    def on_custom_event(self, listener):
        return self.custom.subscribe(listener)

    @property
    def call_count(self):
        return len(self.commands) + len(self.added) + len(self.removed)

    def emit(self, event, body=None):
        self.custom.fire(SessionCustomEvent(self.session, event, body or {}))


@pytest.fixture
def sample_dap_response():
    """Sample DAP response data."""
    return {
        "seq": 1,
        "type": "response",
        "request_seq": 1,
        "success": True,
        "command": "initialize",
        "body": {
            "supportsConfigurationDoneRequest": True,
            "supportsFunctionBreakpoints": True,
        },
    }


@pytest.fixture
def sample_dap_event():
    """Sample DAP event data."""
    return {
        "seq": 2,
        "type": "event",
        "event": "stopped",
        "body": {
            "reason": "breakpoint",
            "threadId": 1,
            "allThreadsStopped": True,
        },
    }


@pytest.fixture
def sample_stack_frames():
    """Sample stack frames data."""
    return [
        {
            "id": 16,
            "name": "main",
            "source": {"path": "/a.js"},
            "line": 42,
            "column": 5,
        },
        {
            "id": 17,
            "name": "<anonymous>",
            "source": None,
            "line": 0,
            "column": 0,
        },
    ]


@pytest.fixture
def sample_scopes():
    """Sample scopes data."""
    return [
        {"name": "Local", "variablesReference": 100, "expensive": False},
        {"name": "Global", "variablesReference": 200, "expensive": True},
    ]


@pytest.fixture
def sample_variables():
    """Sample variables data."""
    return [
        {
            "name": "x",
            "value": "10",
            "type": "number",
            "variablesReference": 0,
        },
        {
            "name": "items",
            "value": "Array(3)",
            "type": "object",
            "variablesReference": 5,
            "namedVariables": 0,
            "indexedVariables": 3,
        },
    ]


@pytest.fixture
def paused_session(sample_stack_frames, sample_scopes, sample_variables):
    """Session paused in main() at /a.js:42."""
    return FakeDebugSession(
        {
            "stackTrace": {"stackFrames": sample_stack_frames, "totalFrames": 2},
            "scopes": {"scopes": sample_scopes},
            "variables": {"variables": sample_variables},
            "evaluate": {"result": "3", "type": "number", "variablesReference": 0},
        }
    )


@pytest.fixture
def fake_host(paused_session):
    """Host with a paused session."""
    return FakeDebugHost(paused_session)


@pytest.fixture
def idle_host():
    """Host with no active session."""
    return FakeDebugHost()
