"""Tests for debug context capture."""

import pytest

from conftest import FakeDebugSession
from debug_bridge.context import CurrentFrame, Frame, capture_context
from debug_bridge.dap import DAPRequestError
from debug_bridge.errors import EmptyScopes, EmptyStack, NoActiveSession, ProtocolError


class TestCaptureContext:
    """Tests for capture_context."""

    @pytest.mark.asyncio
    async def test_capture_paused_session(self, paused_session):
        """Test the snapshot reflects the top frame and its first scope."""
        snapshot = await capture_context(paused_session)

        assert snapshot.session_name == "app.js"
        assert snapshot.session_type == "node"
        assert snapshot.current_frame == CurrentFrame("main", 42, 5, "/a.js")
        assert [f.id for f in snapshot.stack_frames] == [16, 17]
        assert [s.name for s in snapshot.top_scopes] == ["Local", "Global"]
        assert [v.name for v in snapshot.top_scope_variables] == ["x", "items"]

    @pytest.mark.asyncio
    async def test_requests_are_chained(self, paused_session):
        """Test each request uses the id returned by the previous one."""
        await capture_context(paused_session)

        assert paused_session.requests == [
            ("stackTrace", {"threadId": 1}),
            ("scopes", {"frameId": 16}),
            ("variables", {"variablesReference": 100}),
        ]

    @pytest.mark.asyncio
    async def test_to_dict_shape(self, paused_session):
        data = (await capture_context(paused_session)).to_dict()

        assert set(data) == {
            "timestamp",
            "session",
            "currentFrame",
            "stackTrace",
            "scopes",
            "variables",
        }
        assert data["session"] == {"name": "app.js", "type": "node"}
        assert data["currentFrame"] == {"file": "/a.js", "function": "main", "line": 42, "column": 5}
        assert data["stackTrace"]["stackFrames"][0]["source"] == {"path": "/a.js"}
        assert "source" not in data["stackTrace"]["stackFrames"][1]
        assert data["scopes"]["scopes"][0] == {"name": "Local", "variablesReference": 100}
        assert data["variables"]["variables"][0] == {
            "name": "x",
            "value": "10",
            "type": "number",
            "variablesReference": 0,
        }

    @pytest.mark.asyncio
    async def test_no_session(self):
        with pytest.raises(NoActiveSession, match="No active debug session"):
            await capture_context(None)

    @pytest.mark.asyncio
    async def test_empty_stack(self):
        session = FakeDebugSession({"stackTrace": {"stackFrames": []}})

        with pytest.raises(EmptyStack):
            await capture_context(session)
        assert [c for c, _ in session.requests] == ["stackTrace"]

    @pytest.mark.asyncio
    async def test_empty_scopes(self, sample_stack_frames):
        session = FakeDebugSession(
            {"stackTrace": {"stackFrames": sample_stack_frames}, "scopes": {"scopes": []}}
        )

        with pytest.raises(EmptyScopes):
            await capture_context(session)
        assert [c for c, _ in session.requests] == ["stackTrace", "scopes"]

    @pytest.mark.asyncio
    async def test_empty_variables_is_fine(self, sample_stack_frames, sample_scopes):
        session = FakeDebugSession(
            {
                "stackTrace": {"stackFrames": sample_stack_frames},
                "scopes": {"scopes": sample_scopes},
                "variables": {"variables": []},
            }
        )

        snapshot = await capture_context(session)

        assert snapshot.top_scope_variables == []

    @pytest.mark.asyncio
    async def test_request_failure_becomes_protocol_error(self, sample_stack_frames):
        """Test adapter errors, e.g. after the program resumed, surface as ProtocolError."""
        session = FakeDebugSession(
            {
                "stackTrace": {"stackFrames": sample_stack_frames},
                "scopes": DAPRequestError("scopes", "Invalid frame id"),
            }
        )

        with pytest.raises(ProtocolError, match="scopes request failed"):
            await capture_context(session)

    @pytest.mark.asyncio
    async def test_missing_key(self):
        session = FakeDebugSession({"stackTrace": {"totalFrames": 0}})

        with pytest.raises(ProtocolError, match="missing 'stackFrames'"):
            await capture_context(session)

    @pytest.mark.asyncio
    async def test_empty_response(self):
        session = FakeDebugSession({"stackTrace": None})

        with pytest.raises(ProtocolError, match="empty response"):
            await capture_context(session)

    @pytest.mark.asyncio
    async def test_malformed_frame(self):
        session = FakeDebugSession({"stackTrace": {"stackFrames": [{"name": "no id"}]}})

        with pytest.raises(ProtocolError, match="Malformed stackTrace"):
            await capture_context(session)

    @pytest.mark.asyncio
    async def test_custom_thread_id(self, paused_session):
        await capture_context(paused_session, thread_id=3)
        assert paused_session.requests[0] == ("stackTrace", {"threadId": 3})


class TestContextTypes:
    """Tests for snapshot dataclasses."""

    def test_frame_defaults(self):
        frame = Frame.from_dap({"id": 1})
        assert (frame.name, frame.line, frame.column, frame.source_path) == ("<unknown>", 0, 0, None)

    def test_current_frame_without_file(self):
        current = CurrentFrame("anon", 1, 2)

        assert current.to_dict() == {"function": "anon", "line": 1, "column": 2}
        assert current.describe() == "File: <no source>, Function: anon, Line: 1, Column: 2"
