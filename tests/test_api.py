"""Tests for the HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeDebugHost, FakeDebugSession
from debug_bridge.api import create_app
from debug_bridge.host.base import HostCommands
from debug_bridge.service import ServiceState


def make_client(host, port=3001):
    state = ServiceState.for_host(host, follow_up_delay=0)
    state.port = port
    return TestClient(create_app(state))


@pytest.fixture
def client(fake_host):
    return make_client(fake_host)


@pytest.fixture
def idle_client(idle_host):
    return make_client(idle_host)


class TestHealthAndStatus:
    """Tests for /health and /debug/status."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["port"] == 3001
        assert data["hasActiveSession"] is True
        assert "timestamp" in data

    def test_status_without_session(self, idle_client):
        data = idle_client.get("/debug/status").json()

        assert data["hasActiveSession"] is False
        assert data["sessionName"] is None
        assert data["breakpoints"] == 0

    def test_docs_are_disabled(self, client):
        assert client.get("/docs").status_code == 404


class TestContextRoute:
    """Tests for GET /debug/context."""

    def test_single_frame_scenario(self):
        """Test a session paused at /a.js:42 with one scope and one variable."""
        session = FakeDebugSession(
            {
                "stackTrace": {
                    "stackFrames": [
                        {"id": 16, "name": "handler", "line": 42, "column": 9,
                         "source": {"path": "/a.js"}}
                    ]
                },
                "scopes": {"scopes": [{"name": "Local", "variablesReference": 1}]},
                "variables": {
                    "variables": [
                        {"name": "data", "value": "{...}", "type": "Object",
                         "variablesReference": 7}
                    ]
                },
            }
        )
        client = make_client(FakeDebugHost(session))

        response = client.get("/debug/context")

        assert response.status_code == 200
        data = response.json()
        assert data["currentFrame"] == {"file": "/a.js", "function": "handler", "line": 42, "column": 9}
        assert len(data["variables"]["variables"]) == 1
        assert data["variables"]["variables"][0]["type"] == "Object"
        assert session.requests[1] == ("scopes", {"frameId": 16})
        assert session.requests[2] == ("variables", {"variablesReference": 1})

    def test_no_session(self, idle_client):
        response = idle_client.get("/debug/context")

        assert response.status_code == 500
        assert response.json() == {"error": "No active debug session"}

    def test_empty_stack(self):
        client = make_client(FakeDebugHost(FakeDebugSession({"stackTrace": {"stackFrames": []}})))

        response = client.get("/debug/context")

        assert response.status_code == 500
        assert response.json() == {"error": "Stack trace returned no frames"}

    def test_adapter_failure(self):
        session = FakeDebugSession({"stackTrace": RuntimeError("thread not paused")})
        client = make_client(FakeDebugHost(session))

        response = client.get("/debug/context")

        assert response.status_code == 500
        assert "thread not paused" in response.json()["error"]


class TestStepRoute:
    """Tests for POST /debug/step."""

    def test_step_over(self, client, fake_host):
        response = client.post("/debug/step", json={"action": "over"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "action": "step_over",
            "message": "Step over executed",
        }
        assert fake_host.commands == [HostCommands.STEP_OVER]

    @pytest.mark.parametrize("body", [{"action": "sideways"}, {"action": None}, {}])
    def test_invalid_action(self, client, fake_host, body):
        """Test invalid actions never reach the host."""
        response = client.post("/debug/step", json=body)

        assert response.status_code == 400
        assert "Invalid step action" in response.json()["error"]
        assert fake_host.call_count == 0
        assert fake_host.session.requests == []

    def test_malformed_json(self, client, fake_host):
        response = client.post(
            "/debug/step", content=b"{action:", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Malformed JSON body"}
        assert fake_host.call_count == 0

    def test_wrong_field_type(self, client):
        response = client.post("/debug/step", json={"action": ["over"]})

        assert response.status_code == 400
        assert "action" in response.json()["error"]

    def test_host_failure(self, client, fake_host):
        fake_host.command_error = RuntimeError("adapter crashed")

        response = client.post("/debug/step", json={"action": "into"})

        assert response.status_code == 500
        assert response.json() == {"error": "adapter crashed"}


class TestControlRoute:
    """Tests for POST /debug/control."""

    def test_continue_without_session(self, idle_client, idle_host):
        """Test control is delegated even when no session is active."""
        response = idle_client.post("/debug/control", json={"action": "continue"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "action": "continue",
            "message": "Debug continue executed",
        }
        assert idle_host.commands == [HostCommands.CONTINUE]

    def test_invalid_action(self, client, fake_host):
        response = client.post("/debug/control", json={"action": "rewind"})

        assert response.status_code == 400
        assert fake_host.call_count == 0


class TestBreakpointRoutes:
    """Tests for POST /debug/breakpoint and GET /debug/breakpoints."""

    def test_set_then_list(self, idle_client):
        response = idle_client.post(
            "/debug/breakpoint", json={"file": "/a.js", "line": 25, "action": "set"}
        )
        assert response.status_code == 200
        assert response.json()["line"] == 25

        listing = idle_client.get("/debug/breakpoints").json()

        assert {"type": "source", "file": "/a.js", "line": 25, "enabled": True} in listing[
            "breakpoints"
        ]
        assert listing["count"] == 1

    def test_action_defaults_to_set(self, idle_client, idle_host):
        response = idle_client.post("/debug/breakpoint", json={"file": "/a.js", "line": 3})

        assert response.status_code == 200
        assert response.json()["action"] == "set"
        assert idle_host.added[0].location.line == 2

    def test_remove_never_set(self, idle_client):
        """Test removing an unknown breakpoint succeeds."""
        response = idle_client.post(
            "/debug/breakpoint", json={"file": "/a.js", "line": 99, "action": "remove"}
        )

        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.parametrize(
        "body",
        [
            {"line": 10},
            {"file": "/a.js"},
            {"file": "/a.js", "line": 0},
            {"file": "/a.js", "line": 10, "action": "toggle"},
            {"file": "/a.js", "line": "ten"},
            {"file": "/a.js", "line": True},
            {"file": "/a.js", "line": 2.5},
        ],
    )
    def test_invalid_requests(self, idle_client, idle_host, body):
        response = idle_client.post("/debug/breakpoint", json=body)

        assert response.status_code == 400
        assert "error" in response.json()
        assert idle_host.call_count == 0


class TestEvaluateRoute:
    """Tests for POST /debug/evaluate."""

    def test_evaluate(self, client, fake_host):
        response = client.post("/debug/evaluate", json={"expression": "items.length"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "expression": "items.length",
            "result": "3",
            "type": "number",
        }
        assert fake_host.session.requests == [
            ("evaluate", {"expression": "items.length", "context": "watch"})
        ]

    def test_evaluate_in_frame(self, client, fake_host):
        client.post(
            "/debug/evaluate", json={"expression": "x", "context": "hover", "frameId": 17}
        )

        assert fake_host.session.requests == [
            ("evaluate", {"expression": "x", "context": "hover", "frameId": 17})
        ]

    def test_null_context_uses_watch(self, client, fake_host):
        response = client.post("/debug/evaluate", json={"expression": "x", "context": None})

        assert response.status_code == 200
        assert fake_host.session.requests == [
            ("evaluate", {"expression": "x", "context": "watch"})
        ]

    def test_boolean_frame_id_rejected(self, client, fake_host):
        response = client.post("/debug/evaluate", json={"expression": "x", "frameId": True})

        assert response.status_code == 400
        assert fake_host.session.requests == []

    @pytest.mark.parametrize("body", [{}, {"expression": ""}])
    def test_missing_expression(self, client, idle_client, body):
        """Test an empty expression is rejected with or without a session."""
        for http in (client, idle_client):
            response = http.post("/debug/evaluate", json=body)
            assert response.status_code == 400

    def test_no_session(self, idle_client):
        response = idle_client.post("/debug/evaluate", json={"expression": "x"})

        assert response.status_code == 400
        assert response.json() == {"error": "No active debug session"}

    def test_adapter_failure(self):
        session = FakeDebugSession({"evaluate": RuntimeError("not available")})
        client = make_client(FakeDebugHost(session))

        response = client.post("/debug/evaluate", json={"expression": "x"})

        assert response.status_code == 500
        assert "not available" in response.json()["error"]
