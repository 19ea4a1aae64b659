"""Tests for the session lifecycle event log."""

import asyncio
import logging

import pytest
from unittest.mock import MagicMock

from conftest import FakeDebugHost, FakeDebugSession
from debug_bridge.lifecycle import EVENT_LOGGER_NAME, EventKind, LifecycleEvent, LifecycleLog


async def drain(log):
    """Let the drain task write everything queued so far."""
    await asyncio.wait_for(log._queue.join(), timeout=1.0)


class TestLifecycleEvent:
    """Tests for event rendering."""

    def test_session_started(self):
        event = LifecycleEvent(EventKind.SESSION_STARTED, "app.js", session_type="node")
        assert event.render() == (logging.INFO, "Debug session started: app.js (node)")

    def test_session_ended(self):
        event = LifecycleEvent(EventKind.SESSION_TERMINATED, "app.js")
        assert event.render() == (logging.INFO, "Debug session ended: app.js")

    def test_stopped_is_emphasized(self):
        event = LifecycleEvent(
            EventKind.CUSTOM,
            "app.js",
            event="stopped",
            body={"reason": "breakpoint", "threadId": 1},
        )

        level, line = event.render()

        assert event.is_stop
        assert level == logging.WARNING
        assert line == "=== STOPPED === app.js: reason=breakpoint, thread=1"

    def test_output(self):
        event = LifecycleEvent(
            EventKind.CUSTOM, "app.js", event="output", body={"category": "stdout", "output": "hi\n"}
        )
        assert event.render() == (logging.INFO, "Output [stdout]: hi")

    def test_other_custom_event(self):
        event = LifecycleEvent(EventKind.CUSTOM, "app.js", event="loadedSource")
        assert event.render() == (logging.INFO, "Custom debug event: loadedSource")


class TestLifecycleLog:
    """Tests for LifecycleLog."""

    @pytest.mark.asyncio
    async def test_logs_host_notifications(self, caplog):
        session = FakeDebugSession()
        host = FakeDebugHost(session)
        log = LifecycleLog(host)

        with caplog.at_level(logging.INFO, logger=EVENT_LOGGER_NAME):
            log.start()
            host.started.fire(session)
            host.emit("stopped", {"reason": "step", "threadId": 1})
            host.terminated.fire(session)
            await drain(log)
            await log.stop()

        messages = [r.getMessage() for r in caplog.records if r.name == EVENT_LOGGER_NAME]
        assert messages == [
            "Debug session started: app.js (node)",
            "=== STOPPED === app.js: reason=step, thread=1",
            "Debug session ended: app.js",
        ]
        stopped = [r for r in caplog.records if "STOPPED" in r.getMessage()]
        assert stopped[0].levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_start_subscribes_once(self):
        host = FakeDebugHost(FakeDebugSession())
        log = LifecycleLog(host)

        log.start()
        log.start()

        assert len(host.started) == 1
        assert len(host.custom) == 1
        await log.stop()

    @pytest.mark.asyncio
    async def test_stop_unsubscribes_and_is_idempotent(self):
        host = FakeDebugHost(FakeDebugSession())
        log = LifecycleLog(host)
        log.start()
        assert log.is_running

        await log.stop()
        await log.stop()

        assert not log.is_running
        assert len(host.started) == 0
        assert len(host.terminated) == 0
        assert len(host.custom) == 0

    @pytest.mark.asyncio
    async def test_stop_flushes_queue(self, caplog):
        """Test events queued before shutdown are still written."""
        session = FakeDebugSession()
        host = FakeDebugHost(session)
        log = LifecycleLog(host)

        with caplog.at_level(logging.INFO, logger=EVENT_LOGGER_NAME):
            log.start()
            host.terminated.fire(session)
            await log.stop()

        assert "Debug session ended: app.js" in caplog.text

    @pytest.mark.asyncio
    async def test_write_failure_is_logged(self, caplog):
        """Test a failing log sink does not stop the drain task."""
        session = FakeDebugSession()
        host = FakeDebugHost(session)
        sink = MagicMock()
        sink.log.side_effect = [OSError("disk full"), None]
        log = LifecycleLog(host, event_logger=sink)

        log.start()
        host.started.fire(session)
        host.emit("stopped", {"reason": "pause"})
        await drain(log)

        assert log.is_running
        assert sink.log.call_count == 2
        assert sink.log.call_args[0] == (logging.WARNING, "=== STOPPED === app.js: reason=pause")
        assert "Failed to log session-started event" in caplog.text
        await log.stop()
