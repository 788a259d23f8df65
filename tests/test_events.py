"""Supervisor event and logging tests."""

from __future__ import annotations

import json
import logging

import pytest

from proc_supervisor.config import Config
from proc_supervisor.events import EventKind, SupervisorEvent, emit_event
from proc_supervisor.log import JsonSerializingFormatter, setup_logging
from proc_supervisor.runtime.outcome import ProcessOutcome


class TestSupervisorEvent:
    """Test the event model."""

    def test_defaults(self):
        event = SupervisorEvent(kind=EventKind.STARTED, pid=42)

        assert event.event_id.startswith("psv_")
        assert event.timestamp > 0
        assert event.outcome is ProcessOutcome.UNRESOLVED
        assert event.exit_code is None

    def test_unique_ids(self):
        first = SupervisorEvent(kind=EventKind.EXITED)
        second = SupervisorEvent(kind=EventKind.EXITED)
        assert first.event_id != second.event_id

    def test_frozen(self):
        event = SupervisorEvent(kind=EventKind.EXITED)
        with pytest.raises(Exception):
            event.pid = 1  # type: ignore[misc]

    def test_serializes_enums_as_values(self):
        event = SupervisorEvent(
            kind=EventKind.WATCHDOG_FORCED, outcome=ProcessOutcome.WATCHDOG
        )
        data = event.model_dump(mode="json")
        assert data["kind"] == "watchdog_forced"
        assert data["outcome"] == "watchdog"


class TestEmitEvent:
    """Test event emission."""

    def test_callback_receives_event(self):
        seen: list[SupervisorEvent] = []
        event = SupervisorEvent(kind=EventKind.STARTED, pid=1)

        emit_event(event, seen.append)

        assert seen == [event]

    def test_callback_error_swallowed(self, caplog: pytest.LogCaptureFixture):
        def broken(event: SupervisorEvent) -> None:
            raise RuntimeError("boom")

        with caplog.at_level(logging.WARNING, logger="proc_supervisor.events"):
            emit_event(SupervisorEvent(kind=EventKind.EXITED), broken)

        assert "boom" in caplog.text

    def test_watchdog_logged_as_warning(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="proc_supervisor.events"):
            emit_event(SupervisorEvent(kind=EventKind.WATCHDOG_FORCED, pid=7))

        records = [r for r in caplog.records if "watchdog_forced" in r.getMessage()]
        assert records
        assert records[0].levelno == logging.WARNING

    def test_kill_failed_logged_at_debug(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="proc_supervisor.events"):
            emit_event(SupervisorEvent(kind=EventKind.KILL_FAILED, pid=7))

        records = [r for r in caplog.records if "kill_failed" in r.getMessage()]
        assert records[0].levelno == logging.DEBUG

    def test_event_passed_as_log_argument(self, caplog: pytest.LogCaptureFixture):
        event = SupervisorEvent(kind=EventKind.EXITED, pid=9, exit_code=0, message="done")

        with caplog.at_level(logging.INFO, logger="proc_supervisor.events"):
            emit_event(event)

        record = caplog.records[-1]
        assert record.args == (event,)
        assert record.getMessage() == "[exited] pid=9 exit_code=0 outcome=unresolved done"

    def test_debug_file_handler_writes_json(self, tmp_path):
        log_file = tmp_path / "events.log"
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(JsonSerializingFormatter("%(message)s"))
        events_logger = logging.getLogger("proc_supervisor.events")
        events_logger.addHandler(handler)
        old_level = events_logger.level
        events_logger.setLevel(logging.DEBUG)
        try:
            emit_event(SupervisorEvent(kind=EventKind.WATCHDOG_FORCED, pid=11))
        finally:
            events_logger.removeHandler(handler)
            events_logger.setLevel(old_level)
            handler.close()

        data = json.loads(log_file.read_text(encoding="utf-8").strip())
        assert data["kind"] == "watchdog_forced"
        assert data["pid"] == 11


class TestSetupLogging:
    """Test logging setup."""

    def test_stderr_mode(self):
        package_logger = setup_logging(Config(log_debug=False))
        assert package_logger.name == "proc_supervisor"
        assert package_logger.level == logging.INFO

    def test_debug_file_mode(self, tmp_path):
        log_file = tmp_path / "psv.log"
        package_logger = setup_logging(Config(log_debug=True, log_file=str(log_file)))
        assert package_logger.level == logging.DEBUG

    def test_formatter_serializes_models(self):
        formatter = JsonSerializingFormatter("%(message)s")
        event = SupervisorEvent(kind=EventKind.STARTED, pid=3)
        record = logging.LogRecord(
            "proc_supervisor", logging.INFO, __file__, 1, "event=%s", (event,), None
        )

        text = formatter.format(record)

        assert '"kind": "started"' in text
        assert '"pid": 3' in text
        assert record.args == (event,)
