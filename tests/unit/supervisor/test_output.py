"""Unit tests for output sinks."""

import io
import json
from pathlib import Path

import pytest
from rich.console import Console

from esinside.supervisor import (
    ConsoleOutputSink,
    LoggingOutputSink,
    OutputSink,
    ProcessEvent,
    ProcessEventType,
)
from esinside.utils import create_logger

pytestmark = pytest.mark.anyio


def _event(event_type: ProcessEventType, exit_code: int | None = None) -> ProcessEvent:
    return ProcessEvent(
        process_name="elasticsearch",
        event_type=event_type,
        timestamp="2024-01-01T00:00:00Z",
        pid=42,
        exit_code=exit_code,
        message="msg",
    )


def _records(path: Path) -> list[dict[str, object]]:
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestLoggingOutputSink:
    @pytest.fixture
    def log_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        monkeypatch.delenv("ESINSIDE_DEBUG", raising=False)
        monkeypatch.delenv("ESINSIDE_LOG_LEVEL", raising=False)
        return tmp_path / "sink.log"

    async def test_satisfies_protocol(self, log_file: Path) -> None:
        assert isinstance(LoggingOutputSink(create_logger(log_file=log_file)), OutputSink)

    async def test_stdout_logged_at_debug(self, log_file: Path) -> None:
        sink = LoggingOutputSink(
            create_logger(level="debug", log_format="json", log_file=log_file)
        )

        await sink.write_line("elasticsearch", 42, "stdout", "started [node-1]")

        (record,) = _records(log_file)
        assert record["event"] == "started [node-1]"
        assert record["level"] == "debug"
        assert record["pid"] == 42

    async def test_stderr_logged_at_warning(self, log_file: Path) -> None:
        sink = LoggingOutputSink(create_logger(log_format="json", log_file=log_file))

        await sink.write_line("elasticsearch", 42, "stdout", "hidden at info")
        await sink.write_line("elasticsearch", 42, "stderr", "heap warning")

        (record,) = _records(log_file)
        assert record["event"] == "heap warning"
        assert record["level"] == "warning"

    async def test_crash_logged_at_error(self, log_file: Path) -> None:
        sink = LoggingOutputSink(create_logger(log_format="json", log_file=log_file))

        await sink.write_event("elasticsearch", _event(ProcessEventType.STARTED))
        await sink.write_event("elasticsearch", _event(ProcessEventType.CRASHED, 1))

        started, crashed = _records(log_file)
        assert started["event"] == "process_started"
        assert started["level"] == "info"
        assert crashed["event"] == "process_crashed"
        assert crashed["level"] == "error"
        assert crashed["exit_code"] == 1


class TestConsoleOutputSink:
    @pytest.fixture
    def buffer(self) -> io.StringIO:
        return io.StringIO()

    @pytest.fixture
    def sink(self, buffer: io.StringIO) -> ConsoleOutputSink:
        return ConsoleOutputSink(Console(file=buffer, width=200, no_color=True))

    async def test_prefixes_lines(
        self, sink: ConsoleOutputSink, buffer: io.StringIO
    ) -> None:
        await sink.write_line("elasticsearch", 42, "stdout", "hello")

        assert buffer.getvalue().strip() == "[elasticsearch:42] hello"

    async def test_formats_events(
        self, sink: ConsoleOutputSink, buffer: io.StringIO
    ) -> None:
        await sink.write_event("elasticsearch", _event(ProcessEventType.CRASHED, 3))

        output = buffer.getvalue()
        assert "CRASHED" in output
        assert "pid=42" in output
        assert "exit_code=3" in output
