"""Unit tests for logging utilities."""

import io
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from esinside.utils import create_logger, open_log_file, resolve_log_level

if TYPE_CHECKING:
    from pyfakefs.fake_filesystem import FakeFilesystem


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ESINSIDE_DEBUG", raising=False)
    monkeypatch.delenv("ESINSIDE_LOG_LEVEL", raising=False)


class TestResolveLogLevel:
    def test_defaults_to_info(self) -> None:
        assert resolve_log_level() == logging.INFO

    def test_debug_env_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ESINSIDE_DEBUG", "1")
        monkeypatch.setenv("ESINSIDE_LOG_LEVEL", "error")

        assert resolve_log_level() == logging.DEBUG
        assert resolve_log_level("error") == logging.DEBUG

    def test_level_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ESINSIDE_LOG_LEVEL", "warning")

        assert resolve_log_level() == logging.WARNING

    def test_explicit_level_beats_level_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ESINSIDE_LOG_LEVEL", "warning")

        assert resolve_log_level("error") == logging.ERROR

    def test_unknown_name_falls_back_to_info(self) -> None:
        assert resolve_log_level("chatty") == logging.INFO


class TestCreateLogger:
    def test_creates_log_directory_if_missing(self, fs: "FakeFilesystem") -> None:
        log_path = Path("/logs/esinside.log")

        logger = create_logger(log_file=log_path)
        logger.info("started")

        assert log_path.parent.exists()

    def test_json_format(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(log_file="/logs/test.log", log_format="json")

        logger.info("bundle_extracted", files=3)

        record = json.loads(Path("/logs/test.log").read_text().splitlines()[0])
        assert record["event"] == "bundle_extracted"
        assert record["files"] == 3
        assert record["level"] == "info"

    def test_text_format(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(log_file="/logs/test.log")

        logger.info("ready", url="http://localhost:9200/")

        text = Path("/logs/test.log").read_text()
        assert "ready" in text
        assert "url=http://localhost:9200/" in text

    def test_binds_context(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(log_file="/logs/test.log", log_format="json", node="n1")

        logger.info("event")

        assert json.loads(Path("/logs/test.log").read_text())["node"] == "n1"

    def test_filters_below_level(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(log_file="/logs/test.log", level="warning")

        logger.info("hidden")
        logger.warning("shown")

        text = Path("/logs/test.log").read_text()
        assert "hidden" not in text
        assert "shown" in text

    def test_disabled_logger_writes_nothing(
        self, fs: "FakeFilesystem", capsys: pytest.CaptureFixture[str]
    ) -> None:
        logger = create_logger(enabled=False, log_file="/logs/test.log")

        logger.error("nothing")

        assert not Path("/logs/test.log").exists()
        assert capsys.readouterr().err == ""

    def test_stderr_by_default(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = create_logger()

        logger.warning("to_stderr")

        assert "to_stderr" in capsys.readouterr().err

    def test_writes_to_supplied_stream(self) -> None:
        stream = io.StringIO()
        logger = create_logger(stream=stream, log_format="json")

        logger.info("plugin_installed", plugin="analysis-icu")

        assert json.loads(stream.getvalue())["plugin"] == "analysis-icu"


class TestOpenLogFile:
    def test_appends_and_creates_directory(self, fs: "FakeFilesystem") -> None:
        fs.create_file("/logs/old/es.log", contents="first\n")

        with open_log_file("/logs/old/es.log") as handle:
            _ = handle.write("second\n")
        with open_log_file("/logs/new/es.log") as handle:
            _ = handle.write("fresh\n")

        assert Path("/logs/old/es.log").read_text() == "first\nsecond\n"
        assert Path("/logs/new/es.log").read_text() == "fresh\n"
