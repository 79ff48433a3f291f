"""Unit tests for Elasticsearch construction and state guards."""

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
import structlog
from structlog.testing import LogCapture

import esinside.orchestrator._orchestrator as orchestrator_module
from esinside.config import Plugin, Settings
from esinside.exceptions import OrchestratorStateError
from esinside.orchestrator import Elasticsearch, OrchestratorState

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

pytestmark = pytest.mark.anyio


class TestConstruction:
    async def test_loads_defaults(self, tmp_path: Path) -> None:
        es = Elasticsearch(base_dir=tmp_path)

        assert es.state is OrchestratorState.INITIALIZING
        assert es.settings.root.is_dir()
        assert es.url == f"http://localhost:{es.settings.port}/"
        assert es.jvm_parameters == es.settings.jvm_parameters
        assert es.supervisor is None

        await es.aclose()

    async def test_configure_mutates_in_place(self, tmp_path: Path) -> None:
        def configure(settings: Settings) -> None:
            _ = settings.set_cluster_name("test")

        es = Elasticsearch(configure, base_dir=tmp_path)

        assert es.settings.cluster_name == "test"

        await es.aclose()

    async def test_configure_may_return_replacement(self, tmp_path: Path) -> None:
        replacement = Settings(root=tmp_path / "other").set_port(9250)
        replacement.root.mkdir()

        es = Elasticsearch(lambda _s: replacement, base_dir=tmp_path)

        assert es.settings is replacement
        assert es.url == "http://localhost:9250/"
        assert [path.name for path in tmp_path.iterdir()] == ["other"]

        await es.aclose()

    async def test_add_plugin_before_start(self, tmp_path: Path) -> None:
        es = Elasticsearch(base_dir=tmp_path)

        result = es.add_plugin(Plugin("analysis-icu")).add_plugin(Plugin("x-pack"))

        assert result is es
        assert [plugin.name for plugin in es.plugins] == ["analysis-icu", "x-pack"]

        await es.aclose()

    async def test_plugins_is_a_snapshot(self, tmp_path: Path) -> None:
        es = Elasticsearch(base_dir=tmp_path)
        _ = es.add_plugin(Plugin("analysis-icu"))

        plugins = es.plugins
        _ = es.add_plugin(Plugin("x-pack"))

        assert plugins == (Plugin("analysis-icu"),)
        assert isinstance(es.plugins, tuple)
        assert len(es.plugins) == 2

        await es.aclose()


class TestLogging:
    async def test_log_file_closed_on_aclose(
        self, tmp_path: Path, mocker: "MockerFixture"
    ) -> None:
        spy = mocker.spy(orchestrator_module, "open_log_file")
        log_file = tmp_path / "logs" / "es.log"

        def configure(settings: Settings) -> None:
            settings.log_file = log_file
            _ = settings.enable_logging()

        es = Elasticsearch(configure, base_dir=tmp_path / "work")
        handle = spy.spy_return

        assert not handle.closed

        await es.aclose()

        assert handle.closed
        assert log_file.exists()

    async def test_no_log_file_opened_when_disabled(
        self, tmp_path: Path, mocker: "MockerFixture"
    ) -> None:
        spy = mocker.spy(orchestrator_module, "open_log_file")

        def configure(settings: Settings) -> None:
            settings.log_file = tmp_path / "es.log"

        es = Elasticsearch(configure, base_dir=tmp_path / "work")
        await es.aclose()

        spy.assert_not_called()
        assert not (tmp_path / "es.log").exists()

    async def test_uses_supplied_logger(self, tmp_path: Path) -> None:
        capture = LogCapture()
        logger = structlog.wrap_logger(
            structlog.ReturnLogger(),
            processors=[capture],
            wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
            context_class=dict,
        )

        es = Elasticsearch(base_dir=tmp_path, logger=logger)
        await es.aclose()

        changes = [entry for entry in capture.entries if entry["event"] == "state_changed"]
        assert changes[-1]["state"] == "disposed"
        assert changes[-1]["node"] == es.settings.node_name


class TestStateGuards:
    async def test_add_plugin_after_dispose(self, tmp_path: Path) -> None:
        es = Elasticsearch(base_dir=tmp_path)
        await es.aclose()

        with pytest.raises(OrchestratorStateError):
            _ = es.add_plugin(Plugin("late"))

    async def test_start_after_dispose(self, tmp_path: Path) -> None:
        es = Elasticsearch(base_dir=tmp_path)
        await es.aclose()

        with pytest.raises(OrchestratorStateError):
            _ = await es.start()
