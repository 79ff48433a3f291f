"""Startup orchestration for an embedded Elasticsearch instance.

This module provides the Elasticsearch class, which extracts the bundled
Java runtime and server, writes the server configuration, launches the
server, waits for it to report healthy, installs plugins (restarting after
each one) and finally tears everything down again.
"""

import os
import shutil
import time
from collections.abc import Callable
from contextlib import AsyncExitStack
from functools import partial
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Self, TextIO, final

import anyio
import anyio.from_thread
import anyio.to_thread
import httpx

from esinside.archive import BundleSource, extract_bundle
from esinside.config import Plugin, Settings
from esinside.exceptions import (
    OrchestratorStateError,
    PluginInstallError,
    ProcessLaunchError,
)
from esinside.supervisor import (
    LaunchSpec,
    LoggingOutputSink,
    OutputSink,
    ProcessSupervisor,
)
from esinside.utils import create_logger, open_log_file

from ._readiness import wait_for_ready
from ._state import TERMINAL_STATES, OrchestratorState, ensure_transition

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

type Configure = Callable[[Settings], Settings | None]

SERVER_PROCESS_NAME = "elasticsearch"


def _first_exception(group: BaseExceptionGroup) -> BaseException:
    """Return the first leaf exception of a (possibly nested) group."""
    first = group.exceptions[0]
    if isinstance(first, BaseExceptionGroup):
        return _first_exception(first)
    return first


@final
class Elasticsearch:
    """Runs a bundled Elasticsearch as a supervised child process.

    Constructing an instance loads default settings (which creates the
    private working directory) and applies the optional configure callback.
    Entering it as an async context manager starts the startup pipeline in
    the background; ``ready()`` waits for the pipeline to finish. Leaving
    the context stops the process and deletes the working directory.

    ``start`` and ``aclose`` must be called from the same task, which
    ``async with`` guarantees.

    Example:
        >>> async with Elasticsearch(lambda s: s.enable_logging()) as es:
        ...     await es.ready()
        ...     print(es.url)
    """

    __slots__ = (
        "_done",
        "_exit_stack",
        "_failure",
        "_log_stream",
        "_logger",
        "_output_sink",
        "_overall_timeout",
        "_settings",
        "_started_at",
        "_startup_scope",
        "_state",
        "_succeeded",
        "_supervisor",
        "_transport",
    )

    def __init__(
        self,
        configure: Configure | None = None,
        *,
        overall_timeout: float | None = None,
        output_sink: OutputSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        base_dir: Path | None = None,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        """Load settings for a new instance.

        Args:
            configure: Callback that adjusts the default settings. It may
                mutate them in place or return a replacement.
            overall_timeout: Seconds from ``start`` after which readiness
                polling gives up, in addition to ``Settings.startup_timeout``.
            output_sink: Where server and installer output goes. Logs it
                through the instance logger if None.
            transport: HTTP transport for health checks.
            base_dir: Parent of the working directory. Uses the system temp
                directory if None.
            logger: Logger for orchestrator messages. Replaces the logger
                built from the logging settings, which are then ignored.
        """
        self._state = OrchestratorState.INITIALIZING
        self._started_at = time.perf_counter()
        settings = Settings.load_default(base_dir)
        if configure is not None:
            try:
                result = configure(settings)
            except Exception:
                shutil.rmtree(settings.root, ignore_errors=True)
                raise
            if result is not None:
                if result.root != settings.root:
                    shutil.rmtree(settings.root, ignore_errors=True)
                settings = result

        self._settings = settings
        self._log_stream: TextIO | None = None
        if logger is not None:
            self._logger: FilteringBoundLogger = logger.bind(node=settings.node_name)
        else:
            if settings.logging_enabled and settings.log_file is not None:
                self._log_stream = open_log_file(settings.log_file)
            self._logger = create_logger(
                level=settings.log_level.value if settings.log_level else None,
                log_format=settings.log_format.value,
                stream=self._log_stream,
                enabled=settings.logging_enabled,
                node=settings.node_name,
            )
        self._output_sink: OutputSink = output_sink or LoggingOutputSink(self._logger)
        self._transport = transport
        self._overall_timeout = overall_timeout
        self._supervisor: ProcessSupervisor | None = None
        self._exit_stack: AsyncExitStack | None = None
        self._startup_scope: anyio.CancelScope | None = None
        self._done: anyio.Event | None = None
        self._failure: Exception | None = None
        self._succeeded = False

    async def __aenter__(self) -> Self:
        return await self.start()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Public surface
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        """Return the instance settings."""
        return self._settings

    @property
    def state(self) -> OrchestratorState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def url(self) -> str:
        """Return the base URL of the server."""
        return self._settings.url

    @property
    def plugins(self) -> tuple[Plugin, ...]:
        """Return the plugins that will be installed, in install order."""
        return tuple(self._settings.plugins)

    @property
    def jvm_parameters(self) -> list[str]:
        """Return the flags passed to the Java runtime."""
        return self._settings.jvm_parameters

    @property
    def supervisor(self) -> ProcessSupervisor | None:
        """Return the server process supervisor once started."""
        return self._supervisor

    def add_plugin(self, plugin: Plugin) -> Self:
        """Queue a plugin for installation before startup begins.

        Raises:
            OrchestratorStateError: If startup has already begun.
        """
        if self._state != OrchestratorState.INITIALIZING:
            msg = f"Plugins cannot be added in state '{self._state}'"
            raise OrchestratorStateError(msg, current=self._state.value)
        _ = self._settings.add_plugin(plugin)
        return self

    async def start(self) -> Self:
        """Begin the startup pipeline in the background.

        Returns:
            This instance; await ``ready()`` to wait for startup.

        Raises:
            OrchestratorStateError: If the instance was already started.
        """
        if self._exit_stack is not None or self._state != OrchestratorState.INITIALIZING:
            msg = f"Cannot start in state '{self._state}'"
            raise OrchestratorStateError(msg, current=self._state.value)

        self._started_at = time.perf_counter()
        self._done = anyio.Event()
        self._supervisor = ProcessSupervisor(
            SERVER_PROCESS_NAME,
            self._output_sink,
            shutdown_timeout=self._settings.shutdown_timeout,
            logger=self._logger,
        )

        stack = AsyncExitStack()
        try:
            task_group = await stack.enter_async_context(anyio.create_task_group())
            _ = await stack.enter_async_context(self._supervisor)
        except BaseException:
            await stack.aclose()
            raise
        self._exit_stack = stack
        task_group.start_soon(self._run_startup)
        return self

    async def ready(self) -> Self:
        """Wait until the server is up and every plugin is installed.

        Repeated calls return immediately with the same outcome.

        Returns:
            This instance.

        Raises:
            OrchestratorStateError: If the instance was never started or was
                disposed before startup completed.
            Exception: The first error that stopped the startup pipeline.
        """
        if self._done is None:
            msg = "Instance not started; use 'async with' or call start() first"
            raise OrchestratorStateError(msg, current=self._state.value)

        await self._done.wait()
        if self._failure is not None:
            raise self._failure
        if not self._succeeded:
            msg = "Instance was disposed before startup completed"
            raise OrchestratorStateError(msg, current=self._state.value)
        return self

    async def restart(self) -> None:
        """Restart the server process and wait until it is healthy again.

        Raises:
            OrchestratorStateError: If the instance is not ready.
        """
        if self._state != OrchestratorState.READY:
            msg = f"Cannot restart in state '{self._state}'"
            raise OrchestratorStateError(msg, current=self._state.value)
        try:
            await self._restart()
        except Exception:
            self._transition(OrchestratorState.FAILED)
            raise
        self._transition(OrchestratorState.READY)

    async def aclose(self) -> None:
        """Stop the server and delete the working directory.

        Never raises; failures are logged. Safe to call repeatedly, before
        start, and after a failed startup.
        """
        if self._state == OrchestratorState.DISPOSED:
            return

        with anyio.CancelScope(shield=True):
            if self._startup_scope is not None:
                self._startup_scope.cancel()
            stack, self._exit_stack = self._exit_stack, None
            if stack is not None:
                try:
                    await stack.aclose()
                except Exception:  # noqa: BLE001
                    self._logger.exception("dispose_failed")
            await self._remove_working_root()

        self._transition(OrchestratorState.DISPOSED)
        if self._done is not None:
            self._done.set()
        if self._log_stream is not None:
            self._log_stream.close()
            self._log_stream = None

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _transition(self, target: OrchestratorState) -> None:
        ensure_transition(self._state, target)
        self._logger.debug("state_changed", previous=self._state.value, state=target.value)
        self._state = target

    def _elapsed(self) -> float:
        return round(time.perf_counter() - self._started_at, 2)

    async def _run_startup(self) -> None:
        done = self._done
        with anyio.CancelScope() as scope:
            self._startup_scope = scope
            try:
                await self._setup_and_start()
            except Exception as e:  # noqa: BLE001
                self._failure = e
                if self._state not in TERMINAL_STATES:
                    self._transition(OrchestratorState.FAILED)
                self._logger.error("startup_failed", error=repr(e), exc_info=e)
            finally:
                self._startup_scope = None
                if done is not None:
                    done.set()

    async def _setup_and_start(self) -> None:
        settings = self._settings
        self._logger.info(
            "starting",
            version=settings.elasticsearch_version,
            root=str(settings.root),
            url=settings.url,
        )

        self._transition(OrchestratorState.EXTRACTING_RESOURCES)
        await self._setup_environment()
        self._logger.info("environment_ready", seconds=self._elapsed())

        self._transition(OrchestratorState.STARTING)
        await self._start_process()

        self._transition(OrchestratorState.WAITING_FOR_READY)
        await self._wait_for_ready()

        self._transition(OrchestratorState.INSTALLING_PLUGINS)
        await self._install_plugins()

        self._transition(OrchestratorState.READY)
        self._succeeded = True
        self._logger.info("ready", seconds=self._elapsed(), url=settings.url)

    async def _setup_environment(self) -> None:
        """Extract both bundles concurrently, then write the config files."""
        settings = self._settings
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(
                    self._extract, "jre", settings.runtime_bundle_source, settings.jvm_path
                )
                tg.start_soon(self._extract_application)
        except BaseExceptionGroup as group:
            raise _first_exception(group) from None

    async def _extract_application(self) -> None:
        settings = self._settings
        await self._extract(
            "elasticsearch",
            settings.application_bundle_source,
            settings.elasticsearch_home,
        )
        await anyio.to_thread.run_sync(settings.write_settings)
        self._logger.debug("settings_written", config_dir=str(settings.config_dir))

    async def _extract(self, name: str, source: BundleSource, target: Path) -> None:
        started = time.perf_counter()
        written = await anyio.to_thread.run_sync(
            partial(
                extract_bundle,
                source,
                target,
                checkpoint=anyio.from_thread.check_cancelled,
            )
        )
        self._logger.info(
            "bundle_extracted",
            bundle=name,
            files=len(written),
            seconds=round(time.perf_counter() - started, 2),
        )

    def _launch_environment(self) -> dict[str, str]:
        if "JAVA_HOME" in os.environ:
            self._logger.debug("java_home_replaced", previous=os.environ["JAVA_HOME"])
        return self._settings.runtime_environment()

    async def _start_process(self) -> None:
        settings = self._settings
        spec = LaunchSpec(
            executable=settings.java_executable,
            arguments=tuple(settings.build_command_line()),
            cwd=settings.elasticsearch_home,
            env=self._launch_environment(),
        )
        supervisor = self._require_supervisor()
        await supervisor.start(spec)
        self._logger.info("process_started", pid=supervisor.pid)

    async def _wait_for_ready(self) -> None:
        settings = self._settings
        timeout = settings.startup_timeout
        if self._overall_timeout is not None:
            remaining = self._overall_timeout - (time.perf_counter() - self._started_at)
            timeout = max(min(timeout, remaining), 0.0)

        async with httpx.AsyncClient(transport=self._transport) as client:
            waited = await wait_for_ready(
                client,
                settings.url,
                timeout=timeout,
                interval=settings.poll_interval,
                logger=self._logger,
            )
        self._logger.info("health_check_passed", seconds=round(waited, 2))

    async def _install_plugins(self) -> None:
        for plugin in list(self._settings.plugins):
            self._logger.info("plugin_installing", plugin=plugin.name)
            await self._install_plugin(plugin)
            self._logger.info("plugin_installed", plugin=plugin.name)
            # Plugins are only loaded at process start
            await self._restart()
            self._transition(OrchestratorState.INSTALLING_PLUGINS)

    async def _install_plugin(self, plugin: Plugin) -> None:
        settings = self._settings
        spec = LaunchSpec(
            executable=settings.plugin_executable,
            arguments=plugin.install_arguments,
            cwd=settings.plugin_executable.parent,
            env=self._launch_environment(),
        )
        installer = ProcessSupervisor(
            f"plugin-{plugin.name}",
            self._output_sink,
            shutdown_timeout=settings.shutdown_timeout,
            logger=self._logger,
        )
        async with installer:
            try:
                exit_code = await installer.run(spec)
            except ProcessLaunchError as e:
                msg = f"Could not launch installer for plugin '{plugin.name}': {e}"
                raise PluginInstallError(msg, plugin_name=plugin.name) from e

        if exit_code != 0:
            msg = f"Installer for plugin '{plugin.name}' exited with code {exit_code}"
            raise PluginInstallError(msg, plugin_name=plugin.name, exit_code=exit_code)

    async def _restart(self) -> None:
        self._transition(OrchestratorState.STARTING)
        await self._require_supervisor().restart()
        await self._start_process()
        self._transition(OrchestratorState.WAITING_FOR_READY)
        await self._wait_for_ready()

    def _require_supervisor(self) -> ProcessSupervisor:
        if self._supervisor is None:
            msg = "Instance not started"
            raise OrchestratorStateError(msg, current=self._state.value)
        return self._supervisor

    async def _remove_working_root(self) -> None:
        root = self._settings.root
        if not root.exists():
            return
        try:
            await anyio.to_thread.run_sync(shutil.rmtree, root)
        except OSError:
            self._logger.exception("working_root_removal_failed", root=str(root))
        else:
            self._logger.debug("working_root_removed", root=str(root))
