"""Single-owner supervisor for one external process at a time.

This module provides the ProcessSupervisor class that spawns a process,
drains its output, and stops, restarts or disposes of it.
"""

import contextlib
import subprocess
from types import TracebackType
from typing import TYPE_CHECKING, Literal, Self, final

import anyio
import anyio.abc
from anyio.streams.text import TextReceiveStream

from esinside.exceptions import ProcessError, ProcessLaunchError, ProcessStopError
from esinside.utils import create_logger

from ._models import (
    LaunchSpec,
    ProcessEvent,
    ProcessEventType,
    ProcessState,
    ProcessStatus,
)
from ._protocol import OutputSink

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

DEFAULT_SHUTDOWN_TIMEOUT = 5.0


def _get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    import pendulum  # noqa: PLC0415

    return pendulum.now("UTC").to_iso8601_string()


@final
class ProcessSupervisor:
    """Owns the lifecycle of at most one external process.

    The supervisor is an async context manager: entering it opens the task
    group that drains process output, and leaving it disposes of any live
    process. ``start``, ``restart``, ``stop`` and ``dispose`` are serialised
    by a lock, so concurrent callers cannot race on the process handle.

    Attributes:
        name: Name used in events and log entries.
        status: Mutable runtime status tracking.
        shutdown_timeout: Seconds to wait after terminate before killing.
    """

    __slots__ = (
        "_exited",
        "_lock",
        "_logger",
        "_output_sink",
        "_process",
        "_spec",
        "_task_group",
        "name",
        "shutdown_timeout",
        "status",
    )

    def __init__(
        self,
        name: str,
        output_sink: OutputSink,
        *,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the supervisor.

        Args:
            name: Name of the supervised process.
            output_sink: Sink for process output and events.
            shutdown_timeout: Seconds to wait for graceful termination.
            logger: Logger for supervisor diagnostics.
        """
        self.name = name
        self.status = ProcessStatus()
        self.shutdown_timeout = shutdown_timeout
        self._output_sink = output_sink
        self._logger = logger if logger is not None else create_logger(process=name)
        self._process: anyio.abc.Process | None = None
        self._spec: LaunchSpec | None = None
        self._exited: anyio.Event | None = None
        self._task_group: anyio.abc.TaskGroup | None = None
        self._lock = anyio.Lock()

    async def __aenter__(self) -> Self:
        task_group = anyio.create_task_group()
        _ = await task_group.__aenter__()
        self._task_group = task_group
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        await self.dispose()
        task_group, self._task_group = self._task_group, None
        if task_group is None:
            return None
        return await task_group.__aexit__(exc_type, exc_val, exc_tb)

    @property
    def pid(self) -> int | None:
        """Return the process ID if running, None otherwise."""
        return self.status.pid

    @property
    def spec(self) -> LaunchSpec | None:
        """Return the launch spec of the current or last process."""
        return self._spec

    def is_running(self) -> bool:
        """Check if a process is currently running."""
        return self._process is not None and self._process.returncode is None

    async def emit_event(
        self,
        event_type: ProcessEventType,
        *,
        pid: int | None = None,
        message: str | None = None,
        exit_code: int | None = None,
    ) -> None:
        """Emit a process lifecycle event to the output sink.

        Args:
            event_type: Type of event to emit.
            pid: Process ID the event refers to. Uses the current pid if None.
            message: Optional message for the event.
            exit_code: Exit code if the process terminated.
        """
        event = ProcessEvent(
            process_name=self.name,
            event_type=event_type,
            timestamp=_get_timestamp(),
            pid=pid if pid is not None else self.status.pid,
            exit_code=exit_code,
            message=message,
        )
        try:
            await self._output_sink.write_event(self.name, event)
        except Exception:  # noqa: BLE001
            # Output sink errors should not crash the process lifecycle
            self._logger.debug("output_sink_event_failed", exc_info=True)

    async def _stream_output(
        self,
        stream: anyio.abc.ByteReceiveStream,
        stream_name: Literal["stdout", "stderr"],
        pid: int,
    ) -> None:
        """Forward a byte stream to the output sink one line at a time.

        Args:
            stream: The process stream to read from.
            stream_name: Name of the stream ("stdout" or "stderr").
            pid: Process ID that owns the stream.
        """
        pending = ""
        try:
            async for chunk in TextReceiveStream(stream, errors="replace"):
                pending += chunk
                *lines, pending = pending.split("\n")
                for line in lines:
                    await self._write_line(pid, stream_name, line.rstrip("\r"))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # Stream closed, which is expected on process exit
            pass
        if pending:
            await self._write_line(pid, stream_name, pending.rstrip("\r"))

    async def _write_line(
        self,
        pid: int,
        stream_name: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        try:
            await self._output_sink.write_line(self.name, pid, stream_name, line)
        except Exception:  # noqa: BLE001
            # Output sink errors should not crash streaming
            self._logger.debug("output_sink_line_failed", exc_info=True)

    async def _watch(self, process: anyio.abc.Process, exited: anyio.Event) -> None:
        """Drain both output streams, then record a natural exit.

        Both streams are read concurrently with the wait so a child writing
        to a full pipe can never block.
        """
        pid = process.pid
        try:
            async with anyio.create_task_group() as tg:
                if process.stdout is not None:
                    tg.start_soon(self._stream_output, process.stdout, "stdout", pid)
                if process.stderr is not None:
                    tg.start_soon(self._stream_output, process.stderr, "stderr", pid)

            exit_code = await process.wait()

            # A stopped process has already been detached by _terminate
            if self._process is process:
                self._process = None
                self.status.pid = None
                self.status.last_exit_code = exit_code
                self.status.stopped_at = _get_timestamp()
                self.status.state = ProcessState.STOPPED
                if exit_code == 0:
                    await self.emit_event(
                        ProcessEventType.EXITED,
                        pid=pid,
                        exit_code=exit_code,
                        message="Exited normally",
                    )
                else:
                    await self.emit_event(
                        ProcessEventType.CRASHED,
                        pid=pid,
                        exit_code=exit_code,
                        message=f"Exited with code {exit_code}",
                    )
        finally:
            exited.set()

    async def start(self, spec: LaunchSpec) -> None:
        """Spawn a process and begin draining its output.

        Does not wait for the process to complete; use ``wait_for_exit`` for
        that.

        Args:
            spec: How to launch the process.

        Raises:
            ProcessError: If the supervisor is not entered or a process is
                already running.
            ProcessLaunchError: If the executable is missing or cannot be
                spawned.
        """
        async with self._lock:
            if self._task_group is None:
                msg = f"Supervisor for '{self.name}' must be entered before start"
                raise ProcessError(msg, process_name=self.name)
            if self._process is not None:
                msg = f"Process '{self.name}' is already running (pid={self.status.pid})"
                raise ProcessError(msg, process_name=self.name)

            self._spec = spec
            self.status.state = ProcessState.STARTING
            self.status.started_at = _get_timestamp()

            try:
                process = await anyio.open_process(
                    spec.command,
                    cwd=spec.cwd,
                    env=spec.environment(),
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
            except OSError as e:
                self.status.state = ProcessState.FAILED
                msg = f"Failed to start process '{self.name}': {e}"
                raise ProcessLaunchError(msg, process_name=self.name, cause=e) from e

            exited = anyio.Event()
            self._process = process
            self._exited = exited
            self.status.pid = process.pid
            self.status.last_exit_code = None
            self.status.state = ProcessState.RUNNING
            self._task_group.start_soon(self._watch, process, exited)

            await self.emit_event(
                ProcessEventType.STARTED,
                message=f"Started with command: {' '.join(spec.command)}",
            )

    async def wait_for_exit(self) -> int | None:
        """Wait until the current process terminates and its output is drained.

        Returns:
            The exit code, or the last known exit code if nothing is running.
        """
        exited = self._exited
        if exited is not None:
            await exited.wait()
        return self.status.last_exit_code

    async def run(self, spec: LaunchSpec) -> int | None:
        """Start a process and wait for it to exit.

        Args:
            spec: How to launch the process.

        Returns:
            The process exit code.

        Raises:
            ProcessLaunchError: If the process cannot be spawned.
        """
        await self.start(spec)
        return await self.wait_for_exit()

    async def _terminate(self, graceful_timeout: float | None) -> int | None:
        """Terminate the current process and wait until it is gone.

        Args:
            graceful_timeout: Seconds to wait after terminate before killing,
                or None to kill immediately.

        Returns:
            The exit code, or None if no process was running.
        """
        process = self._process
        if process is None:
            self.status.state = ProcessState.STOPPED
            return None

        self._process = None
        pid = process.pid
        try:
            if graceful_timeout is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
            else:
                with contextlib.suppress(ProcessLookupError):
                    process.terminate()
                with anyio.move_on_after(graceful_timeout):
                    _ = await process.wait()
                if process.returncode is None:
                    self._logger.warning(
                        "process_kill_after_timeout",
                        pid=pid,
                        timeout=graceful_timeout,
                    )
                    with contextlib.suppress(ProcessLookupError):
                        process.kill()

            exit_code = await process.wait()
            self.status.last_exit_code = exit_code
            await process.aclose()
        except OSError as e:
            msg = f"Failed to stop process '{self.name}': {e}"
            raise ProcessStopError(msg, process_name=self.name, cause=e) from e
        finally:
            self.status.pid = None
            self.status.state = ProcessState.STOPPED
            self.status.stopped_at = _get_timestamp()

        if self._exited is not None:
            await self._exited.wait()
        return exit_code

    async def stop(self, graceful_timeout: float | None = None) -> int | None:
        """Stop the current process gracefully.

        Terminates the process and waits for it to exit. If it doesn't exit
        within the timeout, it is killed.

        Args:
            graceful_timeout: Seconds to wait for graceful shutdown.
                Uses ``shutdown_timeout`` if None.

        Returns:
            The exit code, or None if no process was running.

        Raises:
            ProcessStopError: If the process cannot be signalled.
        """
        timeout = graceful_timeout if graceful_timeout is not None else self.shutdown_timeout
        async with self._lock:
            pid = self.status.pid
            exit_code = await self._terminate(timeout)
            if pid is not None:
                await self.emit_event(
                    ProcessEventType.STOPPED,
                    pid=pid,
                    exit_code=exit_code,
                    message="Stopped by request",
                )
            return exit_code

    async def restart(self) -> None:
        """Stop the current process so a new one can be started.

        Returns only once the old process is fully gone. The caller starts
        the replacement with ``start``. Does nothing if no process is running.

        Raises:
            ProcessStopError: If the process cannot be signalled.
        """
        async with self._lock:
            pid = self.status.pid
            if self._process is None:
                return
            await self.emit_event(
                ProcessEventType.RESTARTING,
                pid=pid,
                message=f"Restarting (restart {self.status.restart_count + 1})",
            )
            exit_code = await self._terminate(self.shutdown_timeout)
            self.status.restart_count += 1
            await self.emit_event(
                ProcessEventType.STOPPED,
                pid=pid,
                exit_code=exit_code,
                message="Stopped for restart",
            )

    async def dispose(self) -> None:
        """Kill any running process and release it.

        Never raises; failures are logged. Safe to call repeatedly.
        """
        with anyio.CancelScope(shield=True):
            try:
                async with self._lock:
                    pid = self.status.pid
                    exit_code = await self._terminate(None)
                    if pid is not None:
                        self._logger.debug(
                            "process_disposed", pid=pid, exit_code=exit_code
                        )
            except Exception:  # noqa: BLE001
                self._logger.exception("process_dispose_failed")
