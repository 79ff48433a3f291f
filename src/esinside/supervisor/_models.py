"""Data models for the process supervisor.

This module defines the core data types for process supervision:
- ProcessState: Lifecycle states for a supervised process
- ProcessEventType: Types of lifecycle events
- ProcessEvent: Immutable event records
- LaunchSpec: Immutable description of how to launch a process
- ProcessStatus: Mutable runtime status
"""

import os
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class ProcessState(StrEnum):
    """Supervised process lifecycle states.

    - STOPPED: No process is running
    - STARTING: A process is being spawned
    - RUNNING: A process is running
    - FAILED: The last launch failed
    """

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    FAILED = "failed"


class ProcessEventType(StrEnum):
    """Types of process lifecycle events.

    - STARTED: Process has been spawned
    - EXITED: Process exited on its own with code 0
    - CRASHED: Process exited on its own with a non-zero code
    - STOPPED: Process was stopped by request
    - RESTARTING: Process is being stopped so it can be started again
    """

    STARTED = "started"
    EXITED = "exited"
    CRASHED = "crashed"
    STOPPED = "stopped"
    RESTARTING = "restarting"


@dataclass(frozen=True, slots=True)
class ProcessEvent:
    """Immutable process lifecycle event.

    Attributes:
        process_name: Name of the supervised process.
        event_type: Type of lifecycle event.
        timestamp: ISO 8601 formatted timestamp.
        pid: Process ID if applicable.
        exit_code: Exit code if the process terminated.
        message: Optional human-readable message.
    """

    process_name: str
    event_type: ProcessEventType
    timestamp: str
    pid: int | None = None
    exit_code: int | None = None
    message: str | None = None


@dataclass(frozen=True, slots=True)
class LaunchSpec:
    """Everything needed to launch a process, fixed before launch.

    The child environment is the host environment without the ``unset``
    names and with ``env`` applied on top, so a variable such as
    ``JAVA_HOME`` always points where the launcher says.

    Attributes:
        executable: Program to run.
        arguments: Arguments passed after the executable.
        cwd: Working directory for the process.
        env: Environment variables to set or replace.
        unset: Host environment variables to drop.
    """

    executable: Path
    arguments: tuple[str, ...] = ()
    cwd: Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    unset: frozenset[str] = frozenset()

    @property
    def command(self) -> tuple[str, ...]:
        """Return the full command line."""
        return (str(self.executable), *self.arguments)

    def environment(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Build the child environment.

        Args:
            base: Environment to start from. Uses ``os.environ`` if None.

        Returns:
            The environment mapping to launch the process with.
        """
        source = dict(os.environ) if base is None else dict(base)
        for name in self.unset:
            _ = source.pop(name, None)
        source.update(self.env)
        return source


@dataclass(slots=True)
class ProcessStatus:
    """Mutable runtime status of a supervised process.

    Attributes:
        state: Current process state.
        pid: Process ID of the running process, if any.
        restart_count: Number of times the process has been restarted.
        last_exit_code: Exit code from the last process termination.
        started_at: ISO 8601 timestamp of last start.
        stopped_at: ISO 8601 timestamp of last stop.
    """

    state: ProcessState = ProcessState.STOPPED
    pid: int | None = None
    restart_count: int = 0
    last_exit_code: int | None = None
    started_at: str | None = None
    stopped_at: str | None = None
