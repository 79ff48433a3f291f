"""Supervisor package for managing one external process at a time.

Key Components:
    - LaunchSpec: Immutable description of how to launch a process
    - ProcessState: Lifecycle state enumeration
    - ProcessStatus: Runtime status tracking
    - ProcessEvent: Lifecycle event records
    - OutputSink: Protocol for output consumption
    - LoggingOutputSink: structlog output implementation
    - ConsoleOutputSink: rich console output implementation
    - ProcessSupervisor: Single-owner process lifecycle manager

Example:
    >>> from esinside.supervisor import LaunchSpec, ProcessSupervisor
    >>> async with ProcessSupervisor("server", sink) as supervisor:
    ...     await supervisor.start(LaunchSpec(executable=Path("bin/server")))
    ...     await supervisor.restart()
"""

from ._models import (
    LaunchSpec,
    ProcessEvent,
    ProcessEventType,
    ProcessState,
    ProcessStatus,
)
from ._output import ConsoleOutputSink, LoggingOutputSink
from ._process import DEFAULT_SHUTDOWN_TIMEOUT, ProcessSupervisor
from ._protocol import OutputSink

__all__ = [
    "DEFAULT_SHUTDOWN_TIMEOUT",
    "ConsoleOutputSink",
    "LaunchSpec",
    "LoggingOutputSink",
    "OutputSink",
    "ProcessEvent",
    "ProcessEventType",
    "ProcessState",
    "ProcessStatus",
    "ProcessSupervisor",
]
