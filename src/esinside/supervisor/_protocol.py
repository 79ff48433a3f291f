"""Where supervised process output goes."""

from typing import Literal, Protocol, runtime_checkable

from ._models import ProcessEvent


@runtime_checkable
class OutputSink(Protocol):
    """Receives the output lines and lifecycle events of supervised processes.

    The supervisor drains stdout and stderr continuously and hands every
    complete line to ``write_line``. Exceptions raised by a sink are logged
    and otherwise ignored.
    """

    async def write_line(
        self,
        process_name: str,
        pid: int,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        """Consume one output line, without its line terminator."""
        ...

    async def write_event(self, process_name: str, event: ProcessEvent) -> None:
        """Consume one lifecycle event."""
        ...
