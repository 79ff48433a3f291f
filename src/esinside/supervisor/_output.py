"""Output sink implementations for the process supervisor.

This module provides concrete implementations of the OutputSink protocol:
- LoggingOutputSink: Forwards output and events to a structlog logger
- ConsoleOutputSink: Prints prefixed, colour-coded lines to a rich console
"""

from typing import TYPE_CHECKING, Literal, final

from rich.console import Console
from rich.style import Style
from rich.text import Text

from ._models import ProcessEvent, ProcessEventType

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


@final
class LoggingOutputSink:
    """Output sink that forwards everything to a structlog logger.

    stdout lines are logged at debug, stderr lines at warning, and events at
    info (crashes at error).
    """

    __slots__ = ("_logger",)

    def __init__(self, logger: "FilteringBoundLogger") -> None:  # noqa: UP037
        self._logger = logger

    async def write_line(
        self,
        process_name: str,
        pid: int,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        if stream == "stderr":
            self._logger.warning(line, process=process_name, pid=pid, stream=stream)
        else:
            self._logger.debug(line, process=process_name, pid=pid, stream=stream)

    async def write_event(
        self,
        process_name: str,
        event: ProcessEvent,
    ) -> None:
        log = (
            self._logger.error
            if event.event_type == ProcessEventType.CRASHED
            else self._logger.info
        )
        log(
            f"process_{event.event_type.value}",
            process=process_name,
            pid=event.pid,
            exit_code=event.exit_code,
            message=event.message,
        )


_PREFIX_STYLE = Style(color="blue", bold=True)
_DETAIL_STYLE = Style(dim=True)

_STREAM_STYLES: dict[str, Style] = {
    "stdout": Style(),
    "stderr": Style(color="red", dim=True),
}

_EVENT_STYLES: dict[ProcessEventType, Style] = {
    ProcessEventType.STARTED: Style(color="green", bold=True),
    ProcessEventType.EXITED: Style(color="yellow"),
    ProcessEventType.STOPPED: Style(color="yellow"),
    ProcessEventType.CRASHED: Style(color="red", bold=True),
    ProcessEventType.RESTARTING: Style(color="cyan"),
}


@final
class ConsoleOutputSink:
    """Output sink that prints to a rich console.

    Output lines look like ``[name:pid] line``, with stderr dimmed red.
    Events look like ``[name] CRASHED (pid=1) exit_code=3 - message``.
    """

    __slots__ = ("_console",)

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def _print(self, prefix: str, *parts: tuple[str, Style]) -> None:
        text = Text(prefix, style=_PREFIX_STYLE)
        for content, style in parts:
            _ = text.append(content, style=style)
        self._console.print(text)

    async def write_line(
        self,
        process_name: str,
        pid: int,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        self._print(f"[{process_name}:{pid}]", (f" {line}", _STREAM_STYLES[stream]))

    async def write_event(
        self,
        process_name: str,
        event: ProcessEvent,
    ) -> None:
        style = _EVENT_STYLES.get(event.event_type, Style())
        parts: list[tuple[str, Style]] = [(f" {event.event_type.value.upper()}", style)]
        if event.pid is not None:
            parts.append((f" (pid={event.pid})", _DETAIL_STYLE))
        if event.exit_code is not None:
            parts.append((f" exit_code={event.exit_code}", _DETAIL_STYLE))
        if event.message:
            parts.append((f" - {event.message}", style))
        self._print(f"[{process_name}]", *parts)
