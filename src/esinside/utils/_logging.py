"""structlog loggers for esinside.

Loggers are built with ``structlog.wrap_logger`` and never touch the global
structlog configuration, so embedding applications keep their own setup.
Output goes to stderr or to a log file, rendered as JSON or as
``key=value`` text.
"""

import logging
import sys
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TextIO, cast

import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]

DEBUG_ENV = "ESINSIDE_DEBUG"
LEVEL_ENV = "ESINSIDE_LOG_LEVEL"


def resolve_log_level(level: str | None = None) -> int:
    """Resolve the effective log level.

    ``ESINSIDE_DEBUG`` forces DEBUG. Otherwise ``level`` is used, falling
    back to ``ESINSIDE_LOG_LEVEL`` and then INFO. Unknown names mean INFO.

    Args:
        level: Level name such as "debug" or "warning".

    Returns:
        The numeric logging level.
    """
    if getenv(DEBUG_ENV):
        return logging.DEBUG
    name = level if level is not None else getenv(LEVEL_ENV, "info")
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def _renderers(log_format: LogFormatType) -> list[structlog.typing.Processor]:
    if log_format == "json":
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=False)]


def open_log_file(log_file: str | Path) -> TextIO:
    """Open a log file for appending, creating its directory if needed.

    The caller owns the returned handle and closes it.
    """
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.open("a", encoding="utf-8")


def create_logger(
    *,
    level: str | None = None,
    log_format: LogFormatType = "text",
    log_file: str | Path | None = None,
    stream: TextIO | None = None,
    enabled: bool = True,
    **context: object,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a standalone structlog logger.

    Args:
        level: Level name; see ``resolve_log_level``.
        log_format: "json" or "text".
        log_file: File to append to. The handle stays open for the life of
            the logger; pass ``stream`` to control when it is closed.
        stream: Already open text stream to write to. Takes precedence over
            ``log_file``. Logs go to stderr if neither is given.
        enabled: If False, every message is dropped.
        **context: Values bound to every entry.

    Returns:
        A filtering bound logger.
    """
    if not enabled:
        # Nothing is rendered below CRITICAL and ReturnLogger discards the rest
        threshold = logging.CRITICAL
        sink: object = structlog.ReturnLogger()
    else:
        threshold = resolve_log_level(level)
        if stream is not None:
            sink = structlog.WriteLogger(stream)
        elif log_file:
            sink = structlog.WriteLogger(open_log_file(log_file))
        else:
            sink = structlog.PrintLogger(sys.stderr)

    logger = cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            sink,
            processors=[
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                *_renderers(log_format),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(threshold),
            context_class=dict,
        ),
    )
    return logger.bind(**context) if context else logger
