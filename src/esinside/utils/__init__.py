from ._logging import LogFormatType, create_logger, open_log_file, resolve_log_level
from ._paths import (
    EPHEMERAL_PORT_MAX,
    EPHEMERAL_PORT_MIN,
    create_working_root,
    find_free_port,
    get_resource,
    is_port_free,
)

__all__ = [
    "EPHEMERAL_PORT_MAX",
    "EPHEMERAL_PORT_MIN",
    "LogFormatType",
    "create_logger",
    "create_working_root",
    "find_free_port",
    "get_resource",
    "is_port_free",
    "open_log_file",
    "resolve_log_level",
]
