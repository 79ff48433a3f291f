"""Configuration for embedded Elasticsearch instances.

Key Components:
    - Settings: Per-instance configuration and config file writers
    - Plugin: A plugin to install after first start
    - LogLevel / LogFormat: Logging options
"""

from ._common import LogFormat, LogLevel
from ._plugin import Plugin
from ._settings import (
    BOOTSTRAP_CLASS,
    DEFAULT_LOGGING_CONFIG,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SHUTDOWN_TIMEOUT,
    DEFAULT_STARTUP_TIMEOUT,
    ELASTICSEARCH_VERSION,
    LOGGING_FILE,
    SETTINGS_FILE,
    Settings,
    read_jvm_defaults,
)

__all__ = [
    "BOOTSTRAP_CLASS",
    "DEFAULT_LOGGING_CONFIG",
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_SHUTDOWN_TIMEOUT",
    "DEFAULT_STARTUP_TIMEOUT",
    "ELASTICSEARCH_VERSION",
    "LOGGING_FILE",
    "SETTINGS_FILE",
    "LogFormat",
    "LogLevel",
    "Plugin",
    "Settings",
    "read_jvm_defaults",
]
