"""Settings for one embedded Elasticsearch instance.

This module provides the Settings model: the port, names, JVM flags,
logging directives and plugins for a single instance, together with the
paths of its private working directory and the writers for the server's
config files.
"""

import os
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field

from esinside.utils import create_working_root, find_free_port, get_resource

from ._common import LogFormat, LogLevel
from ._plugin import Plugin

ELASTICSEARCH_VERSION = "5.6.16"

DEFAULT_STARTUP_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_SHUTDOWN_TIMEOUT = 5.0

SETTINGS_FILE = "elasticsearch.yml"
LOGGING_FILE = "log4j2.properties"
BOOTSTRAP_CLASS = "org.elasticsearch.bootstrap.Elasticsearch"

DEFAULT_LOGGING_CONFIG: tuple[str, ...] = (
    "logger.zen.name = org.elasticsearch.discovery.zen.UnicastZenPing",
    "logger.zen.level = error",
    "logger.zen2.name = org.elasticsearch.discovery.zen.ping.unicast.UnicastZenPing",
    "logger.zen2.level = error",
)


def read_jvm_defaults(source: Path | Traversable | None = None) -> list[str]:
    """Read runtime flags from a line-oriented options file.

    Blank lines and lines starting with ``#`` are dropped.

    Args:
        source: Options file. Uses the packaged ``jvm.options`` if None.

    Returns:
        The remaining lines, stripped, in file order.
    """
    options = source if source is not None else get_resource("jvm.options")
    flags: list[str] = []
    for raw_line in options.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        flags.append(line)
    return flags


class Settings(BaseModel):
    """Configuration of one embedded Elasticsearch instance.

    Settings are mutable until startup begins so that a configure callback
    can adjust them. ``elasticsearch_parameters`` is written verbatim to
    ``elasticsearch.yml``; ``logging_config`` is appended to
    ``log4j2.properties``.

    Attributes:
        root: Private working directory of the instance.
        elasticsearch_version: Version of the bundled server.
        elasticsearch_parameters: Server settings, one ``key: value`` line each.
        jvm_parameters: Flags passed to the Java runtime.
        logging_config: Logger directives appended to the logging config.
        plugins: Plugins to install after the first successful start.
        logging_enabled: Whether orchestration messages are logged.
        log_level: Log level threshold; ``ESINSIDE_LOG_LEVEL`` or INFO if None.
        log_format: Log output format.
        log_file: Log file path; logs go to stderr if None.
        startup_timeout: Seconds to wait for the health check to pass.
        poll_interval: Seconds between health checks.
        shutdown_timeout: Seconds to wait for graceful stop before killing.
        runtime_bundle: Java runtime bundle; packaged ``jre.zst`` if None.
        application_bundle: Server bundle; packaged ``elasticsearch.zst`` if None.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        validate_assignment=True,
        extra="forbid",
    )

    root: Path
    elasticsearch_version: str = ELASTICSEARCH_VERSION
    elasticsearch_parameters: dict[str, str] = Field(default_factory=dict)
    jvm_parameters: list[str] = Field(default_factory=list)
    logging_config: list[str] = Field(default_factory=list)
    plugins: list[Plugin] = Field(default_factory=list)
    logging_enabled: bool = False
    log_level: LogLevel | None = None
    log_format: LogFormat = LogFormat.TEXT
    log_file: Path | None = None
    startup_timeout: float = Field(default=DEFAULT_STARTUP_TIMEOUT, gt=0)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    shutdown_timeout: float = Field(default=DEFAULT_SHUTDOWN_TIMEOUT, ge=0)
    runtime_bundle: Path | None = None
    application_bundle: Path | None = None

    @classmethod
    def load_default(cls, base_dir: Path | None = None) -> Self:
        """Create settings for a fresh instance.

        Picks a free ephemeral port, derives the cluster and node names from
        it, reads the default JVM flags and creates a new working directory.

        Args:
            base_dir: Parent of the working directory. Uses the system temp
                directory if None.

        Returns:
            The default settings.
        """
        port = find_free_port()
        settings = cls(
            root=create_working_root(base_dir),
            jvm_parameters=read_jvm_defaults(),
            logging_config=list(DEFAULT_LOGGING_CONFIG),
        )
        return (
            settings.set_port(port)
            .set_cluster_name(f"cluster-es-{port}")
            .set_node_name(f"node-es-{port}")
        )

    # -------------------------------------------------------------------------
    # Derived paths
    # -------------------------------------------------------------------------

    @property
    def elasticsearch_home(self) -> Path:
        """Return the directory the server bundle is extracted to."""
        return self.root / "es"

    @property
    def jvm_path(self) -> Path:
        """Return the directory the Java runtime bundle is extracted to."""
        return self.root / "jre"

    @property
    def config_dir(self) -> Path:
        """Return the server's config directory."""
        return self.elasticsearch_home / "config"

    @property
    def java_executable(self) -> Path:
        """Return the bundled Java binary."""
        name = "java.exe" if os.name == "nt" else "java"
        return self.jvm_path / "bin" / name

    @property
    def plugin_executable(self) -> Path:
        """Return the bundled plugin installer script."""
        name = "elasticsearch-plugin.bat" if os.name == "nt" else "elasticsearch-plugin"
        return self.elasticsearch_home / "bin" / name

    @property
    def runtime_bundle_source(self) -> Path | Traversable:
        """Return where the Java runtime bundle is read from."""
        return self.runtime_bundle or get_resource("jre.zst")

    @property
    def application_bundle_source(self) -> Path | Traversable:
        """Return where the server bundle is read from."""
        return self.application_bundle or get_resource("elasticsearch.zst")

    # -------------------------------------------------------------------------
    # Network identity
    # -------------------------------------------------------------------------

    @property
    def port(self) -> int:
        """Return the HTTP port the server listens on."""
        return int(self.elasticsearch_parameters["http.port"])

    @property
    def cluster_name(self) -> str | None:
        """Return the configured cluster name."""
        return self.elasticsearch_parameters.get("cluster.name")

    @property
    def node_name(self) -> str | None:
        """Return the configured node name."""
        return self.elasticsearch_parameters.get("node.name")

    @property
    def url(self) -> str:
        """Return the base URL of the server."""
        return f"http://localhost:{self.port}/"

    # -------------------------------------------------------------------------
    # Fluent setters
    # -------------------------------------------------------------------------

    def set_parameter(self, key: str, value: object) -> Self:
        """Set one server setting."""
        self.elasticsearch_parameters[key] = str(value)
        return self

    def set_port(self, port: int) -> Self:
        """Set the HTTP port."""
        return self.set_parameter("http.port", port)

    def set_cluster_name(self, name: str) -> Self:
        """Set the cluster name."""
        return self.set_parameter("cluster.name", name)

    def set_node_name(self, name: str) -> Self:
        """Set the node name."""
        return self.set_parameter("node.name", name)

    def add_plugin(self, plugin: Plugin) -> Self:
        """Queue a plugin for installation."""
        self.plugins.append(plugin)
        return self

    def enable_logging(self, *, enable: bool = True) -> Self:
        """Turn orchestration logging on or off."""
        self.logging_enabled = enable
        return self

    # -------------------------------------------------------------------------
    # Process launch
    # -------------------------------------------------------------------------

    def build_command_line(self) -> list[str]:
        """Build the Java arguments that boot the server.

        Returns:
            JVM flags followed by the home, classpath and bootstrap class.
        """
        classpath = os.pathsep.join(
            (f"lib/elasticsearch-{self.elasticsearch_version}.jar", "lib/*")
        )
        return [
            *self.jvm_parameters,
            f"-Des.path.home={self.elasticsearch_home}",
            "-cp",
            classpath,
            BOOTSTRAP_CLASS,
        ]

    def runtime_environment(self) -> dict[str, str]:
        """Return the environment overrides binding children to the bundled JRE."""
        return {"JAVA_HOME": str(self.jvm_path)}

    # -------------------------------------------------------------------------
    # Config file writers
    # -------------------------------------------------------------------------

    def write_settings(self) -> None:
        """Write both config files into the server's config directory."""
        self.write_logging_config()
        self.write_yaml()

    def write_yaml(self) -> Path:
        """Rewrite ``elasticsearch.yml`` from ``elasticsearch_parameters``.

        Returns:
            Path of the written file.
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.config_dir / SETTINGS_FILE
        lines = [f"{key}: {value}" for key, value in self.elasticsearch_parameters.items()]
        _ = path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return path

    def write_logging_config(self) -> Path:
        """Append ``logging_config`` to ``log4j2.properties``.

        Existing content is kept; the working directory is unique per
        instance, so directives only accumulate within one run.

        Returns:
            Path of the written file.
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.config_dir / LOGGING_FILE
        with path.open("a", encoding="utf-8") as handle:
            for directive in self.logging_config:
                _ = handle.write(f"{directive}\n")
        return path
