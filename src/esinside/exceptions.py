"""esinside exceptions."""

from pathlib import Path


class EsInsideError(Exception):
    """Base exception for esinside errors."""


class OrchestratorStateError(EsInsideError):
    """Raised when an operation is not valid in the current lifecycle state."""

    def __init__(
        self,
        message: str,
        *,
        current: str | None = None,
        requested: str | None = None,
    ) -> None:
        """Initialize with error message and state context."""
        super().__init__(message)
        self.current: str | None = current
        self.requested: str | None = requested


# =============================================================================
# Archive Exceptions
# =============================================================================


class ArchiveError(EsInsideError):
    """Base exception for archive operations."""


class ArchiveCorruptionError(ArchiveError):
    """Raised when an archive record is truncated or malformed.

    Attributes:
        entry_name: Name of the entry being read, if the header got that far.
        expected: Number of bytes the record declared.
        actual: Number of bytes that were actually available.
    """

    def __init__(
        self,
        message: str,
        *,
        entry_name: str | None = None,
        expected: int | None = None,
        actual: int | None = None,
    ) -> None:
        """Initialize with error message and record context.

        Args:
            message: Human-readable error message.
            entry_name: Name of the entry being read.
            expected: Declared length of the field being read.
            actual: Bytes actually read before the stream ended.
        """
        super().__init__(message)
        self.entry_name: str | None = entry_name
        self.expected: int | None = expected
        self.actual: int | None = actual


class BundleNotFoundError(ArchiveError, FileNotFoundError):
    """Raised when a bundle archive does not exist.

    Attributes:
        bundle: Location of the missing bundle.
    """

    def __init__(self, message: str, *, bundle: str | Path | None = None) -> None:
        """Initialize with error message and bundle location."""
        super().__init__(message)
        self.bundle: str | Path | None = bundle


# =============================================================================
# Process Exceptions
# =============================================================================


class ProcessError(EsInsideError):
    """Base exception for supervised process errors."""

    def __init__(
        self,
        message: str,
        *,
        process_name: str,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and process context."""
        super().__init__(message)
        self.process_name: str = process_name
        self.cause: Exception | None = cause


class ProcessLaunchError(ProcessError):
    """Raised when a process executable is missing or cannot be spawned."""


class ProcessStopError(ProcessError):
    """Raised when a process cannot be signalled or stopped."""


class PluginInstallError(EsInsideError):
    """Raised when a plugin installer fails.

    Attributes:
        plugin_name: Name of the plugin being installed.
        exit_code: Installer exit code, or None if it never ran.
    """

    def __init__(
        self,
        message: str,
        *,
        plugin_name: str,
        exit_code: int | None = None,
    ) -> None:
        """Initialize with error message and plugin context."""
        super().__init__(message)
        self.plugin_name: str = plugin_name
        self.exit_code: int | None = exit_code


class ReadinessTimeoutError(EsInsideError, TimeoutError):
    """Raised when the health endpoint never reported ready in time.

    Attributes:
        url: Health check URL that was polled.
        timeout: Bound in seconds that was exceeded.
        cause: Last error or unexpected response observed while polling.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str,
        timeout: float,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize with error message and polling context."""
        super().__init__(message)
        self.url: str = url
        self.timeout: float = timeout
        self.cause: BaseException | None = cause


class HealthCheckError(EsInsideError):
    """Raised when the health endpoint answers with a non-success status.

    Attributes:
        url: Health check URL.
        status_code: HTTP status code of the response.
    """

    def __init__(self, message: str, *, url: str, status_code: int) -> None:
        """Initialize with error message and response context."""
        super().__init__(message)
        self.url: str = url
        self.status_code: int = status_code
