"""Health endpoint polling."""

from typing import TYPE_CHECKING, Final

import anyio
import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from esinside.exceptions import HealthCheckError, ReadinessTimeoutError

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

HEALTH_PATH: Final = "_cluster/health"
HEALTH_PARAMS: Final = {"wait_for_status": "yellow"}

# Connection refused while the server boots, timeouts, and non-200 answers
TRANSIENT_ERRORS: Final = (httpx.TransportError, HealthCheckError)

# Lower bound for a single request when the deadline is almost reached
_MIN_REQUEST_TIMEOUT: Final = 0.05


def health_url(base_url: str) -> str:
    """Build the cluster health URL that waits for yellow status.

    Args:
        base_url: Server base URL, e.g. ``http://localhost:9200/``.

    Returns:
        The health check URL.
    """
    return str(httpx.URL(base_url).join(HEALTH_PATH).copy_merge_params(HEALTH_PARAMS))


async def probe_health(client: httpx.AsyncClient, url: str, timeout: float) -> None:
    """Issue one health check request.

    Args:
        client: HTTP client to use.
        url: Health check URL.
        timeout: Seconds to wait for the response.

    Raises:
        HealthCheckError: If the server answered with anything but 200.
        httpx.TransportError: If the request could not be completed.
    """
    response = await client.get(url, timeout=timeout)
    if response.status_code != httpx.codes.OK:
        msg = f"Health check returned HTTP {response.status_code}"
        raise HealthCheckError(msg, url=url, status_code=response.status_code)


async def wait_for_ready(
    client: httpx.AsyncClient,
    base_url: str,
    *,
    timeout: float,
    interval: float,
    logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
) -> float:
    """Poll the health endpoint until it answers 200.

    Connection errors and non-200 answers are expected while the server
    boots and are retried every ``interval`` seconds until ``timeout``
    seconds have passed.

    Args:
        client: HTTP client to use.
        base_url: Server base URL.
        timeout: Seconds to keep polling.
        interval: Seconds between attempts.
        logger: Optional logger for retry diagnostics.

    Returns:
        Seconds spent waiting.

    Raises:
        ReadinessTimeoutError: If no attempt succeeded within ``timeout``.
    """
    url = health_url(base_url)
    started = anyio.current_time()
    deadline = started + timeout

    def _log_retry(retry_state: RetryCallState) -> None:
        if logger is None or retry_state.outcome is None:
            return
        logger.debug(
            "health_check_retry",
            url=url,
            attempt=retry_state.attempt_number,
            error=repr(retry_state.outcome.exception()),
        )

    retrying = AsyncRetrying(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        sleep=anyio.sleep,
        before_sleep=_log_retry,
    )
    try:
        async for attempt in retrying:
            with attempt:
                remaining = max(deadline - anyio.current_time(), _MIN_REQUEST_TIMEOUT)
                await probe_health(client, url, remaining)
    except RetryError as e:
        cause = e.last_attempt.exception()
        msg = f"Timeout waiting for Elasticsearch status after {timeout:.1f}s"
        raise ReadinessTimeoutError(msg, url=url, timeout=timeout, cause=cause) from cause

    return anyio.current_time() - started
