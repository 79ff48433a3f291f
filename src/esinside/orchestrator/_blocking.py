"""Synchronous facade over the async orchestrator."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import final

from anyio.from_thread import BlockingPortal, start_blocking_portal

from esinside.config import Settings

from ._orchestrator import Configure, Elasticsearch
from ._state import OrchestratorState


@final
class BlockingElasticsearch:
    """Blocking view of an Elasticsearch instance running in a portal thread."""

    __slots__ = ("_instance", "_portal")

    def __init__(self, instance: Elasticsearch, portal: BlockingPortal) -> None:
        self._instance = instance
        self._portal = portal

    @property
    def instance(self) -> Elasticsearch:
        """Return the wrapped async instance."""
        return self._instance

    @property
    def url(self) -> str:
        """Return the base URL of the server."""
        return self._instance.url

    @property
    def settings(self) -> Settings:
        """Return the instance settings."""
        return self._instance.settings

    @property
    def state(self) -> OrchestratorState:
        """Return the current lifecycle state."""
        return self._instance.state

    def ready(self) -> "BlockingElasticsearch":
        """Block until startup completes; raises the startup error if any."""
        _ = self._portal.call(self._instance.ready)
        return self

    def restart(self) -> None:
        """Restart the server and block until it is healthy again."""
        self._portal.call(self._instance.restart)


@contextmanager
def run_blocking(
    configure: Configure | None = None,
    *,
    backend: str = "asyncio",
    **kwargs: object,
) -> Iterator[BlockingElasticsearch]:
    """Run an instance from synchronous code.

    The event loop runs in a background thread for the lifetime of the
    context. Leaving the context disposes of the instance.

    Args:
        configure: Callback that adjusts the default settings.
        backend: anyio backend for the portal thread.
        **kwargs: Passed through to ``Elasticsearch``.

    Yields:
        A blocking view of the started instance.

    Example:
        >>> with run_blocking(lambda s: s.set_cluster_name("test")) as es:
        ...     es.ready()
        ...     print(es.url)
    """
    with start_blocking_portal(backend) as portal:
        instance = Elasticsearch(configure, **kwargs)  # pyright: ignore[reportArgumentType]
        with portal.wrap_async_context_manager(instance):
            yield BlockingElasticsearch(instance, portal)

