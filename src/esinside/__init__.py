"""Run a bundled Elasticsearch with its own Java runtime as a child process.

Key Components:
    - Elasticsearch: Async lifecycle owner of one embedded instance
    - run_blocking: Synchronous facade for callers without an event loop
    - Settings / Plugin: Instance configuration
    - EsInsideError: Base of all esinside exceptions

Example:
    >>> from esinside import Elasticsearch
    >>> async with Elasticsearch(lambda s: s.set_cluster_name("test")) as es:
    ...     await es.ready()
    ...     print(es.url)
"""

from esinside.config import Plugin, Settings
from esinside.exceptions import EsInsideError
from esinside.orchestrator import (
    BlockingElasticsearch,
    Elasticsearch,
    OrchestratorState,
    run_blocking,
)

__all__ = [
    "BlockingElasticsearch",
    "Elasticsearch",
    "EsInsideError",
    "OrchestratorState",
    "Plugin",
    "Settings",
    "run_blocking",
]
