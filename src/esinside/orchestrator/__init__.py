"""Orchestrator package for embedded Elasticsearch instances.

Key Components:
    - Elasticsearch: Async startup pipeline and lifecycle owner
    - OrchestratorState: Lifecycle states of an instance
    - run_blocking / BlockingElasticsearch: Synchronous facade
    - wait_for_ready: Health endpoint polling

Example:
    >>> from esinside.orchestrator import Elasticsearch
    >>> async with Elasticsearch(lambda s: s.set_cluster_name("test")) as es:
    ...     await es.ready()
"""

from ._blocking import BlockingElasticsearch, run_blocking
from ._orchestrator import SERVER_PROCESS_NAME, Configure, Elasticsearch
from ._readiness import HEALTH_PATH, health_url, probe_health, wait_for_ready
from ._state import (
    TERMINAL_STATES,
    OrchestratorState,
    can_transition,
    ensure_transition,
)

__all__ = [
    "HEALTH_PATH",
    "SERVER_PROCESS_NAME",
    "TERMINAL_STATES",
    "BlockingElasticsearch",
    "Configure",
    "Elasticsearch",
    "OrchestratorState",
    "can_transition",
    "ensure_transition",
    "health_url",
    "probe_health",
    "run_blocking",
    "wait_for_ready",
]
