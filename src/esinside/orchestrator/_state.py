"""Lifecycle states of an embedded Elasticsearch instance."""

from enum import StrEnum
from typing import Final

from esinside.exceptions import OrchestratorStateError


class OrchestratorState(StrEnum):
    """Startup pipeline states.

    - INITIALIZING: Settings loaded, nothing started yet
    - EXTRACTING_RESOURCES: Bundles are being extracted
    - STARTING: The server process is being launched
    - WAITING_FOR_READY: Polling the health endpoint
    - INSTALLING_PLUGINS: Running plugin installers
    - READY: Server is up with every plugin installed
    - FAILED: Startup hit an unhandled error
    - DISPOSED: Process stopped and working directory removed
    """

    INITIALIZING = "initializing"
    EXTRACTING_RESOURCES = "extracting_resources"
    STARTING = "starting"
    WAITING_FOR_READY = "waiting_for_ready"
    INSTALLING_PLUGINS = "installing_plugins"
    READY = "ready"
    FAILED = "failed"
    DISPOSED = "disposed"


TERMINAL_STATES: Final = frozenset({OrchestratorState.FAILED, OrchestratorState.DISPOSED})

# Forward edges only; FAILED and DISPOSED are handled in can_transition
_TRANSITIONS: Final[dict[OrchestratorState, frozenset[OrchestratorState]]] = {
    OrchestratorState.INITIALIZING: frozenset({OrchestratorState.EXTRACTING_RESOURCES}),
    OrchestratorState.EXTRACTING_RESOURCES: frozenset({OrchestratorState.STARTING}),
    OrchestratorState.STARTING: frozenset({OrchestratorState.WAITING_FOR_READY}),
    OrchestratorState.WAITING_FOR_READY: frozenset(
        {OrchestratorState.INSTALLING_PLUGINS, OrchestratorState.READY}
    ),
    # Each plugin install loops back through a restart
    OrchestratorState.INSTALLING_PLUGINS: frozenset(
        {OrchestratorState.STARTING, OrchestratorState.READY}
    ),
    # Manual restart
    OrchestratorState.READY: frozenset({OrchestratorState.STARTING}),
    OrchestratorState.FAILED: frozenset(),
    OrchestratorState.DISPOSED: frozenset(),
}


def can_transition(current: OrchestratorState, target: OrchestratorState) -> bool:
    """Check whether a state change is allowed.

    Args:
        current: State the instance is in.
        target: State it would move to.

    Returns:
        True if the transition is allowed.
    """
    if current == OrchestratorState.DISPOSED:
        return False
    if target == OrchestratorState.DISPOSED:
        return True
    if target == OrchestratorState.FAILED:
        return current not in TERMINAL_STATES
    return target in _TRANSITIONS[current]


def ensure_transition(current: OrchestratorState, target: OrchestratorState) -> None:
    """Raise if a state change is not allowed.

    Raises:
        OrchestratorStateError: If the transition is illegal.
    """
    if not can_transition(current, target):
        msg = f"Cannot move from '{current}' to '{target}'"
        raise OrchestratorStateError(msg, current=current.value, requested=target.value)
