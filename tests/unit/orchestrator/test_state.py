"""Unit tests for orchestrator state transitions."""

import pytest

from esinside.exceptions import OrchestratorStateError
from esinside.orchestrator import (
    TERMINAL_STATES,
    OrchestratorState,
    can_transition,
    ensure_transition,
)

S = OrchestratorState

STARTUP_PATH = [
    S.INITIALIZING,
    S.EXTRACTING_RESOURCES,
    S.STARTING,
    S.WAITING_FOR_READY,
    S.INSTALLING_PLUGINS,
    S.READY,
]


class TestCanTransition:
    @pytest.mark.parametrize(
        ("current", "target"), list(zip(STARTUP_PATH, STARTUP_PATH[1:], strict=False))
    )
    def test_startup_path(self, current: OrchestratorState, target: OrchestratorState) -> None:
        assert can_transition(current, target)

    def test_plugin_install_loops_through_restart(self) -> None:
        assert can_transition(S.INSTALLING_PLUGINS, S.STARTING)
        assert can_transition(S.WAITING_FOR_READY, S.INSTALLING_PLUGINS)

    def test_ready_can_restart(self) -> None:
        assert can_transition(S.READY, S.STARTING)

    @pytest.mark.parametrize("state", [s for s in S if s not in TERMINAL_STATES])
    def test_any_live_state_can_fail(self, state: OrchestratorState) -> None:
        assert can_transition(state, S.FAILED)

    @pytest.mark.parametrize("state", [s for s in S if s != S.DISPOSED])
    def test_any_state_can_be_disposed(self, state: OrchestratorState) -> None:
        assert can_transition(state, S.DISPOSED)

    @pytest.mark.parametrize("target", list(S))
    def test_nothing_leaves_disposed(self, target: OrchestratorState) -> None:
        assert not can_transition(S.DISPOSED, target)

    def test_failed_only_moves_to_disposed(self) -> None:
        assert [t for t in S if can_transition(S.FAILED, t)] == [S.DISPOSED]

    def test_cannot_skip_extraction(self) -> None:
        assert not can_transition(S.INITIALIZING, S.STARTING)

    def test_cannot_go_back_to_initializing(self) -> None:
        assert not can_transition(S.READY, S.INITIALIZING)


class TestEnsureTransition:
    def test_raises_with_states(self) -> None:
        with pytest.raises(OrchestratorStateError) as exc_info:
            ensure_transition(S.READY, S.EXTRACTING_RESOURCES)

        assert exc_info.value.current == "ready"
        assert exc_info.value.requested == "extracting_resources"

    def test_allowed_transition_passes(self) -> None:
        ensure_transition(S.INITIALIZING, S.EXTRACTING_RESOURCES)
