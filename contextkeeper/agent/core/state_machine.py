from enum import Enum
from typing import Dict, Set

from contextkeeper.exceptions import OrchestrationError


class OrchestratorState(str, Enum):
    IDLE = "idle"
    BUDGET_CHECK = "budget_check"
    REDUCE_CONTEXT = "reduce_context"
    CLASSIFY = "classify"
    SELECT_TOOLS = "select_tools"
    PLAN = "plan"
    EXECUTE = "execute"
    GENERATE_REPLY = "generate_reply"
    ERROR = "error"


class StateMachine:
    """
    Enforces valid state transitions for one orchestrated turn.
    Prevents invalid jumps (e.g., CLASSIFY -> EXECUTE without a PLAN).
    """

    def __init__(self):
        self._current_state = OrchestratorState.IDLE
        S = OrchestratorState

        # Define allowed transitions
        self._transitions: Dict[OrchestratorState, Set[OrchestratorState]] = {
            # CLASSIFY directly from IDLE is the plan-only path
            S.IDLE: {S.BUDGET_CHECK, S.CLASSIFY, S.ERROR},
            S.BUDGET_CHECK: {S.REDUCE_CONTEXT, S.CLASSIFY, S.GENERATE_REPLY, S.ERROR},
            S.REDUCE_CONTEXT: {S.CLASSIFY, S.GENERATE_REPLY, S.ERROR},
            S.CLASSIFY: {S.SELECT_TOOLS, S.GENERATE_REPLY, S.IDLE, S.ERROR},
            S.SELECT_TOOLS: {S.PLAN, S.GENERATE_REPLY, S.IDLE, S.ERROR},
            S.PLAN: {S.EXECUTE, S.GENERATE_REPLY, S.IDLE, S.ERROR},
            S.EXECUTE: {S.GENERATE_REPLY, S.IDLE, S.ERROR},
            S.GENERATE_REPLY: {S.IDLE, S.ERROR},
            S.ERROR: {S.IDLE},  # Reset
        }

    @property
    def current(self) -> OrchestratorState:
        return self._current_state

    def can_transition(self, new_state: OrchestratorState) -> bool:
        return new_state in self._transitions[self._current_state]

    def transition_to(self, new_state: OrchestratorState) -> OrchestratorState:
        """
        Attempts to transition to a new state and returns the previous one.
        Raises OrchestrationError if the transition is illegal.
        """
        if not self.can_transition(new_state):
            raise OrchestrationError(
                f"Invalid State Transition: {self._current_state.value} -> {new_state.value}"
            )
        previous = self._current_state
        self._current_state = new_state
        return previous

    def reset(self) -> None:
        """Return to IDLE from anywhere, e.g. after an aborted turn."""
        self._current_state = OrchestratorState.IDLE
