from .state_machine import OrchestratorState, StateMachine
from .orchestrator import Orchestrator, StepOutcome, TurnResult

__all__ = ["OrchestratorState", "StateMachine", "Orchestrator", "StepOutcome", "TurnResult"]
