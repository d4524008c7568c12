from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class StateChange:
    """
    Payload for STATE_CHANGED.
    """

    previous: str
    current: str


@dataclass
class ReductionReport:
    """
    Payload for CONTEXT_REDUCED.
    """

    messages_before: int
    messages_after: int
    tokens_before: int
    tokens_after: int
    knowledge_count: int
    source: str = "turn"


@dataclass
class StepReport:
    """
    Payload for TOOL_STEP_COMPLETE / TOOL_STEP_FAILED.
    """

    tool_name: str
    priority: int
    success: bool
    output: Any = None
    error: Optional[str] = None
