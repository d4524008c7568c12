from enum import Enum


class EventTypes(str, Enum):
    """
    Canonical event names published by the orchestrator.
    Using an Enum prevents typo bugs (e.g., 'plan_created' vs 'plan_ready').
    """

    # 1. Lifecycle
    STATE_CHANGED = "state_changed"

    # 2. Budget & Reduction
    BUDGET_CHECKED = "budget_checked"
    CONTEXT_REDUCED = "context_reduced"
    KNOWLEDGE_EXTRACTED = "knowledge_extracted"
    REDUCTION_FAILED = "reduction_failed"

    # 3. Planning
    INTENT_CLASSIFIED = "intent_classified"
    PLAN_CREATED = "plan_created"
    PLANNING_FAILED = "planning_failed"

    # 4. Tool Execution
    TOOL_STEP_COMPLETE = "tool_step_complete"
    TOOL_STEP_FAILED = "tool_step_failed"

    # 5. Conversation
    REPLY_GENERATED = "reply_generated"
