from .intent import Intent, IntentClassifier, IntentType
from .tool_selector import ToolPrediction, ToolSelector, infer_category
from .planner import ExecutionPlan, ExecutionPlanner, ExecutionStep

__all__ = [
    "Intent",
    "IntentClassifier",
    "IntentType",
    "ToolPrediction",
    "ToolSelector",
    "infer_category",
    "ExecutionPlan",
    "ExecutionPlanner",
    "ExecutionStep",
]
