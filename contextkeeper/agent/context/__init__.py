from .message import Message, Role
from .budget import BudgetMonitor, BudgetState, estimate_tokens
from .knowledge import KnowledgeEntry, KnowledgeExtractor, KnowledgePattern, KnowledgeStore
from .reducer import ContextReducer, ReductionPolicy
from .manager import ContextManager, ReductionResult
from .monitor import MonitorUpdate, TokenMonitor

__all__ = [
    "Message",
    "Role",
    "BudgetMonitor",
    "BudgetState",
    "estimate_tokens",
    "KnowledgeEntry",
    "KnowledgeExtractor",
    "KnowledgePattern",
    "KnowledgeStore",
    "ContextReducer",
    "ReductionPolicy",
    "ContextManager",
    "ReductionResult",
    "MonitorUpdate",
    "TokenMonitor",
]
