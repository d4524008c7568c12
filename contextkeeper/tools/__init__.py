"""contextkeeper tools"""

from contextkeeper.tools.base import (
    BaseTool,
    ExecutionStatus,
    ToolCategory,
    ToolResult,
    ToolSchema,
)
from contextkeeper.tools.registry import ToolRegistry

__all__ = [
    "ToolRegistry",
    "BaseTool",
    "ExecutionStatus",
    "ToolCategory",
    "ToolResult",
    "ToolSchema",
]
