#!/usr/bin/env python3
"""
contextkeeper Exceptions Package

Unified exception hierarchy for the context budget manager and planner.
"""

# Base exceptions
from .base import ContextKeeperError, wrap_exception

# Context exceptions
from .context import (
    ContextError,
    ContextReductionError,
    ContextValidationError,
    KnowledgeExtractionError,
)

# Planning exceptions
from .planning import (
    IntentClassificationError,
    PlanningError,
    ToolSelectionError,
)

# Tool exceptions
from .tools import (
    ToolCancelledError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
)

# Config exceptions
from .config import ConfigError, TranscriptFileError

# Agent exceptions
from .agent import (
    AgentError,
    EventBusError,
    OrchestrationError,
    ReplyGenerationError,
)


__all__ = [
    # Base
    "ContextKeeperError",
    "wrap_exception",
    # Context
    "ContextError",
    "ContextReductionError",
    "ContextValidationError",
    "KnowledgeExtractionError",
    # Planning
    "PlanningError",
    "IntentClassificationError",
    "ToolSelectionError",
    # Tool
    "ToolError",
    "ToolCancelledError",
    "ToolExecutionError",
    "ToolNotFoundError",
    # Config
    "ConfigError",
    "TranscriptFileError",
    # Agent
    "AgentError",
    "EventBusError",
    "OrchestrationError",
    "ReplyGenerationError",
]
