#!/usr/bin/env python3
"""
Agent Exception Definitions

Agent-level exceptions that don't fit in other categories.
"""

from contextkeeper.exceptions.base import ContextKeeperError


class AgentError(ContextKeeperError):
    """Base exception for agent-level errors."""

    pass


class OrchestrationError(AgentError):
    """Raised when orchestration logic fails (e.g. an illegal state transition)."""

    pass


class ReplyGenerationError(AgentError):
    """Raised when the reply client fails to produce a reply."""

    def __init__(self, message, model_name=None, original_error=None):
        super().__init__(message, original_error=original_error)
        self.model_name = model_name


class EventBusError(AgentError):
    """Raised when the event bus is misused."""

    pass
