#!/usr/bin/env python3
"""
Planning Exception Definitions

Raised by the classify / select / plan stages of a turn.
"""

from contextkeeper.exceptions.base import ContextKeeperError


class PlanningError(ContextKeeperError):
    """Base exception for predictive planning errors."""

    pass


class IntentClassificationError(PlanningError):
    """Raised when user input cannot be classified."""

    def __init__(self, message, user_input=None, original_error=None, user_hint=None):
        super().__init__(message, original_error=original_error, user_hint=user_hint)
        self.user_input = user_input


class ToolSelectionError(PlanningError):
    """Raised when tool ranking fails."""

    def __init__(self, message, tool_name=None, original_error=None, user_hint=None):
        super().__init__(message, original_error=original_error, user_hint=user_hint)
        self.tool_name = tool_name
