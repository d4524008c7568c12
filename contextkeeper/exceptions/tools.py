#!/usr/bin/env python3
"""
Tool Exception Definitions

Raised by the tool registry while a plan step runs. The orchestrator records
them as failed steps; they never abort a turn.
"""

from contextkeeper.exceptions.base import ContextKeeperError


class ToolError(ContextKeeperError):
    """Base exception for tool-related errors. Carries the tool's name."""

    def __init__(self, message, tool_name=None, original_error=None):
        super().__init__(message, original_error=original_error)
        self.tool_name = tool_name


class ToolExecutionError(ToolError):
    """The tool itself raised while running."""


class ToolNotFoundError(ToolError):
    """A plan step named a tool the registry does not hold."""


class ToolCancelledError(ToolError):
    """The turn's abort signal fired before or during the call."""

    def __init__(self, message="Tool execution cancelled", tool_name=None):
        super().__init__(message, tool_name=tool_name)
