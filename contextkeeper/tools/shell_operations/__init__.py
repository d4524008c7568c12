#!/usr/bin/env python3
"""
Shell Operations Tools Package
"""

from .execute_command_tool import ExecuteCommandTool

__all__ = ["ExecuteCommandTool"]
