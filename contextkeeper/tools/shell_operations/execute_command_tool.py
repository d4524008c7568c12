#!/usr/bin/env python3
"""
Execute Command Tool
====================

Runs a shell command in the working directory after a pattern-based
safety screen.
"""

import os
import re
import shlex
import subprocess
from typing import Tuple

from contextkeeper.tools.base import BaseTool, ToolCategory, ToolResult, ToolSchema

DANGEROUS_COMMAND_PATTERNS = [
    (r"\brm\s+-rf\s+/", "Root directory deletion"),
    (r"\brm\s+-rf\s+\.\./", "Directory traversal deletion"),
    (r"\b(format|dd)\s+[^\s]*\s*/dev/", "Disk destruction"),
    (r">\s*/dev/sd[a-z]", "Disk overwriting"),
    (r"\bcurl\s+.*\|\s*(ba)?sh", "Remote code execution"),
    (r"\bwget\s+.*\|\s*(ba)?sh", "Remote code execution"),
    (r"\bsudo\s+", "Privilege escalation"),
    (r"\b(chmod|chown)\s+(-R\s+)?777", "Overly permissive permissions"),
]


class ExecuteCommandTool(BaseTool):
    """Tool for executing shell commands."""

    category = ToolCategory.SHELL

    @property
    def schema(self) -> ToolSchema:
        """
        Return the tool schema.

        Returns:
            ToolSchema: The definition of the tool's interface.
        """
        return ToolSchema(
            name="execute_command",
            description="Execute a shell command in the working directory.",
            parameters={
                "command": {
                    "type": "string",
                    "description": "The shell command to execute",
                },
                "timeout": {
                    "type": "number",
                    "description": "Timeout in seconds",
                    "default": 30,
                },
            },
            required_params=["command"],
            category=self.category,
        )

    def execute(self, **kwargs) -> ToolResult:
        """
        Execute the command with security checks.

        Args:
            **kwargs: command, and optionally timeout.

        Returns:
            ToolResult: The result of the command execution.
        """
        command = (kwargs.get("command") or "").strip()
        timeout = kwargs.get("timeout", 30)

        if not command:
            return ToolResult.invalid_params("Command cannot be empty", ["command"])

        is_safe, safety_message = self._analyze_command_safety(command)
        if not is_safe:
            self.logger.warning("Blocked dangerous command: %s", command)
            return ToolResult.security_blocked(safety_message)

        return self._run_command(command, timeout)

    def _analyze_command_safety(self, command: str) -> Tuple[bool, str]:
        for pattern, description in DANGEROUS_COMMAND_PATTERNS:
            if re.search(pattern, command, re.IGNORECASE):
                return False, f"Dangerous command pattern detected: {description}"
        return True, "Command appears safe"

    def _run_command(self, command: str, timeout: float) -> ToolResult:
        """
        Run the command, through a shell only when it uses shell syntax.

        Args:
            command: The command to run.
            timeout: Maximum execution time in seconds.

        Returns:
            ToolResult: The result of the execution.
        """
        try:
            if self._requires_shell(command):
                # nosec B602: screened by _analyze_command_safety
                result = subprocess.run(
                    command,
                    shell=True,
                    cwd=self.working_dir,
                    capture_output=True,
                    text=True,
                    timeout=timeout,
                    env=os.environ.copy(),
                    check=False,
                    executable=("/bin/bash" if os.path.exists("/bin/bash") else None),
                )
            else:
                result = subprocess.run(
                    shlex.split(command),
                    shell=False,
                    cwd=self.working_dir,
                    capture_output=True,
                    text=True,
                    timeout=timeout,
                    env=os.environ.copy(),
                    check=False,
                )
            return self._format_result(command, result)

        except subprocess.TimeoutExpired:
            return ToolResult.timeout(f"Command timed out after {timeout}s")
        except FileNotFoundError as e:
            return ToolResult.command_failed(f"Command not found: {e.filename}", 127)
        except (OSError, ValueError) as e:
            self.logger.error("Command execution error: %s", e, exc_info=True)
            return ToolResult.internal_error(f"Execution failed: {str(e)}")

    def _requires_shell(self, command: str) -> bool:
        shell_indicators = ["|", ">", "<", "&", ";", "$", "`", "*", "?"]
        return any(indicator in command for indicator in shell_indicators)

    def _format_result(self, command: str, result: subprocess.CompletedProcess) -> ToolResult:
        output_parts = [f"Command: {command}", f"Exit Code: {result.returncode}"]
        if result.stdout:
            output_parts.append(f"\nSTDOUT:\n{result.stdout}")
        if result.stderr:
            output_parts.append(f"\nSTDERR:\n{result.stderr}")
        output_str = "\n".join(output_parts)

        if result.returncode == 0:
            return ToolResult.success_result(output_str, data={"exit_code": 0})
        return ToolResult.command_failed(output_str, result.returncode)
