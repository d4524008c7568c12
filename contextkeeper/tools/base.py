"""
Base classes and interfaces for the tool system.
"""

from enum import Enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

DANGEROUS_FILE_PATTERNS = ["/etc/", ".ssh/", ".env", ".git/"]


class ToolCategory(str, Enum):
    """Capability tag attached to every tool at registration time."""

    READ = "read"
    EDIT = "edit"
    SEARCH = "search"
    LIST = "list"
    SHELL = "shell"
    WEB_SEARCH = "web_search"
    OTHER = "other"

    @property
    def file_oriented(self) -> bool:
        return self in (ToolCategory.READ, ToolCategory.EDIT, ToolCategory.SEARCH, ToolCategory.LIST)


@dataclass
class ToolSchema:
    """Describes a tool's interface."""

    name: str
    description: str
    parameters: Dict[str, Any]
    required_params: List[str] = field(default_factory=list)
    category: ToolCategory = ToolCategory.OTHER


class ExecutionStatus(Enum):
    """Enumeration of possible tool execution statuses."""

    SUCCESS = "success"
    INVALID_PARAMS = "invalid_params"
    SECURITY_BLOCKED = "security_blocked"
    TIMEOUT = "timeout"
    COMMAND_FAILED = "command_failed"
    INTERNAL_ERROR = "internal_error"


class ToolResult:
    """Standardized result from tool execution."""

    def __init__(self, status_or_success, output: str, data: Dict = None):
        if isinstance(status_or_success, bool):
            self.status = (
                ExecutionStatus.SUCCESS
                if status_or_success
                else ExecutionStatus.INTERNAL_ERROR
            )
        else:
            self.status = status_or_success

        self.output = output
        self.data = data or {}
        self.success = self.status in (
            ExecutionStatus.SUCCESS,
            ExecutionStatus.COMMAND_FAILED,
        )

    def __repr__(self) -> str:
        return f"ToolResult(status={self.status.value}, output={self.output[:60]!r})"

    @classmethod
    def success_result(cls, output: str, data: Dict = None):
        """Create a successful execution result."""
        return cls(ExecutionStatus.SUCCESS, output, data)

    @classmethod
    def command_failed(cls, output: str, exit_code: int):
        """Create a result for a command that ran but exited non-zero."""
        return cls(ExecutionStatus.COMMAND_FAILED, output, {"exit_code": exit_code})

    @classmethod
    def invalid_params(cls, output: str, missing_params: list = None):
        """Create a result for invalid parameters."""
        return cls(ExecutionStatus.INVALID_PARAMS, output, {"missing": missing_params})

    @classmethod
    def security_blocked(cls, reason: str):
        """Create a result for a security block."""
        return cls(
            ExecutionStatus.SECURITY_BLOCKED,
            f"Security Blocked: {reason}",
            {"reason": reason},
        )

    @classmethod
    def internal_error(cls, output: str):
        """Create a result for an internal error."""
        return cls(ExecutionStatus.INTERNAL_ERROR, output)

    @classmethod
    def timeout(cls, output: str):
        """Create a result for an execution timeout."""
        return cls(ExecutionStatus.TIMEOUT, output)


class BaseTool(ABC):
    """Abstract base class for all tools."""

    category: ToolCategory = ToolCategory.OTHER

    def __init__(self, working_dir: Path):
        self.logger = logging.getLogger(f"tools.{self.__class__.__name__}")
        self.working_dir = Path(working_dir).resolve()

    @property
    @abstractmethod
    def schema(self) -> ToolSchema:
        """Return the tool's schema definition."""

    @abstractmethod
    def execute(self, **kwargs) -> ToolResult:
        """Execute the tool's main logic."""

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def description(self) -> str:
        return self.schema.description

    def _resolve_path(self, filepath: str) -> Optional[Path]:
        """Resolve ``filepath`` against the working directory, or None if unsafe."""
        if not self._is_safe_file_path(filepath):
            return None
        path_obj = Path(filepath)
        if path_obj.is_absolute():
            return path_obj.resolve()
        return (self.working_dir / path_obj).resolve()

    def _is_safe_file_path(self, filepath: str) -> bool:
        """
        Check if file path is within working directory and not dangerous.

        Args:
            filepath: The path to validate.

        Returns:
            bool: True if safe, False otherwise.
        """
        try:
            if not filepath or not isinstance(filepath, (str, Path)):
                self.logger.warning("Invalid filepath provided: %s", filepath)
                return False

            path_obj = Path(filepath)
            if path_obj.is_absolute():
                target_path = path_obj.resolve()
            else:
                target_path = (self.working_dir / path_obj).resolve()

            # The resolved path must stay inside the working directory
            if target_path != self.working_dir and self.working_dir not in target_path.parents:
                self.logger.warning(
                    "Security: Path traversal blocked: %s -> %s", filepath, target_path
                )
                return False

            path_str = target_path.as_posix()
            for pattern in DANGEROUS_FILE_PATTERNS:
                if pattern in path_str:
                    self.logger.warning(
                        "Security: Dangerous pattern '%s' blocked in %s",
                        pattern,
                        filepath,
                    )
                    return False

            return True

        except (OSError, ValueError) as e:
            self.logger.error("Path validation error: %s", e)
            return False
