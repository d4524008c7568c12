"""Default runtime tool registration."""

from pathlib import Path
from typing import Iterable, Optional

from contextkeeper.tools.base import BaseTool
from contextkeeper.tools.file_operations import (
    EditFileTool,
    ListDirectoryTool,
    ReadFileTool,
    SearchFilesTool,
)
from contextkeeper.tools.registry import ToolRegistry
from contextkeeper.tools.shell_operations import ExecuteCommandTool


def iter_default_tools(working_dir: Path) -> Iterable[BaseTool]:
    """Build the default runtime tool set."""
    return (
        ReadFileTool(working_dir),
        EditFileTool(working_dir),
        SearchFilesTool(working_dir),
        ListDirectoryTool(working_dir),
        ExecuteCommandTool(working_dir),
    )


def register_default_tools(registry: ToolRegistry, working_dir: Path) -> None:
    """Register all runtime tools in deterministic order."""
    for tool in iter_default_tools(working_dir):
        registry.register(tool)


def build_default_registry(working_dir: Optional[Path] = None) -> ToolRegistry:
    registry = ToolRegistry()
    register_default_tools(registry, working_dir or Path.cwd())
    return registry
