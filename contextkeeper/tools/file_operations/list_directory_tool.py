#!/usr/bin/env python3
"""
List Directory Tool
"""

from contextkeeper.tools.base import BaseTool, ToolCategory, ToolResult, ToolSchema


class ListDirectoryTool(BaseTool):
    """List the entries of a directory inside the working directory."""

    category = ToolCategory.LIST

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="list_directory",
            description="List files and folders in a directory.",
            parameters={
                "path": {
                    "type": "string",
                    "description": "Directory to list (default: working directory)",
                    "default": ".",
                },
            },
            required_params=[],
            category=self.category,
        )

    def execute(self, **kwargs) -> ToolResult:
        path = kwargs.get("path") or "."
        target = self._resolve_path(path)
        if target is None:
            return ToolResult.security_blocked(f"Directory blocked due to security policy: {path}")
        if not target.is_dir():
            return ToolResult.command_failed(f"Directory not found: {path}", exit_code=1)

        try:
            entries = sorted(target.iterdir(), key=lambda p: (not p.is_dir(), p.name))
        except OSError as e:
            self.logger.error("Failed listing %s: %s", path, e)
            return ToolResult.internal_error(f"Could not list {path}: {e}")

        names = [f"{p.name}/" if p.is_dir() else p.name for p in entries]
        return ToolResult.success_result(
            f"{path}:\n" + "\n".join(names) if names else f"{path}: (empty)",
            data={"entries": names},
        )
