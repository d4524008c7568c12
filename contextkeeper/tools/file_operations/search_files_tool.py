#!/usr/bin/env python3
"""
Search Files Tool - regex search over files below a directory.
"""

import re

from contextkeeper.tools.base import BaseTool, ToolCategory, ToolResult, ToolSchema

SKIPPED_DIRS = {".git", "__pycache__", "node_modules", ".venv", "venv"}


class SearchFilesTool(BaseTool):
    """Grep-like search returning ``path:line: text`` hits."""

    category = ToolCategory.SEARCH
    MAX_FILE_SIZE_BYTES: int = 1 * 1024 * 1024

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="search_files",
            description="Search file contents for a regular expression.",
            parameters={
                "pattern": {"type": "string", "description": "Regular expression"},
                "path": {
                    "type": "string",
                    "description": "Directory to search (default: working directory)",
                    "default": ".",
                },
                "glob": {
                    "type": "string",
                    "description": "Filename filter, e.g. '*.py'",
                    "default": "*",
                },
                "max_results": {"type": "integer", "default": 50},
            },
            required_params=["pattern"],
            category=self.category,
        )

    def execute(self, **kwargs) -> ToolResult:
        pattern = kwargs.get("pattern")
        path = kwargs.get("path") or "."
        glob = kwargs.get("glob") or "*"
        max_results = int(kwargs.get("max_results") or 50)

        if not pattern:
            return ToolResult.invalid_params("Missing required parameter: 'pattern'", ["pattern"])
        try:
            regex = re.compile(pattern)
        except re.error as e:
            return ToolResult.invalid_params(f"Invalid regular expression: {e}", ["pattern"])

        root = self._resolve_path(path)
        if root is None:
            return ToolResult.security_blocked(f"Search path blocked due to security policy: {path}")
        if not root.is_dir():
            return ToolResult.command_failed(f"Directory not found: {path}", exit_code=1)

        hits = []
        for file_path in sorted(root.rglob(glob)):
            if len(hits) >= max_results:
                break
            if not file_path.is_file() or SKIPPED_DIRS.intersection(file_path.parts):
                continue
            try:
                if file_path.stat().st_size > self.MAX_FILE_SIZE_BYTES:
                    continue
                text = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue

            relative = file_path.relative_to(self.working_dir).as_posix()
            for number, line in enumerate(text.splitlines(), start=1):
                if regex.search(line):
                    hits.append(f"{relative}:{number}: {line.strip()}")
                    if len(hits) >= max_results:
                        break

        if not hits:
            return ToolResult.success_result(
                f"No matches found for '{pattern}'", data={"matches": []}
            )
        return ToolResult.success_result(
            f"Found {len(hits)} match(es) for '{pattern}':\n" + "\n".join(hits),
            data={"matches": hits},
        )
