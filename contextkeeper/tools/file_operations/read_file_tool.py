#!/usr/bin/env python3
"""
Read File Tool - Tool for reading a file, optionally a line range of it.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from contextkeeper.tools.base import (
    BaseTool,
    ExecutionStatus,
    ToolCategory,
    ToolResult,
    ToolSchema,
)


class ReadFileTool(BaseTool):
    """Tool for reading specific lines from a file."""

    category = ToolCategory.READ
    MAX_FILE_SIZE_BYTES: int = 1 * 1024 * 1024  # 1 MB limit

    @property
    def schema(self) -> ToolSchema:
        """Return the tool schema."""
        return ToolSchema(
            name="read_file",
            description="Read and display file contents, with optional line range.",
            parameters={
                "path": {
                    "type": "string",
                    "description": "Path to the file to read",
                },
                "line_start": {
                    "type": "integer",
                    "description": "Starting line number (1-based, optional).",
                },
                "line_end": {
                    "type": "integer",
                    "description": "Ending line number (1-based, optional).",
                },
            },
            required_params=["path"],
            category=self.category,
        )

    def execute(self, **kwargs) -> ToolResult:
        """Orchestrate the read operation."""
        path = kwargs.get("path")
        if not path:
            return ToolResult.invalid_params(
                "Missing required parameter: 'path'", missing_params=["path"]
            )

        # 1. Read File
        lines, error = self._validate_and_read(path)
        if error:
            return error

        # 2. Extract Range
        start, end = kwargs.get("line_start"), kwargs.get("line_end")
        selected_lines, actual_start, actual_end, range_error = self._extract_range(
            lines, start, end
        )
        if range_error:
            return range_error

        # 3. Format Output
        return self._format_output(path, selected_lines, actual_start, actual_end)

    def _validate_and_read(self, path: str) -> Tuple[List[str], Optional[ToolResult]]:
        """Validate path, check size, and read content."""
        full_path = self._resolve_path(path)
        if full_path is None:
            return [], ToolResult.security_blocked(
                f"File path blocked due to security policy: {path}"
            )

        try:
            if not full_path.is_file():
                return [], ToolResult.command_failed(f"File not found: {path}", exit_code=1)

            if full_path.stat().st_size > self.MAX_FILE_SIZE_BYTES:
                size_kb = self.MAX_FILE_SIZE_BYTES / 1024
                return [], ToolResult.command_failed(
                    f"File too large (> {size_kb:.2f} KB).", exit_code=1
                )

            content = full_path.read_text(encoding="utf-8")
            return content.splitlines(), None

        except PermissionError as e:
            self.logger.warning("Permission denied for %s: %s", path, e)
            return [], ToolResult.security_blocked(f"Permission denied: {path}")
        except UnicodeDecodeError as e:
            return [], ToolResult.internal_error(f"Encoding error: {e}. File may be binary.")
        except OSError as e:
            self.logger.error("File system error reading %s: %s", path, e)
            return [], ToolResult.internal_error(f"File system error: {e}")

    def _extract_range(
        self, lines: List[str], start: Optional[int], end: Optional[int]
    ) -> Tuple[List[str], int, int, Optional[ToolResult]]:
        """Slice the lines based on requested range."""
        total_lines = len(lines)

        start_idx = max(0, (start - 1) if start else 0)
        end_idx = min(total_lines, end if end else total_lines)

        if start and start_idx >= total_lines:
            return (
                [],
                0,
                0,
                ToolResult(
                    ExecutionStatus.COMMAND_FAILED,
                    f"Start line {start} exceeds length ({total_lines})",
                ),
            )

        return lines[start_idx:end_idx], start_idx + 1, end_idx, None

    def _format_output(self, path: str, lines: List[str], start: int, end: int) -> ToolResult:
        numbered_content = "\n".join(f"{i + start:3}| {line}" for i, line in enumerate(lines))
        output = f"File {path} (lines {start}-{end}):\n{numbered_content}"
        return ToolResult.success_result(
            output,
            data={
                "path": str(Path(path)),
                "line_start": start,
                "line_end": end,
                "content": "\n".join(lines),
            },
        )
