#!/usr/bin/env python3
"""
Edit File Tool - exact string replacement inside a file.
"""

from contextkeeper.tools.base import BaseTool, ToolCategory, ToolResult, ToolSchema


class EditFileTool(BaseTool):
    """Replace an exact snippet of text in a file."""

    category = ToolCategory.EDIT

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="edit_file",
            description=(
                "Edit a file by replacing an exact string. Fails unless old_string "
                "occurs exactly once, or replace_all is set."
            ),
            parameters={
                "path": {"type": "string", "description": "File to modify"},
                "old_string": {"type": "string", "description": "Exact text to replace"},
                "new_string": {"type": "string", "description": "Replacement text"},
                "replace_all": {
                    "type": "boolean",
                    "description": "Replace every occurrence",
                    "default": False,
                },
            },
            required_params=["path", "old_string", "new_string"],
            category=self.category,
        )

    def execute(self, **kwargs) -> ToolResult:
        path = kwargs.get("path")
        old_string = kwargs.get("old_string")
        new_string = kwargs.get("new_string")
        replace_all = bool(kwargs.get("replace_all", False))

        if not path:
            return ToolResult.invalid_params("Missing required parameter: 'path'", ["path"])
        if not old_string:
            return ToolResult.invalid_params(
                "old_string must be a non-empty snippet of the file", ["old_string"]
            )
        if new_string is None:
            return ToolResult.invalid_params("Missing required parameter: 'new_string'", ["new_string"])

        full_path = self._resolve_path(path)
        if full_path is None:
            return ToolResult.security_blocked(f"File path blocked due to security policy: {path}")
        if not full_path.is_file():
            return ToolResult.command_failed(f"File not found: {path}", exit_code=1)

        try:
            content = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error("Failed reading %s: %s", path, e)
            return ToolResult.internal_error(f"Could not read {path}: {e}")

        occurrences = content.count(old_string)
        if occurrences == 0:
            return ToolResult.command_failed(f"old_string not found in {path}", exit_code=1)
        if occurrences > 1 and not replace_all:
            return ToolResult.command_failed(
                f"old_string occurs {occurrences} times in {path}; "
                "pass replace_all or a more specific snippet",
                exit_code=1,
            )

        updated = content.replace(old_string, new_string, -1 if replace_all else 1)
        try:
            full_path.write_text(updated, encoding="utf-8")
        except OSError as e:
            self.logger.error("Failed writing %s: %s", path, e)
            return ToolResult.internal_error(f"Could not write {path}: {e}")

        replaced = occurrences if replace_all else 1
        self.logger.info("Edited %s (%d replacement(s))", path, replaced)
        return ToolResult.success_result(
            f"Edited {path}: {replaced} replacement(s)",
            data={"path": path, "replacements": replaced},
        )
