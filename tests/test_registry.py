import asyncio

import pytest

from contextkeeper.exceptions import (
    ToolCancelledError,
    ToolExecutionError,
    ToolNotFoundError,
)
from contextkeeper.tools.base import ExecutionStatus, ToolCategory
from contextkeeper.tools.defaults import build_default_registry


class TestToolRegistry:
    """Test suite for tool registration and execution"""

    @pytest.mark.asyncio
    async def test_lists_in_registration_order(self, registry):
        """Tools are listed in registration order"""
        assert await registry.tool_names() == [
            "read_file",
            "edit_file",
            "search_files",
            "execute_command",
        ]
        tool = await registry.get_tool("search_files")
        assert tool.category is ToolCategory.SEARCH
        assert await registry.get_tool("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_registration_replaces(self, registry, make_tool):
        """Registering a name twice replaces the tool"""
        replacement = make_tool("read_file", ToolCategory.READ, output="new")
        registry.register(replacement)
        assert await registry.get_tool("read_file") is replacement
        assert len(await registry.list_tools()) == 4

    @pytest.mark.asyncio
    async def test_execute_runs_sync_tool(self, registry, read_tool):
        """Synchronous tools run and return their result"""
        result = await registry.execute_tool("read_file", {"path": "a.py"})
        assert result.success
        assert result.output == "read_file: def login(): pass"
        assert read_tool.calls == [{"path": "a.py"}]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry):
        """An unknown tool raises ToolNotFoundError"""
        with pytest.raises(ToolNotFoundError) as exc_info:
            await registry.execute_tool("teleport", {})
        assert exc_info.value.tool_name == "teleport"

    @pytest.mark.asyncio
    async def test_missing_parameters(self, registry, make_tool):
        """Missing required parameters give an invalid-params result"""
        tool = make_tool("needs_path", required=("path",))
        registry.register(tool)
        result = await registry.execute_tool("needs_path", {})
        assert result.status is ExecutionStatus.INVALID_PARAMS
        assert result.data["missing"] == ["path"]
        assert tool.calls == []

    @pytest.mark.asyncio
    async def test_tool_exception_is_wrapped(self, registry, make_tool):
        """A raising tool surfaces as ToolExecutionError"""
        registry.register(make_tool("fragile", fail=True))
        with pytest.raises(ToolExecutionError) as exc_info:
            await registry.execute_tool("fragile", {})
        assert "fragile exploded" in str(exc_info.value)
        assert exc_info.value.tool_name == "fragile"
        assert isinstance(exc_info.value.original_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_already_cancelled(self, registry, read_tool):
        """A set abort signal stops the call before it starts"""
        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(ToolCancelledError):
            await registry.execute_tool("read_file", {"path": "a.py"}, cancel_event=cancel)
        assert read_tool.calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_execution(self, registry, make_tool):
        """The abort signal interrupts a running tool"""
        started = asyncio.Event()

        class SlowTool(make_tool):
            async def execute(self, **kwargs):
                started.set()
                await asyncio.sleep(5)

        registry.register(SlowTool("slow"))
        cancel = asyncio.Event()

        async def cancel_when_started():
            await started.wait()
            cancel.set()

        canceller = asyncio.ensure_future(cancel_when_started())
        with pytest.raises(ToolCancelledError):
            await registry.execute_tool("slow", {}, cancel_event=cancel)
        await canceller

    @pytest.mark.asyncio
    async def test_completes_before_cancel(self, registry):
        """A tool that finishes first returns its result"""
        result = await registry.execute_tool(
            "edit_file", {}, cancel_event=asyncio.Event()
        )
        assert result.success


class TestDefaultTools:
    """Test suite for the built-in tools against a temp workspace"""

    @pytest.fixture
    def workspace(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "auth.py").write_text(
            "def login(user):\n    return check(user)\n\ndef logout(user):\n    pass\n",
            encoding="utf-8",
        )
        (tmp_path / "README.md").write_text("# Demo\nlogin docs\n", encoding="utf-8")
        return tmp_path

    @pytest.fixture
    def tools(self, workspace):
        return build_default_registry(workspace)

    @pytest.mark.asyncio
    async def test_default_set(self, tools):
        """The default registry holds the five built-in tools"""
        assert await tools.tool_names() == [
            "read_file",
            "edit_file",
            "search_files",
            "list_directory",
            "execute_command",
        ]

    @pytest.mark.asyncio
    async def test_read_file_range(self, tools):
        """read_file honours a line range"""
        result = await tools.execute_tool(
            "read_file", {"path": "src/auth.py", "line_start": 1, "line_end": 2}
        )
        assert result.success
        assert result.output.startswith("File src/auth.py (lines 1-2):")
        assert "  1| def login(user):" in result.output
        assert "logout" not in result.output

    @pytest.mark.asyncio
    async def test_read_missing_file(self, tools):
        """Reading a missing file is a failed command"""
        result = await tools.execute_tool("read_file", {"path": "nope.py"})
        assert result.status is ExecutionStatus.COMMAND_FAILED
        assert "File not found" in result.output

    @pytest.mark.asyncio
    async def test_path_traversal_blocked(self, tools):
        """Paths outside the working directory are blocked"""
        result = await tools.execute_tool("read_file", {"path": "../outside.txt"})
        assert result.status is ExecutionStatus.SECURITY_BLOCKED
        assert not result.success

    @pytest.mark.asyncio
    async def test_edit_file(self, tools, workspace):
        """edit_file replaces a unique snippet"""
        result = await tools.execute_tool(
            "edit_file",
            {"path": "src/auth.py", "old_string": "pass", "new_string": "return None"},
        )
        assert result.success
        assert "return None" in (workspace / "src" / "auth.py").read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_edit_requires_unique_snippet(self, tools):
        """An ambiguous snippet is not edited"""
        result = await tools.execute_tool(
            "edit_file", {"path": "src/auth.py", "old_string": "user", "new_string": "u"}
        )
        assert result.status is ExecutionStatus.COMMAND_FAILED
        assert "occurs" in result.output

    @pytest.mark.asyncio
    async def test_edit_with_empty_snippet_is_invalid(self, tools):
        """An empty snippet is invalid"""
        result = await tools.execute_tool(
            "edit_file", {"path": "src/auth.py", "old_string": "", "new_string": ""}
        )
        assert result.status is ExecutionStatus.INVALID_PARAMS
        assert not result.success

    @pytest.mark.asyncio
    async def test_search_files(self, tools):
        """search_files reports matching lines"""
        result = await tools.execute_tool("search_files", {"pattern": "login", "path": "."})
        assert result.output.startswith("Found 2 match(es) for 'login':")
        assert "src/auth.py:1: def login(user):" in result.data["matches"]

        result = await tools.execute_tool("search_files", {"pattern": "login", "glob": "*.md"})
        assert result.data["matches"] == ["README.md:2: login docs"]

    @pytest.mark.asyncio
    async def test_search_no_matches(self, tools):
        """No matches is still a successful search"""
        result = await tools.execute_tool("search_files", {"pattern": "zebra"})
        assert result.success
        assert result.output == "No matches found for 'zebra'"

    @pytest.mark.asyncio
    async def test_list_directory(self, tools):
        """list_directory shows directory entries"""
        result = await tools.execute_tool("list_directory", {})
        assert result.data["entries"] == ["src/", "README.md"]

    @pytest.mark.asyncio
    async def test_execute_command(self, tools):
        """execute_command reports the exit code and output"""
        result = await tools.execute_tool("execute_command", {"command": "echo hi"})
        assert result.success
        assert "Exit Code: 0" in result.output
        assert "hi" in result.output

    @pytest.mark.asyncio
    async def test_dangerous_command_blocked(self, tools):
        """Dangerous commands are blocked"""
        result = await tools.execute_tool("execute_command", {"command": "sudo rm -rf /"})
        assert result.status is ExecutionStatus.SECURITY_BLOCKED
        assert "Dangerous command pattern" in result.output
