"""
Tool Registry - registration, lookup and execution of tools.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from contextkeeper.exceptions import (
    ToolCancelledError,
    ToolExecutionError,
    ToolNotFoundError,
)
from contextkeeper.tools.base import BaseTool, ToolResult


class ToolRegistry:
    """Holds the invocable tools and runs them on request."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._tools: Dict[str, BaseTool] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    def register(self, tool: BaseTool) -> None:
        """
        Register a tool instance under its schema name.
        A later registration with the same name replaces the earlier one.
        """
        name = tool.schema.name
        if name in self._tools:
            self.logger.warning("Replacing already registered tool: %s", name)
        self._tools[name] = tool
        self.logger.debug("Registered tool: %s (%s)", name, tool.category.value)

    async def get_tool(self, name: str) -> Optional[BaseTool]:
        """
        Retrieve a tool by name.

        Args:
            name: The name of the tool.

        Returns:
            Optional[BaseTool]: The tool instance or None.
        """
        async with self._lock:
            return self._tools.get(name)

    async def list_tools(self) -> List[BaseTool]:
        """All registered tools, in registration order."""
        async with self._lock:
            return list(self._tools.values())

    async def tool_names(self) -> List[str]:
        async with self._lock:
            return list(self._tools.keys())

    async def execute_tool(
        self,
        name: str,
        parameters: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ToolResult:
        """
        Execute a tool with pre-validation.

        Args:
            name: The name of the tool to execute.
            parameters: Arguments to pass to the tool.
            cancel_event: Abort signal. Checked before the call and raced
                against it while it runs.

        Returns:
            ToolResult: The result of the execution.

        Raises:
            ToolNotFoundError: If the tool name is not registered.
            ToolCancelledError: If the abort signal fires.
            ToolExecutionError: If the tool itself raises.
        """
        parameters = dict(parameters or {})
        tool = await self.get_tool(name)
        if not tool:
            available = await self.tool_names()
            raise ToolNotFoundError(
                f"Tool '{name}' not found. Available: {available}", tool_name=name
            )

        missing = self._validate_tool_params(tool, parameters)
        if missing:
            return ToolResult.invalid_params(
                f"Missing required parameters: {missing}", missing_params=missing
            )

        if cancel_event is not None and cancel_event.is_set():
            raise ToolCancelledError(tool_name=name)

        return await self._run_tool_execution(tool, name, parameters, cancel_event)

    def _validate_tool_params(self, tool: BaseTool, parameters: Dict) -> List[str]:
        """
        Check for missing required parameters.

        Args:
            tool: The tool instance.
            parameters: The arguments provided for execution.

        Returns:
            List[str]: A list of missing parameter names.
        """
        required = tool.schema.required_params
        return [p for p in required if p not in parameters]

    async def _run_tool_execution(
        self,
        tool: BaseTool,
        name: str,
        parameters: Dict,
        cancel_event: Optional[asyncio.Event],
    ) -> ToolResult:
        if asyncio.iscoroutinefunction(tool.execute):
            call = tool.execute(**parameters)
        else:
            call = asyncio.to_thread(tool.execute, **parameters)
        tool_task = asyncio.ensure_future(call)

        try:
            if cancel_event is None:
                return await tool_task

            cancel_task = asyncio.ensure_future(cancel_event.wait())
            done, _ = await asyncio.wait(
                {tool_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if tool_task in done:
                cancel_task.cancel()
                return tool_task.result()

            # A thread-backed tool keeps running; its result is discarded
            tool_task.cancel()
            raise ToolCancelledError(tool_name=name)

        except (ToolCancelledError, asyncio.CancelledError):
            raise
        except Exception as e:
            self.logger.error("Tool execution error '%s'", name, exc_info=True)
            raise ToolExecutionError(
                f"Tool execution error: {str(e)}", tool_name=name, original_error=e
            ) from e
