from pathlib import Path
from typing import List, Sequence

import pytest

from contextkeeper.agent.context.message import Message
from contextkeeper.config.settings import ContextSettings
from contextkeeper.protocol.bus import EventBus
from contextkeeper.protocol.events import EventTypes
from contextkeeper.tools.base import BaseTool, ToolCategory, ToolResult, ToolSchema
from contextkeeper.tools.registry import ToolRegistry


class FakeTool(BaseTool):
    """In-memory tool that records its calls."""

    def __init__(self, name, category=ToolCategory.OTHER, output="ok", fail=False, required=()):
        super().__init__(Path("."))
        self._name = name
        self.category = category
        self.output = output
        self.fail = fail
        self.required = list(required)
        self.calls: List[dict] = []

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name=self._name,
            description=f"Fake {self._name}",
            parameters={},
            required_params=self.required,
            category=self.category,
        )

    def execute(self, **kwargs) -> ToolResult:
        self.calls.append(kwargs)
        if self.fail:
            raise RuntimeError(f"{self._name} exploded")
        return ToolResult.success_result(f"{self._name}: {self.output}")


class FakeReplyClient:
    def __init__(self, reply="Done.", error=None):
        self.reply = reply
        self.error = error
        self.calls: List[tuple] = []

    async def generate(self, messages: Sequence[Message], user_text: str) -> str:
        self.calls.append((list(messages), user_text))
        if self.error is not None:
            raise self.error
        return self.reply


class EventRecorder:
    def __init__(self):
        self.events: List[tuple] = []

    async def attach(self, bus: EventBus) -> None:
        for event_type in EventTypes:
            await bus.subscribe(event_type, self._make_handler(event_type))

    def _make_handler(self, event_type):
        async def _handler(data):
            self.events.append((event_type, data))

        return _handler

    def of(self, event_type) -> list:
        return [data for kind, data in self.events if kind is event_type]


@pytest.fixture
def settings():
    return ContextSettings(_env_file=None)


@pytest.fixture
def read_tool():
    return FakeTool("read_file", ToolCategory.READ, output="def login(): pass")


@pytest.fixture
def edit_tool():
    return FakeTool("edit_file", ToolCategory.EDIT, output="edited")


@pytest.fixture
def search_tool():
    return FakeTool("search_files", ToolCategory.SEARCH, output="auth.py:1: login")


@pytest.fixture
def shell_tool():
    return FakeTool("execute_command", ToolCategory.SHELL, output="Exit Code: 0")


@pytest.fixture
def fake_tools(read_tool, edit_tool, search_tool, shell_tool):
    return [read_tool, edit_tool, search_tool, shell_tool]


@pytest.fixture
def registry(fake_tools):
    reg = ToolRegistry()
    for tool in fake_tools:
        reg.register(tool)
    return reg


@pytest.fixture
def conversation():
    """Ten messages, several carrying extractable statements."""
    return [
        Message.user("Important: the payment service must stay backwards compatible."),
        Message.model("Understood. Decision: we keep the v1 endpoints alive."),
        Message.user("I prefer small pull requests over one large change."),
        Message.model("Noted, I will split the work into several steps."),
        Message.tool("Listing: src/payments/api.py src/payments/models.py"),
        Message.user("Remember: the config lives in 'settings.toml' for now."),
        Message.model("Fact: the settings loader reads environment overrides first."),
        Message.user("Can you check the retry logic in the client module?"),
        Message.model("The retry logic backs off exponentially up to five attempts."),
        Message.user("Good. Note: retries must be capped at thirty seconds."),
    ]


@pytest.fixture
def make_tool():
    return FakeTool


@pytest.fixture
def noisy_conversation(conversation):
    """The conversation plus one long tool listing the default policy drops."""
    listing = Message.tool("Listing: " + "src/payments/handlers/module.py " * 20)
    return conversation[:5] + [listing] + conversation[5:]
