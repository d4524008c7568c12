import pytest

from contextkeeper.agent.context.message import Message, Role
from contextkeeper.agent.context.reducer import (
    ELISION_MARKER,
    ContextReducer,
    ReductionPolicy,
    extract_essential_text,
    normalize_text,
    summarize_text,
)
from contextkeeper.exceptions import ContextReductionError

LONG_NOISE = "lorem ipsum " * 60  # 720 chars, no essential keywords


@pytest.fixture
def reducer():
    return ContextReducer()


POLICIES = [
    ReductionPolicy(),
    ReductionPolicy.disabled(),
    ReductionPolicy.aggressive(),
    ReductionPolicy(filter_tool_responses=False, remove_redundancy=True),
    ReductionPolicy(filter_tool_responses=False, compress_text=True),
    ReductionPolicy(filter_tool_responses=False, summarize=True),
]


class TestReductionPolicy:
    """Test suite for reduction policies"""

    def test_defaults(self):
        """The default policy only filters tool output"""
        policy = ReductionPolicy()
        assert policy.enabled_strategies == ["filter_tool_responses"]

    def test_aggressive_enables_everything(self):
        """The aggressive policy turns every strategy on"""
        policy = ReductionPolicy.aggressive(tool_response_max_length=100)
        assert policy.enabled_strategies == [
            "filter_tool_responses",
            "remove_redundancy",
            "compress_text",
            "summarize",
        ]
        assert policy.tool_response_max_length == 100

    def test_disabled_and_overrides(self):
        """Disabled runs nothing; overrides return a new policy"""
        assert ReductionPolicy.disabled().enabled_strategies == []
        changed = ReductionPolicy().with_overrides(summarize=True)
        assert "summarize" in changed.enabled_strategies


class TestHelpers:
    """Test suite for the text helpers"""

    def test_normalize_text(self):
        """Normalisation lowercases and strips punctuation"""
        assert normalize_text("  Hello,   WORLD!! ") == "hello world"

    def test_essential_text_keeps_markers(self):
        """Marked statements survive compression"""
        text = "Some chatter. Important: back up first. More chatter. Decision: use sqlite"
        assert extract_essential_text(text) == "Important: back up first. Decision: use sqlite"

    def test_essential_text_falls_back_to_excerpt(self):
        """Unmarked text is cut to head and tail"""
        text = "a" * 150 + "b" * 150
        result = extract_essential_text(text, excerpt_length=100)
        assert result == "a" * 100 + ELISION_MARKER + "b" * 100

    def test_summarize_text(self):
        """Summaries keep the first and last sentence"""
        text = "First sentence here. " + "Middle part. " * 10 + "Last one."
        summary = summarize_text(text)
        assert summary.startswith("[Summary] First sentence here.")
        assert "Last one." in summary
        assert f"({len(text)} chars)" in summary


class TestContextReducer:
    """Test suite for the reduction strategies"""

    def test_filters_long_tool_responses_without_keywords(self, reducer):
        """Long tool output without keywords is dropped"""
        messages = [
            Message.user("list the files"),
            Message.tool(LONG_NOISE),
            Message.tool("short listing"),
            Message.tool(LONG_NOISE + " build failed"),
            Message.model("Here they are."),
        ]
        reduced = reducer.reduce(messages)
        assert Message.tool(LONG_NOISE) not in reduced
        assert Message.tool("short listing") in reduced
        assert Message.tool(LONG_NOISE + " build failed") in reduced
        assert len(reduced) == 4

    def test_input_list_is_untouched(self, reducer):
        """The caller's list is never modified"""
        messages = [Message.user("q"), Message.tool(LONG_NOISE), Message.model("a")]
        snapshot = list(messages)
        reducer.reduce(messages, ReductionPolicy.aggressive())
        assert messages == snapshot

    def test_redundancy_drops_repeated_tool_output_only(self, reducer):
        """Repeated tool output goes; repeated user turns stay"""
        messages = [
            Message.user("run it"),
            Message.tool("Exit code 0"),
            Message.user("run it"),
            Message.tool("exit code 0!"),
            Message.model("It passed."),
        ]
        policy = ReductionPolicy(filter_tool_responses=False, remove_redundancy=True)
        reduced = reducer.reduce(messages, policy)
        assert [m.role for m in reduced] == [Role.USER, Role.TOOL, Role.USER, Role.MODEL]

    def test_redundancy_removes_repeated_parts(self, reducer):
        """Repeated parts inside a message are removed"""
        messages = [
            Message.model("Status: green"),
            Message.model("Status: green", "New detail"),
        ]
        policy = ReductionPolicy(filter_tool_responses=False, remove_redundancy=True)
        reduced = reducer.reduce(messages, policy)
        assert reduced[1].parts == ("New detail",)

    def test_compression_keeps_marked_statements(self, reducer):
        """Compression keeps marked statements"""
        long_text = LONG_NOISE + " Important: never drop the audit table. " + LONG_NOISE
        messages = [Message.user("summarize"), Message.model(long_text)]
        policy = ReductionPolicy(filter_tool_responses=False, compress_text=True)
        reduced = reducer.reduce(messages, policy)
        assert reduced[1].parts == ("Important: never drop the audit table.",)

    def test_non_text_parts_survive(self, reducer):
        """Non-text parts pass through every strategy"""
        blob = {"inline_data": "image/png"}
        messages = [Message.model(LONG_NOISE, blob)]
        reduced = reducer.reduce(messages, ReductionPolicy.aggressive())
        assert blob in reduced[0].parts

    def test_summarize_long_text(self, reducer):
        """Very long text is summarised"""
        text = "Opening line of the report. " + "Filler sentence goes here. " * 100
        messages = [Message.user("report?"), Message.model(text)]
        policy = ReductionPolicy(filter_tool_responses=False, summarize=True)
        reduced = reducer.reduce(messages, policy)
        assert reduced[1].text.startswith("[Summary] Opening line of the report.")
        assert len(reduced[1].text) < len(text)

    @pytest.mark.parametrize("policy", POLICIES)
    def test_latest_reply_survives_every_policy(self, reducer, policy):
        """The reply to the latest user message is always kept"""
        messages = [
            Message.user("first question"),
            Message.model("first answer"),
            Message.tool(LONG_NOISE),
            Message.user("first question"),
            Message.model("first answer"),
            Message.tool("first answer"),
        ]
        reduced = reducer.reduce(messages, policy)

        last_user = max(i for i, m in enumerate(reduced) if m.role is Role.USER)
        assert last_user + 1 < len(reduced)
        assert reduced[last_user + 1].role is Role.MODEL

    def test_strategy_failure_is_reported(self, reducer, monkeypatch):
        """A failing strategy raises ContextReductionError"""

        def explode(indexed, policy):
            raise RuntimeError("boom")

        monkeypatch.setattr(reducer, "_filter_tool_responses", explode)
        with pytest.raises(ContextReductionError) as exc_info:
            reducer.reduce([Message.user("hi")])
        assert exc_info.value.strategy == "filter_tool_responses"
