import re

import pytest

from contextkeeper.agent.context.knowledge import (
    KnowledgeEntry,
    KnowledgeExtractor,
    KnowledgePattern,
    KnowledgeStore,
)
from contextkeeper.agent.context.message import Message
from contextkeeper.exceptions import KnowledgeExtractionError


def tags_of(entries):
    return {entry.tags[0] for entry in entries}


class TestKnowledgeExtractor:
    """Test suite for pattern based knowledge extraction"""

    @pytest.fixture
    def extractor(self):
        return KnowledgeExtractor()

    def test_note_decision_preference(self, extractor):
        """Notes, decisions and preferences are extracted"""
        text = (
            "Important: the API uses OAuth. Decision: we will use PostgreSQL. "
            "I need a migration script."
        )
        entries = extractor.extract(text)
        assert {"important-note", "decision", "preference"} <= tags_of(entries)

        contents = [e.content for e in entries]
        assert "Important: the API uses OAuth." in contents
        assert "Decision: we will use PostgreSQL." in contents
        assert "I need a migration script" in contents

    def test_definitions_and_files(self, extractor):
        """Definitions and quoted file names are extracted"""
        entries = extractor.extract("The class UserRepo lives in 'repo/users.py' today.")
        contents = [e.content for e in entries]
        assert "Definition of class UserRepo" in contents
        assert "File reference: repo/users.py" in contents

    def test_todo_and_configuration(self, extractor):
        """TODO markers and config pairs are extracted"""
        entries = extractor.extract('# TODO: drop the legacy flag\ntimeout = "30s"')
        contents = [e.content for e in entries]
        assert "TODO/FIXME: TODO drop the legacy flag" in contents
        assert 'Configuration: timeout = "30s"' in contents

    def test_requirement(self, extractor):
        """Obligations phrased with has to become requirements"""
        entries = extractor.extract("The exporter has to support CSV output.")
        assert "Requirement: has to support CSV output" in [e.content for e in entries]

    def test_must_statement_is_requirement_and_preference(self, extractor):
        """A sentence with must is both a requirement and a preference"""
        entries = extractor.extract("The API must return JSON for every endpoint.")
        by_tag = {e.tags[0]: e.content for e in entries}
        assert by_tag["requirement"] == "Requirement: must return JSON for every endpoint"
        assert by_tag["preference"] == "must return JSON for every endpoint"

    def test_messages_and_caller_tags(self, extractor):
        """Caller tags and the job id are attached to entries"""
        messages = [
            Message.user("Decision: ship on Friday."),
            Message.model("ok", {"function_call": "noop"}),
        ]
        entries = extractor.extract(messages, tags=["release"], job_id="job-1")
        assert len(entries) == 1
        assert entries[0].tags == ("decision", "release", "job-1")
        assert entries[0].source == "job-1"

    def test_fallback_general_sentences(self, extractor):
        """Long unmatched text falls back to general sentences"""
        text = (
            "The overnight batch is the key dependency for the reporting team "
            "and it runs after midnight. ok."
        )
        entries = extractor.extract(text)
        assert tags_of(entries) == {"general"}
        assert entries[0].content.startswith("The overnight batch is the key dependency")

    def test_no_fallback_for_short_text(self, extractor):
        """Short unmatched text yields nothing"""
        assert extractor.extract("hello there") == []

    def test_custom_patterns(self):
        """Custom patterns replace the defaults"""
        extractor = KnowledgeExtractor(
            patterns=[KnowledgePattern("ticket", re.compile(r"JIRA-\d+"))]
        )
        entries = extractor.extract("See JIRA-42 and JIRA-7.")
        assert [e.content for e in entries] == ["JIRA-42", "JIRA-7"]

    def test_broken_pattern_raises(self):
        """A failing formatter raises KnowledgeExtractionError"""

        def explode(match):
            raise ValueError("bad formatter")

        extractor = KnowledgeExtractor(
            patterns=[KnowledgePattern("broken", re.compile(r"x"), explode)]
        )
        with pytest.raises(KnowledgeExtractionError) as exc_info:
            extractor.extract("x marks the spot")
        assert exc_info.value.pattern_tag == "broken"


class TestKnowledgeStore:
    """Test suite for the bounded knowledge store"""

    @pytest.fixture
    def store(self):
        return KnowledgeStore(max_entries=3)

    def test_reextraction_does_not_grow_store(self):
        """Extracting the same text twice adds nothing"""
        store = KnowledgeStore()
        extractor = KnowledgeExtractor()
        text = "Decision: use redis for sessions. Note: cache keys expire hourly."

        store.extend(extractor.extract(text, tags=["infra"]))
        size = len(store)
        assert size > 0

        new = store.extend(extractor.extract(text, tags=["infra"]))
        assert new == []
        assert len(store) == size

    def test_same_content_different_tags_is_distinct(self, store):
        """Deduplication keys on content and tag set"""
        assert store.add(KnowledgeEntry("use redis", ("decision",)))
        assert store.add(KnowledgeEntry("use redis", ("decision", "infra")))
        assert not store.add(KnowledgeEntry("use redis", ("infra", "decision")))
        assert len(store) == 2

    def test_evicts_oldest_first(self, store):
        """A full store drops its oldest entries"""
        for i in range(5):
            store.add(KnowledgeEntry(f"fact {i}", ("fact",)))
        assert [e.content for e in store.all()] == ["fact 2", "fact 3", "fact 4"]

    def test_by_tags(self, store):
        """Exact and fuzzy tag lookups"""
        store.add(KnowledgeEntry("a", ("decision",)))
        store.add(KnowledgeEntry("b", ("important-note",)))
        store.add(KnowledgeEntry("c", ("fact",)))

        assert [e.content for e in store.by_tags(["decision", "fact"])] == ["a", "c"]
        assert store.by_tags(["note"]) == []
        assert [e.content for e in store.by_tags(["note"], fuzzy=True)] == ["b"]

    def test_search_and_similarity(self):
        """Substring search and keyword similarity ranking"""
        store = KnowledgeStore()
        store.add(KnowledgeEntry("The login service uses JWT tokens", ("fact",)))
        store.add(KnowledgeEntry("Payments retry three times", ("fact",)))
        store.add(KnowledgeEntry("Login tokens expire after an hour", ("fact",)))

        assert len(store.search("TOKENS")) == 2
        ranked = store.by_similarity("login tokens jwt", limit=2)
        assert ranked[0].content == "The login service uses JWT tokens"
        assert len(ranked) == 2

    def test_stats_and_clear(self, store):
        """Stats count tags; persist and load keep entries"""
        store.add(KnowledgeEntry("a", ("decision", "job-1")))
        store.add(KnowledgeEntry("b", ("decision",)))
        assert store.stats() == {"total": 2, "by_tag": {"decision": 2, "job-1": 1}}

        store.persist()
        store.load()
        assert len(store) == 2

        store.clear()
        assert len(store) == 0

    def test_rejects_non_positive_capacity(self):
        """A store needs room for at least one entry"""
        with pytest.raises(ValueError):
            KnowledgeStore(max_entries=0)
