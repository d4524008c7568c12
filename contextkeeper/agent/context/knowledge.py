#!/usr/bin/env python3
"""
Knowledge Extraction Module
===========================
Scans conversation text for salient statements (definitions, requirements,
decisions, notes, file references, TODO markers, configuration pairs) and
keeps them in a size-bounded, deduplicating store that outlives reduction.
"""

import logging
import re
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from contextkeeper.exceptions import KnowledgeExtractionError

from .message import Message

GENERAL_TAG = "general"
IMPORTANCE_WORDS = ("important", "critical", "essential", "key")


def _new_entry_id() -> str:
    return f"kb-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class KnowledgeEntry:
    content: str
    tags: Tuple[str, ...] = ()
    source: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=_new_entry_id)

    @property
    def key(self) -> Tuple[str, FrozenSet[str]]:
        """Identity used for deduplication: content plus tag set."""
        return (self.content, frozenset(self.tags))

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "content": self.content,
            "tags": list(self.tags),
            "source": self.source,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class KnowledgePattern:
    """A labelled regex. Every match becomes one entry tagged ``tag``."""

    tag: str
    regex: re.Pattern
    formatter: Callable[[re.Match], str] = lambda m: m.group(0).strip()


_FILE_EXTENSIONS = r"(?:js|ts|tsx|jsx|py|java|cpp|html|css|json|md|toml|yaml|yml)"

DEFAULT_PATTERNS: Tuple[KnowledgePattern, ...] = (
    KnowledgePattern(
        "technical-definition",
        re.compile(r"\b(function|method|class|interface|type)\s+(\w+)(?=\s*[({:]|\s)", re.I),
        lambda m: f"Definition of {m.group(1)} {m.group(2)}",
    ),
    KnowledgePattern(
        "requirement",
        re.compile(
            r"\b(?:must|should|has to|needs? to|is required to|require[sd]?|need)\s+[^.!?;]+",
            re.I,
        ),
        lambda m: f"Requirement: {m.group(0).strip()}",
    ),
    KnowledgePattern(
        "preference",
        re.compile(r"\b(?:I )?(?:prefer|want|need|require|must|should)\s+[^.,;]+", re.I),
    ),
    KnowledgePattern(
        "decision",
        re.compile(r"\b(?:Decision|Conclusion|Result|Outcome):\s*[^.!?]+[.!?]?", re.I),
    ),
    KnowledgePattern(
        "important-note",
        re.compile(
            r"\b(?:Note that|Remember that|(?:Note|Important|Warning|Critical|Remember):)"
            r"\s*[^.!?]+[.!?]?",
            re.I,
        ),
    ),
    KnowledgePattern(
        "fact",
        re.compile(r"\b(?:Fact|Knowledge):\s*[^.!?]+[.!?]?", re.I),
    ),
    KnowledgePattern(
        "file-reference",
        re.compile(
            r"['\"`][^'\"`\n]*?\." + _FILE_EXTENSIONS + r"['\"`]",
            re.I,
        ),
        lambda m: "File reference: " + re.sub(r"['\"`]", "", m.group(0)),
    ),
    KnowledgePattern(
        "todo-fixme",
        re.compile(r"(?://|#|/\*\*?|<!--)\s*(TODO|FIXME|BUG|HACK|XXX):?\s*([^.!?\n]+)"),
        lambda m: f"TODO/FIXME: {m.group(1)} {m.group(2).strip()}",
    ),
    KnowledgePattern(
        "configuration",
        re.compile(r"[\"']?[\w-]+[\"']?\s*[:=]\s*[\"'][^\"'\n]*[\"']"),
        lambda m: f"Configuration: {m.group(0).strip()}",
    ),
)


class KnowledgeExtractor:
    """
    Pattern-driven extractor.

    When no pattern matches a text longer than ``min_fallback_length``, whole
    sentences that look important (importance vocabulary, or simply long) are
    extracted under the ``general`` tag so nothing handed in is silently lost.
    """

    def __init__(
        self,
        patterns: Sequence[KnowledgePattern] = DEFAULT_PATTERNS,
        min_fallback_length: int = 50,
        min_sentence_length: int = 30,
        long_sentence_length: int = 100,
        max_entry_length: int = 500,
    ):
        self.patterns = tuple(patterns)
        self.min_fallback_length = min_fallback_length
        self.min_sentence_length = min_sentence_length
        self.long_sentence_length = long_sentence_length
        self.max_entry_length = max_entry_length
        self.logger = logging.getLogger(__name__)

    def extract(
        self,
        source: Union[str, Iterable[Message]],
        tags: Iterable[str] = (),
        job_id: Optional[str] = None,
    ) -> List[KnowledgeEntry]:
        """
        Extract entries from a string or from every text part of a message list.

        Caller tags (and ``job_id`` when given) are appended to each entry's
        pattern tag.
        """
        extra_tags = tuple(tags) + ((job_id,) if job_id else ())
        timestamp = time.time()

        if isinstance(source, str):
            texts = [source]
        else:
            texts = [part for msg in source for part in msg.text_parts]

        entries: List[KnowledgeEntry] = []
        for text in texts:
            entries.extend(self._extract_from_text(text, extra_tags, job_id, timestamp))

        if entries:
            self.logger.debug(
                "Extracted %d knowledge entries from %d text parts", len(entries), len(texts)
            )
        return entries

    def _extract_from_text(
        self,
        text: str,
        extra_tags: Tuple[str, ...],
        job_id: Optional[str],
        timestamp: float,
    ) -> List[KnowledgeEntry]:
        entries = []
        for pattern in self.patterns:
            try:
                for match in pattern.regex.finditer(text):
                    content = pattern.formatter(match)
                    if not content:
                        continue
                    entries.append(
                        KnowledgeEntry(
                            content=content,
                            tags=(pattern.tag,) + extra_tags,
                            source=job_id,
                            timestamp=timestamp,
                        )
                    )
            except Exception as e:
                raise KnowledgeExtractionError(
                    f"Pattern '{pattern.tag}' failed: {e}",
                    pattern_tag=pattern.tag,
                    original_error=e,
                ) from e

        if entries or len(text) <= self.min_fallback_length:
            return entries

        for sentence in re.split(r"[.!?]+", text):
            sentence = sentence.strip()
            if len(sentence) <= self.min_sentence_length:
                continue
            lowered = sentence.lower()
            if (
                any(word in lowered for word in IMPORTANCE_WORDS)
                or len(sentence) > self.long_sentence_length
            ):
                content = sentence[: self.max_entry_length]
                if len(sentence) > self.max_entry_length:
                    content += "..."
                entries.append(
                    KnowledgeEntry(
                        content=content,
                        tags=(GENERAL_TAG,) + extra_tags,
                        source=job_id,
                        timestamp=timestamp,
                    )
                )
        return entries


class KnowledgeStore:
    """
    Process-lifetime knowledge container.

    Insertion order is kept; past ``max_entries`` the oldest entries are
    evicted first. A ``(content, tags)`` pair is stored at most once.
    """

    def __init__(self, max_entries: int = 100, storage_path: Optional[str] = None):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.storage_path = storage_path or "./knowledge-storage"
        self._entries: "OrderedDict[Tuple[str, FrozenSet[str]], KnowledgeEntry]" = OrderedDict()
        self.logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries.values()))

    def add(self, entry: KnowledgeEntry) -> bool:
        """Insert ``entry``. Returns False if an identical entry is already held."""
        if entry.key in self._entries:
            return False
        self._entries[entry.key] = entry
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return True

    def extend(self, entries: Iterable[KnowledgeEntry]) -> List[KnowledgeEntry]:
        """Insert many entries, returning only those that were new."""
        return [entry for entry in entries if self.add(entry)]

    def all(self) -> List[KnowledgeEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()

    def by_tags(self, tags: Iterable[str], fuzzy: bool = False) -> List[KnowledgeEntry]:
        """
        Entries carrying any of ``tags``. With ``fuzzy`` a tag also matches
        any stored tag that contains it (case-insensitive).
        """
        wanted = [t.lower() for t in tags]
        results = []
        for entry in self._entries.values():
            entry_tags = [t.lower() for t in entry.tags]
            for tag in wanted:
                if tag in entry_tags or (fuzzy and any(tag in t for t in entry_tags)):
                    results.append(entry)
                    break
        return results

    def search(self, term: str) -> List[KnowledgeEntry]:
        term = term.lower()
        return [e for e in self._entries.values() if term in e.content.lower()]

    def by_similarity(self, query: str, limit: int = 10) -> List[KnowledgeEntry]:
        """Rank entries by how many query words (longer than two chars) they contain."""
        words = [w for w in query.lower().split() if len(w) > 2]
        scored = []
        for entry in self._entries.values():
            content = entry.content.lower()
            scored.append((sum(1 for w in words if w in content), entry))
        # sorted() is stable, so equal scores stay in insertion order
        scored = sorted(scored, key=lambda item: item[0], reverse=True)
        return [entry for _, entry in scored[:limit]]

    def stats(self) -> Dict:
        by_tag: Dict[str, int] = {}
        for entry in self._entries.values():
            for tag in entry.tags:
                by_tag[tag] = by_tag.get(tag, 0) + 1
        return {"total": len(self._entries), "by_tag": by_tag}

    def persist(self) -> None:
        """No-op. Knowledge is not written to disk."""
        self.logger.debug(
            "Knowledge persistence is disabled (%d entries, path=%s)",
            len(self._entries),
            self.storage_path,
        )

    def load(self) -> None:
        """No-op counterpart of ``persist``."""
        self.logger.debug("Knowledge loading is disabled (path=%s)", self.storage_path)
