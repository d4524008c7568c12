#!/usr/bin/env python3
"""
Context Reducer Module
======================
Shrinks a message list according to a ReductionPolicy.

Strategies run in a fixed order: tool-response filtering, redundancy
removal, text compression, summarization. A repair pass always runs last so
the latest user question never loses the model reply that answered it.
Only tool messages are ever dropped; user and model messages are at most
shortened.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple

from contextkeeper.exceptions import ContextReductionError

from .message import Message, Role

ELISION_MARKER = "...[content shortened]..."
DEFAULT_ESSENTIAL_KEYWORDS = ("error", "fail", "success", "done", "completed", "critical")

ESSENTIAL_TEXT_PATTERNS = (
    re.compile(r"Important:[^.!]*[!.]", re.I),
    re.compile(r"Critical:[^.!]*[!.]", re.I),
    re.compile(r"Note:[^.!]*[!.]", re.I),
    re.compile(r"Warning:[^.!]*[!.]", re.I),
    re.compile(r"Remember:[^.!]*[!.]", re.I),
    re.compile(r"Key point:[^.!]*[!.]", re.I),
    re.compile(r"Decision:[^.!?]*", re.I),
    re.compile(r"Result:[^.!?]*", re.I),
    re.compile(r"Outcome:[^.!?]*", re.I),
)

# An indexed message remembers its position in the pre-reduction list.
Indexed = Tuple[int, Message]


@dataclass(frozen=True)
class ReductionPolicy:
    """
    Which strategies run, and their thresholds.

    The default policy only filters oversized tool responses; ``aggressive()``
    turns every strategy on.
    """

    filter_tool_responses: bool = True
    remove_redundancy: bool = False
    compress_text: bool = False
    summarize: bool = False
    tool_response_max_length: int = 500
    min_compress_length: int = 500
    summarize_threshold: int = 2000
    essential_keywords: Tuple[str, ...] = DEFAULT_ESSENTIAL_KEYWORDS
    max_essential_matches: int = 5
    excerpt_length: int = 100

    @classmethod
    def aggressive(cls, **overrides) -> "ReductionPolicy":
        return cls(
            filter_tool_responses=True,
            remove_redundancy=True,
            compress_text=True,
            summarize=True,
            **overrides,
        )

    @classmethod
    def disabled(cls) -> "ReductionPolicy":
        """No strategy runs; only the repair pass."""
        return cls(filter_tool_responses=False)

    def with_overrides(self, **changes) -> "ReductionPolicy":
        return replace(self, **changes)

    @property
    def enabled_strategies(self) -> List[str]:
        names = []
        if self.filter_tool_responses:
            names.append("filter_tool_responses")
        if self.remove_redundancy:
            names.append("remove_redundancy")
        if self.compress_text:
            names.append("compress_text")
        if self.summarize:
            names.append("summarize")
        return names


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    text = re.sub(r"[^\w\s]", "", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def extract_essential_text(
    text: str, max_matches: int = 5, excerpt_length: int = 100
) -> str:
    """
    Reduce ``text`` to its marked statements (Important:, Decision:, ...).

    Falls back to a head and tail excerpt joined by ELISION_MARKER when no
    marker is present.
    """
    found = []
    for pattern in ESSENTIAL_TEXT_PATTERNS:
        found.extend(match.group(0).strip() for match in pattern.finditer(text))

    if found:
        essential = " ".join(found[:max_matches])
        return essential + ("..." if len(found) > max_matches else "")

    if len(text) > excerpt_length:
        return f"{text[:excerpt_length]}{ELISION_MARKER}{text[-excerpt_length:]}"
    return text


def summarize_text(text: str, fragment_length: int = 200) -> str:
    """Short synthetic summary: first and last sentence fragments plus a pointer."""
    sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", text) if s.strip()]
    first = sentences[0][:fragment_length] if sentences else text[:fragment_length]
    last = sentences[-1][-fragment_length:] if len(sentences) > 1 else ""
    summary = f"[Summary] {first}"
    if last:
        summary += f" ... {last}"
    return (
        f"{summary}\n[Full content ({len(text)} chars) retained in the knowledge store]"
    )


def estimate_compressed_length(messages: Sequence[Message], min_length: int = 500) -> float:
    """Rough size of ``messages`` after aggressive compression, in characters."""
    total = 0.0
    for msg in messages:
        for part in msg.text_parts:
            if len(part) > min_length:
                total += len(extract_essential_text(part))
            else:
                total += len(part) * 0.8
    return total


class ContextReducer:
    """Applies a ReductionPolicy to a message list. Stateless and reusable."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def reduce(
        self, messages: Sequence[Message], policy: Optional[ReductionPolicy] = None
    ) -> List[Message]:
        """Return a new, reduced list. ``messages`` itself is never modified."""
        policy = policy or ReductionPolicy()
        original = list(messages)
        indexed: List[Indexed] = list(enumerate(original))

        pipeline: List[Tuple[str, bool, Callable]] = [
            ("filter_tool_responses", policy.filter_tool_responses, self._filter_tool_responses),
            ("remove_redundancy", policy.remove_redundancy, self._remove_redundancy),
            ("compress_text", policy.compress_text, self._compress_text),
            ("summarize", policy.summarize, self._summarize),
        ]
        for name, enabled, strategy in pipeline:
            if not enabled:
                continue
            try:
                indexed = strategy(indexed, policy)
            except Exception as e:
                raise ContextReductionError(
                    f"Reduction strategy '{name}' failed: {e}",
                    strategy=name,
                    original_error=e,
                ) from e

        indexed = self._repair_last_exchange(original, indexed)
        reduced = [msg for _, msg in indexed]

        self.logger.debug(
            "Reduced %d messages to %d (strategies: %s)",
            len(original),
            len(reduced),
            ", ".join(policy.enabled_strategies) or "none",
        )
        return reduced

    def _filter_tool_responses(
        self, indexed: List[Indexed], policy: ReductionPolicy
    ) -> List[Indexed]:
        kept = []
        for index, msg in indexed:
            if msg.role is Role.TOOL:
                text = "".join(msg.text_parts)
                lowered = text.lower()
                if len(text) > policy.tool_response_max_length and not any(
                    keyword in lowered for keyword in policy.essential_keywords
                ):
                    continue
            kept.append((index, msg))
        return kept

    def _remove_redundancy(
        self, indexed: List[Indexed], policy: ReductionPolicy
    ) -> List[Indexed]:
        seen = set()
        kept = []
        for index, msg in indexed:
            parts = []
            for part in msg.parts:
                if isinstance(part, str):
                    normalized = normalize_text(part)
                    if normalized and normalized in seen:
                        continue
                    seen.add(normalized)
                parts.append(part)

            if len(parts) == len(msg.parts):
                kept.append((index, msg))
            elif parts:
                kept.append((index, msg.with_parts(parts)))
            elif msg.role is not Role.TOOL:
                # user/model turns are never dropped, even when fully repeated
                kept.append((index, msg))
        return kept

    def _compress_text(
        self, indexed: List[Indexed], policy: ReductionPolicy
    ) -> List[Indexed]:
        def compress(text: str) -> str:
            return extract_essential_text(
                text, policy.max_essential_matches, policy.excerpt_length
            )

        return [
            (index, self._map_long_parts(msg, policy.min_compress_length, compress))
            for index, msg in indexed
        ]

    def _summarize(self, indexed: List[Indexed], policy: ReductionPolicy) -> List[Indexed]:
        return [
            (index, self._map_long_parts(msg, policy.summarize_threshold, summarize_text))
            for index, msg in indexed
        ]

    @staticmethod
    def _map_long_parts(msg: Message, min_length: int, transform: Callable[[str], str]) -> Message:
        changed = False
        parts = []
        for part in msg.parts:
            if isinstance(part, str) and len(part) > min_length:
                shortened = transform(part)
                if len(shortened) < len(part):
                    part = shortened
                    changed = True
            parts.append(part)
        return msg.with_parts(parts) if changed else msg

    def _repair_last_exchange(
        self, original: List[Message], indexed: List[Indexed]
    ) -> List[Indexed]:
        last_user = None
        for i in range(len(original) - 1, -1, -1):
            if original[i].role is Role.USER:
                last_user = i
                break
        if last_user is None or last_user + 1 >= len(original):
            return indexed

        reply_index = last_user + 1
        if original[reply_index].role is not Role.MODEL:
            return indexed
        if any(index == reply_index for index, _ in indexed):
            return indexed

        self.logger.warning("Restoring model reply to the latest user message")
        repaired = indexed + [(reply_index, original[reply_index])]
        repaired.sort(key=lambda item: item[0])
        return repaired
