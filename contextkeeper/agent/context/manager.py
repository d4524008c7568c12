#!/usr/bin/env python3
"""
Context Manager
===============
Coordinates budget checks, knowledge extraction and reduction for one
conversation. Never mutates a caller's list; every operation returns a new
list the caller swaps in.
"""

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Deque, Dict, List, Optional, Sequence

from contextkeeper.config import ContextSettings
from contextkeeper.exceptions import ContextError, wrap_exception
from contextkeeper.protocol.objects import ReductionReport

from .budget import BudgetMonitor, BudgetState, estimate_tokens
from .knowledge import KnowledgeEntry, KnowledgeExtractor, KnowledgeStore
from .message import Message, Role
from .reducer import ContextReducer, ReductionPolicy, estimate_compressed_length

if TYPE_CHECKING:
    from contextkeeper.agent.planning.intent import Intent


# Extra knowledge tags consulted when preparing context for an intent type
RELATED_TAGS: Dict[str, List[str]] = {
    "debug": ["error", "bug", "issue"],
    "query": ["information", "search"],
    "code-change": ["implementation", "function", "feature"],
    "refactor": ["improvement", "optimization"],
    "research": ["study", "investigation"],
    "other": ["general"],
}

# Tool responses worth keeping for an intent type
RELEVANT_TOOL_OUTPUT: Dict[str, "re.Pattern"] = {
    "code-change": re.compile(r"read|edit|create|file", re.I),
    "refactor": re.compile(r"read|edit|create|file", re.I),
    "query": re.compile(r"search|found|result", re.I),
    "research": re.compile(r"search|found|result", re.I),
    "debug": re.compile(r"error|fail|exception|traceback", re.I),
}

# Reports kept for introspection; older ones fall off
MAX_REDUCTION_LOG = 100


@dataclass
class ReductionResult:
    """
    What a cleanup produced. ``messages`` is a replacement list; ``reduced``
    is set only when it differs from the input.
    """

    messages: List[Message]
    knowledge: List[KnowledgeEntry] = field(default_factory=list)
    reduced: bool = False
    report: Optional[ReductionReport] = None


class ContextManager:
    """
    Single entry point for keeping a conversation inside its token budget.
    Owns the knowledge store; the message list stays with the caller.
    """

    def __init__(
        self,
        settings: Optional[ContextSettings] = None,
        policy: Optional[ReductionPolicy] = None,
        extractor: Optional[KnowledgeExtractor] = None,
        store: Optional[KnowledgeStore] = None,
        reducer: Optional[ContextReducer] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.settings = settings or ContextSettings()

        self.budget = BudgetMonitor(
            fixed_threshold=self.settings.fixed_token_threshold,
            percentage_threshold=self.settings.percentage_threshold,
            growth_factor=self.settings.projection_growth_factor,
            projection_threshold=self.settings.projection_threshold,
        )
        self.extractor = extractor or KnowledgeExtractor()
        self.store = store or KnowledgeStore(max_entries=self.settings.max_knowledge_entries)
        self.reducer = reducer or ContextReducer()
        if policy is None:
            policy = (
                ReductionPolicy.aggressive()
                if self.settings.aggressive_reduction
                else ReductionPolicy()
            )
        self.policy = policy
        self.reduction_log: Deque[ReductionReport] = deque(maxlen=MAX_REDUCTION_LOG)

    # --- Budget ---

    @property
    def model_limit(self) -> int:
        return self.settings.resolve_token_limit()

    def usage(self, messages: Sequence[Message]) -> BudgetState:
        return self.budget.usage(messages, self.model_limit)

    def should_reduce(self, messages: Sequence[Message]) -> bool:
        return self.budget.should_reduce(messages, self.model_limit)

    def will_need_reduction(self, messages: Sequence[Message]) -> bool:
        return self.budget.will_need_reduction(messages, self.model_limit)

    # --- Knowledge ---

    def extract_knowledge(
        self,
        messages: Sequence[Message],
        job_id: Optional[str] = None,
        tags: Sequence[str] = (),
    ) -> List[KnowledgeEntry]:
        """
        Extract knowledge from ``messages`` into the store.

        Returns every extracted entry, including ones the store already held.
        Returns nothing when auto extraction is disabled.
        """
        if not self.settings.auto_extract_knowledge:
            return []
        entries = self.extractor.extract(messages, tags=tags, job_id=job_id)
        added = self.store.extend(entries)
        self.logger.debug(
            "Knowledge extraction: %d entries (%d new, store size %d)",
            len(entries),
            len(added),
            len(self.store),
        )
        return entries

    def clear_knowledge(self) -> None:
        self.store.clear()

    # --- Reduction ---

    def reduce_context(
        self,
        messages: Sequence[Message],
        job_id: Optional[str] = None,
        policy: Optional[ReductionPolicy] = None,
        source: str = "turn",
    ) -> ReductionResult:
        """
        Extract knowledge from the full list, then reduce it.

        Extraction always sees the pre-reduction list so anything filtered
        out stays queryable. Only a pass that changed the list lands in
        ``reduction_log``.
        """
        original = list(messages)
        knowledge = self.extract_knowledge(original, job_id=job_id)
        reduced = self.reducer.reduce(original, policy or self.policy)
        changed = reduced != original

        report = ReductionReport(
            messages_before=len(original),
            messages_after=len(reduced),
            tokens_before=estimate_tokens(original),
            tokens_after=estimate_tokens(reduced),
            knowledge_count=len(knowledge),
            source=source,
        )
        if not changed:
            self.logger.debug("Reduction left %d messages unchanged", len(original))
            return ReductionResult(messages=original, knowledge=knowledge, report=report)

        self.reduction_log.append(report)
        self.logger.info(
            "Context reduced: %d -> %d messages, %d -> %d tokens",
            report.messages_before,
            report.messages_after,
            report.tokens_before,
            report.tokens_after,
        )
        return ReductionResult(messages=reduced, knowledge=knowledge, reduced=True, report=report)

    def monitor_and_cleanup(
        self,
        messages: Sequence[Message],
        job_id: Optional[str] = None,
        source: str = "turn",
    ) -> ReductionResult:
        """Reduce only when the budget says so; otherwise hand the list back as is."""
        if not self.should_reduce(messages):
            return ReductionResult(messages=list(messages))
        return self.reduce_context(messages, job_id=job_id, source=source)

    # --- Task preparation ---

    @wrap_exception(ContextError, user_hint="Could not prepare context for the request.")
    def prepare_context(self, intent: "Intent", messages: Sequence[Message]) -> List[Message]:
        """
        Narrow ``messages`` to what matters for ``intent``.

        User and model turns are kept; tool responses survive only when they
        look relevant to the intent type. Matching knowledge is appended as a
        synthetic model message.
        """
        intent_type = intent.type.value
        pattern = RELEVANT_TOOL_OUTPUT.get(intent_type)

        prepared = []
        for msg in messages:
            if msg.role is not Role.TOOL:
                prepared.append(msg)
            elif pattern is not None and pattern.search(msg.text):
                prepared.append(msg)

        search_tags = [intent_type, *intent.targets, *RELATED_TAGS.get(intent_type, [])]
        relevant = self.store.by_tags(search_tags)
        if relevant:
            lines = "\n".join(f"- {entry.content}" for entry in relevant)
            prepared.append(
                Message.model(f"Relevant knowledge for your request:\n\n{lines}")
            )
        return prepared

    # --- Introspection ---

    def payload_statistics(self, messages: Sequence[Message]) -> Dict:
        """Budget usage plus how much an aggressive pass could shrink the text."""
        state = self.usage(messages)
        original_length = sum(len(part) for msg in messages for part in msg.text_parts)
        compressed_length = estimate_compressed_length(
            messages, self.policy.min_compress_length
        )
        ratio = original_length / compressed_length if compressed_length > 0 else 1.0

        stats = state.to_dict()
        stats["message_count"] = len(messages)
        stats["estimated_compression_ratio"] = round(ratio, 3)
        stats["knowledge_entries"] = len(self.store)
        return stats
