#!/usr/bin/env python3
"""
Tool Selector
=============
Scores every registered tool for an intent and ranks them.

    effectiveness = intent_weight * intent_fit + context_weight * context_relevance

``intent_fit`` comes from a per-category table; ``context_relevance`` looks
at whether the recent conversation talks about files or shell commands.
The constants are hand-tuned, uncalibrated defaults and are all overridable
through the constructor.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from contextkeeper.agent.context.message import Message
from contextkeeper.exceptions import ToolSelectionError
from contextkeeper.tools.base import ToolCategory

from .intent import Intent, IntentType

# category -> (intent types that suit it, fit for those, fit otherwise)
FitRule = Tuple[FrozenSet[IntentType], float, float]

DEFAULT_INTENT_FIT: Dict[ToolCategory, FitRule] = {
    ToolCategory.READ: (frozenset({IntentType.QUERY, IntentType.DEBUG}), 0.8, 0.4),
    ToolCategory.EDIT: (frozenset({IntentType.CODE_CHANGE}), 0.9, 0.2),
    ToolCategory.SHELL: (frozenset({IntentType.DEBUG, IntentType.RESEARCH}), 0.7, 0.3),
    ToolCategory.WEB_SEARCH: (frozenset({IntentType.RESEARCH, IntentType.QUERY}), 0.85, 0.4),
    ToolCategory.SEARCH: (
        frozenset({IntentType.QUERY, IntentType.DEBUG, IntentType.RESEARCH}),
        0.75,
        0.4,
    ),
    ToolCategory.LIST: (frozenset({IntentType.QUERY}), 0.6, 0.3),
}

NameHints = Sequence[Tuple[Tuple[str, ...], ToolCategory]]

# Used when a tool carries no category (or OTHER): first substring hit wins
DEFAULT_NAME_HINTS: Tuple[Tuple[Tuple[str, ...], ToolCategory], ...] = (
    (("edit", "modify"), ToolCategory.EDIT),
    (("read", "view"), ToolCategory.READ),
    (("shell", "execute"), ToolCategory.SHELL),
    (("grep", "search_files"), ToolCategory.SEARCH),
    (("web", "search"), ToolCategory.WEB_SEARCH),
)

DEFAULT_FIT = 0.5
FILE_MENTION = re.compile(
    r"\.(?:js|ts|tsx|jsx|py|java|cpp|go|rs|rust|html|css|json|yaml|yml|md|toml)\b", re.I
)
SHELL_MENTION = re.compile(r"\b(?:bash|shell|command|execute)", re.I)


def infer_category(
    tool: Any,
    name_hints: NameHints = DEFAULT_NAME_HINTS,
) -> Optional[ToolCategory]:
    """Explicit category if the tool has one, else a guess from its name."""
    category = getattr(tool, "category", None)
    if category is not None and category is not ToolCategory.OTHER:
        return category
    name = str(getattr(tool, "name", "")).lower()
    for hints, hinted in name_hints:
        if any(hint in name for hint in hints):
            return hinted
    return category


@dataclass(frozen=True)
class ToolPrediction:
    tool: Any
    effectiveness: float
    intent_fit: float
    context_relevance: float
    reasoning: str

    @property
    def name(self) -> str:
        return self.tool.name


class ToolSelector:
    """
    Ranks tools by predicted effectiveness.

    Tools only need ``name``, ``description`` and (optionally) ``category``;
    their implementation is never consulted.
    """

    def __init__(
        self,
        intent_fit: Optional[Dict[ToolCategory, FitRule]] = None,
        name_hints: NameHints = DEFAULT_NAME_HINTS,
        default_fit: float = DEFAULT_FIT,
        intent_weight: float = 0.7,
        context_weight: float = 0.3,
        file_relevance: float = 0.9,
        shell_relevance: float = 0.8,
        default_relevance: float = 0.5,
        top_k: int = 3,
    ):
        self.intent_fit_table = dict(DEFAULT_INTENT_FIT if intent_fit is None else intent_fit)
        self.name_hints = tuple(name_hints)
        self.default_fit = default_fit
        self.intent_weight = intent_weight
        self.context_weight = context_weight
        self.file_relevance = file_relevance
        self.shell_relevance = shell_relevance
        self.default_relevance = default_relevance
        self.top_k = top_k
        self.logger = logging.getLogger(__name__)

    def category_of(self, tool: Any) -> Optional[ToolCategory]:
        return infer_category(tool, self.name_hints)

    def intent_fit(self, tool: Any, intent: Intent) -> float:
        rule = self.intent_fit_table.get(self.category_of(tool))
        if rule is None:
            return self.default_fit
        suited, fit, otherwise = rule
        return fit if intent.type in suited else otherwise

    def context_relevance(self, tool: Any, context: Sequence[Message]) -> float:
        category = self.category_of(tool)
        texts = [part for msg in context for part in msg.text_parts]
        if category is not None and category.file_oriented:
            if any(FILE_MENTION.search(text) for text in texts):
                return self.file_relevance
        if category is ToolCategory.SHELL:
            if any(SHELL_MENTION.search(text) for text in texts):
                return self.shell_relevance
        return self.default_relevance

    def rank(
        self, intent: Intent, context: Sequence[Message], tools: Sequence[Any]
    ) -> List[ToolPrediction]:
        """All tools, best first. Ties keep registration order."""
        predictions = []
        for tool in tools:
            try:
                fit = self.intent_fit(tool, intent)
                relevance = self.context_relevance(tool, context)
            except Exception as e:
                name = getattr(tool, "name", repr(tool))
                raise ToolSelectionError(
                    f"Could not score tool '{name}': {e}", tool_name=name, original_error=e
                ) from e
            predictions.append(
                ToolPrediction(
                    tool=tool,
                    effectiveness=self.intent_weight * fit + self.context_weight * relevance,
                    intent_fit=fit,
                    context_relevance=relevance,
                    reasoning=self._reasoning(tool, intent, relevance),
                )
            )
        # sorted() is stable
        ranked = sorted(predictions, key=lambda p: p.effectiveness, reverse=True)
        self.logger.debug(
            "Ranked tools: %s",
            ", ".join(f"{p.name}={p.effectiveness:.2f}" for p in ranked),
        )
        return ranked

    def select(
        self,
        intent: Intent,
        context: Sequence[Message],
        tools: Sequence[Any],
        k: Optional[int] = None,
    ) -> List[ToolPrediction]:
        """Top ``k`` (default ``top_k``) of ``rank``."""
        k = self.top_k if k is None else k
        return self.rank(intent, context, tools)[:k]

    def _reasoning(self, tool: Any, intent: Intent, relevance: float) -> str:
        category = self.category_of(tool)
        reasons = []
        if intent.type is IntentType.CODE_CHANGE and category in (ToolCategory.READ, ToolCategory.EDIT):
            reasons.append("Matches code change intent")
        if intent.type is IntentType.QUERY and category in (
            ToolCategory.READ,
            ToolCategory.SEARCH,
            ToolCategory.LIST,
            ToolCategory.WEB_SEARCH,
        ):
            reasons.append("Matches information seeking intent")
        if intent.type is IntentType.DEBUG and category in (
            ToolCategory.READ,
            ToolCategory.SEARCH,
            ToolCategory.SHELL,
        ):
            reasons.append("Matches debugging intent")
        if intent.type is IntentType.REFACTOR and category in (ToolCategory.READ, ToolCategory.EDIT):
            reasons.append("Matches refactoring intent")
        if intent.type is IntentType.RESEARCH and category in (
            ToolCategory.WEB_SEARCH,
            ToolCategory.SEARCH,
            ToolCategory.SHELL,
        ):
            reasons.append("Matches research intent")
        if relevance > 0.7:
            reasons.append("Highly relevant to current context")
        if not reasons:
            reasons.append("General purpose tool for various tasks")
        return ", ".join(reasons)
