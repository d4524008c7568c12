#!/usr/bin/env python3
"""
Intent Classifier
=================
Maps free-text user input to a typed Intent.

This is a deterministic, rule-based approximation, not model inference:
keyword families are tested in a fixed priority order and the first match
wins. Confidence is a hand-tuned base weight per family plus small boosts
for technical vocabulary. All tables are constructor arguments.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from contextkeeper.agent.context.message import Message
from contextkeeper.exceptions import IntentClassificationError


class IntentType(str, Enum):
    CODE_CHANGE = "code-change"
    QUERY = "query"
    DEBUG = "debug"
    REFACTOR = "refactor"
    RESEARCH = "research"
    OTHER = "other"


def _new_intent_id() -> str:
    return f"intent-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Intent:
    """A classified guess at the user's goal. Created per turn, never mutated."""

    type: IntentType
    confidence: float
    targets: Tuple[str, ...] = ()
    expected_outcome: Optional[str] = None
    id: str = field(default_factory=_new_intent_id)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "confidence": round(self.confidence, 3),
            "targets": list(self.targets),
            "expected_outcome": self.expected_outcome,
        }


def _family(*words: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(words) + r")", re.I)


# Checked in this order. Debug vocabulary comes before generic change words
# because "fix the bug" is more specific than "change".
DEFAULT_FAMILIES: Tuple[Tuple[IntentType, re.Pattern], ...] = (
    (IntentType.DEBUG, _family("debug", "fix", "error", "bug", "problem", "issue", "trace", "solve")),
    (
        IntentType.CODE_CHANGE,
        _family("change", "modify", "update", "edit", "implement", "add", "create", "write", "make", "build"),
    ),
    (
        IntentType.QUERY,
        _family(
            "what", "how", "why", "explain", "describe", "understand",
            "find", "search", "query", "show me", "tell me",
        ),
    ),
    (
        IntentType.REFACTOR,
        _family("refactor", "restructure", "improve", "optimize", "clean", "simplify", "reorganize"),
    ),
    (
        IntentType.RESEARCH,
        _family("research", "study", "learn", "investigate", "explore", "compare", "analyze"),
    ),
)

DEFAULT_BASE_WEIGHTS: Dict[IntentType, float] = {
    IntentType.DEBUG: 0.85,
    IntentType.CODE_CHANGE: 0.8,
    IntentType.QUERY: 0.75,
    IntentType.REFACTOR: 0.8,
    IntentType.RESEARCH: 0.7,
    IntentType.OTHER: 0.6,
}

DEFAULT_TECHNICAL_BOOSTS: Tuple[Tuple[re.Pattern, float], ...] = (
    (re.compile(r"\b(?:function|class|method|variable|parameter)", re.I), 0.1),
    (re.compile(r"\.(?:js|ts|py|java|cpp|go|rs|html|css|json|yaml|md)\b", re.I), 0.1),
    (re.compile(r"\b(?:async|await|promise|callback|closure|scope)", re.I), 0.1),
    (re.compile(r"\b(?:error|exception|bug|warning|critical|fatal)", re.I), 0.15),
    (re.compile(r"\b(?:refactor|optimize|performance|memory|cache)", re.I), 0.1),
)

# Substring match on purpose: "authentication" also yields "auth".
DEFAULT_DOMAIN_PATTERN = re.compile(
    r"(auth|authentication|login|user|service|function|module|api|endpoint)"
)
FILE_PATTERN = re.compile(
    r"(?<![\w./-])([\w\-./]+\.[A-Za-z]{1,6})(?=[\s,;:!?)\]'\"]|\.(?:\s|$)|$)"
)
CODE_PATTERN = re.compile(r"\b(?:function|class|method|def)\s+([A-Za-z_$][\w$]*)")

# (intent type, refining keywords, phrase); the first row for a type without
# keywords is that type's default.
DEFAULT_OUTCOMES: Tuple[Tuple[IntentType, Optional[re.Pattern], str], ...] = (
    (IntentType.CODE_CHANGE, _family("add", "create", "implement"), "Added new functionality"),
    (IntentType.CODE_CHANGE, None, "Modified code implementation"),
    (IntentType.DEBUG, None, "Fixed an issue or error"),
    (IntentType.QUERY, _family("find", "search", "locate"), "Located specific code or information"),
    (IntentType.QUERY, None, "Explanation of code or concept"),
    (IntentType.REFACTOR, _family("optimize", "performance"), "Improved performance"),
    (IntentType.REFACTOR, None, "Improved code structure"),
    (IntentType.RESEARCH, None, "Located specific code or information"),
)


class IntentClassifier:
    """Rule-based classifier. Same input and context always yield the same intent."""

    def __init__(
        self,
        families: Sequence[Tuple[IntentType, re.Pattern]] = DEFAULT_FAMILIES,
        base_weights: Optional[Dict[IntentType, float]] = None,
        technical_boosts: Sequence[Tuple[re.Pattern, float]] = DEFAULT_TECHNICAL_BOOSTS,
        domain_pattern: re.Pattern = DEFAULT_DOMAIN_PATTERN,
        outcomes: Sequence[Tuple[IntentType, Optional[re.Pattern], str]] = DEFAULT_OUTCOMES,
        context_window: int = 5,
    ):
        self.families = tuple(families)
        self.base_weights = dict(DEFAULT_BASE_WEIGHTS)
        if base_weights:
            self.base_weights.update(base_weights)
        self.technical_boosts = tuple(technical_boosts)
        self.domain_pattern = domain_pattern
        self.outcomes = tuple(outcomes)
        self.context_window = context_window
        self.logger = logging.getLogger(__name__)

    def classify(self, text: str, recent_context: Sequence[Message] = ()) -> Intent:
        if not isinstance(text, str):
            raise IntentClassificationError(
                f"User input must be text, got {type(text).__name__}",
                user_input=text,
            )

        lowered = text.lower()
        intent_type = self._classify_type(lowered)
        intent = Intent(
            type=intent_type,
            confidence=self._confidence(intent_type, text),
            targets=self._extract_targets(text, recent_context),
            expected_outcome=self._predict_outcome(intent_type, lowered),
        )
        self.logger.debug(
            "Classified input as %s (confidence %.2f, targets=%s)",
            intent.type.value,
            intent.confidence,
            list(intent.targets),
        )
        return intent

    def _classify_type(self, lowered: str) -> IntentType:
        for intent_type, pattern in self.families:
            if pattern.search(lowered):
                return intent_type
        return IntentType.OTHER

    def _confidence(self, intent_type: IntentType, text: str) -> float:
        confidence = self.base_weights.get(intent_type, self.base_weights[IntentType.OTHER])
        for pattern, boost in self.technical_boosts:
            if pattern.search(text):
                confidence += boost
        return min(confidence, 1.0)

    def _extract_targets(self, text: str, recent_context: Sequence[Message]) -> Tuple[str, ...]:
        sources: List[str] = [text]
        window = list(recent_context)[-self.context_window:] if self.context_window else []
        for msg in window:
            sources.extend(msg.text_parts)

        targets: List[str] = []
        for source in sources:
            targets.extend(self.domain_pattern.findall(source.lower()))
            targets.extend(m for m in FILE_PATTERN.findall(source) if len(m) > 1)
            targets.extend(CODE_PATTERN.findall(source))
        return tuple(_unique(targets))

    def _predict_outcome(self, intent_type: IntentType, lowered: str) -> Optional[str]:
        for outcome_type, keywords, phrase in self.outcomes:
            if outcome_type is not intent_type:
                continue
            if keywords is None or keywords.search(lowered):
                return phrase
        return None


def _unique(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
