"""
Budget Monitor
==============
Estimates the token cost of a message list and decides when reduction is due.

Estimation is approximate: every text part costs
ceil(len(part) / CHARS_PER_TOKEN) tokens. Non-text parts are free.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from contextkeeper.exceptions import ContextValidationError

from .message import Message

CHARS_PER_TOKEN = 4
DEFAULT_GROWTH_FACTOR = 1.2


@dataclass(frozen=True)
class BudgetState:
    """Snapshot of context usage. Derived on demand, never stored."""

    tokens_used: int
    tokens_limit: int
    percentage_used: float

    def to_dict(self) -> dict:
        return {
            "tokens_used": self.tokens_used,
            "tokens_limit": self.tokens_limit,
            "percentage_used": round(self.percentage_used, 4),
        }


def estimate_text_tokens(text: str) -> int:
    """Approximate token count of a single text part."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_tokens(messages: Iterable[Message]) -> int:
    """Approximate token count of a whole message list."""
    return sum(
        estimate_text_tokens(part) for msg in messages for part in msg.text_parts
    )


class BudgetMonitor:
    """
    Compares estimated usage against a model limit.

    Reduction is due when usage exceeds a fixed absolute threshold OR a
    percentage of the model limit. Either condition alone is enough: a long
    session on a large-limit model and a short burst on a small-limit model
    must both be caught.
    """

    def __init__(
        self,
        fixed_threshold: int = 4000,
        percentage_threshold: float = 0.8,
        growth_factor: float = DEFAULT_GROWTH_FACTOR,
        projection_threshold: Optional[float] = None,
    ):
        if fixed_threshold <= 0:
            raise ContextValidationError(
                f"Invalid fixed_threshold value: {fixed_threshold}. Must be positive.",
                validation_type="fixed_threshold",
                invalid_value=fixed_threshold,
            )
        self.fixed_threshold = fixed_threshold
        self.percentage_threshold = percentage_threshold
        self.growth_factor = growth_factor
        self.projection_threshold = (
            percentage_threshold if projection_threshold is None else projection_threshold
        )
        self.logger = logging.getLogger(__name__)

    def usage(self, messages: Iterable[Message], model_limit: int) -> BudgetState:
        """Compute a BudgetState for ``messages`` against ``model_limit``."""
        if model_limit <= 0:
            raise ContextValidationError(
                f"Invalid model_limit value: {model_limit}. Must be positive.",
                validation_type="model_limit",
                invalid_value=model_limit,
            )
        tokens_used = estimate_tokens(messages)
        return BudgetState(
            tokens_used=tokens_used,
            tokens_limit=model_limit,
            percentage_used=tokens_used / model_limit,
        )

    def should_reduce(
        self,
        messages: Iterable[Message],
        model_limit: int,
        percentage_threshold: Optional[float] = None,
        fixed_threshold: Optional[int] = None,
    ) -> bool:
        """True if either the fixed or the percentage threshold is crossed."""
        percentage_threshold = (
            self.percentage_threshold
            if percentage_threshold is None
            else percentage_threshold
        )
        fixed_threshold = self.fixed_threshold if fixed_threshold is None else fixed_threshold

        state = self.usage(messages, model_limit)
        over_fixed = state.tokens_used > fixed_threshold
        over_percentage = state.percentage_used >= percentage_threshold
        self.logger.debug(
            "Budget check: %d/%d tokens (%.2f%%), fixed=%s percentage=%s",
            state.tokens_used,
            state.tokens_limit,
            state.percentage_used * 100,
            over_fixed,
            over_percentage,
        )
        return over_fixed or over_percentage

    def projected_percentage(self, messages: Iterable[Message], model_limit: int) -> float:
        """Current percentage scaled by the growth factor."""
        return self.usage(messages, model_limit).percentage_used * self.growth_factor

    def will_need_reduction(self, messages: Iterable[Message], model_limit: int) -> bool:
        """
        Flag that reduction will likely be needed soon, before any threshold
        is actually crossed.
        """
        return self.projected_percentage(messages, model_limit) > self.projection_threshold
