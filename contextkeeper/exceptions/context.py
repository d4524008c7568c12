#!/usr/bin/env python3
"""
Context Exception Definitions

All context-related exceptions inherit from ContextKeeperError.
"""

from typing import Any

from contextkeeper.exceptions.base import ContextKeeperError


class ContextError(ContextKeeperError):
    """Base exception for context management errors."""

    pass


class ContextReductionError(ContextError):
    """Raised when a reduction strategy fails while processing messages."""

    def __init__(self, message, strategy=None, original_error=None, user_hint=None):
        super().__init__(message, original_error=original_error, user_hint=user_hint)
        self.strategy = strategy


class KnowledgeExtractionError(ContextError):
    """Raised when knowledge extraction fails on a piece of text."""

    def __init__(self, message, pattern_tag=None, original_error=None, user_hint=None):
        super().__init__(message, original_error=original_error, user_hint=user_hint)
        self.pattern_tag = pattern_tag


class ContextValidationError(ContextError):
    """Raised when context validation fails."""

    def __init__(
        self, message: str, validation_type: str = None, invalid_value: Any = None
    ):
        super().__init__(message)
        self.validation_type = validation_type
        self.invalid_value = invalid_value
