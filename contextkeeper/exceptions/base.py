#!/usr/bin/env python3
"""
Base Exception Contract for contextkeeper

Provides the single source of truth for the error contract.
All domain-specific exceptions must inherit from ContextKeeperError.
"""

from typing import Optional


class ContextKeeperError(Exception):
    """
    The Base Contract for all contextkeeper errors.
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        user_hint: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.user_hint = user_hint or "An internal error occurred."
        self.details = details or {}


def wrap_exception(exception_class, user_hint=None):
    """
    Decorator that catches generic exceptions and re-raises them
    as the specific ContextKeeperError subclass.
    """

    def decorator(func):
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ContextKeeperError:
                raise
            except Exception as e:
                raise exception_class(
                    message=str(e), original_error=e, user_hint=user_hint
                ) from e

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper

    return decorator
