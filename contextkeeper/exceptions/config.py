#!/usr/bin/env python3
"""
Configuration Exception Definitions

All configuration-related exceptions inherit from ContextKeeperError.
"""

from contextkeeper.exceptions.base import ContextKeeperError


class ConfigError(ContextKeeperError):
    """Raised when settings fail validation."""

    def __init__(self, message, field_name=None, invalid_value=None):
        super().__init__(message)
        self.field_name = field_name
        self.invalid_value = invalid_value


class TranscriptFileError(ContextKeeperError):
    """Raised when a transcript file cannot be loaded."""

    def __init__(self, message, file_path=None, original_error=None):
        super().__init__(message, original_error=original_error)
        self.file_path = file_path
