"""Context budget management and predictive tool planning for LLM conversations."""

__version__ = "0.1.0"
