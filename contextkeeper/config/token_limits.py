"""
Model input token limits.

The table is a best-effort snapshot; unknown models fall back to
DEFAULT_TOKEN_LIMIT.
"""

from typing import Dict, Optional

DEFAULT_TOKEN_LIMIT = 1_048_576

DEFAULT_TOKEN_LIMITS: Dict[str, int] = {
    "gemini-1.5-pro": 2_097_152,
    "gemini-1.5-flash": 1_048_576,
    "gemini-2.0-flash": 1_048_576,
    "gemini-2.0-flash-lite": 1_048_576,
    "gemini-2.5-pro": 1_048_576,
    "gemini-2.5-flash": 1_048_576,
    "qwen3-coder-plus": 1_048_576,
    "qwen3-coder": 262_144,
    "qwen3": 40_960,
    "qwen2.5-coder": 32_768,
    "llama3.1": 131_072,
    "llama3": 8_192,
    "llama2": 4_096,
    "mistral": 32_768,
}


def resolve_token_limit(
    model: Optional[str],
    table: Optional[Dict[str, int]] = None,
    default: int = DEFAULT_TOKEN_LIMIT,
) -> int:
    """
    Resolve the input token limit for a model name.

    Tries an exact match first, then the longest table key that prefixes the
    model name (so "qwen3:4b-instruct" resolves through "qwen3"), then the
    default. Ollama-style ":tag" suffixes and "-cloud"/"-local" variants are
    treated as the base model.
    """
    table = DEFAULT_TOKEN_LIMITS if table is None else table
    if not model:
        return default

    name = model.strip().lower()
    if name in table:
        return table[name]

    base = name.split(":", 1)[0].replace("-cloud", "").replace("-local", "")
    if base in table:
        return table[base]

    prefixes = [key for key in table if base.startswith(key)]
    if prefixes:
        return table[max(prefixes, key=len)]
    return default
