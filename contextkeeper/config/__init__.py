from .settings import ContextSettings
from .token_limits import DEFAULT_TOKEN_LIMIT, resolve_token_limit

__all__ = ["ContextSettings", "DEFAULT_TOKEN_LIMIT", "resolve_token_limit"]
