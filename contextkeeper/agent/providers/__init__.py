from .base import ReplyClient
from .ollama_reply_client import OllamaReplyClient

__all__ = ["ReplyClient", "OllamaReplyClient"]
