#!/usr/bin/env python3
"""
Ollama Reply Client
===================

Reply generation through the official Ollama SDK's async client.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import ollama

from contextkeeper.agent.context.message import Message, Role
from contextkeeper.exceptions import ReplyGenerationError
from contextkeeper.utils.retry import retry_on_transient_errors

ROLE_MAP = {Role.USER: "user", Role.MODEL: "assistant", Role.TOOL: "tool"}


class OllamaReplyClient:
    """Non-streaming chat completion against an Ollama server."""

    def __init__(
        self,
        model_name: str,
        host: str = "http://localhost:11434",
        options: Optional[Dict[str, Any]] = None,
        system_prompt: Optional[str] = None,
        client: Optional[ollama.AsyncClient] = None,
        max_attempts: int = 3,
    ):
        self.model_name = model_name
        self.host = self._normalize_ollama_host(host)
        self.options = options or {}
        self.system_prompt = system_prompt
        self.client = client or ollama.AsyncClient(host=self.host)
        self.logger = logging.getLogger(__name__)
        self._chat = retry_on_transient_errors(max_attempts)(self._chat_once)

    @staticmethod
    def _normalize_ollama_host(host: str) -> str:
        """Normalize configured Ollama URL to a base host for the official SDK."""
        normalized = (host or "").strip().rstrip("/")
        for suffix in ("/api/chat", "/api/generate", "/api"):
            if normalized.endswith(suffix):
                normalized = normalized[: -len(suffix)]
                break
        return normalized or "http://localhost:11434"

    def _to_ollama_messages(
        self, messages: Sequence[Message], user_text: str
    ) -> List[Dict[str, str]]:
        converted = []
        if self.system_prompt:
            converted.append({"role": "system", "content": self.system_prompt})
        for msg in messages:
            text = msg.text
            if text:
                converted.append({"role": ROLE_MAP[msg.role], "content": text})
        if user_text and not any(
            m["role"] == "user" and m["content"] == user_text for m in converted
        ):
            converted.append({"role": "user", "content": user_text})
        return converted

    async def generate(self, messages: Sequence[Message], user_text: str) -> str:
        """
        Generate a reply for the conversation.

        Raises:
            ReplyGenerationError: For provider errors or an empty reply.
        """
        payload = self._to_ollama_messages(messages, user_text)
        self.logger.info(
            "Making Ollama request to model: %s (%d messages)", self.model_name, len(payload)
        )
        try:
            response = await self._chat(payload)
        except ollama.ResponseError as e:
            raise ReplyGenerationError(
                f"Ollama returned an error: {e.error}",
                model_name=self.model_name,
                original_error=e,
            ) from e
        except Exception as e:
            raise ReplyGenerationError(
                f"Ollama request failed: {e}",
                model_name=self.model_name,
                original_error=e,
            ) from e

        content = (response["message"]["content"] or "").strip()
        if not content:
            raise ReplyGenerationError("Empty response from model", model_name=self.model_name)
        return content

    async def _chat_once(self, payload: List[Dict[str, str]]) -> Any:
        return await self.client.chat(
            model=self.model_name,
            messages=payload,
            options=self.options or None,
        )
