import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from contextkeeper.exceptions import ContextValidationError


class Role(str, Enum):
    USER = "user"
    MODEL = "model"
    TOOL = "tool"


@dataclass(frozen=True)
class Message:
    """
    A single immutable message in the conversation.

    ``parts`` is an ordered tuple. String parts are text; any other object
    (images, function calls, ...) is carried through reduction untouched.
    """

    role: Role
    parts: Tuple[Any, ...] = ()
    timestamp: float = field(default_factory=time.time, compare=False)

    def __post_init__(self):
        if not isinstance(self.role, Role):
            try:
                object.__setattr__(self, "role", Role(self.role))
            except ValueError as e:
                raise ContextValidationError(
                    f"Unknown message role: {self.role!r}",
                    validation_type="role",
                    invalid_value=self.role,
                ) from e
        if not isinstance(self.parts, tuple):
            object.__setattr__(self, "parts", tuple(self.parts))

    @classmethod
    def user(cls, *parts: Any) -> "Message":
        return cls(Role.USER, parts)

    @classmethod
    def model(cls, *parts: Any) -> "Message":
        return cls(Role.MODEL, parts)

    @classmethod
    def tool(cls, *parts: Any) -> "Message":
        return cls(Role.TOOL, parts)

    @property
    def text_parts(self) -> List[str]:
        return [part for part in self.parts if isinstance(part, str)]

    @property
    def text(self) -> str:
        """All text parts joined with newlines."""
        return "\n".join(self.text_parts)

    def with_parts(self, parts: Iterable[Any]) -> "Message":
        """Return a copy of this message carrying ``parts`` (same role and timestamp)."""
        return Message(self.role, tuple(parts), self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise text parts for transcripts; non-text parts are dropped."""
        return {"role": self.role.value, "parts": self.text_parts}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        role = data.get("role")
        # "assistant" is accepted from OpenAI-style transcripts
        if role == "assistant":
            role = Role.MODEL
        parts = data.get("parts")
        if parts is None:
            content = data.get("content")
            parts = [content] if content else []
        # Gemini-style {"text": ...} parts collapse to plain strings
        parts = [
            part["text"] if isinstance(part, dict) and "text" in part else part
            for part in parts
        ]
        return cls(role, tuple(parts))
