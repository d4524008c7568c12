from typing import Protocol, Sequence, runtime_checkable

from contextkeeper.agent.context.message import Message


@runtime_checkable
class ReplyClient(Protocol):
    """
    Reply generation seen from the orchestrator: text in, text out.

    ``messages`` is the (possibly reduced) history and already holds the
    user turn carrying ``user_text``, possibly followed by tool output and
    knowledge gathered for it.
    """

    async def generate(self, messages: Sequence[Message], user_text: str) -> str:
        ...
