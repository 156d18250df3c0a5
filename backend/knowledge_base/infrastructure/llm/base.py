from typing import Dict, List, Protocol, runtime_checkable

ChatMessage = Dict[str, str]


@runtime_checkable
class ChatModel(Protocol):
    """Generates a reply from OpenAI-format messages (``{"role": ..., "content": ...}``)."""

    async def complete(self, messages: List[ChatMessage]) -> str: ...

    async def aclose(self) -> None: ...
