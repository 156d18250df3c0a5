"""Chat model clients used to answer questions over retrieved passages."""

from .base import ChatMessage, ChatModel
from .openai import OpenAIChatModel

__all__ = ["ChatMessage", "ChatModel", "OpenAIChatModel"]
