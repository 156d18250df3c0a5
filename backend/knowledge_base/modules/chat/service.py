"""Question answering over retrieved passages."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ...infrastructure.llm import ChatMessage, ChatModel
from ...infrastructure.logging import get_logger
from ..common.exceptions import InvalidInput, ProviderUnavailable
from ..retrieval import RetrievalOptions, RetrievedPassage, Retriever
from .citations import citation_marker, cited_document_ids, compose

logger = get_logger(__name__)

GLOBAL_THREAD_ID = "global-chat"

SYSTEM_PROMPT = (
    "You are a helpful assistant answering questions about the user's documents. "
    "When context snippets are provided, base your answer on them and say so if they "
    "do not contain the answer. Do not invent facts that are not in the snippets."
)


@dataclass(frozen=True)
class ChatAnswer:
    answer: str
    thread_id: str
    citations: List[str] = field(default_factory=list)
    passages: List[RetrievedPassage] = field(default_factory=list)


def thread_id_for(document_id: Optional[str]) -> str:
    return f"doc-{document_id}" if document_id else GLOBAL_THREAD_ID


def build_context(passages: Sequence[RetrievedPassage], max_chars: int) -> Tuple[str, List[RetrievedPassage]]:
    """Numbered snippets, truncated so the whole block stays within ``max_chars``.

    Returns the context block and the passages that made it in, in order.
    Passages past the budget are left out entirely.
    """
    snippets: List[str] = []
    included: List[RetrievedPassage] = []
    remaining = max_chars
    for index, passage in enumerate(passages, start=1):
        header = f"Snippet {index} {citation_marker(passage.document_id)}:\n"
        budget = remaining - len(header)
        if budget <= 0:
            break
        text = passage.content[:budget]
        snippets.append(f"{header}{text}")
        included.append(passage)
        remaining -= len(header) + len(text)
    return "\n\n---\n\n".join(snippets), included


class ChatService:
    """Answers a message with a chat model, grounded in retrieved passages.

    Context is fetched before the model is called: the top passages for the
    message, limited to one document or collection when given. The reply gets
    a citation marker for every document whose text made it into the context
    the model saw; passages cut by the context budget are not cited.
    """

    def __init__(
        self,
        retriever: Retriever,
        chat_model: ChatModel,
        context_chunks: int = 3,
        max_context_chars: int = 1500,
    ):
        self.retriever = retriever
        self.chat_model = chat_model
        self.context_chunks = context_chunks
        self.max_context_chars = max_context_chars

    async def chat(
        self,
        message: str,
        user_id: Optional[str] = None,
        document_id: Optional[str] = None,
        collection_id: Optional[str] = None,
        use_graph: bool = False,
    ) -> ChatAnswer:
        """Answer a message.

        Args:
            message: The user's question
            user_id: Only use passages from this user's documents
            document_id: Only use passages from this document
            collection_id: Only use passages from this collection
            use_graph: Expand context through the relationship graph

        Returns:
            Answer text with citation markers, and the passages the model was shown

        Raises:
            InvalidInput: If the message is blank
            ProviderUnavailable: If the chat model is unreachable
        """
        if not isinstance(message, str) or not message.strip():
            raise InvalidInput("Message must be a non-empty string")

        passages = await self._prefetch(message, user_id, document_id, collection_id, use_graph)

        messages: List[ChatMessage] = [{"role": "system", "content": SYSTEM_PROMPT}]
        context, grounding = build_context(passages, self.max_context_chars)
        if context:
            messages.append({"role": "system", "content": f"Context snippets:\n\n{context}"})
        messages.append({"role": "user", "content": message})

        reply = await self.chat_model.complete(messages)
        return ChatAnswer(
            answer=compose(reply, grounding),
            thread_id=thread_id_for(document_id),
            citations=cited_document_ids(grounding),
            passages=grounding,
        )

    async def _prefetch(
        self,
        message: str,
        user_id: Optional[str],
        document_id: Optional[str],
        collection_id: Optional[str],
        use_graph: bool,
    ) -> List[RetrievedPassage]:
        options = RetrievalOptions(
            user_id=user_id,
            document_id=document_id,
            collection_id=collection_id,
            k=self.context_chunks,
            use_graph=use_graph,
        )
        try:
            passages = await self.retriever.retrieve(message, options)
        except ProviderUnavailable as e:
            logger.warning(f"Answering without context, retrieval unavailable: {e}")
            return []
        logger.debug(f"Prefetched {len(passages)} passages for thread {thread_id_for(document_id)}")
        return passages
