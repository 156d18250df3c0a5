"""Tests for the chat service."""

import pytest

from fakes import RecordingChatModel
from knowledge_base.modules.chat.service import (
    GLOBAL_THREAD_ID,
    SYSTEM_PROMPT,
    ChatService,
    build_context,
    thread_id_for,
)
from knowledge_base.modules.common.exceptions import InvalidInput, ProviderUnavailable
from knowledge_base.modules.ingestion import IngestionRequest
from knowledge_base.modules.retrieval import RetrievedPassage


def passage(document_id: str, content: str) -> RetrievedPassage:
    return RetrievedPassage(
        chunk_id=f"{document_id}_chunk_0", document_id=document_id, content=content, score=0.9, similarity=0.9
    )


class StaticRetriever:
    def __init__(self, passages):
        self.passages = passages

    async def retrieve(self, query, options=None):
        return list(self.passages)


class UnavailableRetriever:
    async def retrieve(self, query, options=None):
        raise ProviderUnavailable("vector store down")


def test_thread_ids():
    assert thread_id_for("42") == "doc-42"
    assert thread_id_for(None) == GLOBAL_THREAD_ID


def test_build_context_numbers_and_tags_snippets():
    passages = [passage("a", "Cats purr."), passage("b", "Dogs bark.")]

    context, included = build_context(passages, max_chars=1000)

    assert context == "Snippet 1 [doc-a]:\nCats purr.\n\n---\n\nSnippet 2 [doc-b]:\nDogs bark."
    assert included == passages


def test_build_context_respects_character_budget():
    passages = [passage("a", "x" * 100), passage("b", "y" * 100)]

    context, included = build_context(passages, max_chars=60)

    assert "Snippet 1 [doc-a]:\n" in context
    assert "Snippet 2" not in context
    assert len(context) <= 60
    assert [p.document_id for p in included] == ["a"]


class TestChatService:
    @pytest.mark.asyncio
    async def test_answer_cites_the_ingested_document(self, pipeline, retriever, chat_model):
        await pipeline.ingest(IngestionRequest(document_id="pets", content="The cat sleeps all day."))
        service = ChatService(retriever=retriever, chat_model=chat_model)

        answer = await service.chat("How long does a cat sleep?")

        assert answer.answer == "Cats sleep most of the day. [doc-pets]"
        assert answer.citations == ["pets"]
        assert answer.thread_id == GLOBAL_THREAD_ID
        prompt = chat_model.prompts[0]
        assert prompt[0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert "The cat sleeps all day." in prompt[1]["content"]
        assert prompt[-1] == {"role": "user", "content": "How long does a cat sleep?"}

    @pytest.mark.asyncio
    async def test_passages_cut_by_the_context_budget_are_not_cited(self, chat_model):
        passages = [passage("a", "a" * 1000), passage("b", "b" * 1000), passage("c", "c" * 1000)]
        retriever = StaticRetriever(passages)
        service = ChatService(
            retriever=retriever, chat_model=chat_model, max_context_chars=1500  # type: ignore[arg-type]
        )

        answer = await service.chat("Tell me everything")

        assert answer.citations == ["a", "b"]
        assert answer.answer == f"{chat_model.reply} [doc-a][doc-b]"
        assert "[doc-c]" not in answer.answer
        assert [p.document_id for p in answer.passages] == ["a", "b"]
        context = chat_model.prompts[0][1]["content"]
        assert "[doc-b]" in context
        assert "[doc-c]" not in context

    @pytest.mark.asyncio
    async def test_no_relevant_context_means_no_citations(self, retriever, chat_model):
        service = ChatService(retriever=retriever, chat_model=chat_model)

        answer = await service.chat("What about fish?")

        assert answer.answer == chat_model.reply
        assert answer.citations == []
        assert len(chat_model.prompts[0]) == 2

    @pytest.mark.asyncio
    async def test_document_scope_and_thread(self, pipeline, retriever, chat_model):
        await pipeline.ingest(IngestionRequest(document_id="pets", content="The cat sleeps all day."))
        await pipeline.ingest(IngestionRequest(document_id="more-pets", content="The cat eats fish."))
        service = ChatService(retriever=retriever, chat_model=chat_model)

        answer = await service.chat("cat", document_id="more-pets")

        assert answer.thread_id == "doc-more-pets"
        assert answer.citations == ["more-pets"]

    @pytest.mark.asyncio
    async def test_retrieval_outage_answers_without_context(self, chat_model):
        service = ChatService(retriever=UnavailableRetriever(), chat_model=chat_model)  # type: ignore[arg-type]

        answer = await service.chat("Anything?")

        assert answer.answer == chat_model.reply
        assert answer.passages == []

    @pytest.mark.asyncio
    async def test_chat_model_outage_propagates(self, retriever):
        class DownModel(RecordingChatModel):
            async def complete(self, messages):
                raise ProviderUnavailable("model down")

        service = ChatService(retriever=retriever, chat_model=DownModel())

        with pytest.raises(ProviderUnavailable):
            await service.chat("Hello?")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "  "])
    async def test_blank_message_is_rejected(self, retriever, chat_model, message):
        service = ChatService(retriever=retriever, chat_model=chat_model)

        with pytest.raises(InvalidInput):
            await service.chat(message)
        assert chat_model.prompts == []
