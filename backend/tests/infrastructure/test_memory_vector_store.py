"""Tests for the in-memory vector store."""

import asyncio

import pytest

from fakes import DIMENSION, axis_vector, similar_vector
from knowledge_base.infrastructure.vectorstore import (
    InMemoryVectorStore,
    VectorRecord,
    keyword_relevance,
    keyword_terms,
)
from knowledge_base.modules.common.exceptions import DimensionMismatchError


def record(record_id: str, similarity: float, document_id: str = "doc-1", **metadata) -> VectorRecord:
    return VectorRecord(
        id=record_id,
        vector=similar_vector(similarity),
        metadata={"documentId": document_id, **metadata},
        content=f"content of {record_id}",
    )


def text_record(record_id: str, content: str, document_id: str = "d", similarity: float = 0.5) -> VectorRecord:
    return VectorRecord(
        id=record_id, vector=similar_vector(similarity), metadata={"documentId": document_id}, content=content
    )


class TestInMemoryVectorStore:
    @pytest.fixture
    def store(self):
        return InMemoryVectorStore(dimension=DIMENSION)

    @pytest.mark.asyncio
    async def test_query_orders_by_similarity(self, store):
        await store.upsert([record("low", 0.1), record("high", 0.9), record("mid", 0.5)])

        matches = await store.query(axis_vector(), k=3)

        assert [match.id for match in matches] == ["high", "mid", "low"]
        assert matches[0].score == pytest.approx(0.9)
        assert matches[0].content == "content of high"

    @pytest.mark.asyncio
    async def test_query_limits_to_k(self, store):
        await store.upsert([record(f"r{i}", i / 10) for i in range(10)])
        assert len(await store.query(axis_vector(), k=4)) == 4

    @pytest.mark.asyncio
    async def test_query_on_empty_store(self, store):
        assert await store.query(axis_vector(), k=5) == []

    @pytest.mark.asyncio
    async def test_query_applies_metadata_filter(self, store):
        await store.upsert(
            [
                record("a", 0.9, document_id="doc-1", userId="alice"),
                record("b", 0.8, document_id="doc-2", userId="bob"),
                record("c", 0.7, document_id="doc-3", userId="alice"),
            ]
        )

        by_user = await store.query(axis_vector(), k=10, metadata_filter={"userId": "alice"})
        by_documents = await store.query(axis_vector(), k=10, metadata_filter={"documentId": ["doc-2", "doc-3"]})

        assert [match.id for match in by_user] == ["a", "c"]
        assert [match.id for match in by_documents] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_upsert_replaces_same_id(self, store):
        await store.upsert([record("a", 0.1)])
        await store.upsert([record("a", 0.9)])

        assert await store.count() == 1
        matches = await store.query(axis_vector(), k=1)
        assert matches[0].score == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejects_whole_batch(self, store):
        bad = VectorRecord(id="bad", vector=[1.0, 0.0], metadata={"documentId": "doc-1"})

        with pytest.raises(DimensionMismatchError):
            await store.upsert([record("good", 0.5), bad])
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_query_with_wrong_dimension_is_rejected(self, store):
        with pytest.raises(DimensionMismatchError):
            await store.query([1.0, 0.0], k=1)

    @pytest.mark.asyncio
    async def test_delete_by_document_removes_only_that_document(self, store):
        await store.upsert([record("a1", 0.5, "doc-a"), record("a2", 0.6, "doc-a"), record("b1", 0.7, "doc-b")])

        removed = await store.delete_by_document("doc-a")

        assert removed == 2
        assert await store.count({"documentId": "doc-a"}) == 0
        assert await store.count({"documentId": "doc-b"}) == 1

    @pytest.mark.asyncio
    async def test_delete_unknown_document_is_not_an_error(self, store):
        assert await store.delete_by_document("missing") == 0

    @pytest.mark.asyncio
    async def test_list_by_document_is_in_position_order(self, store):
        await store.upsert([record("c", 0.1, position=2), record("a", 0.1, position=0), record("b", 0.1, position=1)])

        assert [r.id for r in await store.list_by_document("doc-1")] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_zero_vector_scores_zero(self, store):
        await store.upsert([VectorRecord(id="zero", vector=[0.0] * DIMENSION, metadata={"documentId": "doc-1"})])

        matches = await store.query(axis_vector(), k=1)
        assert matches[0].score == 0.0

    @pytest.mark.asyncio
    async def test_concurrent_query_sees_all_or_nothing_of_an_upsert(self, store):
        batch = [record(f"r{i}", 0.5) for i in range(50)]

        results = await asyncio.gather(store.upsert(batch), store.query(axis_vector(), k=100))

        assert len(results[1]) in (0, 50)

    @pytest.mark.asyncio
    async def test_query_drops_excluded_records(self, store):
        await store.upsert(
            [
                record("a", 0.9, status="draft"),
                record("b", 0.8, document_id="doc-2"),
                record("c", 0.7, document_id="doc-3", status="final"),
            ]
        )

        no_drafts = await store.query(axis_vector(), k=10, exclude_filter={"status": "draft"})
        has_status = await store.query(axis_vector(), k=10, exclude_filter={"status": None})
        scoped = await store.query(
            axis_vector(),
            k=10,
            metadata_filter={"documentId": ["doc-1", "doc-2"]},
            exclude_filter={"status": ["draft"]},
        )

        assert [match.id for match in no_drafts] == ["b", "c"]
        assert [match.id for match in has_status] == ["a", "c"]
        assert [match.id for match in scoped] == ["b"]

    @pytest.mark.asyncio
    async def test_keyword_search_requires_every_term(self, store):
        await store.upsert(
            [
                text_record("both", "Red fox, red!"),
                text_record("one", "a red car"),
                text_record("none", "blue sky"),
            ]
        )

        matches = await store.keyword_search("RED fox", k=5)

        assert [match.id for match in matches] == ["both"]
        assert matches[0].score == pytest.approx(1.0)
        assert matches[0].content == "Red fox, red!"

    @pytest.mark.asyncio
    async def test_keyword_search_ranks_denser_matches_first(self, store):
        await store.upsert(
            [
                text_record("sparse", "one cat among many words here"),
                text_record("dense", "cat cat dog"),
            ]
        )

        matches = await store.keyword_search("cat", k=1)

        assert [match.id for match in matches] == ["dense"]

    @pytest.mark.asyncio
    async def test_keyword_search_applies_filters(self, store):
        await store.upsert(
            [
                text_record("a", "cat", "doc-1"),
                text_record("b", "cat", "doc-2"),
                text_record("c", "cat", "doc-3"),
            ]
        )

        matches = await store.keyword_search(
            "cat", k=5, metadata_filter={"documentId": ["doc-1", "doc-2"]}, exclude_filter={"documentId": "doc-1"}
        )

        assert [match.id for match in matches] == ["b"]

    @pytest.mark.asyncio
    async def test_keyword_search_without_words(self, store):
        await store.upsert([record("a", 0.5)])

        assert await store.keyword_search("  ?! ", k=5) == []
        assert await store.keyword_search("content", k=0) == []


def test_keyword_terms_are_distinct_lowercase_words():
    assert keyword_terms("Cats, cats and DOGS") == ["cats", "and", "dogs"]


def test_keyword_relevance():
    assert keyword_relevance(["cat"], "cat cat dog dog") == pytest.approx(0.5)
    assert keyword_relevance(["cat", "fish"], "cat cat dog dog") == 0.0
    assert keyword_relevance(["cat"], "") == 0.0
