"""Tests for the ingestion pipeline."""

import asyncio
from datetime import UTC, datetime

import pytest

from fakes import KeywordEmbeddingProvider
from knowledge_base.infrastructure.embedding import EmbeddingClient
from knowledge_base.infrastructure.graph import NEXT_CHUNK_RELATION, EdgeDirection
from knowledge_base.modules.common.exceptions import ProcessingError, ProviderUnavailable
from knowledge_base.modules.document.models import DocumentStatus
from knowledge_base.modules.ingestion import IngestionPipeline, IngestionRequest, chunk_record_id
from knowledge_base.modules.ingestion.pipeline import file_type_of

# With 40 character windows and 10 characters of overlap, 160 characters make exactly five chunks:
# [0:40] [30:70] [60:100] [90:130] [120:160]. Characters 70-89 belong to the third chunk only.
FIVE_CHUNK_TEXT = "cat " * 40
POISONED_TEXT = "x" * 75 + "POISON" + "y" * 79


def make_pipeline(pipeline_config, provider, vector_store, status_recorder, graph_store=None) -> IngestionPipeline:
    return IngestionPipeline(
        config=pipeline_config,
        embedding_client=EmbeddingClient(provider=provider, config=pipeline_config),
        vector_store=vector_store,
        status_recorder=status_recorder,
        graph_store=graph_store,
    )


def test_file_type_of():
    assert file_type_of("notes.MD") == "md"
    assert file_type_of("README") == "txt"
    assert file_type_of(None) == "txt"


class TestIngest:
    @pytest.mark.asyncio
    async def test_stores_one_record_per_chunk(self, pipeline, vector_store, status_recorder):
        result = await pipeline.ingest(IngestionRequest(document_id="doc-1", content=FIVE_CHUNK_TEXT))

        assert result.status == DocumentStatus.READY
        assert result.chunk_count == 5
        assert result.replaced_count == 0
        assert await vector_store.count({"documentId": "doc-1"}) == 5
        assert status_recorder.status_of("doc-1") == DocumentStatus.READY

    @pytest.mark.asyncio
    async def test_status_moves_through_processing_to_ready(self, pipeline, status_recorder):
        status_recorder.register("doc-1")

        await pipeline.ingest(IngestionRequest(document_id="doc-1", content="The cat sat."))

        assert [status for status, _ in status_recorder.history["doc-1"]] == [
            DocumentStatus.PENDING,
            DocumentStatus.PROCESSING,
            DocumentStatus.READY,
        ]

    @pytest.mark.asyncio
    async def test_record_ids_and_metadata(self, pipeline, vector_store):
        created_at = datetime(2024, 5, 1, tzinfo=UTC)
        request = IngestionRequest(
            document_id="doc-1",
            content=FIVE_CHUNK_TEXT,
            user_id="alice",
            filename="pets.txt",
            collection_id="col-1",
            created_at=created_at,
            metadata={"source": "upload"},
        )

        await pipeline.ingest(request)
        records = await vector_store.list_by_document("doc-1")

        assert [record.id for record in records] == [chunk_record_id("doc-1", i) for i in range(5)]
        first = records[0].metadata
        assert first["documentId"] == "doc-1"
        assert first["userId"] == "alice"
        assert first["filename"] == "pets.txt"
        assert first["fileType"] == "txt"
        assert first["sourceType"] == "file"
        assert first["collectionId"] == "col-1"
        assert first["createdAt"] == created_at.isoformat()
        assert first["source"] == "upload"
        assert (first["position"], first["start"], first["end"]) == (0, 0, 40)
        assert records[2].content == FIVE_CHUNK_TEXT[60:100]

    @pytest.mark.asyncio
    async def test_reingest_replaces_previous_chunks(self, pipeline, vector_store):
        await pipeline.ingest(IngestionRequest(document_id="doc-1", content=FIVE_CHUNK_TEXT))

        result = await pipeline.ingest(IngestionRequest(document_id="doc-1", content="A short dog story."))

        assert result.replaced_count == 5
        assert result.chunk_count == 1
        records = await vector_store.list_by_document("doc-1")
        assert [record.content for record in records] == ["A short dog story."]

    @pytest.mark.asyncio
    async def test_empty_document_is_ready_with_no_chunks(self, pipeline, vector_store, status_recorder):
        result = await pipeline.ingest(IngestionRequest(document_id="doc-1", content=""))

        assert result.chunk_count == 0
        assert status_recorder.status_of("doc-1") == DocumentStatus.READY
        assert await vector_store.count() == 0

    @pytest.mark.asyncio
    async def test_links_consecutive_chunks(self, pipeline, graph_store):
        await pipeline.ingest(IngestionRequest(document_id="doc-1", content=FIVE_CHUNK_TEXT))

        edges = await graph_store.neighbors([chunk_record_id("doc-1", 0)], EdgeDirection.OUTBOUND)

        assert len(edges) == 1
        assert edges[0].target_id == chunk_record_id("doc-1", 1)
        assert edges[0].relation_type == NEXT_CHUNK_RELATION

    @pytest.mark.asyncio
    async def test_other_documents_are_untouched(self, pipeline, vector_store):
        await pipeline.ingest(IngestionRequest(document_id="doc-1", content=FIVE_CHUNK_TEXT))
        await pipeline.ingest(IngestionRequest(document_id="doc-2", content="The dog barked."))

        await pipeline.ingest(IngestionRequest(document_id="doc-2", content="The bird sang."))

        assert await vector_store.count({"documentId": "doc-1"}) == 5


class TestIngestFailures:
    @pytest.mark.asyncio
    async def test_failure_on_third_chunk_leaves_nothing_stored(
        self, pipeline_config, vector_store, status_recorder, graph_store
    ):
        provider = KeywordEmbeddingProvider(batch_size=1, fail_on="POISON")
        pipeline = make_pipeline(pipeline_config, provider, vector_store, status_recorder, graph_store)

        with pytest.raises(ProcessingError) as exc_info:
            await pipeline.ingest(IngestionRequest(document_id="doc-1", content=POISONED_TEXT))

        assert exc_info.value.document_id == "doc-1"
        assert "POISON" in exc_info.value.reason
        assert status_recorder.status_of("doc-1") == DocumentStatus.ERROR
        assert status_recorder.reasons["doc-1"]
        assert await vector_store.count({"documentId": "doc-1"}) == 0
        assert await graph_store.neighbors([chunk_record_id("doc-1", 0)]) == []

    @pytest.mark.asyncio
    async def test_failed_reingest_removes_previous_version(
        self, pipeline_config, vector_store, status_recorder
    ):
        provider = KeywordEmbeddingProvider(fail_on="POISON")
        pipeline = make_pipeline(pipeline_config, provider, vector_store, status_recorder)
        await pipeline.ingest(IngestionRequest(document_id="doc-1", content=FIVE_CHUNK_TEXT))

        with pytest.raises(ProcessingError):
            await pipeline.ingest(IngestionRequest(document_id="doc-1", content=POISONED_TEXT))

        assert await vector_store.count({"documentId": "doc-1"}) == 0
        assert status_recorder.status_of("doc-1") == DocumentStatus.ERROR

    @pytest.mark.asyncio
    async def test_provider_outage_after_retries(self, pipeline_config, vector_store, status_recorder):
        provider = KeywordEmbeddingProvider(fail_on="cat", error_factory=ProviderUnavailable)
        pipeline = make_pipeline(pipeline_config, provider, vector_store, status_recorder)

        with pytest.raises(ProcessingError) as exc_info:
            await pipeline.ingest(IngestionRequest(document_id="doc-1", content="The cat sat."))

        assert isinstance(exc_info.value.__cause__, ProviderUnavailable)
        assert len(provider.calls) == pipeline_config.embedding_max_retries + 1
        assert status_recorder.status_of("doc-1") == DocumentStatus.ERROR

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back(self, pipeline_config, vector_store, status_recorder):
        provider = KeywordEmbeddingProvider(delay=0.5)
        pipeline = make_pipeline(pipeline_config, provider, vector_store, status_recorder)

        task = asyncio.create_task(pipeline.ingest(IngestionRequest(document_id="doc-1", content=FIVE_CHUNK_TEXT)))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert status_recorder.status_of("doc-1") == DocumentStatus.ERROR
        assert status_recorder.reasons["doc-1"] == "Ingestion was cancelled"
        assert await vector_store.count() == 0

    @pytest.mark.asyncio
    async def test_edge_failure_does_not_fail_ingestion(self, pipeline, vector_store, graph_store, monkeypatch):
        async def broken_add_edges(edges):
            raise ProviderUnavailable("graph offline")

        monkeypatch.setattr(graph_store, "add_edges", broken_add_edges)

        result = await pipeline.ingest(IngestionRequest(document_id="doc-1", content=FIVE_CHUNK_TEXT))

        assert result.status == DocumentStatus.READY
        assert await vector_store.count() == 5


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_same_document_ingestions_are_serialized(self, pipeline_config, vector_store, status_recorder):
        provider = KeywordEmbeddingProvider(delay=0.05)
        pipeline = make_pipeline(pipeline_config, provider, vector_store, status_recorder)

        await asyncio.gather(
            pipeline.ingest(IngestionRequest(document_id="doc-1", content="The cat sat.")),
            pipeline.ingest(IngestionRequest(document_id="doc-1", content="The dog ran.")),
        )

        assert [status for status, _ in status_recorder.history["doc-1"]] == [
            DocumentStatus.PROCESSING,
            DocumentStatus.READY,
            DocumentStatus.PROCESSING,
            DocumentStatus.READY,
        ]
        assert await vector_store.count({"documentId": "doc-1"}) == 1

    @pytest.mark.asyncio
    async def test_different_documents_run_concurrently(self, pipeline_config, vector_store, status_recorder):
        provider = KeywordEmbeddingProvider(delay=0.05)
        pipeline = make_pipeline(pipeline_config, provider, vector_store, status_recorder)

        await asyncio.gather(
            *(pipeline.ingest(IngestionRequest(document_id=f"doc-{i}", content="The cat sat.")) for i in range(2))
        )

        assert provider.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_busy_while_ingesting(self, pipeline_config, vector_store, status_recorder):
        provider = KeywordEmbeddingProvider(delay=0.1)
        pipeline = make_pipeline(pipeline_config, provider, vector_store, status_recorder)

        task = asyncio.create_task(pipeline.ingest(IngestionRequest(document_id="doc-1", content="The cat sat.")))
        await asyncio.sleep(0.02)

        assert pipeline.is_busy("doc-1")
        await task
        assert not pipeline.is_busy("doc-1")

    @pytest.mark.asyncio
    async def test_delete_waits_for_ingestion(self, pipeline_config, vector_store, status_recorder):
        provider = KeywordEmbeddingProvider(delay=0.05)
        pipeline = make_pipeline(pipeline_config, provider, vector_store, status_recorder)

        ingest = asyncio.create_task(pipeline.ingest(IngestionRequest(document_id="doc-1", content=FIVE_CHUNK_TEXT)))
        await asyncio.sleep(0.01)
        removed = await pipeline.delete_document("doc-1")
        await ingest

        assert removed == 5
        assert await vector_store.count() == 0


class TestDeleteDocument:
    @pytest.mark.asyncio
    async def test_unknown_document_removes_nothing(self, pipeline):
        assert await pipeline.delete_document("missing") == 0

    @pytest.mark.asyncio
    async def test_removes_chunks_and_edges(self, pipeline, vector_store, graph_store):
        await pipeline.ingest(IngestionRequest(document_id="doc-1", content=FIVE_CHUNK_TEXT))

        assert await pipeline.delete_document("doc-1") == 5
        assert await vector_store.count() == 0
        assert await graph_store.neighbors([chunk_record_id("doc-1", 1)]) == []
