"""Tests for the per-document lock registry and status recorder."""

import asyncio

import pytest

from knowledge_base.modules.common.exceptions import DocumentNotFoundError
from knowledge_base.modules.document.models import DocumentStatus
from knowledge_base.modules.ingestion import DocumentLockRegistry, InMemoryStatusRecorder


class TestDocumentLockRegistry:
    @pytest.mark.asyncio
    async def test_same_document_is_exclusive(self):
        registry = DocumentLockRegistry()
        order = []

        async def worker(name: str):
            async with registry.hold("doc-1"):
                order.append(f"{name} start")
                await asyncio.sleep(0.01)
                order.append(f"{name} end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a start", "a end", "b start", "b end"]

    @pytest.mark.asyncio
    async def test_locks_are_released_when_unused(self):
        registry = DocumentLockRegistry()

        async with registry.hold("doc-1"):
            assert registry.is_locked("doc-1")
            assert not registry.is_locked("doc-2")
            assert len(registry) == 1

        assert len(registry) == 0
        assert not registry.is_locked("doc-1")

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        registry = DocumentLockRegistry()

        with pytest.raises(RuntimeError):
            async with registry.hold("doc-1"):
                raise RuntimeError("boom")

        assert len(registry) == 0


class TestInMemoryStatusRecorder:
    @pytest.mark.asyncio
    async def test_records_history_and_reason(self):
        recorder = InMemoryStatusRecorder()

        await recorder.set_status("doc-1", DocumentStatus.PROCESSING)
        await recorder.set_status("doc-1", DocumentStatus.ERROR, error_reason="provider down")

        assert recorder.status_of("doc-1") == DocumentStatus.ERROR
        assert recorder.reasons["doc-1"] == "provider down"
        assert recorder.history["doc-1"] == [(DocumentStatus.PROCESSING, None), (DocumentStatus.ERROR, "provider down")]

    @pytest.mark.asyncio
    async def test_strict_mode_rejects_unknown_documents(self):
        recorder = InMemoryStatusRecorder(strict=True)

        with pytest.raises(DocumentNotFoundError):
            await recorder.set_status("doc-1", DocumentStatus.PROCESSING)

        recorder.register("doc-1")
        await recorder.set_status("doc-1", DocumentStatus.PROCESSING)
        assert recorder.status_of("doc-1") == DocumentStatus.PROCESSING
