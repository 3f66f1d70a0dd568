"""Unit tests for memory and summary writes."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from memory_recall.chunking import ChunkOptions, chunk_text
from memory_recall.errors import EmbeddingError, StorageError
from memory_recall.memory import MemoryService
from memory_recall.models import MemoryCandidate, SummaryMemory
from memory_recall.result import failure, success


@pytest.fixture
def storage():
    storage = AsyncMock()
    storage.save_memory.side_effect = lambda memory: success(memory)
    storage.save_summary.side_effect = lambda summary: success(summary)
    storage.save_summary_chunk.side_effect = lambda chunk: success(chunk)
    storage.update_memory_access.return_value = success(None)
    return storage


@pytest.fixture
def embedder():
    embedder = AsyncMock()
    embedder.embed.return_value = success([0.1, 0.2, 0.3])
    embedder.embed_many.side_effect = lambda texts: success([[0.1, 0.2, 0.3] for _ in texts])
    return embedder


def make_summary():
    now = datetime.now(timezone.utc)
    return SummaryMemory(
        time_window="weekly", start_date=now - timedelta(days=7), end_date=now, memory_count=3
    )


SUMMARY_TEXT = "\n".join(f"Line {i}: the user mentioned something worth keeping." for i in range(60))


@pytest.mark.asyncio
class TestSaveMemory:
    async def test_candidate_becomes_memory(self, storage, embedder):
        service = MemoryService(storage, embedder)
        candidate = MemoryCandidate(
            type="preference", content="Prefers dark mode", confidence=0.85, tags=["ui"]
        )

        result = await service.save_memory(candidate)

        assert result.success
        memory = result.value
        embedder.embed.assert_awaited_once_with("Prefers dark mode")
        assert memory.embedding == [0.1, 0.2, 0.3]
        assert memory.type.value == "preference"
        assert memory.metadata.relevance_score == 0.85
        assert memory.metadata.tags == ["ui"]
        assert memory.metadata.access_count == 0
        assert memory.metadata.source == "conversation"

    async def test_embedding_failure_skips_storage(self, storage, embedder):
        embedder.embed.return_value = failure(EmbeddingError("rate limited"))
        service = MemoryService(storage, embedder)

        result = await service.save_memory(
            MemoryCandidate(type="fact", content="x", confidence=0.9)
        )

        assert result.success is False
        storage.save_memory.assert_not_awaited()


@pytest.mark.asyncio
class TestSaveSummary:
    async def test_every_chunk_embedded_and_saved(self, storage, embedder):
        options = ChunkOptions(max_chars=800, overlap_chars=100)
        service = MemoryService(storage, embedder, options)
        summary = make_summary()

        result = await service.save_summary(summary, SUMMARY_TEXT)

        assert result.success
        expected = chunk_text(SUMMARY_TEXT, options)
        assert len(expected) > 1
        assert storage.save_summary.await_count == 1
        embedder.embed_many.assert_awaited_once_with([c.text for c in expected])
        embedder.embed.assert_not_awaited()
        assert storage.save_summary_chunk.await_count == len(expected)

        saved = [call.args[0] for call in storage.save_summary_chunk.await_args_list]
        assert [c.content for c in saved] == [c.text for c in expected]
        assert [c.start_line for c in saved] == [c.start_line for c in expected]
        assert all(c.summary_id == summary.id for c in saved)

    async def test_summary_save_failure_aborts(self, storage, embedder):
        storage.save_summary.side_effect = None
        storage.save_summary.return_value = failure(StorageError("full"))
        service = MemoryService(storage, embedder)

        result = await service.save_summary(make_summary(), SUMMARY_TEXT)

        assert result.success is False
        embedder.embed_many.assert_not_awaited()

    async def test_chunk_embedding_failure_aborts(self, storage, embedder):
        error = EmbeddingError("down")
        embedder.embed_many.side_effect = None
        embedder.embed_many.return_value = failure(error)
        service = MemoryService(storage, embedder, ChunkOptions(max_chars=800, overlap_chars=100))

        result = await service.save_summary(make_summary(), SUMMARY_TEXT)

        assert result.error is error
        storage.save_summary_chunk.assert_not_awaited()

    async def test_chunk_storage_failure_aborts(self, storage, embedder):
        error = StorageError("disk full")
        storage.save_summary_chunk.side_effect = [success(None), failure(error)]
        service = MemoryService(storage, embedder, ChunkOptions(max_chars=800, overlap_chars=100))

        result = await service.save_summary(make_summary(), SUMMARY_TEXT)

        assert result.error is error
        assert storage.save_summary_chunk.await_count == 2

    async def test_empty_content_saves_metadata_only(self, storage, embedder):
        service = MemoryService(storage, embedder)

        result = await service.save_summary(make_summary(), "")

        assert result.success
        storage.save_summary_chunk.assert_not_awaited()


@pytest.mark.asyncio
class TestRecordAccess:
    async def test_updates_each_memory(self, storage, embedder):
        service = MemoryService(storage, embedder)

        result = await service.record_access(["a", "b"])

        assert result.success
        assert [c.args[0] for c in storage.update_memory_access.await_args_list] == ["a", "b"]

    async def test_first_failure_aborts(self, storage, embedder):
        storage.update_memory_access.return_value = failure(StorageError("Memory not found: a"))
        service = MemoryService(storage, embedder)

        result = await service.record_access(["a", "b"])

        assert result.success is False
        assert storage.update_memory_access.await_count == 1
