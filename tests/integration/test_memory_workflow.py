"""Integration tests for memory workflow.

Tests the complete save→retrieve→consolidate workflow with a real storage backend.
"""

import re
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from memory_recall.chunking import ChunkOptions
from memory_recall.config import MemorySettings
from memory_recall.consolidation import Consolidator
from memory_recall.memory import MemoryService
from memory_recall.models import Memory, MemoryCandidate, MemoryMetadata, SummaryMemory, utc_now
from memory_recall.result import success
from memory_recall.retrieval import MemoryRetriever
from memory_recall.storage import MemoryStorage

# Mark all tests in this module as integration tests
pytestmark = pytest.mark.integration

TOPICS = {"python": 0, "developer": 0, "code": 0, "pizza": 1, "food": 1, "tea": 2}

SUMMARY = """## Work
User writes Python every day
User is a senior Python developer
## Food
User loves pizza
User orders pizza on Fridays"""


class TopicEmbedder:
    """Deterministic embedder: one axis per topic plus a small bias axis."""

    def __init__(self):
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        vector = [0.0, 0.0, 0.0, 0.1]
        for word in re.findall(r"[a-z]+", text.lower()):
            if word in TOPICS:
                vector[TOPICS[word]] += 1.0
        return success(vector)

    async def embed_many(self, texts):
        return success([(await self.embed(text)).value for text in texts])


@pytest.fixture
def unique_agent_id():
    """Provide a unique agent ID for each test to avoid db conflicts."""
    return f"test-agent-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def storage(tmp_path, unique_agent_id):
    storage = MemoryStorage(unique_agent_id, {"storage_root": str(tmp_path), "vector_size": 4})
    yield storage
    storage.close()


@pytest.fixture
def settings():
    return MemorySettings(_env_file=None, openai_api_key="test-key", embedding_dimensions=4)


@pytest.fixture
def embedder():
    return TopicEmbedder()


@pytest.fixture
def service(storage, embedder):
    return MemoryService(storage, embedder, ChunkOptions(max_chars=60, overlap_chars=0))


@pytest.fixture
def retriever(storage, embedder, settings):
    return MemoryRetriever(storage, embedder, settings)


async def save_old_memory(storage, embedder, content, days_old):
    created = utc_now() - timedelta(days=days_old)
    embedding = (await embedder.embed(content)).value
    memory = Memory(
        type="fact",
        content=content,
        embedding=embedding,
        metadata=MemoryMetadata(created_at=created, last_accessed=created),
    )
    assert (await storage.save_memory(memory)).success
    return memory


@pytest.mark.asyncio
class TestMemoryWorkflow:
    """Integration tests for complete memory workflows."""

    async def test_save_and_retrieve(self, service, retriever):
        """Saved memories are found by a related query; unrelated ones are not."""
        await service.save_memory(
            MemoryCandidate(type="fact", content="User is a Python developer", confidence=0.9)
        )
        await service.save_memory(
            MemoryCandidate(type="preference", content="User loves pizza", confidence=0.8)
        )

        result = await retriever.retrieve_context("Any good python libraries?")

        assert result.success
        assert [m.memory.content for m in result.value.memories] == ["User is a Python developer"]
        assert result.value.memories[0].memory.metadata.relevance_score == 0.9

    async def test_no_match_is_success(self, service, retriever):
        await service.save_memory(
            MemoryCandidate(type="preference", content="User loves pizza", confidence=0.8)
        )

        result = await retriever.retrieve_context("Tell me about tea")

        assert result.success
        assert result.value.memories == []

    async def test_consolidate_then_retrieve_chunk(self, storage, embedder, service, retriever):
        """Consolidated summaries are searchable chunk by chunk."""
        await save_old_memory(storage, embedder, "User is a Python developer", 10)
        await save_old_memory(storage, embedder, "User loves pizza", 9)
        await save_old_memory(storage, embedder, "User drinks tea", 1)

        generator = AsyncMock()
        generator.generate.return_value = success(SUMMARY)
        consolidator = Consolidator(storage, service, generator)

        result = await consolidator.consolidate("weekly", utc_now() - timedelta(days=7))

        assert result.success
        summary = result.value
        assert summary.memory_count == 2

        chunks = (await storage.get_summary_chunks(summary.id)).value
        assert [(c.start_line, c.end_line) for c in chunks] == [(0, 2), (3, 5)]
        for chunk in chunks:
            assert SUMMARY[chunk.char_start : chunk.char_end] == chunk.content

        context = (await retriever.retrieve_context("python")).value
        assert [c.chunk.start_line for c in context.summary_chunks] == [0]
        assert "senior Python developer" in context.summary_chunks[0].chunk.content

    async def test_deleted_summary_not_retrieved(self, storage, service, retriever):
        now = utc_now()
        summary = SummaryMemory(time_window="daily", start_date=now, end_date=now, memory_count=1)
        await service.save_summary(summary, SUMMARY)
        assert (await retriever.retrieve_context("pizza")).value.summary_chunks

        await storage.delete_summary(summary.id)

        context = (await retriever.retrieve_context("pizza")).value
        assert context.summary_chunks == []

    async def test_access_tracking(self, storage, service, retriever):
        saved = await service.save_memory(
            MemoryCandidate(type="fact", content="User is a Python developer", confidence=0.9)
        )

        context = (await retriever.retrieve_context("python code")).value
        await service.record_access([m.memory.id for m in context.memories])

        memory = (await storage.get_memory(saved.value.id)).value
        assert memory.metadata.access_count == 1
