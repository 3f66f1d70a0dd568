"""Unit tests for memory consolidation."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from memory_recall.consolidation import Consolidator, build_summary_prompt
from memory_recall.errors import GenerationError, StorageError
from memory_recall.models import Memory, MemoryMetadata
from memory_recall.result import failure, success

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def make_memory(content, days_old, memory_type="fact"):
    created = NOW - timedelta(days=days_old)
    return Memory(
        type=memory_type,
        content=content,
        embedding=[1.0, 0.0],
        metadata=MemoryMetadata(created_at=created, last_accessed=created),
    )


@pytest.fixture
def old_memories():
    return [
        make_memory("User is a Python developer", 20),
        make_memory("Prefers dark mode", 12, "preference"),
        make_memory("Decided to learn Rust", 9, "decision"),
    ]


@pytest.fixture
def collaborators(old_memories):
    storage = AsyncMock()
    storage.get_old_memories.return_value = success(old_memories)
    memory_service = AsyncMock()
    memory_service.save_summary.side_effect = lambda summary, content: success(summary)
    generator = AsyncMock()
    generator.generate.return_value = success("## Work\nUser is a Python developer")
    return storage, memory_service, generator


def test_summary_prompt_lists_memories(old_memories):
    prompt = build_summary_prompt(old_memories, "weekly")

    assert prompt.startswith("Write a weekly summary")
    assert "- [fact] User is a Python developer (2026-02-23)" in prompt
    assert "- [decision] Decided to learn Rust (2026-03-06)" in prompt


@pytest.mark.asyncio
class TestConsolidator:
    async def test_consolidate_saves_summary(self, collaborators, old_memories):
        storage, memory_service, generator = collaborators
        cutoff = NOW - timedelta(days=7)

        result = await Consolidator(storage, memory_service, generator).consolidate("weekly", cutoff)

        assert result.success
        storage.get_old_memories.assert_awaited_once_with(cutoff)
        summary, content = memory_service.save_summary.await_args.args
        assert content == "## Work\nUser is a Python developer"
        assert summary.time_window == "weekly"
        assert summary.memory_count == 3
        assert summary.start_date == old_memories[0].metadata.created_at
        assert summary.end_date == old_memories[2].metadata.created_at
        assert result.value is summary

    async def test_nothing_to_consolidate(self, collaborators):
        storage, memory_service, generator = collaborators
        storage.get_old_memories.return_value = success([])

        result = await Consolidator(storage, memory_service, generator).consolidate("daily", NOW)

        assert result.success
        assert result.value is None
        generator.generate.assert_not_awaited()
        memory_service.save_summary.assert_not_awaited()

    async def test_storage_failure(self, collaborators):
        storage, memory_service, generator = collaborators
        storage.get_old_memories.return_value = failure(StorageError("locked"))

        result = await Consolidator(storage, memory_service, generator).consolidate("daily", NOW)

        assert result.success is False
        generator.generate.assert_not_awaited()

    async def test_generation_failure(self, collaborators):
        storage, memory_service, generator = collaborators
        generator.generate.return_value = failure(GenerationError("timeout"))

        result = await Consolidator(storage, memory_service, generator).consolidate("monthly", NOW)

        assert result.success is False
        assert isinstance(result.error, GenerationError)
        memory_service.save_summary.assert_not_awaited()
