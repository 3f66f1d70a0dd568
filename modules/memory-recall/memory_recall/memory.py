"""Writing memories and chunked summaries."""

from typing import Optional, Protocol

from .chunking import DEFAULT_CHUNK_OPTIONS, ChunkOptions, chunk_text
from .log import get_logger
from .models import Memory, MemoryCandidate, MemoryMetadata, SummaryChunk, SummaryMemory, utc_now
from .result import Result, success

logger = get_logger(__name__)


class Embedder(Protocol):
    async def embed(self, text: str) -> Result: ...

    async def embed_many(self, texts: list[str]) -> Result: ...


class MemoryService:
    """Embeds and persists memories and summaries."""

    def __init__(self, storage, embedder: Embedder, chunk_options: Optional[ChunkOptions] = None):
        self.storage = storage
        self.embedder = embedder
        self.chunk_options = chunk_options or DEFAULT_CHUNK_OPTIONS

    async def save_memory(self, candidate: MemoryCandidate, source: str = "conversation") -> Result:
        """Embed a candidate and store it as a memory.

        The candidate's confidence becomes the memory's relevance score.
        """
        embedding = await self.embedder.embed(candidate.content)
        if not embedding.success:
            return embedding

        now = utc_now()
        memory = Memory(
            type=candidate.type,
            content=candidate.content,
            embedding=embedding.value,
            metadata=MemoryMetadata(
                created_at=now,
                last_accessed=now,
                access_count=0,
                relevance_score=candidate.confidence,
                tags=candidate.tags,
                source=source,
            ),
        )
        return await self.storage.save_memory(memory)

    async def save_summary(self, summary: SummaryMemory, content: str) -> Result:
        """Store summary metadata, then embed its chunks in batches and store them.

        An embedding failure aborts before any chunk is written. The first
        storage failure aborts; chunks written before it are left in
        place and go away with ``delete_summary``.
        """
        saved = await self.storage.save_summary(summary)
        if not saved.success:
            return saved

        # Blank chunks carry nothing to embed
        chunks = [c for c in chunk_text(content, self.chunk_options) if c.text.strip()]
        logger.info(
            "summary_chunked",
            summary_id=summary.id,
            total_chunks=len(chunks),
            avg_chunk_size=round(len(content) / len(chunks)) if chunks else 0,
        )

        embeddings = await self.embedder.embed_many([c.text for c in chunks])
        if not embeddings.success:
            return embeddings

        for chunk, embedding in zip(chunks, embeddings.value):
            stored = await self.storage.save_summary_chunk(
                SummaryChunk(
                    summary_id=summary.id,
                    content=chunk.text,
                    embedding=embedding,
                    start_line=chunk.start_line,
                    end_line=chunk.end_line,
                    char_start=chunk.char_start,
                    char_end=chunk.char_end,
                )
            )
            if not stored.success:
                return stored

        logger.info(
            "summary_saved",
            id=summary.id,
            time_window=summary.time_window,
            memory_count=summary.memory_count,
            chunks=len(chunks),
        )
        return success(summary)

    async def record_access(self, memory_ids: list[str]) -> Result:
        """Mark memories as used in a prompt; the first failure aborts."""
        for memory_id in memory_ids:
            updated = await self.storage.update_memory_access(memory_id)
            if not updated.success:
                return updated
        return success(None)
