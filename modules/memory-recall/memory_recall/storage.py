"""Qdrant-based memory store with agent isolation."""

import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PointStruct,
    VectorParams,
)

from .errors import StorageError
from .log import get_logger
from .models import Memory, SummaryChunk, SummaryMemory, utc_now
from .result import Result, failure, success

logger = get_logger(__name__)

QDRANT_ERRORS = (
    UnexpectedResponse,
    ResponseHandlingException,
    ValueError,
    RuntimeError,
    OSError,
)

SCROLL_PAGE_SIZE = 256


class MemoryStorage:
    """Durable store for memories, summaries and summary chunks.

    Design decisions:
    - Qdrant embedded mode (local file storage)
    - One database directory per agent_id for isolation
    - Vectors are kept in Qdrant; ranking happens in the retrieval layer,
      so readers return complete snapshots rather than search results
    - Agent ID validation prevents path traversal
    """

    AGENT_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

    def __init__(self, agent_id: str, config: Optional[dict] = None):
        """Initialize storage for specific agent.

        Args:
            agent_id: Agent identity for namespace isolation
            config: Optional configuration:
                - storage_root: Base directory (default: ~/.memory-recall)
                - vector_size: Embedding dimension (default: 1536)
                - max_memories_per_agent: Memory limit (default: 10000)

        Raises:
            ValueError: If agent_id is invalid (path traversal attempt)
        """
        if not self.AGENT_ID_PATTERN.match(agent_id):
            raise ValueError(
                f"Invalid agent_id: {agent_id}. "
                "Only alphanumeric, underscore, and hyphen allowed."
            )

        self.agent_id = agent_id
        config = config or {}

        storage_root = config.get(
            "storage_root", os.path.expanduser("~/.memory-recall")
        )
        self.storage_path = Path(storage_root) / agent_id
        self.storage_path.mkdir(parents=True, exist_ok=True)

        db_path = str(self.storage_path / "qdrant.db")
        self.client = QdrantClient(path=db_path)

        self.vector_size = config.get("vector_size", 1536)
        self.max_memories = config.get("max_memories_per_agent", 10000)

        self.memories_collection = f"memories_{agent_id}"
        self.summaries_collection = f"summaries_{agent_id}"
        self.chunks_collection = f"summary_chunks_{agent_id}"

        self._ensure_collections()
        logger.info("storage_initialized", agent_id=agent_id, path=db_path)

    def _ensure_collections(self):
        """Create collections that don't exist yet."""
        existing = {c.name for c in self.client.get_collections().collections}

        for name in (self.memories_collection, self.chunks_collection):
            if name not in existing:
                self.client.create_collection(
                    collection_name=name,
                    vectors_config=VectorParams(
                        size=self.vector_size, distance=Distance.COSINE
                    ),
                )

        # Summary rows carry metadata only
        if self.summaries_collection not in existing:
            self.client.create_collection(
                collection_name=self.summaries_collection, vectors_config={}
            )

    def _check_vector(self, embedding: list[float]) -> None:
        if len(embedding) != self.vector_size:
            raise StorageError(
                f"Embedding has {len(embedding)} dimensions, "
                f"store expects {self.vector_size}"
            )

    def _scroll_all(self, collection: str, scroll_filter: Optional[Filter] = None, with_vectors: bool = True):
        records = []
        offset = None
        while True:
            page, offset = self.client.scroll(
                collection_name=collection,
                scroll_filter=scroll_filter,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=with_vectors,
            )
            records.extend(page)
            if offset is None:
                return records

    async def save_memory(self, memory: Memory) -> Result:
        """Persist a memory.

        Returns:
            Result carrying the memory, or a ``StorageError`` if the limit
            is reached, the vector size is wrong or the write fails
        """
        try:
            self._check_vector(memory.embedding)

            current_count = self.client.count(self.memories_collection, exact=True).count
            if current_count >= self.max_memories:
                raise StorageError(
                    f"Memory limit reached: {current_count}/{self.max_memories}. "
                    "Delete old memories before adding new ones."
                )

            self.client.upsert(
                collection_name=self.memories_collection,
                points=[
                    PointStruct(
                        id=memory.id,
                        vector=memory.embedding,
                        payload=memory.dict_for_storage(),
                    )
                ],
            )
        except StorageError as e:
            logger.error("memory_save_failed", error=str(e))
            return failure(e)
        except QDRANT_ERRORS as e:
            logger.error("memory_save_failed", error=str(e))
            return failure(StorageError(str(e)))

        logger.info(
            "memory_saved",
            id=memory.id,
            type=memory.type.value,
            content_length=len(memory.content),
        )
        return success(memory)

    async def get_memory(self, memory_id: str) -> Result:
        """Get memory by ID.

        Returns:
            Result carrying the memory, or None if it does not exist
        """
        try:
            records = self.client.retrieve(
                collection_name=self.memories_collection,
                ids=[memory_id],
                with_vectors=True,
            )
        except QDRANT_ERRORS as e:
            logger.error("memory_get_failed", id=memory_id, error=str(e))
            return failure(StorageError(str(e)))

        if not records:
            return success(None)
        return success(Memory.from_storage(records[0].payload, records[0].vector))

    async def list_all_memories(self) -> Result:
        """Every stored memory, newest first."""
        try:
            records = self._scroll_all(self.memories_collection)
        except QDRANT_ERRORS as e:
            logger.error("memory_list_failed", error=str(e))
            return failure(StorageError(str(e)))

        memories = [Memory.from_storage(r.payload, r.vector) for r in records]
        memories.sort(key=lambda m: m.metadata.created_at, reverse=True)
        logger.debug("memories_loaded", count=len(memories))
        return success(memories)

    async def get_old_memories(self, older_than: datetime) -> Result:
        """Memories created before ``older_than``, oldest first."""
        result = await self.list_all_memories()
        if not result.success:
            return result

        old = [m for m in result.value if m.metadata.created_at < older_than]
        old.reverse()
        return success(old)

    async def count_memories(self) -> Result:
        try:
            return success(self.client.count(self.memories_collection, exact=True).count)
        except QDRANT_ERRORS as e:
            logger.error("memory_count_failed", error=str(e))
            return failure(StorageError(str(e)))

    async def update_memory_access(self, memory_id: str) -> Result:
        """Bump access count and last-accessed time. Content is never touched."""
        try:
            records = self.client.retrieve(
                collection_name=self.memories_collection, ids=[memory_id]
            )
            if not records:
                raise StorageError(f"Memory not found: {memory_id}")

            self.client.set_payload(
                collection_name=self.memories_collection,
                payload={
                    "access_count": records[0].payload.get("access_count", 0) + 1,
                    "last_accessed": utc_now().isoformat(),
                },
                points=[memory_id],
            )
        except StorageError as e:
            return failure(e)
        except QDRANT_ERRORS as e:
            logger.error("memory_access_update_failed", id=memory_id, error=str(e))
            return failure(StorageError(str(e)))

        return success(None)

    async def save_summary(self, summary: SummaryMemory) -> Result:
        """Persist summary metadata. Chunks are written separately."""
        try:
            self.client.upsert(
                collection_name=self.summaries_collection,
                points=[
                    PointStruct(
                        id=summary.id, vector={}, payload=summary.dict_for_storage()
                    )
                ],
            )
        except QDRANT_ERRORS as e:
            logger.error("summary_save_failed", error=str(e))
            return failure(StorageError(str(e)))

        return success(summary)

    async def save_summary_chunk(self, chunk: SummaryChunk) -> Result:
        try:
            self._check_vector(chunk.embedding)
            self.client.upsert(
                collection_name=self.chunks_collection,
                points=[
                    PointStruct(
                        id=chunk.id,
                        vector=chunk.embedding,
                        payload=chunk.dict_for_storage(),
                    )
                ],
            )
        except StorageError as e:
            logger.error("summary_chunk_save_failed", error=str(e))
            return failure(e)
        except QDRANT_ERRORS as e:
            logger.error("summary_chunk_save_failed", error=str(e))
            return failure(StorageError(str(e)))

        return success(chunk)

    async def list_all_summary_chunks(self) -> Result:
        """Every stored summary chunk, newest first."""
        try:
            records = self._scroll_all(self.chunks_collection)
        except QDRANT_ERRORS as e:
            logger.error("summary_chunk_list_failed", error=str(e))
            return failure(StorageError(str(e)))

        chunks = [SummaryChunk.from_storage(r.payload, r.vector) for r in records]
        chunks.sort(key=lambda c: c.created_at, reverse=True)
        return success(chunks)

    async def get_summary_chunks(self, summary_id: str) -> Result:
        """Chunks of one summary, in text order."""
        try:
            records = self._scroll_all(
                self.chunks_collection, scroll_filter=self._summary_filter(summary_id)
            )
        except QDRANT_ERRORS as e:
            logger.error("summary_chunk_list_failed", error=str(e))
            return failure(StorageError(str(e)))

        chunks = [SummaryChunk.from_storage(r.payload, r.vector) for r in records]
        chunks.sort(key=lambda c: c.start_line)
        return success(chunks)

    async def get_latest_summary(self) -> Result:
        """Most recently created summary, or None."""
        try:
            records = self._scroll_all(self.summaries_collection, with_vectors=False)
        except QDRANT_ERRORS as e:
            logger.error("summary_get_failed", error=str(e))
            return failure(StorageError(str(e)))

        if not records:
            return success(None)
        summaries = [SummaryMemory.from_storage(r.payload) for r in records]
        return success(max(summaries, key=lambda s: s.created_at))

    async def delete_summary(self, summary_id: str) -> Result:
        """Delete a summary and, with it, all of its chunks."""
        try:
            self.client.delete(
                collection_name=self.chunks_collection,
                points_selector=FilterSelector(filter=self._summary_filter(summary_id)),
            )
            self.client.delete(
                collection_name=self.summaries_collection,
                points_selector=[summary_id],
            )
        except QDRANT_ERRORS as e:
            logger.error("summary_delete_failed", id=summary_id, error=str(e))
            return failure(StorageError(str(e)))

        logger.info("summary_deleted", id=summary_id)
        return success(None)

    @staticmethod
    def _summary_filter(summary_id: str) -> Filter:
        return Filter(
            must=[FieldCondition(key="summary_id", match=MatchValue(value=summary_id))]
        )

    def close(self) -> None:
        """Release the on-disk lock so another instance can open the store."""
        self.client.close()
        logger.info("storage_closed", agent_id=self.agent_id)
