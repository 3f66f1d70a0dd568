"""Memory retrieval: vector search, keyword blending and threshold filtering."""

import asyncio
import math
from datetime import timedelta
from typing import NamedTuple, Optional, Protocol

from .config import MemorySettings
from .keywords import DEFAULT_VECTOR_WEIGHT, calculate_hybrid_score, calculate_keyword_score, extract_keywords
from .log import get_logger
from .models import Memory, RetrievedContext, ScoredChunk, ScoredMemory, utc_now
from .query import preprocess_query
from .result import Result, success
from .vector import VectorCandidate, find_top_similar

logger = get_logger(__name__)

# At or above this, vector similarity is used as the final score unchanged
# so a keyword miss cannot sink a strong semantic match.
HIGH_CONFIDENCE_SIMILARITY = 0.7


class Embedder(Protocol):
    async def embed(self, text: str) -> Result: ...


class MemoryReader(Protocol):
    async def list_all_memories(self) -> Result: ...

    async def list_all_summary_chunks(self) -> Result: ...


class HybridMatch(NamedTuple):
    memory: Memory
    similarity: float
    keyword_score: float
    hybrid_score: float


def score_hybrid(similarity: float, keyword_score: float) -> float:
    """Final memory score: vector similarity alone when it is high, else the 80/20 blend."""
    if similarity >= HIGH_CONFIDENCE_SIMILARITY:
        return similarity
    return calculate_hybrid_score(similarity, keyword_score, DEFAULT_VECTOR_WEIGHT)


class MemoryRetriever:
    """Turns a query into ranked, threshold-filtered memories and summary chunks.

    Every call re-reads the complete memory and chunk sets from storage;
    there is no in-process index, so a freshly opened store is searched
    exactly like a long-lived one.
    """

    def __init__(self, storage: MemoryReader, embedder: Embedder, settings: Optional[MemorySettings] = None):
        self.storage = storage
        self.embedder = embedder
        self.settings = settings or MemorySettings()

    async def retrieve_context(
        self,
        query: str,
        memory_top_k: Optional[int] = None,
        summary_top_k: Optional[int] = None,
        min_relevance: Optional[float] = None,
    ) -> Result:
        """Retrieve relevant memories and summary chunks for a query.

        Vector top-K is a pre-filter: memories are re-ranked by hybrid score
        afterwards, but a memory outside the top-K by similarity never comes
        back in. Summary chunks are ranked by similarity only.

        Args:
            query: User query or input text
            memory_top_k: Memory candidates to keep (default from settings)
            summary_top_k: Chunk candidates to keep (default ceil(memory_top_k / 2));
                0 skips chunk search entirely
            min_relevance: Score threshold (default from settings)

        Returns:
            Result carrying a ``RetrievedContext``, or the first embedding or
            storage error
        """
        memory_top_k = memory_top_k if memory_top_k is not None else self.settings.memory_top_k
        summary_top_k = summary_top_k if summary_top_k is not None else math.ceil(memory_top_k / 2)
        min_relevance = (
            min_relevance if min_relevance is not None else self.settings.memory_relevance_threshold
        )

        logger.debug(
            "retrieving_context",
            query=query[:50],
            memory_top_k=memory_top_k,
            summary_top_k=summary_top_k,
            min_relevance=min_relevance,
        )

        # Embed the focused form, match keywords on what the user actually typed
        focused_query = preprocess_query(query)
        embedding = await self.embedder.embed(focused_query)
        if not embedding.success:
            return embedding
        query_embedding = embedding.value

        query_keywords = extract_keywords(query)
        logger.debug("keywords_extracted", keywords=query_keywords)

        if summary_top_k > 0:
            memories, chunks = await asyncio.gather(
                self.storage.list_all_memories(), self.storage.list_all_summary_chunks()
            )
        else:
            memories, chunks = await self.storage.list_all_memories(), success([])
        if not memories.success:
            return memories
        if not chunks.success:
            return chunks

        logger.debug(
            "search_data_loaded",
            memories_count=len(memories.value),
            chunks_count=len(chunks.value),
        )

        memory_matches = self._rank_memories(
            query_embedding, query_keywords, memories.value, memory_top_k
        )
        chunk_matches = (
            find_top_similar(
                query_embedding,
                [VectorCandidate(c.id, c.embedding, c) for c in chunks.value],
                summary_top_k,
            )
            if chunks.value
            else []
        )

        relevant_memories = [
            ScoredMemory(memory=m.memory, similarity=m.hybrid_score)
            for m in memory_matches
            if m.hybrid_score >= min_relevance
        ]
        relevant_chunks = [
            ScoredChunk(chunk=m.data, similarity=m.similarity)
            for m in chunk_matches
            if m.similarity >= min_relevance
        ]

        logger.info(
            "context_retrieved",
            memories_found=len(relevant_memories),
            chunks_found=len(relevant_chunks),
            top_memory_similarity=(
                round(relevant_memories[0].similarity, 3) if relevant_memories else None
            ),
            top_chunk_similarity=(
                round(relevant_chunks[0].similarity, 3) if relevant_chunks else None
            ),
        )

        return success(
            RetrievedContext(
                memories=relevant_memories,
                summary_chunks=relevant_chunks,
                query=query,
                query_embedding=query_embedding,
            )
        )

    def _rank_memories(
        self,
        query_embedding: list[float],
        query_keywords: list[str],
        memories: list[Memory],
        top_k: int,
    ) -> list[HybridMatch]:
        if not memories:
            return []

        candidates = find_top_similar(
            query_embedding,
            [VectorCandidate(m.id, m.embedding, m) for m in memories],
            top_k,
        )

        matches = []
        for candidate in candidates:
            keyword_score = calculate_keyword_score(query_keywords, candidate.data.content)
            matches.append(
                HybridMatch(
                    memory=candidate.data,
                    similarity=candidate.similarity,
                    keyword_score=keyword_score,
                    hybrid_score=score_hybrid(candidate.similarity, keyword_score),
                )
            )

        matches.sort(key=lambda m: m.hybrid_score, reverse=True)

        for rank, match in enumerate(matches[:5], start=1):
            logger.debug(
                "hybrid_ranked",
                rank=rank,
                vector=round(match.similarity, 3),
                keyword=round(match.keyword_score, 3),
                hybrid=round(match.hybrid_score, 3),
                content=match.memory.content[:50],
            )
        return matches

    async def search_memories(self, query: str, top_k: int = 10) -> Result:
        """Memories only; summary chunks are not loaded or searched.

        Returns:
            Result carrying a list of ``ScoredMemory``
        """
        context = await self.retrieve_context(query, memory_top_k=top_k, summary_top_k=0)
        if not context.success:
            return context
        return success(context.value.memories)

    async def get_recent_memories(self, days_back: int = 30) -> Result:
        """Memories created in the last ``days_back`` days, unranked."""
        memories = await self.storage.list_all_memories()
        if not memories.success:
            return memories

        cutoff = utc_now() - timedelta(days=days_back)
        recent = [m for m in memories.value if m.metadata.created_at >= cutoff]
        logger.debug(
            "recent_memories_filtered",
            days_back=days_back,
            total=len(memories.value),
            recent=len(recent),
        )
        return success(recent)
