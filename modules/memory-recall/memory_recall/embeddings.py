"""OpenAI embedding generation with an in-process cache."""

import os
from collections import OrderedDict
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from .errors import EmbeddingError
from .log import get_logger
from .result import Result, failure, success

logger = get_logger(__name__)

MAX_CONTENT_LENGTH = 100_000


class EmbeddingCache:
    """Exact-text embedding cache with fixed capacity.

    When full, the oldest inserted entry is evicted. Lookups do not refresh
    an entry's position.
    """

    def __init__(self, max_size: int = 1000):
        if max_size < 1:
            raise ValueError(f"Cache size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: OrderedDict[str, list[float]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, text: str) -> Optional[list[float]]:
        embedding = self._entries.get(text)
        if embedding is None:
            self.misses += 1
            return None
        self.hits += 1
        return list(embedding)

    def put(self, text: str, embedding: list[float]) -> None:
        if text in self._entries:
            self._entries[text] = list(embedding)
            return
        if len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[text] = list(embedding)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        logger.debug("embedding_cache_cleared")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: str) -> bool:
        return text in self._entries

    def stats(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
        }


class EmbeddingGenerator:
    """OpenAI embedding API wrapper for memory recall.

    Uses text-embedding-3-small by default:
    - 1536 dimensions
    - Good quality for semantic search

    Every vector of a deployment must come from the same model, otherwise
    similarities between stored and query vectors are meaningless.
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        dimensions: int = 1536,
        cache: Optional[EmbeddingCache] = None,
        batch_size: int = 50,
    ):
        self.model = model
        self.dimensions = dimensions
        self.cache = cache if cache is not None else EmbeddingCache()
        self.batch_size = batch_size

        # Validate API key is provided
        final_api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not final_api_key:
            raise ValueError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.client = AsyncOpenAI(api_key=final_api_key)

    async def generate(self, content: str) -> list[float]:
        """Generate embedding for single content, bypassing the cache.

        Args:
            content: Text to embed (max 100,000 chars)

        Returns:
            Vector of ``dimensions`` floats

        Raises:
            ValueError: If content exceeds size limit
            openai.OpenAIError: If API call fails
        """
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValueError(
                f"Content too long: {len(content)} chars (max {MAX_CONTENT_LENGTH})"
            )

        response = await self.client.embeddings.create(
            model=self.model, input=content, dimensions=self.dimensions
        )
        return response.data[0].embedding

    async def generate_batch(self, contents: list[str]) -> list[list[float]]:
        """Generate embeddings for batch of content in one API call.

        Raises:
            openai.OpenAIError: If API call fails
        """
        response = await self.client.embeddings.create(
            model=self.model, input=contents, dimensions=self.dimensions
        )
        return [item.embedding for item in response.data]

    async def embed(self, text: str) -> Result:
        """Embed text, serving repeats from the cache.

        Returns:
            Result carrying the vector, or an ``EmbeddingError``
        """
        cached = self.cache.get(text)
        if cached is not None:
            logger.debug("embedding_cache_hit", text_length=len(text))
            return success(cached)

        try:
            embedding = await self.generate(text)
        except (OpenAIError, ValueError) as e:
            logger.error("embedding_failed", error=str(e))
            return failure(EmbeddingError(str(e)))

        self.cache.put(text, embedding)
        logger.debug("embedding_generated", dimensions=len(embedding))
        return success(embedding)

    async def embed_many(self, texts: list[str]) -> Result:
        """Embed texts in batches of ``batch_size``; the first failure aborts."""
        embeddings: list[list[float]] = []

        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            missing = [text for text in dict.fromkeys(batch) if text not in self.cache]

            if missing:
                try:
                    vectors = await self.generate_batch(missing)
                except OpenAIError as e:
                    logger.error("batch_embedding_failed", error=str(e))
                    return failure(EmbeddingError(str(e)))
                for text, vector in zip(missing, vectors):
                    self.cache.put(text, vector)

            for text in batch:
                cached = self.cache.get(text)
                if cached is None:
                    # Evicted while the batch was filled in
                    result = await self.embed(text)
                    if not result.success:
                        return result
                    cached = result.value
                embeddings.append(cached)

        logger.debug("batch_embeddings_generated", count=len(texts))
        return success(embeddings)
