"""Persistent, selectively retrieved memory for conversational agents."""

__version__ = "1.0.0"

from .models import Memory, SummaryChunk, SummaryMemory
from .embeddings import EmbeddingCache, EmbeddingGenerator
from .storage import MemoryStorage
from .retrieval import MemoryRetriever
from .result import Result

__all__ = [
    "Memory",
    "SummaryChunk",
    "SummaryMemory",
    "EmbeddingCache",
    "EmbeddingGenerator",
    "MemoryStorage",
    "MemoryRetriever",
    "Result",
]
