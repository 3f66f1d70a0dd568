"""Data models for memory recall."""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryType(str, Enum):
    FACT = "fact"
    DECISION = "decision"
    PREFERENCE = "preference"
    OBSERVATION = "observation"


TimeWindow = Literal["daily", "weekly", "monthly"]


class MemoryMetadata(BaseModel):
    """Usage and provenance of a memory.

    Only ``last_accessed`` and ``access_count`` change after creation.
    """

    created_at: datetime = Field(default_factory=utc_now)
    last_accessed: datetime = Field(default_factory=utc_now)
    access_count: int = 0
    relevance_score: float = Field(default=1.0, ge=0.0, le=1.0)
    tags: list[str] = []
    source: str = "conversation"


class Memory(BaseModel):
    """An atomic fact, decision, preference or observation.

    Design decisions:
    - id: Auto-generated UUID4 (Qdrant requires valid UUIDs)
    - content: Never mutated once stored
    - embedding: Same dimension for every memory of a deployment
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: MemoryType
    content: str
    embedding: list[float]
    metadata: MemoryMetadata = Field(default_factory=MemoryMetadata)

    def dict_for_storage(self) -> dict:
        """Return dict without embedding for Qdrant payload.

        Embedding is stored separately in Qdrant's vector field.
        """
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "created_at": self.metadata.created_at.isoformat(),
            "last_accessed": self.metadata.last_accessed.isoformat(),
            "access_count": self.metadata.access_count,
            "relevance_score": self.metadata.relevance_score,
            "tags": self.metadata.tags,
            "source": self.metadata.source,
        }

    @classmethod
    def from_storage(cls, payload: dict, embedding: list[float]) -> "Memory":
        return cls(
            id=payload["id"],
            type=payload["type"],
            content=payload["content"],
            embedding=embedding,
            metadata=MemoryMetadata(
                created_at=datetime.fromisoformat(payload["created_at"]),
                last_accessed=datetime.fromisoformat(payload["last_accessed"]),
                access_count=payload.get("access_count", 0),
                relevance_score=payload.get("relevance_score", 1.0),
                tags=payload.get("tags", []),
                source=payload.get("source", "conversation"),
            ),
        )


class MemoryCandidate(BaseModel):
    """A memory proposed by the extraction step, not yet embedded."""

    type: MemoryType
    content: str
    confidence: float = Field(ge=0.0, le=1.0)
    tags: list[str] = []


class SummaryMemory(BaseModel):
    """Metadata for a compacted time window. Content lives in its chunks."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    time_window: TimeWindow
    start_date: datetime
    end_date: datetime
    memory_count: int
    created_at: datetime = Field(default_factory=utc_now)

    def dict_for_storage(self) -> dict:
        return {
            "id": self.id,
            "time_window": self.time_window,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "memory_count": self.memory_count,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_storage(cls, payload: dict) -> "SummaryMemory":
        return cls(
            id=payload["id"],
            time_window=payload["time_window"],
            start_date=datetime.fromisoformat(payload["start_date"]),
            end_date=datetime.fromisoformat(payload["end_date"]),
            memory_count=payload["memory_count"],
            created_at=datetime.fromisoformat(payload["created_at"]),
        )


class SummaryChunk(BaseModel):
    """A slice of a summary's text, embedded on its own.

    ``char_end - char_start == len(content)``. The chunk belongs to its
    summary and is deleted with it.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    summary_id: str
    content: str
    embedding: list[float]
    start_line: int
    end_line: int
    char_start: int
    char_end: int
    created_at: datetime = Field(default_factory=utc_now)

    def dict_for_storage(self) -> dict:
        return {
            "id": self.id,
            "summary_id": self.summary_id,
            "content": self.content,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "char_start": self.char_start,
            "char_end": self.char_end,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_storage(cls, payload: dict, embedding: list[float]) -> "SummaryChunk":
        return cls(
            id=payload["id"],
            summary_id=payload["summary_id"],
            content=payload["content"],
            embedding=embedding,
            start_line=payload["start_line"],
            end_line=payload["end_line"],
            char_start=payload["char_start"],
            char_end=payload["char_end"],
            created_at=datetime.fromisoformat(payload["created_at"]),
        )


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)


class ScoredMemory(BaseModel):
    memory: Memory
    similarity: float


class ScoredChunk(BaseModel):
    chunk: SummaryChunk
    similarity: float


class RetrievedContext(BaseModel):
    """Ranked, threshold-filtered memories and summary chunks for a query."""

    memories: list[ScoredMemory] = []
    summary_chunks: list[ScoredChunk] = []
    query: str
    query_embedding: list[float]


class MemoryExtractionResult(BaseModel):
    """What the language model proposes to remember from one exchange."""

    memories: list[MemoryCandidate] = []
    should_summarize: bool = False
    reasoning: str = ""
