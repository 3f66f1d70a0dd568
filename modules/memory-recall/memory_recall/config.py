"""Configuration management."""

import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MemorySettings(BaseSettings):
    """Settings for memory recall, read from ``MEMORY_RECALL_*`` env vars or ``.env``.

    Every retrieval default here can still be overridden per call.
    """

    # OpenAI
    openai_api_key: str = ""
    chat_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # Storage
    storage_root: str = "~/.memory-recall"
    agent_id: str = "default-agent"

    # Retrieval
    memory_top_k: int = Field(default=10, ge=1)
    memory_relevance_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    memory_summary_threshold: int = 100
    max_prompt_tokens: int = 8192

    # Performance
    embedding_cache_size: int = Field(default=1000, ge=1)
    embedding_batch_size: int = Field(default=50, ge=1)

    # Logging
    log_level: str = "info"
    log_file: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="MEMORY_RECALL_",
        env_file=".env",
        extra="ignore",
    )

    def storage_config(self) -> dict:
        """Plain config dict consumed by ``MemoryStorage``."""
        return {
            "storage_root": os.path.expanduser(self.storage_root),
            "vector_size": self.embedding_dimensions,
        }
