"""Compacting old memories into chunked summaries."""

from datetime import datetime

from .log import get_logger
from .memory import MemoryService
from .models import Memory, SummaryMemory, TimeWindow
from .result import Result, success

logger = get_logger(__name__)


def build_summary_prompt(memories: list[Memory], time_window: TimeWindow) -> str:
    listing = "\n".join(
        f"- [{m.type.value}] {m.content} ({m.metadata.created_at.date().isoformat()})"
        for m in memories
    )
    return f"""Write a {time_window} summary of what is known about the user.

Group related facts under short headings. Put one statement per line so the
summary can be split on line boundaries. Keep every concrete detail
(names, dates, numbers, preferences).

Memories:
{listing}"""


class Consolidator:
    """Summarizes memories older than a cutoff into a chunked summary."""

    def __init__(self, storage, memory_service: MemoryService, generator):
        self.storage = storage
        self.memory_service = memory_service
        self.generator = generator

    async def consolidate(self, time_window: TimeWindow, older_than: datetime) -> Result:
        """Summarize memories created before ``older_than``.

        Returns:
            Result carrying the saved ``SummaryMemory``, or None when there
            is nothing to summarize
        """
        memories = await self.storage.get_old_memories(older_than)
        if not memories.success:
            return memories
        if not memories.value:
            logger.info("consolidation_skipped", reason="no memories", older_than=older_than.isoformat())
            return success(None)

        summary_text = await self.generator.generate(
            build_summary_prompt(memories.value, time_window)
        )
        if not summary_text.success:
            return summary_text

        created = [m.metadata.created_at for m in memories.value]
        summary = SummaryMemory(
            time_window=time_window,
            start_date=min(created),
            end_date=max(created),
            memory_count=len(memories.value),
        )

        logger.info(
            "consolidating",
            time_window=time_window,
            memory_count=summary.memory_count,
            summary_length=len(summary_text.value),
        )
        return await self.memory_service.save_summary(summary, summary_text.value)
