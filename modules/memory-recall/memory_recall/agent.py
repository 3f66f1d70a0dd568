"""Conversation loop: retrieve, prompt, reply, remember."""

from typing import Literal, Optional

from pydantic import BaseModel

from .config import MemorySettings
from .log import get_logger
from .memory import MemoryService
from .models import ConversationTurn, MemoryCandidate
from .prompts import build_memory_extraction_prompt, build_prompt_sections, estimate_prompt_tokens, fit_to_budget, parse_memory_extraction
from .result import Result, success

logger = get_logger(__name__)

MIN_EXTRACTION_CONFIDENCE = 0.7


class AgentResponse(BaseModel):
    message: str
    memories_extracted: int
    memories_found: int
    summary_chunks_found: int
    prompt_tokens: int


class AgentSession:
    """In-memory conversation history, bounded to the most recent turns."""

    def __init__(self, max_history_turns: int = 10):
        self.max_history_turns = max_history_turns
        self._history: list[ConversationTurn] = []

    def add_turn(self, role: Literal["user", "assistant"], content: str) -> None:
        self._history.append(ConversationTurn(role=role, content=content))
        if len(self._history) > self.max_history_turns:
            self._history = self._history[-self.max_history_turns :]

    def get_history(self) -> list[ConversationTurn]:
        return list(self._history)

    def clear(self) -> None:
        self._history = []


class MemoryAgent:
    """Answers user input with retrieved memories and stores new ones."""

    def __init__(
        self,
        retriever,
        memory_service: MemoryService,
        storage,
        generator,
        settings: Optional[MemorySettings] = None,
    ):
        self.retriever = retriever
        self.memory_service = memory_service
        self.storage = storage
        self.generator = generator
        self.settings = settings or MemorySettings()

    async def process_input(self, user_input: str, session: AgentSession) -> Result:
        """Run one conversation turn.

        A retrieval or generation failure aborts the turn. Memory extraction
        problems only mean nothing new is remembered.
        """
        logger.info(
            "processing_input",
            input_length=len(user_input),
            history_turns=len(session.get_history()),
        )

        context = await self.retriever.retrieve_context(user_input)
        if not context.success:
            return context

        sections = fit_to_budget(
            build_prompt_sections(user_input, context.value, session.get_history()),
            self.settings.max_prompt_tokens,
        )
        prompt = sections.render()
        prompt_tokens = estimate_prompt_tokens(prompt)

        reply = await self.generator.generate(prompt)
        if not reply.success:
            return reply

        extracted = await self.extract_memories(user_input, reply.value)

        accessed = await self.memory_service.record_access(
            [scored.memory.id for scored in context.value.memories]
        )
        if not accessed.success:
            logger.warning("access_tracking_failed", error=str(accessed.error))

        session.add_turn("user", user_input)
        session.add_turn("assistant", reply.value)

        await self._check_summary_threshold()

        return success(
            AgentResponse(
                message=reply.value,
                memories_extracted=len(extracted),
                memories_found=len(context.value.memories),
                summary_chunks_found=len(context.value.summary_chunks),
                prompt_tokens=prompt_tokens,
            )
        )

    async def extract_memories(self, user_input: str, assistant_response: str) -> list[MemoryCandidate]:
        """Ask the model for memories worth keeping and save the confident ones."""
        response = await self.generator.generate(
            build_memory_extraction_prompt(user_input, assistant_response)
        )
        if not response.success:
            logger.warning("memory_extraction_failed", error=str(response.error))
            return []

        try:
            extraction = parse_memory_extraction(response.value)
        except ValueError as e:
            logger.warning("memory_extraction_unparseable", error=str(e), response=response.value[:200])
            return []

        confident = [
            m for m in extraction.memories if m.confidence >= MIN_EXTRACTION_CONFIDENCE
        ]

        saved = []
        for candidate in confident:
            result = await self.memory_service.save_memory(candidate)
            if result.success:
                saved.append(candidate)
            else:
                logger.warning(
                    "extracted_memory_not_saved",
                    content=candidate.content[:50],
                    error=str(result.error),
                )

        logger.debug(
            "memories_extracted",
            proposed=len(extraction.memories),
            confident=len(confident),
            saved=len(saved),
            reasoning=extraction.reasoning,
        )
        return saved

    async def _check_summary_threshold(self) -> None:
        count = await self.storage.count_memories()
        if count.success and count.value >= self.settings.memory_summary_threshold:
            logger.info(
                "summarization_recommended",
                current_count=count.value,
                threshold=self.settings.memory_summary_threshold,
            )

    async def chat(self, messages: list[str], session: Optional[AgentSession] = None) -> Result:
        """Run several turns in order; the first failure aborts."""
        session = session or AgentSession()
        replies = []
        for message in messages:
            result = await self.process_input(message, session)
            if not result.success:
                return result
            replies.append(result.value.message)
        return success(replies)
