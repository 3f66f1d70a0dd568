"""Prompt assembly under a token budget.

Token counts use the ~4 characters per token estimate from ``chunking``.
When a prompt is over budget, sections are dropped in a fixed order:

1. summary excerpts, from the tail (lowest ranked first)
2. memories, from the tail
3. conversation history, oldest turn first
4. system instructions, cut character-wise

The user message is never dropped.
"""

import json
import re
from typing import Optional

from pydantic import BaseModel, ValidationError

from .chunking import estimate_tokens, get_chunk_size_for_tokens
from .log import get_logger
from .models import ConversationTurn, MemoryExtractionResult, RetrievedContext

logger = get_logger(__name__)

SYSTEM_INSTRUCTIONS = """You are a helpful assistant with long-term memory.
Facts you remember about the user are listed below when they are relevant.
Use them naturally. Do not invent memories that are not listed.
If nothing relevant is remembered, say so rather than guessing."""

SECTION_SEPARATOR = "\n\n"

_JSON_FENCE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")


class PromptSections(BaseModel):
    system: str = ""
    memories: list[str] = []
    summary_excerpts: list[str] = []
    history: list[str] = []
    user_message: str

    def render(self) -> str:
        parts = []
        if self.system:
            parts.append(self.system)
        if self.memories:
            parts.append("## What you remember\n" + "\n".join(self.memories))
        if self.summary_excerpts:
            parts.append("## Summary excerpts\n" + "\n---\n".join(self.summary_excerpts))
        if self.history:
            parts.append("## Recent conversation\n" + "\n".join(self.history))
        parts.append(f"## User\n{self.user_message}\n\n## Assistant")
        return SECTION_SEPARATOR.join(parts)


def format_memory_lines(context: RetrievedContext) -> list[str]:
    return [
        f"{i}. [{scored.memory.type.value}] {scored.memory.content} "
        f"(relevance {scored.similarity:.2f})"
        for i, scored in enumerate(context.memories, start=1)
    ]


def format_summary_excerpts(context: RetrievedContext) -> list[str]:
    return [scored.chunk.content for scored in context.summary_chunks]


def format_memories(context: RetrievedContext) -> str:
    """Human-readable listing of retrieved memories and summary excerpts."""
    lines = format_memory_lines(context)
    excerpts = format_summary_excerpts(context)
    if not lines and not excerpts:
        return "No relevant memories."

    parts = []
    if lines:
        parts.append("\n".join(lines))
    if excerpts:
        parts.append("Summary excerpts:\n" + "\n---\n".join(excerpts))
    return SECTION_SEPARATOR.join(parts)


def format_history(history: list[ConversationTurn]) -> list[str]:
    return [f"{turn.role.capitalize()}: {turn.content}" for turn in history]


def build_prompt_sections(
    user_message: str,
    context: Optional[RetrievedContext] = None,
    history: Optional[list[ConversationTurn]] = None,
    include_system: bool = True,
) -> PromptSections:
    return PromptSections(
        system=SYSTEM_INSTRUCTIONS if include_system else "",
        memories=format_memory_lines(context) if context else [],
        summary_excerpts=format_summary_excerpts(context) if context else [],
        history=format_history(history or []),
        user_message=user_message,
    )


def build_prompt(
    user_message: str,
    context: Optional[RetrievedContext] = None,
    history: Optional[list[ConversationTurn]] = None,
    include_system: bool = True,
) -> str:
    return build_prompt_sections(user_message, context, history, include_system).render()


def estimate_prompt_tokens(prompt: str) -> int:
    return estimate_tokens(prompt)


def is_prompt_too_large(prompt: str, max_tokens: int) -> bool:
    return estimate_tokens(prompt) > max_tokens


def fit_to_budget(sections: PromptSections, max_tokens: int) -> PromptSections:
    """Drop sections in the fixed order until the rendered prompt fits.

    Returns a new ``PromptSections``; the input is not modified. When the
    user message alone is over budget it is returned by itself.
    """
    fitted = sections.model_copy(deep=True)
    budget_chars = get_chunk_size_for_tokens(max_tokens)
    original_tokens = estimate_tokens(fitted.render())

    while True:
        rendered = fitted.render()
        if estimate_tokens(rendered) <= max_tokens:
            break

        if fitted.summary_excerpts:
            fitted.summary_excerpts.pop()
        elif fitted.memories:
            fitted.memories.pop()
        elif fitted.history:
            fitted.history.pop(0)
        elif fitted.system:
            excess = len(rendered) - budget_chars
            fitted.system = fitted.system[: max(0, len(fitted.system) - excess)]
        else:
            logger.warning(
                "user_message_over_budget",
                tokens=estimate_tokens(rendered),
                max_tokens=max_tokens,
            )
            break

    final_tokens = estimate_tokens(fitted.render())
    if final_tokens != original_tokens:
        logger.warning(
            "prompt_truncated",
            original_tokens=original_tokens,
            final_tokens=final_tokens,
            max_tokens=max_tokens,
            memories_kept=len(fitted.memories),
            excerpts_kept=len(fitted.summary_excerpts),
            history_kept=len(fitted.history),
        )
    return fitted


def build_memory_extraction_prompt(user_input: str, assistant_response: str) -> str:
    """Ask the model which facts from one exchange are worth keeping."""
    return f"""Extract long-term memories from this exchange.

Only keep durable information about the user: facts, decisions,
preferences and observations. Each memory must be one short, self-contained
statement (for example "User is a Python developer"). Skip small talk.

Respond with JSON only, in this shape:
{{
  "memories": [
    {{"type": "fact|decision|preference|observation", "content": "...", "confidence": 0.0, "tags": ["..."]}}
  ],
  "should_summarize": false,
  "reasoning": "..."
}}

User: {user_input}
Assistant: {assistant_response}"""


def parse_memory_extraction(response: str) -> MemoryExtractionResult:
    """Parse the extraction reply, tolerating a fenced ```json block.

    Raises:
        ValueError: If the reply is not valid extraction JSON
    """
    match = _JSON_FENCE.search(response)
    json_text = match.group(1) if match else response

    try:
        return MemoryExtractionResult.model_validate(json.loads(json_text))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid memory extraction response: {e}") from e
