"""Line-based text chunking with approximate overlap.

Chunks are built from whole lines. The overlap carried into the next chunk is
approximated by line count, ``ceil(overlap_chars / current_size * line_count)``,
so its character size drifts from ``overlap_chars`` when line lengths are
uneven.
"""

import math
from typing import NamedTuple

from pydantic import BaseModel, Field

# Rule of thumb for English text. Not a tokenizer.
CHARS_PER_TOKEN = 4


class ChunkOptions(BaseModel):
    max_chars: int = Field(default=1600, gt=0)  # ~400 tokens
    overlap_chars: int = Field(default=320, ge=0)  # ~80 tokens, 20%


DEFAULT_CHUNK_OPTIONS = ChunkOptions()


class TextChunk(NamedTuple):
    text: str
    start_line: int
    end_line: int
    char_start: int
    char_end: int


def chunk_text(text: str, options: ChunkOptions = DEFAULT_CHUNK_OPTIONS) -> list[TextChunk]:
    """Split text into overlapping chunks of whole lines.

    A chunk is emitted once its running size (line length + 1 per line)
    reaches ``max_chars``. A single line longer than ``max_chars`` is kept
    whole. Lines left over at the end form a final, possibly short, chunk.

    Example:
        >>> chunks = chunk_text(summary, ChunkOptions(max_chars=1600, overlap_chars=320))
        >>> text[chunks[0].char_start:chunks[0].char_end] == chunks[0].text
        True
    """
    lines = text.split("\n")
    chunks: list[TextChunk] = []

    current_lines: list[str] = []
    current_size = 0
    start_line = 0
    char_start = 0
    has_new_lines = False

    for i, line in enumerate(lines):
        current_lines.append(line)
        current_size += len(line) + 1
        has_new_lines = True

        if current_size < options.max_chars:
            continue

        content = "\n".join(current_lines)
        chunks.append(
            TextChunk(
                text=content,
                start_line=start_line,
                end_line=i,
                char_start=char_start,
                char_end=char_start + len(content),
            )
        )

        overlap_count = math.ceil(
            (options.overlap_chars / current_size) * len(current_lines)
        )
        # Carrying every line forward would never make progress
        overlap_count = min(overlap_count, len(current_lines) - 1)

        if overlap_count > 0:
            overlap_lines = current_lines[-overlap_count:]
            overlap_text = "\n".join(overlap_lines)
            char_start = char_start + len(content) - len(overlap_text)
        else:
            overlap_lines = []
            overlap_text = ""
            char_start = char_start + len(content) + 1  # skip the newline

        current_lines = overlap_lines
        start_line = i - overlap_count + 1
        current_size = len(overlap_text)
        has_new_lines = False

    if current_lines and has_new_lines:
        content = "\n".join(current_lines)
        chunks.append(
            TextChunk(
                text=content,
                start_line=start_line,
                end_line=len(lines) - 1,
                char_start=char_start,
                char_end=char_start + len(content),
            )
        )

    return chunks


def estimate_tokens(text: str) -> int:
    """Approximate token count, ~4 characters per token."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def get_chunk_size_for_tokens(tokens: int) -> int:
    """Approximate character budget for ``tokens`` tokens."""
    return tokens * CHARS_PER_TOKEN
