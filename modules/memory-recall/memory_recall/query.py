"""Query rewriting ahead of embedding.

Conversational scaffolding ("hello,", "could you", "what is ...?") dilutes a
query embedding compared with the short, focused statements stored as
memories, so it is stripped before the query is embedded.
"""

import re

from .log import get_logger

logger = get_logger(__name__)

MIN_QUERY_LENGTH = 3

# Each applied once, in order, at the start of the query.
# "do you" is left alone when a recall question follows so the
# question rewrite below still sees the whole form.
PREFIX_PATTERNS = [
    re.compile(r"^(hello|hi|hey|greetings?)[,\s]+", re.IGNORECASE),
    re.compile(r"^(do you)\s+(?!(have|know|remember)\b)", re.IGNORECASE),
    re.compile(r"^(can you|could you|would you)\s+", re.IGNORECASE),
    re.compile(r"^(please)\s+", re.IGNORECASE),
    re.compile(r"^(i want to|i need to|i would like to)\s+", re.IGNORECASE),
]

# First match wins.
QUESTION_REWRITES = [
    (re.compile(r"do you (have|know|remember)\s+(.+?)\?", re.IGNORECASE), r"\2"),
    (re.compile(r"do I (\w+)\s+(.+?)\?", re.IGNORECASE), r"\1 \2"),
    (re.compile(r"what is\s+(.+?)\?", re.IGNORECASE), r"\1"),
    (re.compile(r"what's\s+(.+?)\?", re.IGNORECASE), r"\1"),
    (re.compile(r"where is\s+(.+?)\?", re.IGNORECASE), r"\1"),
    (re.compile(r"when is\s+(.+?)\?", re.IGNORECASE), r"\1"),
]


def preprocess_query(query: str) -> str:
    """Rewrite a conversational query into a focused statement.

    "do you have my name?" -> "my name"
    "do I love travelling?" -> "love travelling"

    Falls back to the original query when the rewrite is shorter than
    three characters.
    """
    processed = query
    for pattern in PREFIX_PATTERNS:
        processed = pattern.sub("", processed, count=1)

    for pattern, replacement in QUESTION_REWRITES:
        if pattern.search(processed):
            processed = pattern.sub(replacement, processed, count=1)
            break

    focused = processed.strip()
    if len(focused) < MIN_QUERY_LENGTH:
        focused = query

    logger.debug("query_preprocessed", original=query[:50], focused=focused[:50])
    return focused
