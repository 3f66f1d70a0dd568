"""Keyword extraction and scoring for hybrid search.

Deliberately not BM25: the score rewards query keywords that appear in the
document, plus a boost when they appear as a contiguous phrase.
"""

import re

DEFAULT_VECTOR_WEIGHT = 0.8

FULL_PHRASE_BOOST = 0.3
PARTIAL_PHRASE_BOOST = 0.15

STOP_WORDS = frozenset(
    {
        "the", "is", "at", "which", "on", "a", "an", "and", "or", "but",
        "in", "with", "to", "for", "of", "as", "by", "from", "that", "this",
        "these", "those", "was", "were", "been", "be", "have", "has", "had",
        "do", "does", "did", "will", "would", "could", "should", "may",
        "might", "can", "are", "am", "it", "its", "what", "where", "when",
        "who", "why", "how", "you", "your", "my", "me", "i", "we", "they",
        "them", "their",
    }
)

# British -> American
SPELLING_NORMALIZATIONS = {
    "travelling": "traveling",
    "cancelled": "canceled",
    "colour": "color",
    "favour": "favor",
    "centre": "center",
    "metre": "meter",
    "theatre": "theater",
    "analyse": "analyze",
    "organise": "organize",
    "realise": "realize",
}

# ASCII word characters only, so accented letters split words
_PUNCTUATION = re.compile(r"[^\w\s]", re.ASCII)


def normalize_keyword(word: str) -> str:
    return SPELLING_NORMALIZATIONS.get(word, word)


def extract_keywords(text: str) -> list[str]:
    """Lowercase, strip punctuation, drop short and stop words, normalize spelling."""
    words = _PUNCTUATION.sub(" ", text.lower()).split()
    return [
        normalize_keyword(word)
        for word in words
        if len(word) > 2 and word not in STOP_WORDS
    ]


def calculate_keyword_score(query_keywords: list[str], document_text: str) -> float:
    """Score in [0, 1]: fraction of query keywords found, plus a phrase boost.

    Args:
        query_keywords: Keywords from ``extract_keywords(query)``
        document_text: Raw text to score against

    Returns:
        0.0 for an empty keyword list, otherwise min(1.0, base + boost)
    """
    if not query_keywords:
        return 0.0

    document_keywords = set(extract_keywords(document_text))
    matches = sum(1 for keyword in query_keywords if keyword in document_keywords)
    base_score = matches / len(query_keywords)

    document_lower = document_text.lower()
    phrase_boost = 0.0
    if " ".join(query_keywords) in document_lower:
        phrase_boost = FULL_PHRASE_BOOST
    else:
        for i in range(len(query_keywords) - 1):
            if " ".join(query_keywords[i : i + 2]) in document_lower:
                phrase_boost = PARTIAL_PHRASE_BOOST
                break

    return min(1.0, base_score + phrase_boost)


def calculate_hybrid_score(
    vector_similarity: float,
    keyword_score: float,
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
) -> float:
    """Linear blend of vector similarity and keyword score."""
    return vector_similarity * vector_weight + keyword_score * (1 - vector_weight)
