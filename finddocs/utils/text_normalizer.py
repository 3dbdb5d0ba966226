"""Text normalization utilities for keyword retrieval.

Two concerns live here:

1. **Search normalization** -- lowercase and collapse every run of
   whitespace to a single space, so "Annual\\n  Report" and "annual report"
   compare equal as substrings.

2. **Query tokenization** -- split a normalized query into the words that
   count towards relevance (longer than two characters).  Short words like
   "of", "is", "a" carry no signal for substring matching.
"""

import re

_WHITESPACE_RE = re.compile(r"\s+")

MIN_QUERY_WORD_LENGTH = 3


def normalize_for_search(text: str) -> str:
    """Lowercase *text*, collapse whitespace runs to one space, and trim.

    Args:
        text: Raw document or query text.

    Returns:
        Normalized text suitable for substring comparison.
    """
    return _WHITESPACE_RE.sub(" ", text.lower()).strip()


def query_words(query: str) -> list[str]:
    """Return the qualifying words of *query* in order, duplicates kept.

    The query is normalized first; words shorter than
    ``MIN_QUERY_WORD_LENGTH`` characters are dropped.
    """
    normalized = normalize_for_search(query)
    if not normalized:
        return []
    return [word for word in normalized.split(" ") if len(word) >= MIN_QUERY_WORD_LENGTH]


def preview(text: str, length: int = 200) -> str:
    """Return the first *length* characters of *text* with an ellipsis if cut."""
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."
