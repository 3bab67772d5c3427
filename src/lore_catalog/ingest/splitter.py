"""Split document text into bounded-size segments for extraction."""

import re
from typing import Iterator

DEFAULT_MAX_CHARS = 12000


def iter_segments(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> Iterator[str]:
    """
    Yield segments of at most ``max_chars`` characters, in document order.

    Segments only break at newlines, so a paragraph is never cut in two. A single
    paragraph longer than the limit is yielded on its own, oversize.
    Joining the segments with ``"\\n"`` reproduces the input exactly.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be positive")

    if len(text) <= max_chars:
        yield text
        return

    current: list[str] = []
    current_len = 0

    for paragraph in text.split("\n"):
        # +1 for the newline that rejoins it to the previous paragraph
        added = len(paragraph) + (1 if current else 0)
        if current and current_len + added > max_chars:
            yield "\n".join(current)
            current = []
            current_len = 0
            added = len(paragraph)
        current.append(paragraph)
        current_len += added

    if current:
        yield "\n".join(current)


def split_into_segments(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
    """Split text into segments. See :func:`iter_segments`."""
    return list(iter_segments(text, max_chars))


def split_into_paragraphs(text: str) -> list[str]:
    """Split text into paragraphs."""
    # Split on double newlines or multiple newlines
    paragraphs = re.split(r"\n\s*\n+", text)

    # Clean up and filter empty
    paragraphs = [p.strip() for p in paragraphs]
    paragraphs = [p for p in paragraphs if p]

    return paragraphs
