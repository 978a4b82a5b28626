"""
Text Chunker

Splits article text into bounded, overlapping segments, preferring to cut
at sentence or line boundaries. Budgets are expressed in tokens and mapped
to characters at roughly four characters per token.
"""

import logging
from typing import List, Tuple

logger = logging.getLogger(__name__)


CHARS_PER_TOKEN = 4
MIN_TOKENS = 100
MAX_TOKENS = 2000
MAX_CHUNK_CHARS = 8000
MAX_OVERLAP_RATIO = 0.2
MAX_CHUNKS = 50


def clamp_budget(max_tokens: int, overlap_tokens: int) -> Tuple[int, int]:
    """
    Convert token budgets into safe character bounds.

    Args:
        max_tokens: Requested maximum tokens per chunk
        overlap_tokens: Requested overlap between chunks in tokens

    Returns:
        Tuple of (max_chars, overlap_chars)
    """
    safe_tokens = max(MIN_TOKENS, min(int(max_tokens), MAX_TOKENS))
    max_chars = min(safe_tokens * CHARS_PER_TOKEN, MAX_CHUNK_CHARS)
    overlap_chars = min(
        max(int(overlap_tokens), 0) * CHARS_PER_TOKEN,
        int(max_chars * MAX_OVERLAP_RATIO)
    )
    return max_chars, overlap_chars


def chunk_text(text: str, max_tokens: int = 800, overlap_tokens: int = 100) -> List[str]:
    """
    Split text into overlapping chunks.

    Args:
        text: Text to chunk
        max_tokens: Maximum chunk size in tokens
        overlap_tokens: Overlap between consecutive chunks in tokens

    Returns:
        List of text chunks in reading order (at most MAX_CHUNKS)
    """
    if not text or not isinstance(text, str):
        return []

    clean_text = text.strip()
    if not clean_text:
        return []

    max_chars, overlap_chars = clamp_budget(max_tokens, overlap_tokens)
    text_length = len(clean_text)

    # If text fits the budget, return as single chunk
    if text_length <= max_chars:
        return [clean_text]

    chunks = []
    start = 0

    while start < text_length and len(chunks) < MAX_CHUNKS:
        end = min(start + max_chars, text_length)

        # Try to break at a sentence or paragraph boundary
        if end < text_length:
            last_period = clean_text.rfind('.', start, end)
            last_newline = clean_text.rfind('\n', start, end)
            break_point = max(last_period, last_newline)

            if break_point > start + max_chars * 0.5:
                end = break_point + 1

        chunk = clean_text[start:end].strip()
        if chunk:
            chunks.append(chunk)

        if end >= text_length:
            break

        # Always progress by at least one character
        start = max(end - overlap_chars, start + 1)

    if len(chunks) >= MAX_CHUNKS and end < text_length:
        logger.warning(
            f"Chunk limit of {MAX_CHUNKS} reached, dropped {text_length - end} trailing characters"
        )

    logger.debug(f"Split text of {text_length} chars into {len(chunks)} chunks")
    return chunks


class TextChunker:
    """Chunker bound to a fixed pair of size budgets."""

    def __init__(self, max_tokens: int = 800, overlap_tokens: int = 100):
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens

    @property
    def max_chars(self) -> int:
        return clamp_budget(self.max_tokens, self.overlap_tokens)[0]

    @property
    def overlap_chars(self) -> int:
        return clamp_budget(self.max_tokens, self.overlap_tokens)[1]

    def split(self, text: str) -> List[str]:
        return chunk_text(text, self.max_tokens, self.overlap_tokens)

    def __repr__(self) -> str:
        return f"TextChunker(max_tokens={self.max_tokens}, overlap_tokens={self.overlap_tokens})"
