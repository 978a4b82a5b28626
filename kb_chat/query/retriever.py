"""
Chunk Retriever

Ranks stored chunks against a query. The ranking strategy is chosen once per
call from a corpus-wide property:

- SEMANTIC: at least one chunk carries an embedding. Embedded chunks are ranked
  by cosine similarity with the query embedding; chunks without an embedding
  are left out.
- KEYWORD: no chunk carries an embedding. Chunks are scored by substring
  matches of the query and its words against the article title and body.

If ranking raises (for example the query embedding call fails), or the query
is blank, the result degrades to the first ``limit`` chunks in store order
(FALLBACK).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from ..storage.models import ArticleChunk

logger = logging.getLogger(__name__)


TITLE_PHRASE_SCORE = 10
BODY_PHRASE_SCORE = 5
TITLE_WORD_SCORE = 3
BODY_WORD_SCORE = 1


class SearchMode(str, Enum):
    SEMANTIC = 'semantic'
    KEYWORD = 'keyword'
    FALLBACK = 'fallback'


@dataclass
class SearchResult:
    """Ranked chunks plus how they were ranked."""
    chunks: List[ArticleChunk] = field(default_factory=list)
    mode: SearchMode = SearchMode.KEYWORD
    scores: List[float] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.mode == SearchMode.FALLBACK

    def __len__(self) -> int:
        return len(self.chunks)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors have different lengths
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    if vec_a.shape != vec_b.shape:
        raise ValueError(
            f"Vector dimensions differ: {vec_a.shape[0]} vs {vec_b.shape[0]}"
        )

    magnitude_a = np.linalg.norm(vec_a)
    magnitude_b = np.linalg.norm(vec_b)
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / (magnitude_a * magnitude_b))


def cosine_similarities(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of one query vector against each row of a matrix.

    Rows with zero magnitude (and every row, for a zero query) score 0.0.

    Raises:
        ValueError: If the query length differs from the matrix width
    """
    query_vec = np.asarray(query, dtype=np.float64)
    matrix = np.asarray(matrix, dtype=np.float64)

    if matrix.ndim != 2 or matrix.shape[1] != query_vec.shape[0]:
        raise ValueError(
            f"Query dimension ({query_vec.shape[0]}) does not match "
            f"embedding dimension ({matrix.shape[-1]})"
        )

    denominators = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vec)
    dots = matrix @ query_vec

    similarities = np.zeros(len(matrix), dtype=np.float64)
    nonzero = denominators > 0
    similarities[nonzero] = dots[nonzero] / denominators[nonzero]
    return similarities


def keyword_score(query: str, chunk: ArticleChunk) -> int:
    """
    Score a chunk by substring matches of the query.

    Args:
        query: Search query
        chunk: Chunk to score

    Returns:
        Additive match score (0 means no match)
    """
    normalized = query.lower().strip()
    if not normalized:
        return 0

    title = (chunk.article_name or '').lower()
    body = (chunk.text or '').lower()
    score = 0

    if normalized in title:
        score += TITLE_PHRASE_SCORE
    if normalized in body:
        score += BODY_PHRASE_SCORE

    for word in normalized.split():
        if word in title:
            score += TITLE_WORD_SCORE
        if word in body:
            score += BODY_WORD_SCORE

    return score


class Retriever:
    """
    Ranks a chunk collection against a query.

    The retriever holds no chunks itself; callers pass a consistent copy of
    the collection to ``rank``.
    """

    def __init__(self, embedder):
        """
        Args:
            embedder: Object exposing ``embed(text)``, used for the query embedding
        """
        self.embedder = embedder

    def rank(self, query: str, chunks: List[ArticleChunk], limit: int = 5) -> SearchResult:
        """
        Rank chunks by relevance to the query.

        Args:
            query: Search query
            chunks: Chunk collection in store order
            limit: Maximum number of chunks to return

        Returns:
            SearchResult, most relevant first. Never raises for ranking failures.
            A blank query has nothing to rank by and returns the first
            ``limit`` chunks unranked.
        """
        if limit <= 0:
            return SearchResult(mode=SearchMode.KEYWORD)
        if not query or not query.strip():
            return SearchResult(chunks=list(chunks[:limit]), mode=SearchMode.FALLBACK,
                                error="blank query")

        use_semantic = any(chunk.has_embedding for chunk in chunks)
        strategy = self._rank_semantic if use_semantic else self._rank_keyword

        try:
            return strategy(query, chunks, limit)
        except Exception as e:
            logger.warning(
                f"Ranking failed ({type(e).__name__}: {e}), returning first {limit} chunks unranked"
            )
            return SearchResult(
                chunks=list(chunks[:limit]),
                mode=SearchMode.FALLBACK,
                error=f"{type(e).__name__}: {e}"
            )

    def _rank_semantic(self, query: str, chunks: List[ArticleChunk], limit: int) -> SearchResult:
        embedded = [chunk for chunk in chunks if chunk.has_embedding]
        query_embedding = self.embedder.embed(query)

        matrix = np.array([chunk.embedding for chunk in embedded], dtype=np.float64)
        similarities = cosine_similarities(query_embedding, matrix)

        # Stable sort keeps store order for equal similarities
        order = sorted(range(len(embedded)), key=lambda i: -similarities[i])[:limit]

        logger.debug(f"Semantic search ranked {len(embedded)} embedded chunks")
        return SearchResult(
            chunks=[embedded[i] for i in order],
            mode=SearchMode.SEMANTIC,
            scores=[float(similarities[i]) for i in order]
        )

    def _rank_keyword(self, query: str, chunks: List[ArticleChunk], limit: int) -> SearchResult:
        scored = []
        for chunk in chunks:
            score = keyword_score(query, chunk)
            if score > 0:
                scored.append((score, chunk))

        scored.sort(key=lambda item: item[0], reverse=True)
        scored = scored[:limit]

        logger.debug(f"Keyword search matched {len(scored)} chunks")
        return SearchResult(
            chunks=[chunk for _, chunk in scored],
            mode=SearchMode.KEYWORD,
            scores=[float(score) for score, _ in scored]
        )
