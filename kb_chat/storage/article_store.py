"""
Article Store

Authoritative in-memory collection of articles and their chunks, with a
best-effort snapshot round-trip through a pluggable persistence backend.

The store is an explicit object: construct one per process (or per test) and
pass it to whatever needs it. A re-entrant lock serializes mutations and the
snapshot reads that feed ranking.
"""

import logging
import threading
from typing import List, Dict, Optional, Set, Any

from ..embeddings.ollama_service import try_embed
from ..ingestion.chunker import TextChunker
from ..query.retriever import Retriever, SearchResult
from .demo_seed import DemoSeeder
from .models import Article, ArticleChunk, make_chunk_id
from .persistence import ChunkPersistence, NoOpPersistence

logger = logging.getLogger(__name__)


class ArticleValidationError(ValueError):
    """Raised when an article cannot be ingested as given."""
    pass


class ArticleStore:
    """
    In-memory article and chunk store.

    Features:
    - Whole-article replacement: re-ingesting an article drops its old chunks
    - Per-chunk embedding failures are skipped, never fatal to the article
    - Single embedding dimensionality across the store
    - Snapshot load on first search of an empty store, demo seeding if still empty
    """

    def __init__(
        self,
        embedder,
        chunker: Optional[TextChunker] = None,
        persistence: Optional[ChunkPersistence] = None,
        retriever: Optional[Retriever] = None,
        seeder: Optional[DemoSeeder] = None
    ):
        """
        Initialize the store.

        Args:
            embedder: Object exposing ``embed(text)``
            chunker: TextChunker (default: 800 token chunks, 100 token overlap)
            persistence: Snapshot backend (default: NoOpPersistence)
            retriever: Retriever (default: one built on ``embedder``)
            seeder: DemoSeeder (default: one built on ``embedder``)
        """
        self.embedder = embedder
        self.chunker = chunker or TextChunker()
        self.persistence = persistence or NoOpPersistence()
        self.retriever = retriever or Retriever(embedder)
        self.seeder = seeder or DemoSeeder(embedder)

        self._articles: Dict[str, Article] = {}
        self._chunks: List[ArticleChunk] = []
        self._dimension: Optional[int] = None
        self._seed_ids: Set[str] = set()
        self._lock = threading.RLock()

    def _accepts_embedding(self, embedding) -> bool:
        """Check (and on first use, fix) the store's embedding dimensionality."""
        size = len(embedding)
        if self._dimension is None:
            self._dimension = size
            return True
        return size == self._dimension

    def store_article(self, article: Article) -> List[ArticleChunk]:
        """
        Chunk, embed and store an article, replacing any previous version.

        Args:
            article: Article to ingest

        Returns:
            The chunks stored for the article

        Raises:
            ArticleValidationError: If the article has no text content
        """
        if not isinstance(article.text, str) or not article.text.strip():
            raise ArticleValidationError(f"Article {article.id} has no valid text content")

        segments = self.chunker.split(article.text)
        if not segments:
            with self._lock:
                self._remove_article_chunks(article.id)
            logger.warning(f"No chunks generated for article {article.id}")
            return []

        embeddings = []
        for i, segment in enumerate(segments):
            result = try_embed(self.embedder, segment)
            if result.ok:
                embeddings.append((segment, result.embedding.tolist()))
            else:
                logger.error(
                    f"Error processing chunk {i} for article {article.id}: {result.error}"
                )

        with self._lock:
            self._drop_seed_content()
            self._remove_article_chunks(article.id)

            chunks = []
            for segment, embedding in embeddings:
                if not self._accepts_embedding(embedding):
                    logger.error(
                        f"Skipping chunk of article {article.id}: embedding has "
                        f"{len(embedding)} dimensions, store uses {self._dimension}"
                    )
                    continue

                chunk_index = len(chunks)
                chunks.append(ArticleChunk(
                    id=make_chunk_id(article.id, chunk_index),
                    article_id=article.id,
                    article_name=article.name,
                    text=segment,
                    url=article.url,
                    last_modified=article.last_modified,
                    chunk_index=chunk_index,
                    embedding=embedding
                ))

            self._chunks.extend(chunks)
            article.chunks = chunks
            self._articles[article.id] = article

            logger.info(
                f"Stored article {article.id} with {len(chunks)}/{len(segments)} chunks"
            )
            self._save_snapshot()

        return chunks

    def _remove_article_chunks(self, article_id: str) -> int:
        """Drop every chunk belonging to an article. Caller holds the lock."""
        before = len(self._chunks)
        self._chunks = [chunk for chunk in self._chunks if chunk.article_id != article_id]
        removed = before - len(self._chunks)
        if removed:
            logger.debug(f"Removed {removed} stale chunks for article {article_id}")
        return removed

    def _drop_seed_content(self) -> None:
        """Remove demo chunks and articles once real content arrives. Caller holds the lock."""
        if not self._seed_ids:
            return

        self._chunks = [chunk for chunk in self._chunks if chunk.article_id not in self._seed_ids]
        for article_id in self._seed_ids:
            self._articles.pop(article_id, None)
        logger.info(f"Dropped {len(self._seed_ids)} demo articles before storing real content")
        self._seed_ids.clear()

        if not self._chunks:
            self._dimension = None

    def _save_snapshot(self) -> None:
        # Demo content never reaches the snapshot
        chunks = [chunk for chunk in self._chunks if chunk.article_id not in self._seed_ids]
        if not self.persistence.save(chunks):
            logger.debug("Chunk snapshot not saved")

    def load_snapshot(self) -> int:
        """
        Load persisted chunks into an empty store.

        Returns:
            Number of chunks loaded (0 if the store was not empty or nothing was available)
        """
        with self._lock:
            if self._chunks:
                return 0

            loaded = self.persistence.load()
            if not loaded:
                return 0

            for chunk in loaded:
                if chunk.embedding is not None and not self._accepts_embedding(chunk.embedding):
                    logger.warning(
                        f"Dropping embedding of chunk {chunk.id}: {len(chunk.embedding)} "
                        f"dimensions, store uses {self._dimension}"
                    )
                    chunk.embedding = None

            self._chunks = list(loaded)
            self._rebuild_articles(self._chunks)
            return len(loaded)

    def _rebuild_articles(self, chunks: List[ArticleChunk]) -> None:
        """
        Recreate the article index from snapshot chunks. Caller holds the lock.

        Article text is the chunk texts joined in index order, so overlap
        regions appear twice.
        """
        groups: Dict[str, List[ArticleChunk]] = {}
        for chunk in chunks:
            groups.setdefault(chunk.article_id, []).append(chunk)

        for article_id, group in groups.items():
            group.sort(key=lambda chunk: chunk.chunk_index)
            first = group[0]
            self._articles[article_id] = Article(
                id=article_id,
                name=first.article_name,
                text="\n".join(chunk.text for chunk in group),
                url=first.url,
                last_modified=first.last_modified,
                chunks=group
            )

        logger.info(f"Rebuilt {len(groups)} articles from snapshot")

    def _seed_demo_content(self) -> int:
        """Populate the store with demo chunks. Caller holds the lock."""
        articles, chunks = self.seeder.build()

        for chunk in chunks:
            if chunk.embedding is not None and not self._accepts_embedding(chunk.embedding):
                chunk.embedding = None

        for article in articles:
            self._articles[article.id] = article
            self._seed_ids.add(article.id)
        self._chunks.extend(chunks)

        logger.info(f"Seeded store with {len(chunks)} demo chunks")
        return len(chunks)

    def search(self, query: str, limit: int = 5) -> SearchResult:
        """
        Rank stored chunks against a query.

        Loads the persisted snapshot and then demo content if the store is
        empty, so a search over a fresh store still has something to rank.

        Args:
            query: Search query
            limit: Maximum number of chunks to return

        Returns:
            SearchResult with chunks most relevant first
        """
        logger.info(f"Search called with query: \"{query}\"")

        with self._lock:
            if not self._chunks:
                self.load_snapshot()
            if not self._chunks:
                self._seed_demo_content()
            snapshot = list(self._chunks)

        logger.info(f"Total chunks available: {len(snapshot)}")
        result = self.retriever.rank(query, snapshot, limit)
        logger.info(f"Search returned {len(result.chunks)} chunks ({result.mode.value} mode)")
        return result

    def search_articles(self, query: str, limit: int = 5) -> List[ArticleChunk]:
        """
        Return the chunks most relevant to a query.

        Args:
            query: Search query
            limit: Maximum number of chunks to return

        Returns:
            Ordered list of chunks, at most ``limit`` long
        """
        return self.search(query, limit).chunks

    def get_all_articles(self) -> List[Article]:
        with self._lock:
            return list(self._articles.values())

    def get_article(self, article_id: str) -> Optional[Article]:
        with self._lock:
            return self._articles.get(article_id)

    def get_chunks(self) -> List[ArticleChunk]:
        """Copy of the chunk collection in store order."""
        with self._lock:
            return list(self._chunks)

    def clear_articles(self) -> None:
        """Empty the article index and the chunk collection."""
        with self._lock:
            self._articles.clear()
            self._chunks = []
            self._seed_ids.clear()
            self._dimension = None
        logger.info("Cleared article store")

    def get_storage_stats(self) -> Dict[str, Any]:
        """
        Get storage statistics.

        Returns:
            Dictionary with article, chunk and embedded chunk counts
        """
        with self._lock:
            return {
                'total_articles': len(self._articles),
                'total_chunks': len(self._chunks),
                'chunks_with_embeddings': sum(1 for chunk in self._chunks if chunk.has_embedding),
            }

    def __len__(self) -> int:
        return len(self._chunks)

    def __repr__(self) -> str:
        stats = self.get_storage_stats()
        return (
            f"ArticleStore(articles={stats['total_articles']}, "
            f"chunks={stats['total_chunks']}, "
            f"embedded={stats['chunks_with_embeddings']}, "
            f"persistence={self.persistence!r})"
        )
