"""
Chunk Persistence Adapters

Best-effort snapshot storage for the chunk collection. Persistence is advisory:
adapters never raise, they log and report failure through their return value.
"""

import os
import json
import logging
from typing import List, Optional

from .models import ArticleChunk

logger = logging.getLogger(__name__)


class ChunkPersistence:
    """Interface for chunk snapshot backends."""

    def save(self, chunks: List[ArticleChunk]) -> bool:
        """Persist the full chunk collection. Returns True on success."""
        raise NotImplementedError

    def load(self) -> Optional[List[ArticleChunk]]:
        """Return the last saved chunk collection, or None if unavailable."""
        raise NotImplementedError


class NoOpPersistence(ChunkPersistence):
    """Backend for environments without durable scratch storage."""

    def save(self, chunks: List[ArticleChunk]) -> bool:
        return False

    def load(self) -> Optional[List[ArticleChunk]]:
        return None

    def __repr__(self) -> str:
        return "NoOpPersistence()"


class FilePersistence(ChunkPersistence):
    """
    JSON file snapshot of the chunk collection.

    Writes go to a temporary sibling file which is then renamed over the
    snapshot, so a crash mid-write leaves the previous snapshot intact.
    Single writer only; there is no locking across processes.
    """

    def __init__(self, path: str):
        self.path = path

    def save(self, chunks: List[ArticleChunk]) -> bool:
        temp_path = self.path + '.tmp'

        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump([chunk.to_dict() for chunk in chunks], f, indent=2, ensure_ascii=False)

            # Atomic rename
            os.replace(temp_path, self.path)
            logger.info(f"Saved {len(chunks)} chunks to persistent storage")
            return True

        except Exception as e:
            logger.error(f"Error saving chunks to {self.path}: {e}")
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as cleanup_error:
                    logger.warning(f"Could not remove temp file {temp_path}: {cleanup_error}")
            return False

    def load(self) -> Optional[List[ArticleChunk]]:
        if not os.path.exists(self.path):
            logger.debug(f"No chunk snapshot at {self.path}")
            return None

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, list):
                raise ValueError(f"expected a list of chunks, got {type(data).__name__}")

            chunks = [ArticleChunk.from_dict(item) for item in data]
            logger.info(f"Loaded {len(chunks)} chunks from persistent storage")
            return chunks

        except Exception as e:
            logger.error(f"Error loading chunks from {self.path}: {e}")
            return None

    def __repr__(self) -> str:
        return f"FilePersistence(path={self.path!r})"


def create_persistence(config) -> ChunkPersistence:
    """
    Build the persistence backend named by the configuration.

    Args:
        config: Config instance with ``persistence_backend`` and ``chunk_store_path``

    Returns:
        ChunkPersistence implementation
    """
    if config.persistence_backend == 'none':
        return NoOpPersistence()
    return FilePersistence(config.chunk_store_path)
