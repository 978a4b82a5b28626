"""
Shared fixtures for the test suite.

The fake embedders are deterministic stand-ins for the Ollama service so the
store and retriever can be exercised without a running model server.
"""

import re
import hashlib
import shutil
import tempfile

import numpy as np
import pytest

from kb_chat.embeddings.ollama_service import EmbeddingResponseError, OllamaConnectionError
from kb_chat.ingestion.chunker import TextChunker
from kb_chat.storage.article_store import ArticleStore
from kb_chat.storage.persistence import NoOpPersistence


class FakeEmbedder:
    """Bag-of-words hashing embedder with optional per-text failures."""

    def __init__(self, dimensions: int = 32, fail_on=None):
        self.dimensions = dimensions
        self.fail_on = list(fail_on or [])
        self.calls = []

    def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        for marker in self.fail_on:
            if marker in text:
                raise EmbeddingResponseError(f"refused text containing {marker!r}")

        vector = np.zeros(self.dimensions, dtype=np.float32)
        for word in re.findall(r'\w+', text.lower()):
            index = int(hashlib.md5(word.encode('utf-8')).hexdigest(), 16) % self.dimensions
            vector[index] += 1.0
        return vector


class FailingEmbedder:
    """Embedder whose every call fails, like an unreachable Ollama server."""

    def __init__(self):
        self.calls = 0

    def embed(self, text: str) -> np.ndarray:
        self.calls += 1
        raise OllamaConnectionError("Unable to connect to Ollama at http://localhost:11434")


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def failing_embedder():
    return FailingEmbedder()


@pytest.fixture
def store(fake_embedder):
    """Store with a working embedder and no persistence."""
    return ArticleStore(
        embedder=fake_embedder,
        chunker=TextChunker(max_tokens=800, overlap_tokens=100),
        persistence=NoOpPersistence()
    )


@pytest.fixture
def keyword_store(failing_embedder):
    """Store whose embeddings always fail, so searches use keyword scoring."""
    return ArticleStore(embedder=failing_embedder, persistence=NoOpPersistence())


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path, ignore_errors=True)
