"""
Ollama Embedding Service

Maps a text segment to a fixed-length vector through Ollama's embeddings API.

The service performs no caching, retries or fallbacks: every failure is raised
as an ``EmbeddingError`` subclass and the caller decides whether a missing
embedding is fatal. ``try_embed`` turns one call into an explicit
``EmbeddingResult`` for callers that skip failed units.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import requests
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Base class for embedding failures."""
    pass


class OllamaConnectionError(EmbeddingError):
    """Raised when unable to connect to Ollama service."""
    pass


class OllamaModelError(EmbeddingError):
    """Raised when specified model is not available."""
    pass


class EmbeddingDimensionError(EmbeddingError):
    """Raised when embedding dimensions don't match expected value."""
    pass


class EmbeddingResponseError(EmbeddingError):
    """Raised when Ollama answers with an error or an unusable payload."""
    pass


@dataclass
class EmbeddingResult:
    """Outcome of a single embedding call."""
    embedding: Optional[np.ndarray] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.embedding is not None


def try_embed(embedder, text: str) -> EmbeddingResult:
    """
    Embed one text and capture any failure as a result value.

    Args:
        embedder: Object exposing ``embed(text)``
        text: Text to embed

    Returns:
        EmbeddingResult with either an embedding or an error message
    """
    try:
        return EmbeddingResult(embedding=np.asarray(embedder.embed(text), dtype=np.float32))
    except Exception as e:
        return EmbeddingResult(error=f"{type(e).__name__}: {e}")


class OllamaEmbeddingService:
    """
    Embedding client for a local or remote Ollama server.

    Every vector returned by one service instance has the same length:
    either ``expected_dimensions`` or, when that is 0/None, the length of
    the first embedding received.
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: Optional[str] = None,
        timeout: int = 30,
        expected_dimensions: Optional[int] = 768
    ):
        """
        Initialize the Ollama embedding service.

        Args:
            model: Ollama model name (default: nomic-embed-text)
            base_url: Ollama base URL (default: from .env or http://localhost:11434)
            timeout: Request timeout in seconds
            expected_dimensions: Required vector length, 0/None to lock to the first response
        """
        self.model = model
        self.base_url = (base_url or os.getenv('OLLAMA_BASE_URL', 'http://localhost:11434')).rstrip('/')
        self.timeout = timeout
        self.expected_dimensions = expected_dimensions or None
        self._observed_dimensions: Optional[int] = None

        logger.info(f"Initialized OllamaEmbeddingService with model: {self.model}")

    @property
    def dimensions(self) -> Optional[int]:
        """Vector length this service produces, if known."""
        return self.expected_dimensions or self._observed_dimensions

    def verify_connection(self) -> bool:
        """
        Verify connection to Ollama service.

        Returns:
            True if connection successful

        Raises:
            OllamaConnectionError: If unable to connect
        """
        try:
            response = requests.get(
                f"{self.base_url}/api/tags",
                timeout=self.timeout
            )
            response.raise_for_status()
            logger.info("✓ Successfully connected to Ollama service")
            return True

        except requests.exceptions.ConnectionError:
            raise OllamaConnectionError(
                f"Unable to connect to Ollama at {self.base_url}. "
                "Please ensure Ollama is running (try: ollama serve)"
            )
        except requests.exceptions.Timeout:
            raise OllamaConnectionError(
                f"Connection to Ollama timed out after {self.timeout}s"
            )
        except requests.exceptions.RequestException as e:
            raise OllamaConnectionError(f"Error connecting to Ollama: {str(e)}")

    def verify_model_available(self) -> bool:
        """
        Verify that the specified model is available.

        Returns:
            True if model is available

        Raises:
            OllamaModelError: If model is not available
            OllamaConnectionError: If the model list cannot be fetched
        """
        try:
            response = requests.get(
                f"{self.base_url}/api/tags",
                timeout=self.timeout
            )
            response.raise_for_status()
            models = response.json().get('models', [])
        except (requests.exceptions.RequestException, ValueError) as e:
            raise OllamaConnectionError(f"Error checking model availability: {str(e)}")

        available_models = [m.get('name') for m in models]

        # Check for exact match or match with :latest suffix
        if self.model not in available_models and f"{self.model}:latest" not in available_models:
            raise OllamaModelError(
                f"Model '{self.model}' not found. Available models: {available_models}. "
                f"Try: ollama pull {self.model}"
            )

        logger.info(f"✓ Model '{self.model}' is available")
        return True

    def _verify_embedding_dimensions(self, embedding: np.ndarray) -> None:
        """
        Verify embedding dimensions match the service's dimensionality.

        Raises:
            EmbeddingDimensionError: If dimensions don't match
        """
        actual_dims = len(embedding)
        expected = self.dimensions

        if expected is None:
            self._observed_dimensions = actual_dims
            return

        if actual_dims != expected:
            raise EmbeddingDimensionError(
                f"Expected {expected} dimensions, got {actual_dims}. "
                f"Mixing embedding models in one store is not supported."
            )

    def embed(self, text: str) -> np.ndarray:
        """
        Generate embedding for a single text.

        Args:
            text: Input text

        Returns:
            Embedding vector as float32 numpy array

        Raises:
            OllamaConnectionError: If unable to connect to Ollama
            EmbeddingDimensionError: If dimensions don't match
            EmbeddingResponseError: If the server rejects the request or the payload is unusable
        """
        try:
            response = requests.post(
                f"{self.base_url}/api/embeddings",
                json={
                    "model": self.model,
                    "prompt": text
                },
                timeout=self.timeout
            )
            response.raise_for_status()
            embedding_list = response.json()['embedding']

        except requests.exceptions.ConnectionError:
            raise OllamaConnectionError(
                f"Unable to connect to Ollama at {self.base_url}. "
                "Please ensure Ollama is running."
            )
        except requests.exceptions.Timeout:
            raise OllamaConnectionError(
                f"Request timed out after {self.timeout}s"
            )
        except requests.exceptions.InvalidURL as e:
            raise OllamaConnectionError(
                f"Invalid Ollama URL: {self.base_url}. Error: {str(e)}"
            )
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else 'unknown'
            if status == 500:
                raise EmbeddingResponseError(
                    "Ollama server error (500). The text may be too long or the model may be overloaded."
                )
            raise EmbeddingResponseError(f"HTTP error from Ollama ({status}): {str(e)}")
        except (KeyError, TypeError, ValueError) as e:
            # Includes JSON decode errors
            raise EmbeddingResponseError(f"Unexpected API response format: {e}")
        except requests.exceptions.RequestException as e:
            raise OllamaConnectionError(f"Error calling Ollama: {str(e)}")

        embedding = np.array(embedding_list, dtype=np.float32)
        if embedding.ndim != 1 or embedding.size == 0:
            raise EmbeddingResponseError("Ollama returned an empty embedding")

        self._verify_embedding_dimensions(embedding)
        return embedding

    def __repr__(self) -> str:
        return (
            f"OllamaEmbeddingService(model={self.model!r}, "
            f"base_url={self.base_url!r}, dimensions={self.dimensions})"
        )
