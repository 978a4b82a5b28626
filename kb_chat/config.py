"""
Centralized Configuration Module

Provides a single source of truth for all system configuration parameters.
Loads settings from environment variables with sensible defaults and validation.
"""

import os
import tempfile
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Optional
from urllib.parse import urlparse
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


PERSISTENCE_BACKENDS = ('file', 'none')


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class Config:
    """
    Centralized configuration for the knowledge base chat system.

    All configuration parameters are loaded from environment variables
    with sensible defaults. Validation is performed on initialization.
    """

    # Ollama Embedding Settings
    ollama_model: str = field(default="nomic-embed-text")
    ollama_base_url: str = field(default="http://localhost:11434")
    ollama_timeout: int = field(default=30)
    embedding_dimensions: int = field(default=768)

    # Answer Generation Settings
    llm_model: str = field(default="llama3.1:latest")
    llm_temperature: float = field(default=0.3)
    llm_max_tokens: int = field(default=700)

    # Chunking Parameters (in tokens, ~4 characters each)
    chunk_max_tokens: int = field(default=800)
    chunk_overlap_tokens: int = field(default=100)
    top_k_default: int = field(default=5)

    # Chunk Persistence
    persistence_backend: str = field(default="file")
    chunk_store_path: str = field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), 'article_chunks.json')
    )

    # Help Scout Docs Source
    helpscout_api_key: str = field(default="")
    helpscout_base_url: str = field(default="https://docsapi.helpscout.net/v1")
    helpscout_timeout: int = field(default=30)
    helpscout_max_retries: int = field(default=3)
    max_articles_per_collection: int = field(default=2)
    max_total_articles: int = field(default=3)

    def __post_init__(self):
        """Load configuration from environment and validate."""
        self._load_from_environment()
        self._validate()

    def _load_from_environment(self):
        """Load configuration from environment variables."""
        # Ollama Embedding Settings
        self.ollama_model = self._get_env_str('OLLAMA_MODEL', self.ollama_model)
        self.ollama_base_url = self._get_env_str('OLLAMA_BASE_URL', self.ollama_base_url)
        self.ollama_timeout = self._get_env_int('OLLAMA_TIMEOUT', self.ollama_timeout)
        self.embedding_dimensions = self._get_env_int('EMBEDDING_DIMENSIONS', self.embedding_dimensions)

        # Answer Generation Settings
        self.llm_model = self._get_env_str('LLM_MODEL', self.llm_model)
        self.llm_temperature = self._get_env_float('LLM_TEMPERATURE', self.llm_temperature)
        self.llm_max_tokens = self._get_env_int('LLM_MAX_TOKENS', self.llm_max_tokens)

        # Chunking Parameters
        self.chunk_max_tokens = self._get_env_int('CHUNK_MAX_TOKENS', self.chunk_max_tokens)
        self.chunk_overlap_tokens = self._get_env_int('CHUNK_OVERLAP_TOKENS', self.chunk_overlap_tokens)
        self.top_k_default = self._get_env_int('TOP_K_DEFAULT', self.top_k_default)

        # Chunk Persistence
        self.persistence_backend = self._get_env_str(
            'PERSISTENCE_BACKEND', self.persistence_backend
        ).lower()
        self.chunk_store_path = self._get_env_path('CHUNK_STORE_PATH', self.chunk_store_path)

        # Help Scout Docs Source
        self.helpscout_api_key = self._get_env_str('HELPSCOUT_API_KEY', self.helpscout_api_key)
        self.helpscout_base_url = self._get_env_str('HELPSCOUT_BASE_URL', self.helpscout_base_url)
        self.helpscout_timeout = self._get_env_int('HELPSCOUT_TIMEOUT', self.helpscout_timeout)
        self.helpscout_max_retries = self._get_env_int('HELPSCOUT_MAX_RETRIES', self.helpscout_max_retries)
        self.max_articles_per_collection = self._get_env_int(
            'MAX_ARTICLES_PER_COLLECTION', self.max_articles_per_collection
        )
        self.max_total_articles = self._get_env_int('MAX_TOTAL_ARTICLES', self.max_total_articles)

    def _get_env_str(self, key: str, default: str) -> str:
        """Get string value from environment."""
        value = os.getenv(key, default)
        if isinstance(value, str):
            value = value.strip()
        return value

    def _get_env_int(self, key: str, default: int) -> int:
        """Get integer value from environment."""
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            raise ConfigValidationError(
                f"Invalid integer value for {key}: '{value}'"
            )

    def _get_env_float(self, key: str, default: float) -> float:
        """Get float value from environment."""
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return float(value)
        except ValueError:
            raise ConfigValidationError(
                f"Invalid float value for {key}: '{value}'"
            )

    def _get_env_path(self, key: str, default: str) -> str:
        """Get path value from environment with expansion."""
        value = os.getenv(key, default)
        if isinstance(value, str):
            value = value.strip()
            # Expand ~ to home directory
            value = os.path.expanduser(value)
        return value

    def _validate(self):
        """Validate configuration parameters."""
        # Validate non-empty strings
        if not self.ollama_model:
            raise ConfigValidationError("ollama_model cannot be empty")
        if not self.llm_model:
            raise ConfigValidationError("llm_model cannot be empty")

        # Validate positive integers
        positive_int_fields = [
            ('llm_max_tokens', self.llm_max_tokens),
            ('chunk_max_tokens', self.chunk_max_tokens),
            ('chunk_overlap_tokens', self.chunk_overlap_tokens),
            ('top_k_default', self.top_k_default),
            ('helpscout_max_retries', self.helpscout_max_retries),
            ('max_articles_per_collection', self.max_articles_per_collection),
            ('max_total_articles', self.max_total_articles),
        ]

        for field_name, value in positive_int_fields:
            if value <= 0:
                raise ConfigValidationError(
                    f"{field_name} must be positive, got {value}"
                )

        # 0 turns the dimension check off
        if self.embedding_dimensions < 0:
            raise ConfigValidationError(
                f"embedding_dimensions cannot be negative, got {self.embedding_dimensions}"
            )

        # Validate timeouts (at least 1 second)
        if self.ollama_timeout < 1:
            raise ConfigValidationError(
                f"ollama_timeout must be at least 1, got {self.ollama_timeout}"
            )
        if self.helpscout_timeout < 1:
            raise ConfigValidationError(
                f"helpscout_timeout must be at least 1, got {self.helpscout_timeout}"
            )

        if not 0.0 <= self.llm_temperature <= 2.0:
            raise ConfigValidationError(
                f"llm_temperature must be between 0 and 2, got {self.llm_temperature}"
            )

        # Validate chunk overlap < chunk size
        if self.chunk_overlap_tokens >= self.chunk_max_tokens:
            raise ConfigValidationError(
                "chunk_overlap_tokens must be less than chunk_max_tokens"
            )

        if self.persistence_backend not in PERSISTENCE_BACKENDS:
            raise ConfigValidationError(
                f"persistence_backend must be one of {PERSISTENCE_BACKENDS}, "
                f"got '{self.persistence_backend}'"
            )
        if self.persistence_backend == 'file' and not self.chunk_store_path:
            raise ConfigValidationError("chunk_store_path cannot be empty")

        # Validate URL format
        for field_name in ('ollama_base_url', 'helpscout_base_url'):
            url = getattr(self, field_name)
            parsed = urlparse(url)
            if not all([parsed.scheme, parsed.netloc]):
                raise ConfigValidationError(
                    f"Invalid URL for {field_name}: {url}"
                )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def __repr__(self) -> str:
        """String representation of configuration with the API key masked."""
        items = []
        for key, value in self.to_dict().items():
            if key == 'helpscout_api_key' and value:
                value = '***'
            items.append(f"{key}={value!r}")
        return f"Config({', '.join(items)})"

    def update(self, **kwargs):
        """
        Update configuration values with validation.

        Args:
            **kwargs: Configuration parameters to update

        Raises:
            ConfigValidationError: If validation fails
        """
        # Store original values for rollback
        original_values = {}

        try:
            for key, value in kwargs.items():
                if not hasattr(self, key):
                    raise ConfigValidationError(f"Unknown configuration parameter: {key}")
                original_values[key] = getattr(self, key)
                setattr(self, key, value)

            self._validate()

        except Exception:
            # Rollback on validation failure
            for key, value in original_values.items():
                setattr(self, key, value)
            raise

    def get_chunking_config(self) -> Dict[str, Any]:
        """Get chunking-related configuration."""
        return {
            'chunk_max_tokens': self.chunk_max_tokens,
            'chunk_overlap_tokens': self.chunk_overlap_tokens,
            'top_k_default': self.top_k_default,
        }

    def get_storage_config(self) -> Dict[str, Any]:
        """Get storage-related configuration."""
        return {
            'persistence_backend': self.persistence_backend,
            'chunk_store_path': self.chunk_store_path,
        }


# Singleton instance
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance (singleton pattern).

    Returns:
        Config: Global configuration instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def reset_config():
    """Reset the global configuration instance."""
    global _config_instance
    _config_instance = None
