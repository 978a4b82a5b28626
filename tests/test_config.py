"""
Tests for the Configuration Module

Tests cover:
- Default values
- Configuration loading from environment variables
- Validation
- Configuration updates and helper views
- The global singleton
"""

import pytest
import os
import tempfile
from unittest.mock import patch

from kb_chat.config import Config, ConfigValidationError, get_config, reset_config


class TestConfigurationDefaults:
    """Test default configuration values."""

    @pytest.fixture(autouse=True)
    def clean_environment(self):
        with patch.dict(os.environ, {}, clear=True):
            yield

    def test_default_ollama_settings(self):
        """Test default Ollama configuration."""
        config = Config()

        assert config.ollama_model == "nomic-embed-text"
        assert config.ollama_base_url == "http://localhost:11434"
        assert config.ollama_timeout == 30
        assert config.embedding_dimensions == 768

    def test_default_answer_settings(self):
        """Test default answer generation configuration."""
        config = Config()

        assert config.llm_model == "llama3.1:latest"
        assert config.llm_temperature == 0.3
        assert config.llm_max_tokens == 700

    def test_default_chunking_settings(self):
        """Test default chunking configuration."""
        config = Config()

        assert config.chunk_max_tokens == 800
        assert config.chunk_overlap_tokens == 100
        assert config.top_k_default == 5

    def test_default_storage_settings(self):
        """Test the snapshot lives in the temp directory by default."""
        config = Config()

        assert config.persistence_backend == "file"
        assert config.chunk_store_path == os.path.join(tempfile.gettempdir(), "article_chunks.json")

    def test_default_helpscout_settings(self):
        """Test default Help Scout configuration."""
        config = Config()

        assert config.helpscout_api_key == ""
        assert config.helpscout_base_url == "https://docsapi.helpscout.net/v1"
        assert config.max_articles_per_collection == 2
        assert config.max_total_articles == 3


class TestConfigurationFromEnvironment:
    """Test configuration loading from environment variables."""

    def test_load_ollama_from_env(self):
        """Test loading Ollama settings from environment."""
        with patch.dict(os.environ, {
            'OLLAMA_MODEL': 'custom-model',
            'OLLAMA_BASE_URL': 'http://custom:8080',
            'OLLAMA_TIMEOUT': '60',
            'EMBEDDING_DIMENSIONS': '384'
        }):
            config = Config()

            assert config.ollama_model == 'custom-model'
            assert config.ollama_base_url == 'http://custom:8080'
            assert config.ollama_timeout == 60
            assert config.embedding_dimensions == 384

    def test_load_chunking_from_env(self):
        with patch.dict(os.environ, {
            'CHUNK_MAX_TOKENS': '500',
            'CHUNK_OVERLAP_TOKENS': '50',
            'TOP_K_DEFAULT': '8'
        }):
            config = Config()

            assert config.chunk_max_tokens == 500
            assert config.chunk_overlap_tokens == 50
            assert config.top_k_default == 8

    def test_load_persistence_from_env(self):
        """Backend names are case-insensitive."""
        with patch.dict(os.environ, {
            'PERSISTENCE_BACKEND': 'NONE',
            'CHUNK_STORE_PATH': '/var/tmp/chunks.json'
        }):
            config = Config()

            assert config.persistence_backend == 'none'
            assert config.chunk_store_path == '/var/tmp/chunks.json'

    def test_load_helpscout_from_env(self):
        with patch.dict(os.environ, {
            'HELPSCOUT_API_KEY': 'secret-key',
            'MAX_TOTAL_ARTICLES': '10',
            'MAX_ARTICLES_PER_COLLECTION': '4'
        }):
            config = Config()

            assert config.helpscout_api_key == 'secret-key'
            assert config.max_total_articles == 10
            assert config.max_articles_per_collection == 4

    def test_load_temperature_from_env(self):
        with patch.dict(os.environ, {'LLM_TEMPERATURE': '0.9'}):
            assert Config().llm_temperature == 0.9


class TestConfigurationValidation:
    """Test configuration validation."""

    def test_validate_positive_integers(self):
        """Test that positive integer fields reject zero and negatives."""
        with patch.dict(os.environ, {'TOP_K_DEFAULT': '0'}):
            with pytest.raises(ConfigValidationError, match="must be positive"):
                Config()

        with patch.dict(os.environ, {'MAX_TOTAL_ARTICLES': '-1'}):
            with pytest.raises(ConfigValidationError, match="must be positive"):
                Config()

    def test_zero_dimensions_allowed(self):
        """Zero disables the dimension check."""
        with patch.dict(os.environ, {'EMBEDDING_DIMENSIONS': '0'}):
            assert Config().embedding_dimensions == 0

    def test_negative_dimensions_rejected(self):
        with patch.dict(os.environ, {'EMBEDDING_DIMENSIONS': '-5'}):
            with pytest.raises(ConfigValidationError, match="cannot be negative"):
                Config()

    def test_validate_chunk_overlap(self):
        """Test that overlap must be smaller than chunk size."""
        with patch.dict(os.environ, {
            'CHUNK_MAX_TOKENS': '200',
            'CHUNK_OVERLAP_TOKENS': '200'
        }):
            with pytest.raises(ConfigValidationError, match="less than chunk_max_tokens"):
                Config()

    def test_validate_url_format(self):
        with patch.dict(os.environ, {'OLLAMA_BASE_URL': 'not-a-url'}):
            with pytest.raises(ConfigValidationError, match="Invalid URL"):
                Config()

    def test_validate_timeout_range(self):
        with patch.dict(os.environ, {'OLLAMA_TIMEOUT': '0'}):
            with pytest.raises(ConfigValidationError, match="at least 1"):
                Config()

    def test_validate_temperature_range(self):
        with patch.dict(os.environ, {'LLM_TEMPERATURE': '3.5'}):
            with pytest.raises(ConfigValidationError, match="between 0 and 2"):
                Config()

    def test_validate_persistence_backend(self):
        with patch.dict(os.environ, {'PERSISTENCE_BACKEND': 'redis'}):
            with pytest.raises(ConfigValidationError, match="persistence_backend"):
                Config()


class TestConfigurationMethods:
    """Test configuration methods."""

    def test_to_dict(self):
        config = Config()
        config_dict = config.to_dict()

        assert isinstance(config_dict, dict)
        assert config_dict['ollama_model'] == config.ollama_model
        assert 'chunk_store_path' in config_dict

    def test_repr_masks_api_key(self):
        """The API key must never appear in the repr."""
        with patch.dict(os.environ, {'HELPSCOUT_API_KEY': 'super-secret'}):
            config = Config()

        text = repr(config)
        assert 'super-secret' not in text
        assert "helpscout_api_key='***'" in text

    def test_update_config(self):
        config = Config()
        config.update(top_k_default=9, persistence_backend='none')

        assert config.top_k_default == 9
        assert config.persistence_backend == 'none'

    def test_update_validates_and_rolls_back(self):
        """Test that a failed update leaves the config unchanged."""
        config = Config()
        original = config.chunk_overlap_tokens

        with pytest.raises(ConfigValidationError):
            config.update(chunk_overlap_tokens=config.chunk_max_tokens + 1)

        assert config.chunk_overlap_tokens == original

    def test_update_unknown_parameter(self):
        with pytest.raises(ConfigValidationError, match="Unknown configuration parameter"):
            Config().update(not_a_setting=1)

    def test_get_chunking_config(self):
        assert set(Config().get_chunking_config()) == {
            'chunk_max_tokens', 'chunk_overlap_tokens', 'top_k_default'
        }

    def test_get_storage_config(self):
        assert set(Config().get_storage_config()) == {'persistence_backend', 'chunk_store_path'}


class TestConfigurationSingleton:
    """Test global configuration singleton."""

    def test_get_config_returns_same_instance(self):
        reset_config()
        assert get_config() is get_config()

    def test_reset_config(self):
        config1 = get_config()
        reset_config()
        config2 = get_config()

        assert config1 is not config2


class TestConfigurationEdgeCases:
    """Test edge cases and error handling."""

    def test_invalid_integer_env_value(self):
        with patch.dict(os.environ, {'TOP_K_DEFAULT': 'not-a-number'}):
            with pytest.raises(ConfigValidationError, match="Invalid integer"):
                Config()

    def test_invalid_float_env_value(self):
        with patch.dict(os.environ, {'LLM_TEMPERATURE': 'warm'}):
            with pytest.raises(ConfigValidationError, match="Invalid float"):
                Config()

    def test_empty_string_env_values(self):
        with patch.dict(os.environ, {'OLLAMA_MODEL': ''}):
            with pytest.raises(ConfigValidationError, match="cannot be empty"):
                Config()

    def test_whitespace_trimming(self):
        with patch.dict(os.environ, {'OLLAMA_MODEL': '  nomic-embed-text  '}):
            assert Config().ollama_model == "nomic-embed-text"

    def test_path_expansion(self):
        with patch.dict(os.environ, {'CHUNK_STORE_PATH': '~/kb/chunks.json'}):
            assert '~' not in Config().chunk_store_path
