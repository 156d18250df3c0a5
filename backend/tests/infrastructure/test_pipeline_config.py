"""Tests for the validated pipeline configuration."""

import pytest

from knowledge_base.infrastructure.config import PipelineConfig, Settings
from knowledge_base.infrastructure.config.settings import EmbeddingProviderOption, VectorStoreBackend
from knowledge_base.modules.common.exceptions import ConfigurationError


class TestPipelineConfig:
    def test_defaults_are_valid(self):
        PipelineConfig().validate()

    def test_from_settings_copies_every_group(self):
        settings = Settings(
            CHUNK_SIZE=300,
            CHUNK_OVERLAP=30,
            EMBEDDING_PROVIDER=EmbeddingProviderOption.OPENAI,
            EMBEDDING_DIMENSION=1536,
            MAX_RESULTS=7,
            MIN_SIMILARITY_THRESHOLD=0.35,
            VECTOR_STORE_BACKEND=VectorStoreBackend.QDRANT,
        )
        config = PipelineConfig.from_settings(settings)

        assert config.chunk_size == 300
        assert config.chunk_overlap == 30
        assert config.embedding_provider == EmbeddingProviderOption.OPENAI
        assert config.embedding_dimension == 1536
        assert config.max_results == 7
        assert config.min_similarity == 0.35
        assert config.vector_store_backend == VectorStoreBackend.QDRANT

    def test_from_settings_rejects_bad_window(self):
        with pytest.raises(ConfigurationError):
            PipelineConfig.from_settings(Settings(CHUNK_SIZE=100, CHUNK_OVERLAP=100))

    @pytest.mark.parametrize(
        "changes",
        [
            {"chunk_size": 0},
            {"chunk_overlap": -1},
            {"embedding_dimension": 0},
            {"embedding_batch_size": 0},
            {"embedding_max_concurrency": 0},
            {"embedding_timeout_seconds": 0},
            {"embedding_max_retries": -1},
            {"max_results": 0},
            {"min_similarity": 1.5},
            {"graph_expansion_factor": 0},
            {"graph_score_penalty": -0.1},
            {"rrf_k": 0},
            {"vector_store_timeout_seconds": 0},
        ],
    )
    def test_invalid_values_are_rejected(self, changes):
        with pytest.raises(ConfigurationError):
            PipelineConfig().with_overrides(**changes)

    def test_with_overrides_returns_new_value(self):
        base = PipelineConfig()
        updated = base.with_overrides(max_results=3)

        assert updated.max_results == 3
        assert base.max_results == 10

    def test_config_is_immutable(self):
        config = PipelineConfig()
        with pytest.raises(AttributeError):
            config.chunk_size = 5  # type: ignore[misc]
