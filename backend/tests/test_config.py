"""Tests for core/config.py and core/purposes.py - Settings and the purpose table."""
import json
import os
from unittest.mock import patch

import pytest


class TestSettings:
    """Test the Settings configuration class."""

    def test_settings_loads_defaults(self):
        """Settings should load with default values."""
        from literature_ranker.core.config import Settings
        
        settings = Settings()
        assert settings.project_name == "Literature Ranker"
        assert settings.REDIS_HOST == "localhost"
        assert settings.REDIS_PORT == 6379
        assert settings.EMBEDDING_DIMENSIONS == 384
        assert settings.embedding_cache_max_entries == 10_000
        assert settings.embedding_max_workers == 4

    def test_settings_reads_env_variables(self):
        """Settings should read from environment variables."""
        with patch.dict(os.environ, {"SEMANTIC_TOP_K": "250", "EMBEDDING_DIMENSIONS": "128"}):
            from literature_ranker.core.config import Settings
            
            settings = Settings()
            assert settings.SEMANTIC_TOP_K == 250
            assert settings.EMBEDDING_DIMENSIONS == 128

    def test_openai_key_is_optional(self):
        """OPENAI_API_KEY should be None when no key is configured."""
        from literature_ranker.core.config import Settings
        
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("OPENAI_API_KEY", None)
            settings = Settings(_env_file=None)
            assert settings.OPENAI_API_KEY is None

    def test_invalid_provider_rejected(self):
        """Unknown embedding providers should fail validation."""
        from pydantic import ValidationError
        from literature_ranker.core.config import Settings
        
        with pytest.raises(ValidationError):
            Settings(embedding_provider="word2vec")


class TestPurposeRegistry:
    """Test the validated purpose table."""

    def test_default_table_covers_every_purpose(self):
        """The built-in table should have a profile for each purpose."""
        from literature_ranker.core.purposes import PurposeRegistry, ResearchPurpose
        
        registry = PurposeRegistry.default()
        for purpose in ResearchPurpose:
            assert registry.get(purpose).purpose == purpose

    def test_default_weights_sum_to_one(self):
        """Every profile's weights should sum to 1.0."""
        from literature_ranker.core.purposes import PurposeRegistry
        
        registry = PurposeRegistry.default()
        for profile in registry.profiles.values():
            assert profile.weights.total == pytest.approx(1.0, abs=0.001)

    def test_q_methodology_profile(self):
        """Q-methodology is breadth-first: low thresholds and diversity required."""
        from literature_ranker.core.purposes import PurposeRegistry, DiversityDimension
        
        profile = PurposeRegistry.default().get("q_methodology")
        assert profile.thresholds.thresholds == (40, 35, 30, 25, 20)
        assert profile.diversity.required is True
        assert profile.diversity.dimension == DiversityDimension.STANCE
        assert profile.diversity_floor == 20
        assert profile.full_text_bonus == 5

    def test_venue_floor_is_table_wide(self):
        """The venue floor lives on the registry, not on a profile."""
        from literature_ranker.core.purposes import PurposeRegistry
        
        assert PurposeRegistry.default().venue_floor == 10.0

    def test_weights_not_summing_to_one_rejected(self):
        """A table with bad weights should fail fast with ConfigurationInvalidError."""
        from literature_ranker.core.exceptions import ConfigurationInvalidError
        from literature_ranker.core.purposes import DEFAULT_PURPOSE_TABLE, PurposeRegistry
        
        table = json.loads(json.dumps(DEFAULT_PURPOSE_TABLE))
        table["profiles"]["survey_construction"]["weights"]["content"] = 0.9
        
        with pytest.raises(ConfigurationInvalidError) as exc:
            PurposeRegistry.load(table)
        assert "sum to 1.0" in str(exc.value)

    def test_negative_weight_rejected(self):
        """Weights must be non-negative."""
        from literature_ranker.core.exceptions import ConfigurationInvalidError
        from literature_ranker.core.purposes import DEFAULT_PURPOSE_TABLE, PurposeRegistry
        
        table = json.loads(json.dumps(DEFAULT_PURPOSE_TABLE))
        table["profiles"]["survey_construction"]["weights"] = {
            "content": 1.2, "citation": -0.2, "venue": 0, "methodology": 0, "diversity": 0
        }
        
        with pytest.raises(ConfigurationInvalidError):
            PurposeRegistry.load(table)

    def test_non_descending_thresholds_rejected(self):
        """Threshold schedules must be strictly descending."""
        from literature_ranker.core.exceptions import ConfigurationInvalidError
        from literature_ranker.core.purposes import DEFAULT_PURPOSE_TABLE, PurposeRegistry
        
        table = json.loads(json.dumps(DEFAULT_PURPOSE_TABLE))
        table["profiles"]["hypothesis_generation"]["thresholds"] = {"thresholds": [50, 60, 40]}
        
        with pytest.raises(ConfigurationInvalidError):
            PurposeRegistry.load(table)

    def test_missing_profile_rejected(self):
        """The table must be exhaustive over ResearchPurpose."""
        from literature_ranker.core.exceptions import ConfigurationInvalidError
        from literature_ranker.core.purposes import DEFAULT_PURPOSE_TABLE, PurposeRegistry
        
        table = json.loads(json.dumps(DEFAULT_PURPOSE_TABLE))
        del table["profiles"]["qualitative_analysis"]
        
        with pytest.raises(ConfigurationInvalidError) as exc:
            PurposeRegistry.load(table)
        assert "qualitative_analysis" in str(exc.value)

    def test_inverted_limits_rejected(self):
        """Paper limits must satisfy min <= target <= max."""
        from literature_ranker.core.exceptions import ConfigurationInvalidError
        from literature_ranker.core.purposes import DEFAULT_PURPOSE_TABLE, PurposeRegistry
        
        table = json.loads(json.dumps(DEFAULT_PURPOSE_TABLE))
        table["profiles"]["qualitative_analysis"]["limits"] = {"min": 300, "target": 100, "max": 200}
        
        with pytest.raises(ConfigurationInvalidError):
            PurposeRegistry.load(table)

    def test_from_json_file(self, tmp_path):
        """A table can be loaded from a JSON file."""
        from literature_ranker.core.purposes import DEFAULT_PURPOSE_TABLE, PurposeRegistry
        
        table = json.loads(json.dumps(DEFAULT_PURPOSE_TABLE))
        table["venue_floor"] = 25
        path = tmp_path / "purposes.json"
        path.write_text(json.dumps(table))
        
        registry = PurposeRegistry.from_json_file(path)
        assert registry.venue_floor == 25

    def test_unreadable_file_is_configuration_error(self, tmp_path):
        """Broken JSON should surface as ConfigurationInvalidError."""
        from literature_ranker.core.exceptions import ConfigurationInvalidError
        from literature_ranker.core.purposes import PurposeRegistry
        
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        
        with pytest.raises(ConfigurationInvalidError):
            PurposeRegistry.from_json_file(path)

    def test_unknown_purpose_is_invalid_input(self):
        """Looking up an unknown purpose name should raise InvalidInputError."""
        from literature_ranker.core.exceptions import InvalidInputError
        from literature_ranker.core.purposes import PurposeRegistry
        
        with pytest.raises(InvalidInputError):
            PurposeRegistry.default().get("meta_science")

    def test_purpose_names_are_case_insensitive(self):
        """Purpose strings should resolve regardless of case."""
        from literature_ranker.core.purposes import ResearchPurpose, resolve_purpose
        
        assert resolve_purpose("Literature_Synthesis") == ResearchPurpose.LITERATURE_SYNTHESIS

    def test_get_purpose_registry_is_cached(self):
        """The process-wide registry should be loaded once."""
        from literature_ranker.core.purposes import get_purpose_registry
        
        assert get_purpose_registry() is get_purpose_registry()
