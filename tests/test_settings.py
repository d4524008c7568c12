import pytest

from contextkeeper.config import DEFAULT_TOKEN_LIMIT, ContextSettings, resolve_token_limit
from contextkeeper.exceptions import ConfigError


class TestContextSettings:
    """Test suite for settings loading and validation"""

    def test_defaults(self, settings):
        """Defaults match the documented values"""
        assert settings.fixed_token_threshold == 4000
        assert settings.percentage_threshold == 0.8
        assert settings.projection_growth_factor == 1.2
        assert settings.plan_confidence_gate == 0.6
        assert settings.max_knowledge_entries == 100
        assert settings.auto_extract_knowledge is True
        assert settings.aggressive_reduction is False

    def test_env_prefix(self, monkeypatch):
        """CONTEXTKEEPER_ variables override defaults"""
        monkeypatch.setenv("CONTEXTKEEPER_TOP_K_TOOLS", "5")
        monkeypatch.setenv("CONTEXTKEEPER_AGGRESSIVE_REDUCTION", "true")
        settings = ContextSettings(_env_file=None)
        assert settings.top_k_tools == 5
        assert settings.aggressive_reduction is True

    def test_log_level_normalised(self):
        """Log levels are upper-cased"""
        assert ContextSettings(_env_file=None, log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("percentage_threshold", 1.5),
            ("projection_threshold", -0.1),
            ("plan_confidence_gate", 2.0),
            ("fixed_token_threshold", 0),
            ("max_knowledge_entries", -1),
            ("top_k_tools", 0),
            ("projection_growth_factor", 0.9),
            ("monitor_interval", 0),
            ("log_level", "LOUD"),
        ],
    )
    def test_invalid_values(self, field, value):
        """Out-of-range values raise ConfigError"""
        with pytest.raises(ConfigError) as exc_info:
            ContextSettings(_env_file=None, **{field: value})
        assert exc_info.value.field_name == field


class TestTokenLimits:
    """Test suite for model token limit resolution"""

    def test_configured_model(self, settings):
        """The configured model's limit is used by default"""
        assert settings.resolve_token_limit() == 1_048_576

    @pytest.mark.parametrize(
        "model,limit",
        [
            ("llama3", 8_192),
            ("llama3.1:8b", 131_072),
            ("qwen3:4b", 40_960),
            ("qwen3-coder:30b-cloud", 262_144),
            ("QWEN2.5-CODER:7b", 32_768),
        ],
    )
    def test_resolution(self, model, limit):
        """Exact, base-name and prefix lookups"""
        assert resolve_token_limit(model) == limit

    def test_unknown_model_uses_default(self):
        """Unknown models get the default limit"""
        assert resolve_token_limit("mystery-model") == DEFAULT_TOKEN_LIMIT
        assert resolve_token_limit(None, default=10) == 10

    def test_custom_table(self):
        """A custom table replaces the defaults"""
        settings = ContextSettings(
            _env_file=None, model="tiny", token_limits={"tiny": 100}, default_token_limit=7
        )
        assert settings.resolve_token_limit() == 100
        assert settings.resolve_token_limit("other") == 7
