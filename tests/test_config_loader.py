"""
Tests for config.loader and config.schema modules.

Tests cover:
- YAML loading and parsing (including empty and non-mapping files)
- Partial provider sections merged over built-in defaults
- Pydantic validators (temperature range, positive limits, provider lists)
- API key resolution from the environment (missing key -> unavailable)
- runtime_config_from_env() without a file
- API keys never appear in logs or repr
"""

import logging

import pytest
from pydantic import ValidationError

from aeyez.config.loader import load_config, resolve_providers, runtime_config_from_env
from aeyez.config.schema import (
    AeyezConfig,
    AnalysisSettings,
    ProviderSettings,
    RuntimeConfig,
    RuntimeProvider,
    default_provider_settings,
)
from aeyez.exceptions import ConfigFileNotFoundError, ConfigValidationError

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def env():
    return {"OPENAI_API_KEY": "sk-test-openai-key", "GOOGLE_API_KEY": "AIza-test"}


@pytest.fixture
def write_config(tmp_path):
    def _write(content: str):
        path = tmp_path / "aeyez.yaml"
        path.write_text(content, encoding="utf-8")
        return path

    return _write


# ============================================================================
# load_config
# ============================================================================


class TestLoadConfig:
    """Test load_config() happy paths."""

    def test_minimal_file_uses_defaults(self, write_config, env):
        path = write_config("analysis:\n  query_count: 20\n")

        config = load_config(path, environ=env)

        assert isinstance(config, RuntimeConfig)
        assert config.analysis.query_count == 20
        assert config.analysis.temperature == 0.7
        assert config.analysis.max_tokens == 2048
        assert config.provider("openai").settings.model_name == "gpt-4o-mini"
        assert config.provider("google").settings.model_name == "gemini-1.5-flash"

    def test_partial_provider_section_is_merged(self, write_config, env):
        path = write_config(
            "providers:\n"
            "  openai:\n"
            "    model_name: gpt-4o\n"
            "    requests_per_minute: 10\n"
        )

        config = load_config(path, environ=env)
        openai = config.provider("openai").settings

        assert openai.model_name == "gpt-4o"
        assert openai.requests_per_minute == 10
        assert openai.embedding_model == "text-embedding-3-small"
        assert openai.base_url == "https://api.openai.com/v1"
        # Untouched provider keeps its defaults
        assert config.provider("google").settings.model_name == "gemini-1.5-flash"

    def test_api_keys_resolved_from_environment(self, write_config, env):
        config = load_config(write_config("database_path: ./x.db\n"), environ=env)

        assert config.provider("openai").api_key == "sk-test-openai-key"
        assert config.provider("google").api_key == "AIza-test"
        assert config.database_path == "./x.db"

    def test_custom_env_var_name(self, write_config):
        path = write_config("providers:\n  google:\n    env_api_key: MY_GEMINI_KEY\n")

        config = load_config(path, environ={"MY_GEMINI_KEY": "AIza-custom"})

        assert config.provider("google").api_key == "AIza-custom"
        assert config.provider("openai").api_key is None

    def test_logs_path_not_keys(self, write_config, env, caplog):
        caplog.set_level(logging.INFO)

        load_config(write_config("analysis:\n  query_count: 5\n"), environ=env)

        assert "Loaded configuration" in caplog.text
        assert "sk-test-openai-key" not in caplog.text


class TestLoadConfigErrors:
    """Test load_config() error handling."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileNotFoundError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, write_config):
        with pytest.raises(ConfigValidationError, match="Invalid YAML"):
            load_config(write_config("analysis: [unclosed\n"), environ={})

    def test_empty_file(self, write_config):
        with pytest.raises(ConfigValidationError, match="empty"):
            load_config(write_config(""), environ={})

    def test_non_mapping_root(self, write_config):
        with pytest.raises(ConfigValidationError, match="must be a mapping"):
            load_config(write_config("- a\n- b\n"), environ={})

    def test_validation_error_lists_location(self, write_config):
        path = write_config("analysis:\n  query_count: 0\n")

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path, environ={})

        assert "analysis.query_count" in str(exc_info.value)

    def test_unknown_provider_rejected(self, write_config):
        path = write_config("providers:\n  anthropic:\n    model_name: claude\n")

        with pytest.raises(ConfigValidationError):
            load_config(path, environ={})

    def test_temperature_out_of_range(self, write_config):
        path = write_config("providers:\n  openai:\n    temperature: 3.5\n")

        with pytest.raises(ConfigValidationError, match="temperature"):
            load_config(path, environ={})


# ============================================================================
# API key resolution
# ============================================================================


class TestResolveProviders:
    """Test resolve_providers() and runtime_config_from_env()."""

    def test_missing_key_makes_provider_unavailable(self, caplog):
        caplog.set_level(logging.INFO)

        providers = resolve_providers(AeyezConfig(), environ={"OPENAI_API_KEY": "sk-x"})

        assert providers["openai"].has_credentials
        assert providers["google"].api_key is None
        assert not providers["google"].has_credentials
        assert "GOOGLE_API_KEY is not set" in caplog.text

    def test_blank_key_treated_as_missing(self):
        providers = resolve_providers(AeyezConfig(), environ={"OPENAI_API_KEY": "   "})

        assert providers["openai"].api_key is None

    def test_runtime_config_from_env(self, env):
        config = runtime_config_from_env(environ=env)

        assert set(config.providers) == {"openai", "google"}
        assert config.analysis.providers == ["openai", "google"]
        assert config.scoring.embedding_providers == ["openai", "google"]

    def test_api_key_not_in_repr(self, env):
        config = runtime_config_from_env(environ=env)

        assert "sk-test-openai-key" not in repr(config)
        assert "sk-test-openai-key" not in repr(config.provider("openai"))


# ============================================================================
# Schema validators
# ============================================================================


class TestSchema:
    """Test Pydantic schema validators."""

    def test_default_provider_settings(self):
        defaults = default_provider_settings()

        assert defaults["openai"].env_api_key == "OPENAI_API_KEY"
        assert defaults["google"].env_api_key == "GOOGLE_API_KEY"
        assert defaults["google"].embedding_model == "text-embedding-004"

    def test_base_url_trailing_slash_stripped(self):
        settings = ProviderSettings(
            env_api_key="K",
            base_url="https://example.test/v1/",
            model_name="m",
            embedding_model="e",
        )
        assert settings.base_url == "https://example.test/v1"

    def test_empty_model_name_rejected(self):
        with pytest.raises(ValidationError, match="cannot be empty"):
            ProviderSettings(
                env_api_key="K", base_url="https://x", model_name=" ", embedding_model="e"
            )

    def test_non_positive_rate_limit_rejected(self):
        with pytest.raises(ValidationError, match="must be positive"):
            ProviderSettings(
                env_api_key="K",
                base_url="https://x",
                model_name="m",
                embedding_model="e",
                requests_per_minute=0,
            )

    def test_duplicate_providers_rejected(self):
        with pytest.raises(ValidationError, match="duplicates"):
            AnalysisSettings(providers=["openai", "openai"])

    def test_empty_providers_rejected(self):
        with pytest.raises(ValidationError, match="cannot be empty"):
            AnalysisSettings(providers=[])

    def test_unknown_runtime_provider(self, env):
        config = runtime_config_from_env(environ=env)
        config.providers.pop("google")

        with pytest.raises(ValueError, match="not configured"):
            config.provider("google")

    def test_runtime_provider_has_credentials(self):
        settings = default_provider_settings()["openai"]

        assert RuntimeProvider(provider="openai", settings=settings, api_key="k").has_credentials
        assert not RuntimeProvider(provider="openai", settings=settings).has_credentials
