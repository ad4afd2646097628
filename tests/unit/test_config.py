"""Tests for flipbook.core.config — configuration management.

Tests cover:
- Default values for frame generation and retry settings.
- Environment variable overrides via the FLIPBOOK_ prefix and the
  unprefixed HUGGINGFACE_API_TOKEN.
- Credential validation in PipelineSettings.from_config.
- Pydantic validation constraints (port range, frame count, environment).
"""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FAKE_TOKEN
from flipbook.core.config import FlipbookConfig, PipelineSettings, validate_token
from flipbook.core.errors import ConfigError


@pytest.fixture
def bare_config(clean_env) -> FlipbookConfig:
    """Configuration built only from defaults."""
    return FlipbookConfig(_env_file=None)


class TestConfigDefaults:
    """Verify that FlipbookConfig provides sensible defaults."""

    def test_token_unset(self, bare_config: FlipbookConfig):
        """No credential is configured by default."""
        assert bare_config.hf_api_token is None

    def test_default_frame_settings(self, bare_config: FlipbookConfig):
        """Frame defaults are 4 frames, 3s apart, 25s per call."""
        assert bare_config.frame_count == 4
        assert bare_config.frame_delay_seconds == 3.0
        assert bare_config.request_timeout_seconds == 25.0

    def test_default_server(self, bare_config: FlipbookConfig):
        """Default server address is 0.0.0.0:7860 in development mode."""
        assert bare_config.server_host == "0.0.0.0"
        assert bare_config.server_port == 7860
        assert bare_config.environment == "development"
        assert bare_config.is_production is False

    def test_package_directories(self, bare_config: FlipbookConfig):
        """Static and template directories point into the package."""
        assert isinstance(bare_config.static_dir, Path)
        assert (bare_config.templates_dir / "index.html").exists()

    def test_retry_policy_mirrors_fields(self, bare_config: FlipbookConfig):
        """retry_policy() copies every retry field."""
        policy = bare_config.retry_policy()
        assert policy.quota_wait_seconds == 65.0
        assert policy.loading_wait_cap_seconds == 20.0
        assert policy.rate_limit_max_retries == 2


class TestConfigEnvironment:
    """Verify environment variable loading."""

    def test_prefixed_overrides(self, clean_env, monkeypatch):
        """FLIPBOOK_* variables override defaults."""
        monkeypatch.setenv("FLIPBOOK_FRAME_COUNT", "8")
        monkeypatch.setenv("FLIPBOOK_QUOTA_MAX_RETRIES", "5")
        monkeypatch.setenv("FLIPBOOK_ENVIRONMENT", "production")

        cfg = FlipbookConfig(_env_file=None)

        assert cfg.frame_count == 8
        assert cfg.quota_max_retries == 5
        assert cfg.is_production is True

    def test_huggingface_token_variable(self, clean_env, monkeypatch):
        """The unprefixed HUGGINGFACE_API_TOKEN is honoured."""
        monkeypatch.setenv("HUGGINGFACE_API_TOKEN", FAKE_TOKEN)
        assert FlipbookConfig(_env_file=None).hf_api_token == FAKE_TOKEN

    def test_prefixed_token_variable(self, clean_env, monkeypatch):
        """FLIPBOOK_HF_API_TOKEN is honoured."""
        monkeypatch.setenv("FLIPBOOK_HF_API_TOKEN", FAKE_TOKEN)
        assert FlipbookConfig(_env_file=None).hf_api_token == FAKE_TOKEN

    def test_env_file(self, clean_env, temp_dir: Path):
        """Values are read from a .env file."""
        env_file = temp_dir / ".env"
        env_file.write_text(f"HUGGINGFACE_API_TOKEN={FAKE_TOKEN}\nFLIPBOOK_FRAME_COUNT=3\n")

        cfg = FlipbookConfig(_env_file=env_file)

        assert cfg.hf_api_token == FAKE_TOKEN
        assert cfg.frame_count == 3


class TestConfigValidation:
    """Verify Pydantic validation constraints on config fields."""

    @pytest.mark.parametrize("port", [80, 70000])
    def test_invalid_port(self, clean_env, port):
        """Ports outside 1024-65535 are rejected."""
        with pytest.raises(Exception):
            FlipbookConfig(server_port=port, _env_file=None)

    @pytest.mark.parametrize("frames", [0, 17])
    def test_invalid_frame_count(self, clean_env, frames):
        """Frame count must stay within 1-16."""
        with pytest.raises(Exception):
            FlipbookConfig(frame_count=frames, _env_file=None)

    def test_invalid_environment(self, clean_env):
        """Only development and production are accepted."""
        with pytest.raises(Exception):
            FlipbookConfig(environment="staging", _env_file=None)


class TestTokenValidation:
    """Verify the credential check."""

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing_token(self, token):
        with pytest.raises(ConfigError, match="Missing"):
            validate_token(token)

    def test_wrong_prefix(self):
        with pytest.raises(ConfigError, match="prefix"):
            validate_token("sk_" + "a" * 34)

    def test_too_short(self):
        with pytest.raises(ConfigError, match="too short"):
            validate_token("hf_abc")

    def test_valid_token_is_stripped(self):
        assert validate_token(f"  {FAKE_TOKEN}\n") == FAKE_TOKEN


class TestPipelineSettings:
    """Verify PipelineSettings.from_config."""

    def test_missing_token_raises_config_error(self, bare_config: FlipbookConfig):
        """Without a credential no pipeline settings can be built."""
        with pytest.raises(ConfigError) as ei:
            PipelineSettings.from_config(bare_config)
        assert ei.value.status_code == 503

    def test_builds_endpoint_and_policy(self, clean_env):
        """Endpoint URL joins the base URL and model id."""
        cfg = FlipbookConfig(
            hf_api_token=FAKE_TOKEN,
            api_base_url="https://inference.test/models/",
            model_id="org/model",
            frame_count=3,
            network_max_retries=1,
            _env_file=None,
        )

        settings = PipelineSettings.from_config(cfg)

        assert settings.api_token == FAKE_TOKEN
        assert settings.endpoint_url == "https://inference.test/models/org/model"
        assert settings.frame_count == 3
        assert settings.retry_policy.network_max_retries == 1

    @pytest.mark.parametrize("token", [None, "", "not-a-token", "hf_short"])
    def test_constructor_rejects_bad_token(self, token):
        """Direct construction raises ConfigError, not a pydantic error."""
        with pytest.raises(ConfigError):
            PipelineSettings(
                api_token=token,
                endpoint_url="https://inference.test/models/org/model",
                frame_count=1,
            )

    def test_constructor_strips_token(self):
        settings = PipelineSettings(
            api_token=f"  {FAKE_TOKEN}  ",
            endpoint_url="https://inference.test/models/org/model",
        )
        assert settings.api_token == FAKE_TOKEN

    def test_duration_estimates(self, pipeline_settings: PipelineSettings):
        """3 frames 2s apart spend 4s sleeping between frames."""
        assert pipeline_settings.minimum_duration_seconds() == 4.0
        assert (
            pipeline_settings.worst_case_duration_seconds()
            > pipeline_settings.minimum_duration_seconds()
        )

    def test_long_delays_log_warning(self, clean_env, caplog):
        """Inter-frame delays beyond the ceiling produce a warning."""
        cfg = FlipbookConfig(
            hf_api_token=FAKE_TOKEN,
            frame_count=16,
            frame_delay_seconds=5.0,
            _env_file=None,
        )

        with caplog.at_level("WARNING", logger="flipbook.core.config"):
            PipelineSettings.from_config(cfg)

        assert "request ceiling" in caplog.text

    def test_worst_case_duration_logged(self, clean_env, caplog):
        """The worst-case duration is reported at debug level."""
        cfg = FlipbookConfig(hf_api_token=FAKE_TOKEN, _env_file=None)

        with caplog.at_level("DEBUG", logger="flipbook.core.config"):
            settings = PipelineSettings.from_config(cfg)

        expected = f"{settings.worst_case_duration_seconds():.0f}s"
        assert "Worst-case request duration" in caplog.text
        assert expected in caplog.text
