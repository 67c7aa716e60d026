"""Unit tests for config loading, validation, and runtime precedence."""

from __future__ import annotations

from pathlib import Path

import pytest

from storia.config import ConfigLoader, RuntimeConfigSources, StoriaConfig
from storia.matching import MatchPolicy
from storia.models.status import BookStatus


def test_defaults_follow_documented_values() -> None:
    """Default config should carry the documented pipeline limits."""

    config = StoriaConfig()
    config.validate()

    assert config.max_concurrency == 5
    assert config.unit_timeout_seconds == 60.0
    assert config.failure_rate_threshold == 0.3
    assert config.keepalive_every_units == 10
    assert config.policy is MatchPolicy.BEST_EFFORT
    assert config.completion_book_status is BookStatus.READY
    assert config.classification_retry_policy().max_attempts == 3
    assert config.persistence_retry_policy().base_delay_seconds == 0.5


def test_from_yaml_loads_supported_keys(tmp_path: Path) -> None:
    """YAML config should parse typed values and optional extras."""

    config_path = tmp_path / "storia.yaml"
    config_path.write_text(
        "\n".join(
            [
                f"store_dir: {tmp_path / 'store'}",
                "catalog_path: catalog.yaml",
                "unit_mode: Spread",
                "match_policy: curated_only",
                "completion_status: ready_for_review",
                "max_concurrency: 3",
                "failure_rate_threshold: 0.5",
                "extra:",
                "  team: picture-books",
            ]
        ),
        encoding="utf-8",
    )

    config = ConfigLoader.from_yaml(config_path)

    assert config.store_dir == tmp_path / "store"
    assert config.catalog_path == Path("catalog.yaml")
    assert config.unit_mode == "spread"
    assert config.policy is MatchPolicy.CURATED_ONLY
    assert config.completion_book_status is BookStatus.READY_FOR_REVIEW
    assert config.max_concurrency == 3
    assert config.failure_rate_threshold == 0.5
    assert config.extra == {"team": "picture-books"}


def test_from_yaml_rejects_unknown_and_missing_keys(tmp_path: Path) -> None:
    """Unknown keys and a missing `store_dir` should be reported."""

    unknown_path = tmp_path / "unknown.yaml"
    unknown_path.write_text("store_dir: out\nvoice: echo\n", encoding="utf-8")
    missing_path = tmp_path / "missing.yaml"
    missing_path.write_text("unit_mode: page\n", encoding="utf-8")

    with pytest.raises(ValueError, match="unsupported key"):
        ConfigLoader.from_yaml(unknown_path)
    with pytest.raises(ValueError, match="missing required key"):
        ConfigLoader.from_yaml(missing_path)


def test_from_yaml_rejects_invalid_values(tmp_path: Path) -> None:
    """Out-of-range values should fail with the field name."""

    config_path = tmp_path / "bad.yaml"
    config_path.write_text("store_dir: out\nfailure_rate_threshold: 1.5\n", encoding="utf-8")

    with pytest.raises(ValueError, match="failure_rate_threshold"):
        ConfigLoader.from_yaml(config_path)


def test_from_env_reads_storia_variables() -> None:
    """Environment config should parse `STORIA_*` values and keep runtime keys."""

    config = ConfigLoader.from_env(
        {
            "STORIA_STORE_DIR": "/tmp/storia-store",
            "STORIA_MAX_CONCURRENCY": "8",
            "STORIA_MATCH_POLICY": "curated_only",
            "OPENAI_API_KEY": "sk-env",
            "UNRELATED": "ignored",
        }
    )

    assert config.store_dir == Path("/tmp/storia-store")
    assert config.max_concurrency == 8
    assert config.policy is MatchPolicy.CURATED_ONLY
    assert dict(config.runtime_sources.env) == {"OPENAI_API_KEY": "sk-env"}


def test_from_env_reports_variable_name_on_invalid_value() -> None:
    """Invalid env values should name the offending variable."""

    with pytest.raises(ValueError, match="STORIA_MAX_CONCURRENCY"):
        ConfigLoader.from_env({"STORIA_MAX_CONCURRENCY": "zero"})


def test_runtime_precedence_is_cli_then_secure_then_env_then_default() -> None:
    """Provider values should resolve with deterministic source precedence."""

    config = StoriaConfig(api_key="sk-config")
    sources = RuntimeConfigSources(
        cli={"model_classify": "cli-model"},
        secure={"api_key": "sk-secure", "model_classify": "secure-model"},
        env={"OPENAI_API_KEY": "sk-env", "STORIA_MODEL_CLASSIFY": "env-model"},
    )

    runtime = config.resolved_provider_runtime(sources)

    assert runtime.classify_model == "cli-model"
    assert runtime.api_key == "sk-secure"
    assert runtime.classifier_provider == "openai"
    assert runtime.as_log_context()["api_key"] == "set"

    env_only = config.resolved_provider_runtime(
        RuntimeConfigSources(env={"OPENAI_API_KEY": "sk-env"})
    )
    assert env_only.api_key == "sk-env"
    assert config.resolved_provider_runtime(RuntimeConfigSources()).api_key == "sk-config"


def test_unsupported_provider_is_rejected() -> None:
    """Only the `openai` classifier provider should be accepted."""

    config = StoriaConfig(provider_classifier="local")

    with pytest.raises(ValueError, match="Unsupported `provider_classifier`"):
        config.validate()
