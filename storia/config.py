"""Configuration model and loaders for Storia.

Responsibilities:
- Define pipeline runtime configuration as a typed dataclass.
- Provide deterministic precedence resolution for provider/model settings.
- Provide loader entry points for YAML- and environment-based configuration.

Key types:
- `StoriaConfig`: normalized settings for pipeline runs.
- `ProviderRuntimeConfig`: resolved classifier provider values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `StoriaConfig`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .matching.matcher import MatchPolicy
from .models.status import COMPLETION_STATUSES, BookStatus
from .parsing import (
    normalize_optional_string,
    parse_choice,
    parse_non_negative_float,
    parse_positive_int,
    parse_ratio,
)
from .retry import RetryPolicy

_DEFAULT_CLASSIFY_MODEL = "gpt-4.1-mini"
_DEFAULT_BASE_URL = "https://api.openai.com/v1"
_SUPPORTED_PROVIDER_IDS = frozenset({"openai"})
_UNIT_MODES = frozenset({"page", "spread"})
_MATCH_POLICIES = frozenset(policy.value for policy in MatchPolicy)
_COMPLETION_STATUSES = frozenset(status.value for status in COMPLETION_STATUSES)
_PERSISTENCE_BASE_DELAY_SECONDS = 0.5
_PERSISTENCE_JITTER_SECONDS = 0.25


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved classifier provider values for one run.

    Attributes:
        classifier_provider: Provider identifier for classification.
        classify_model: Model identifier for classification.
        base_url: Chat-completions API base URL.
        api_key: Optional provider API key, never persisted.
    """

    classifier_provider: str
    classify_model: str
    base_url: str = _DEFAULT_BASE_URL
    api_key: str | None = None

    def as_log_context(self) -> dict[str, str]:
        """Return non-secret values safe to log."""

        return {
            "provider": self.classifier_provider,
            "model": self.classify_model,
            "api_key": "set" if self.api_key else "missing",
        }


@dataclass(slots=True)
class StoriaConfig:
    """Runtime configuration for pipeline runs.

    Attributes:
        store_dir: Root directory of the JSON book repository.
        catalog_path: Curated catalog directory or YAML manifest.
        provider_classifier: Classifier provider identifier.
        model_classify: Classifier model identifier.
        base_url: Chat-completions API base URL.
        api_key: Optional provider API key.
        unit_mode: `page` or `spread` classification units.
        match_policy: `best_effort` (0.25) or `curated_only` (0.35) threshold policy.
        completion_status: Terminal success status: `ready`, `ready_for_review`, or `published`.
        max_concurrency: Classification worker pool size.
        unit_timeout_seconds: Per-unit classification deadline.
        max_classification_attempts: Attempts per unit before it counts as failed.
        retry_base_delay_seconds: Backoff base multiplied by the attempt number.
        retry_jitter_seconds: Upper bound of random jitter added to each backoff.
        failure_rate_threshold: Failed-unit ratio above which the job aborts.
        min_page_chars: Pages with fewer characters are skipped as image-only.
        keepalive_every_units: Keep-alive cadence in completed units or scenes.
        persistence_attempts: Attempts per repository write.
        max_job_attempts: Wholesale job attempts on retryable fatal failures.
        runtime_sources: Optional runtime source overrides injected by CLI.
        extra: Additional metadata for future extensions.
    """

    store_dir: Path = Path(".storia")
    catalog_path: Path | None = None
    provider_classifier: str = "openai"
    model_classify: str = _DEFAULT_CLASSIFY_MODEL
    base_url: str = _DEFAULT_BASE_URL
    api_key: str | None = None
    unit_mode: str = "page"
    match_policy: str = MatchPolicy.BEST_EFFORT.value
    completion_status: str = BookStatus.READY.value
    max_concurrency: int = 5
    unit_timeout_seconds: float = 60.0
    max_classification_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_jitter_seconds: float = 0.5
    failure_rate_threshold: float = 0.3
    min_page_chars: int = 50
    keepalive_every_units: int = 10
    persistence_attempts: int = 3
    max_job_attempts: int = 3
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate configuration values before pipeline execution."""

        self._validate_provider_id(self.provider_classifier, "provider_classifier")
        self._require_non_empty(self.model_classify, "model_classify")
        self._require_non_empty(self.base_url, "base_url")
        parse_choice(self.unit_mode, "unit_mode", _UNIT_MODES)
        parse_choice(self.match_policy, "match_policy", _MATCH_POLICIES)
        parse_choice(self.completion_status, "completion_status", _COMPLETION_STATUSES)
        for name in (
            "max_concurrency",
            "max_classification_attempts",
            "keepalive_every_units",
            "persistence_attempts",
            "max_job_attempts",
        ):
            parse_positive_int(getattr(self, name), name)
        if self.min_page_chars < 0:
            raise ValueError("`min_page_chars` must be zero or greater.")
        if self.unit_timeout_seconds <= 0:
            raise ValueError("`unit_timeout_seconds` must be positive.")
        parse_non_negative_float(self.retry_base_delay_seconds, "retry_base_delay_seconds")
        parse_non_negative_float(self.retry_jitter_seconds, "retry_jitter_seconds")
        parse_ratio(self.failure_rate_threshold, "failure_rate_threshold")

    @property
    def policy(self) -> MatchPolicy:
        """Match policy enum for `match_policy`."""

        return MatchPolicy(self.match_policy.lower())

    @property
    def completion_book_status(self) -> BookStatus:
        """Terminal success status enum for `completion_status`."""

        return BookStatus(self.completion_status.lower())

    def classification_retry_policy(self) -> RetryPolicy:
        """Retry policy applied to each classification unit."""

        return RetryPolicy(
            max_attempts=self.max_classification_attempts,
            base_delay_seconds=self.retry_base_delay_seconds,
            jitter_seconds=self.retry_jitter_seconds,
        )

    def persistence_retry_policy(self) -> RetryPolicy:
        """Retry policy applied to repository writes."""

        return RetryPolicy(
            max_attempts=self.persistence_attempts,
            base_delay_seconds=_PERSISTENCE_BASE_DELAY_SECONDS,
            jitter_seconds=_PERSISTENCE_JITTER_SECONDS,
        )

    def resolved_provider_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider settings with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field default.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources
        provider = self._resolve_runtime_value(
            "provider_classifier",
            "STORIA_PROVIDER_CLASSIFIER",
            self.provider_classifier,
            resolved_sources,
        )
        model = self._resolve_runtime_value(
            "model_classify", "STORIA_MODEL_CLASSIFY", self.model_classify, resolved_sources
        )
        base_url = self._resolve_runtime_value(
            "base_url", "OPENAI_BASE_URL", self.base_url, resolved_sources
        )
        api_key = self._resolve_runtime_value(
            "api_key", "OPENAI_API_KEY", self.api_key, resolved_sources, required=False
        )
        self._validate_provider_id(provider, "provider_classifier")
        return ProviderRuntimeConfig(
            classifier_provider=provider,
            classify_model=model,
            base_url=base_url,
            api_key=api_key,
        )

    @staticmethod
    def _resolve_runtime_value(
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
        required: bool = True,
    ) -> Any:
        """Resolve one value from cli, secure, env, then default."""

        for mapping, lookup_key in (
            (sources.cli, key),
            (sources.secure, key),
            (sources.env, env_key),
        ):
            if lookup_key in mapping:
                value = normalize_optional_string(mapping.get(lookup_key))
                if value is not None:
                    return value

        normalized_default = normalize_optional_string(default_value)
        if normalized_default is None and required:
            raise ValueError(
                f"`{key}` could not be resolved from CLI, secure storage, env, or defaults."
            )
        return normalized_default

    @staticmethod
    def _validate_provider_id(provider_id: str, field_name: str) -> None:
        """Validate provider identifiers against supported providers."""

        if provider_id not in _SUPPORTED_PROVIDER_IDS:
            supported = ", ".join(sorted(_SUPPORTED_PROVIDER_IDS))
            raise ValueError(
                f"Unsupported `{field_name}` value `{provider_id}`; supported: {supported}."
            )

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        """Validate that string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


def _parse_path(value: object, field_name: str) -> Path:
    """Parse a non-empty path value."""

    normalized = normalize_optional_string(value)
    if normalized is None:
        raise ValueError(f"`{field_name}` must be a non-empty path.")
    return Path(normalized)


def _parse_string(value: object, field_name: str) -> str:
    """Parse a non-empty string value."""

    normalized = normalize_optional_string(value)
    if normalized is None:
        raise ValueError(f"`{field_name}` must be a non-empty string.")
    return normalized


def _parse_timeout(value: object, field_name: str) -> float:
    """Parse a strictly positive number of seconds."""

    parsed = parse_non_negative_float(value, field_name)
    if parsed == 0.0:
        raise ValueError(f"`{field_name}` must be positive.")
    return parsed


def _parse_min_chars(value: object, field_name: str) -> int:
    """Parse a non-negative character count."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a non-negative integer.")
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be a non-negative integer.") from exc
    if parsed < 0:
        raise ValueError(f"`{field_name}` must be a non-negative integer.")
    return parsed


_FieldParser = Callable[[object, str], Any]

_FIELD_PARSERS: dict[str, tuple[str, _FieldParser]] = {
    "store_dir": ("STORIA_STORE_DIR", _parse_path),
    "catalog_path": ("STORIA_CATALOG_PATH", _parse_path),
    "provider_classifier": ("STORIA_PROVIDER_CLASSIFIER", _parse_string),
    "model_classify": ("STORIA_MODEL_CLASSIFY", _parse_string),
    "base_url": ("OPENAI_BASE_URL", _parse_string),
    "api_key": ("OPENAI_API_KEY", _parse_string),
    "unit_mode": ("STORIA_UNIT_MODE", lambda v, n: parse_choice(v, n, _UNIT_MODES)),
    "match_policy": ("STORIA_MATCH_POLICY", lambda v, n: parse_choice(v, n, _MATCH_POLICIES)),
    "completion_status": (
        "STORIA_COMPLETION_STATUS",
        lambda v, n: parse_choice(v, n, _COMPLETION_STATUSES),
    ),
    "max_concurrency": ("STORIA_MAX_CONCURRENCY", parse_positive_int),
    "unit_timeout_seconds": ("STORIA_UNIT_TIMEOUT_SECONDS", _parse_timeout),
    "max_classification_attempts": ("STORIA_MAX_CLASSIFICATION_ATTEMPTS", parse_positive_int),
    "retry_base_delay_seconds": ("STORIA_RETRY_BASE_DELAY_SECONDS", parse_non_negative_float),
    "retry_jitter_seconds": ("STORIA_RETRY_JITTER_SECONDS", parse_non_negative_float),
    "failure_rate_threshold": ("STORIA_FAILURE_RATE_THRESHOLD", parse_ratio),
    "min_page_chars": ("STORIA_MIN_PAGE_CHARS", _parse_min_chars),
    "keepalive_every_units": ("STORIA_KEEPALIVE_EVERY_UNITS", parse_positive_int),
    "persistence_attempts": ("STORIA_PERSISTENCE_ATTEMPTS", parse_positive_int),
    "max_job_attempts": ("STORIA_MAX_JOB_ATTEMPTS", parse_positive_int),
}


class ConfigLoader:
    """Factory methods for creating `StoriaConfig` from external sources."""

    _REQUIRED_YAML_KEYS = frozenset({"store_dir"})
    _SUPPORTED_YAML_KEYS = frozenset({*_FIELD_PARSERS, "extra"})
    _RUNTIME_ENV_KEYS = frozenset(
        {"STORIA_PROVIDER_CLASSIFIER", "STORIA_MODEL_CLASSIFY", "OPENAI_BASE_URL", "OPENAI_API_KEY"}
    )

    @staticmethod
    def from_yaml(path: Path) -> StoriaConfig:
        """Create a validated config from a YAML file."""

        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> StoriaConfig:
        """Create a validated config from `STORIA_*` environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        values: dict[str, Any] = {}
        for field_name, (env_key, parser) in _FIELD_PARSERS.items():
            raw_value = normalize_optional_string(env_map.get(env_key))
            if raw_value is None:
                continue
            try:
                values[field_name] = parser(raw_value, field_name)
            except ValueError as exc:
                raise ValueError(f"Environment variable `{env_key}`: {exc}") from exc

        runtime_env = {
            key: value
            for key, value in env_map.items()
            if key in ConfigLoader._RUNTIME_ENV_KEYS
            and normalize_optional_string(value) is not None
        }
        config = StoriaConfig(**values, runtime_sources=RuntimeConfigSources(env=runtime_env))
        config.validate()
        return config

    @staticmethod
    def _build_config_from_mapping(payload: Mapping[str, Any], source_label: str) -> StoriaConfig:
        """Build a validated config from a mapping payload."""

        ConfigLoader._validate_yaml_keys(payload, source_label)
        values: dict[str, Any] = {}
        for field_name, (_, parser) in _FIELD_PARSERS.items():
            if field_name not in payload or payload[field_name] is None:
                continue
            try:
                values[field_name] = parser(payload[field_name], field_name)
            except ValueError as exc:
                raise ValueError(f"{source_label} field {exc}") from exc
        values["extra"] = ConfigLoader._optional_string_map(payload, "extra", source_label)

        config = StoriaConfig(**values)
        config.validate()
        return config

    @staticmethod
    def _validate_yaml_keys(payload: Mapping[str, Any], source_label: str) -> None:
        """Validate supported and required YAML keys."""

        unknown = sorted(
            str(key) for key in set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS)
        )
        if unknown:
            raise ValueError(f"{source_label} includes unsupported key(s): {', '.join(unknown)}.")

        missing = sorted(key for key in ConfigLoader._REQUIRED_YAML_KEYS if key not in payload)
        if missing:
            raise ValueError(f"{source_label} is missing required key(s): {', '.join(missing)}.")

    @staticmethod
    def _optional_string_map(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> dict[str, str]:
        """Read an optional mapping with non-empty string keys and values."""

        raw = payload.get(key)
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `{key}` must be a mapping/object.")

        normalized: dict[str, str] = {}
        for raw_key, raw_value in raw.items():
            key_value = normalize_optional_string(raw_key)
            value_value = normalize_optional_string(raw_value)
            if key_value is None:
                raise ValueError(f"{source_label} field `{key}` contains a blank key.")
            if value_value is None:
                raise ValueError(
                    f"{source_label} field `{key}` contains blank value for `{key_value}`."
                )
            normalized[key_value] = value_value
        return normalized
