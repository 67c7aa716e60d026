"""Unit tests for provider-backed classifier construction."""

from __future__ import annotations

import pytest

from storia.config import ProviderRuntimeConfig
from storia.llm import OpenAIPageClassifier
from storia.provider_factory import ProviderFactory
from storia.retry import RetryPolicy


def test_factory_builds_openai_classifier_from_runtime() -> None:
    """The `openai` provider should yield a classifier bound to the resolved model."""

    runtime = ProviderRuntimeConfig(
        classifier_provider="openai",
        classify_model="gpt-4o-mini",
        base_url="http://localhost:8080/v1",
        api_key="sk-test",
    )

    classifier = ProviderFactory.create_classifier(
        runtime,
        retry_policy=RetryPolicy(max_attempts=2),
        request_timeout_seconds=15.0,
    )

    assert isinstance(classifier, OpenAIPageClassifier)
    assert classifier.model == "gpt-4o-mini"
    assert classifier.provider == "openai"


def test_factory_rejects_unknown_provider() -> None:
    """Unsupported provider ids should raise a descriptive `ValueError`."""

    runtime = ProviderRuntimeConfig(classifier_provider="acme", classify_model="m1")

    with pytest.raises(ValueError, match="Unsupported classifier provider `acme`."):
        ProviderFactory.create_classifier(
            runtime,
            retry_policy=RetryPolicy(),
            request_timeout_seconds=15.0,
        )


def test_runtime_log_context_masks_api_key() -> None:
    """Log context should report key presence without the key itself."""

    runtime = ProviderRuntimeConfig(
        classifier_provider="openai", classify_model="gpt-4o-mini", api_key="sk-secret"
    )

    context = runtime.as_log_context()

    assert context["api_key"] == "set"
    assert "sk-secret" not in context.values()
