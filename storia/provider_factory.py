"""Provider factory for the page classifier.

Resolves provider identifiers to concrete classifier implementations so the
orchestrator never constructs provider clients directly. Only `openai` exists.
"""

from __future__ import annotations

from .config import ProviderRuntimeConfig
from .llm.classifier import OpenAIPageClassifier, PageClassifier
from .llm.openai_client import OpenAIChatClient
from .retry import RetryPolicy
from .telemetry.logger import RunLogger


class ProviderFactory:
    """Factory for provider-backed classifier clients."""

    @staticmethod
    def create_classifier(
        runtime: ProviderRuntimeConfig,
        *,
        retry_policy: RetryPolicy,
        request_timeout_seconds: float,
        run_logger: RunLogger | None = None,
    ) -> PageClassifier:
        """Create a classifier for the resolved provider runtime settings."""

        if runtime.classifier_provider == "openai":
            client = OpenAIChatClient(
                api_key=runtime.api_key,
                base_url=runtime.base_url,
                timeout_seconds=request_timeout_seconds,
            )
            return OpenAIPageClassifier(
                client=client,
                model=runtime.classify_model,
                provider=runtime.classifier_provider,
                retry_policy=retry_policy,
                run_logger=run_logger,
            )
        raise ValueError(f"Unsupported classifier provider `{runtime.classifier_provider}`.")
