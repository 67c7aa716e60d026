"""Runtime configuration and persistence helpers for the soundscape pipeline.

Responsibilities:
- Validate pipeline configuration before execution.
- Resolve provider runtime values and build the default classifier.
- Run repository writes under the persistence retry policy.
- Apply status transitions through the lifecycle state machine.
"""

from __future__ import annotations

from collections.abc import Callable
import os
from typing import TypeVar

from ..config import ProviderRuntimeConfig, RuntimeConfigSources, StoriaConfig
from ..errors import PersistenceError, PipelineStageError
from ..llm.classifier import PageClassifier
from ..models.status import BookStatus
from ..provider_factory import ProviderFactory
from ..retry import RetryRunner
from .context import JobContext

_WriteResult = TypeVar("_WriteResult")


class PipelineRuntimeMixin:
    """Provide runtime/config and persistence helper methods."""

    def _validate_config(self, config: StoriaConfig) -> None:
        """Validate configuration and map failures to a stage-aware error."""

        try:
            config.validate()
        except ValueError as exc:
            raise PipelineStageError(
                stage="config",
                detail=str(exc),
                hint="Fix the config file, environment, or CLI values and rerun.",
            ) from exc

    def _resolve_runtime_config(self, config: StoriaConfig) -> ProviderRuntimeConfig:
        """Resolve provider settings with deterministic source precedence."""

        try:
            runtime_sources = RuntimeConfigSources(
                cli=config.runtime_sources.cli,
                secure=config.runtime_sources.secure,
                env=config.runtime_sources.env or os.environ,
            )
            return config.resolved_provider_runtime(runtime_sources)
        except ValueError as exc:
            raise PipelineStageError(
                stage="config",
                detail=str(exc),
                hint="Set a supported provider and a non-empty model in CLI, env, or config.",
            ) from exc

    def _resolve_classifier(self) -> PageClassifier:
        """Return the injected classifier or build one from provider settings."""

        if self._classifier is not None:
            return self._classifier
        runtime = self._resolve_runtime_config(self.config)
        if not runtime.api_key:
            raise PipelineStageError(
                stage="config",
                detail="No API key is configured for the classifier provider.",
                hint=(
                    "Set `OPENAI_API_KEY`, pass `--api-key`, or store one with "
                    "`storia credentials --set-api-key`."
                ),
            )
        self._log_event("analyze", "provider_resolved", **runtime.as_log_context())
        self._classifier = ProviderFactory.create_classifier(
            runtime,
            retry_policy=self.config.classification_retry_policy(),
            request_timeout_seconds=self.config.unit_timeout_seconds,
            run_logger=self._run_logger,
        )
        return self._classifier

    def _persist(self, operation_name: str, write: Callable[[], _WriteResult]) -> _WriteResult:
        """Run one repository write with retries, raising `PersistenceError` on exhaustion."""

        runner = RetryRunner(
            policy=self.config.persistence_retry_policy(),
            sleeper=self._sleeper,
        )

        def _on_retry(attempt: int, exc: Exception, delay: float) -> None:
            self._log_event(
                "persist",
                "write_retry",
                level="WARNING",
                operation=operation_name,
                attempt=attempt,
                error_type=type(exc).__name__,
                delay_seconds=delay,
            )

        outcome = runner.run(write, on_retry=_on_retry)
        if not outcome.ok:
            raise PersistenceError(
                f"Repository write `{operation_name}` failed after {outcome.attempts} "
                f"attempt(s): {outcome.error}"
            ) from outcome.error
        return outcome.unwrap()

    def _transition(self, context: JobContext, target: BookStatus) -> None:
        """Validate, persist, and record one status transition with current errors."""

        context.status.transition_to(target)
        errors = tuple(context.errors)
        self._persist(
            f"update_status:{target.value}",
            lambda: self._repository.update_status(context.book_id, target, errors),
        )
        self._log_event(
            "status",
            "transition",
            book=context.book_id,
            source=context.status.value,
            target=target.value,
            errors=len(errors),
        )
        context.status = target

    def _keep_alive(self, stage: str, completed: int) -> None:
        """Ping the repository so idle connections are not reclaimed mid-job."""

        self._persist("keep_alive", self._repository.keep_alive)
        self._log_event(stage, "keep_alive", completed=completed)
