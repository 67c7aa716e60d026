"""Page and spread classification into descriptor sets.

Responsibilities:
- Turn one classification unit into a prompt and call the chat provider.
- Parse the model's JSON (optionally fenced or wrapped in prose) into a `DescriptorSet`.
- Retry transient failures with linear backoff and jitter, then raise
  `ClassificationError`; substituting defaults is left to the caller.

Key types:
- `PageClassifier`: protocol consumed by the pipeline orchestrator.
- `OpenAIPageClassifier`: chat-completions-backed implementation.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import json
import re
from threading import Lock
import time
from typing import Protocol

from ..errors import ClassificationError
from ..models.datatypes import ClassificationUnit, DescriptorSet
from ..retry import RetryPolicy, RetryRunner
from ..telemetry.logger import RunLogger
from .cache import ResponseCache
from .openai_client import OpenAIChatClient
from .prompts import PromptLibrary
from .rate_limiter import RateLimiter

_REQUIRED_FIELDS: tuple[tuple[str, ...], ...] = (
    ("mood",),
    ("setting",),
    ("time_of_day", "timeOfDay"),
    ("weather",),
    ("activity_level", "activityLevel", "intensity"),
    ("atmosphere",),
)
_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_NON_RETRYABLE_KINDS = frozenset(
    {"empty_text", "invalid_api_key", "insufficient_quota", "invalid_model"}
)


class PageClassifier(Protocol):
    """Classify one page or spread into scene descriptors."""

    def classify_unit(self, unit: ClassificationUnit) -> DescriptorSet:
        """Return descriptors for `unit` or raise `ClassificationError`."""


def extract_json_object(text: str) -> str:
    """Return the JSON object text between the first `{` and the last `}`.

    Markdown code fences are unwrapped first.

    Raises:
        ClassificationError: If no object delimiters are present.
    """

    fenced = _FENCE_PATTERN.search(text)
    candidate = fenced.group(1) if fenced else text
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start < 0 or end <= start:
        raise ClassificationError(
            "Classifier output contains no JSON object.", failure_kind="malformed_output"
        )
    return candidate[start : end + 1]


def parse_descriptors(text: str) -> DescriptorSet:
    """Parse classifier output text into a validated `DescriptorSet`."""

    try:
        payload = json.loads(extract_json_object(text))
    except json.JSONDecodeError as exc:
        raise ClassificationError(
            f"Classifier output is not valid JSON: {exc.msg}.", failure_kind="malformed_output"
        ) from exc
    if not isinstance(payload, Mapping):
        raise ClassificationError(
            "Classifier output must be a JSON object.", failure_kind="malformed_output"
        )
    missing = [
        aliases[0]
        for aliases in _REQUIRED_FIELDS
        if not any(alias in payload for alias in aliases)
    ]
    if missing:
        raise ClassificationError(
            f"Classifier output is missing field(s): {', '.join(missing)}.",
            failure_kind="malformed_output",
        )
    return DescriptorSet.from_mapping(payload)


def _is_retryable(exc: Exception) -> bool:
    """Whether a classification attempt failure is worth retrying."""

    kind = getattr(exc, "failure_kind", "unknown")
    return kind not in _NON_RETRYABLE_KINDS


class OpenAIPageClassifier:
    """Classify units through an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        *,
        client: OpenAIChatClient,
        model: str,
        provider: str = "openai",
        retry_policy: RetryPolicy | None = None,
        sleeper: Callable[[float], None] = time.sleep,
        cache: ResponseCache | None = None,
        rate_limiter: RateLimiter | None = None,
        prompts: PromptLibrary | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        """Initialize provider client, retry policy, and optional cache/pacing hooks."""

        self.client = client
        self.model = model
        self.provider = provider
        self.cache = cache if cache is not None else ResponseCache()
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.prompts = prompts or PromptLibrary()
        self._runner = RetryRunner(policy=retry_policy or RetryPolicy(), sleeper=sleeper)
        self._run_logger = run_logger
        self._retry_lock = Lock()
        self.retry_attempt_count = 0

    def classify(self, page_text: str) -> DescriptorSet:
        """Classify a single page's text."""

        return self.classify_unit(
            ClassificationUnit(unit_index=0, page_numbers=(1,), texts=(page_text,))
        )

    def classify_unit(self, unit: ClassificationUnit) -> DescriptorSet:
        """Classify a page or spread, retrying transient failures."""

        if not any(text.strip() for text in unit.texts):
            raise ClassificationError(
                f"Unit {unit.unit_index} has no text to classify.", failure_kind="empty_text"
            )

        if len(unit.texts) == 1:
            user_prompt = self.prompts.classify_page_prompt(unit.texts[0])
            operation = "classify_page"
        else:
            user_prompt = self.prompts.classify_spread_prompt(unit.page_numbers, unit.texts)
            operation = "classify_spread"
        cache_key = ResponseCache.make_key(
            provider=self.provider,
            model=self.model,
            operation=operation,
            input_identity=list(unit.texts),
        )

        cached = self.cache.get(cache_key)
        if cached is not None:
            return parse_descriptors(cached)

        def _attempt() -> DescriptorSet:
            self.rate_limiter.acquire(self.model)
            raw_text = self.client.chat_completion_text(
                model=self.model,
                system_prompt=self.prompts.classification_system_prompt(),
                user_prompt=user_prompt,
            )
            descriptors = parse_descriptors(raw_text)
            self.cache.set(cache_key, json.dumps(descriptors.as_payload(), sort_keys=True))
            return descriptors

        def _on_retry(attempt: int, exc: Exception, delay: float) -> None:
            with self._retry_lock:
                self.retry_attempt_count += 1
            if self._run_logger is not None:
                self._run_logger.log_event(
                    "analyze",
                    "unit_retry",
                    level="WARNING",
                    unit=unit.unit_index,
                    attempt=attempt,
                    failure_kind=getattr(exc, "failure_kind", type(exc).__name__),
                    delay_seconds=delay,
                )

        outcome = self._runner.run(_attempt, is_retryable=_is_retryable, on_retry=_on_retry)
        if outcome.ok:
            return outcome.unwrap()

        error = outcome.error
        failure_kind = getattr(error, "failure_kind", "unknown")
        raise ClassificationError(
            f"Classification failed for pages {self._page_label(unit)} after "
            f"{outcome.attempts} attempt(s): {error}",
            failure_kind=failure_kind,
            attempts=outcome.attempts,
        ) from error

    @staticmethod
    def _page_label(unit: ClassificationUnit) -> str:
        """Render the unit's page range for messages."""

        if len(unit.page_numbers) == 1:
            return str(unit.page_numbers[0])
        return f"{unit.page_numbers[0]}-{unit.page_numbers[-1]}"
