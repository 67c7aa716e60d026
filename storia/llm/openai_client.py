"""OpenAI-compatible chat-completions client for scene classification.

Responsibilities:
- Send chat-completions requests to an OpenAI-compatible REST endpoint.
- Extract the assistant text from the response payload.
- Raise `OpenAIProviderError` with a failure kind the classifier can retry on.
"""

from __future__ import annotations

import json
import re
import socket
from typing import Any

import requests

PERMANENT_FAILURE_KINDS = frozenset({"invalid_api_key", "insufficient_quota", "invalid_model"})


class OpenAIProviderError(RuntimeError):
    """Raised when a provider request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        """Initialize provider error metadata for retry and diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code

    @property
    def is_permanent(self) -> bool:
        """Whether retrying the same request cannot succeed."""

        return self.failure_kind in PERMANENT_FAILURE_KINDS


class OpenAIChatClient:
    """Minimal requests-based chat-completions client."""

    _MAX_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize endpoint, credentials, and request timeout."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def chat_completion_text(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 500,
        json_mode: bool = True,
    ) -> str:
        """Return the first assistant message text of a chat-completions request."""

        if not self.api_key:
            raise OpenAIProviderError(
                "Missing OpenAI API key. Set `OPENAI_API_KEY`, pass `--api-key`, or run "
                "`storia credentials --set-api-key`.",
                failure_kind="invalid_api_key",
            )

        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        raw_body = self._post("/chat/completions", payload)
        return self._extract_message_text(raw_body)

    def _post(self, endpoint_path: str, payload: dict[str, Any]) -> str:
        """POST a JSON payload and return the decoded body, mapping failures."""

        try:
            response = requests.post(
                f"{self.base_url}{endpoint_path}",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise self._from_http_error(exc) from exc
        except requests.RequestException as exc:
            if isinstance(exc, requests.Timeout):
                raise OpenAIProviderError(
                    "OpenAI request timed out.", failure_kind="timeout"
                ) from exc
            raise OpenAIProviderError(
                f"OpenAI request transport error: {self._shorten(str(exc))}",
                failure_kind="transport",
            ) from exc
        except (TimeoutError, socket.timeout) as exc:
            raise OpenAIProviderError("OpenAI request timed out.", failure_kind="timeout") from exc
        return bytes(response.content).decode("utf-8", errors="replace")

    @classmethod
    def _shorten(cls, text: str) -> str:
        """Collapse whitespace and cap user-facing message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_MESSAGE_CHARS - 1]}..."

    @staticmethod
    def _redact(text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        return re.sub(r"(?i)bearer\s+[A-Za-z0-9._-]{12,}", "Bearer [redacted-token]", redacted)

    @classmethod
    def _parse_error_body(cls, response: requests.Response | None) -> tuple[str, str | None]:
        """Return a concise provider message and optional provider error code."""

        if response is None:
            return "", None
        body = bytes(response.content or b"").decode("utf-8", errors="replace").strip()
        if not body:
            return "", None
        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._shorten(cls._redact(body)), None

        message = body
        code: str | None = None
        error_payload = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error_payload, dict):
            if isinstance(error_payload.get("code"), str) and error_payload["code"].strip():
                code = error_payload["code"].strip()
            if isinstance(error_payload.get("message"), str) and error_payload["message"].strip():
                message = error_payload["message"].strip()
        return cls._shorten(cls._redact(message)), code

    @staticmethod
    def _classify_http_failure(status_code: int, message: str, code: str | None) -> str:
        """Map an HTTP failure to a deterministic failure kind."""

        message_lower = message.lower()
        code_lower = (code or "").lower()
        if status_code == 401 or "api key" in message_lower:
            return "invalid_api_key"
        if code_lower == "insufficient_quota" or (status_code == 429 and "quota" in message_lower):
            return "insufficient_quota"
        if code_lower == "model_not_found" or (
            "model" in message_lower
            and any(phrase in message_lower for phrase in ("not found", "does not exist"))
        ):
            return "invalid_model"
        if status_code == 429:
            return "rate_limited"
        if status_code in {408, 504} or "timed out" in message_lower or "timeout" in message_lower:
            return "timeout"
        return "http_error"

    @classmethod
    def _from_http_error(cls, exc: requests.HTTPError) -> OpenAIProviderError:
        """Convert an HTTP error into a provider error with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        message, code = cls._parse_error_body(exc.response)
        failure_kind = cls._classify_http_failure(status_code, message, code)
        detail = f"OpenAI request failed (HTTP {status_code})"
        if message:
            detail = f"{detail}: {message}"
        return OpenAIProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=code,
        )

    @staticmethod
    def _extract_message_text(raw_body: str) -> str:
        """Extract the first assistant message text from a chat-completions body."""

        try:
            payload = json.loads(raw_body)
        except json.JSONDecodeError as exc:
            raise OpenAIProviderError(
                "OpenAI returned invalid JSON payload.", failure_kind="malformed_output"
            ) from exc

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise OpenAIProviderError(
                "OpenAI response missing non-empty `choices` list.",
                failure_kind="malformed_output",
            )
        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, list):
            content = "".join(
                item["text"]
                for item in content
                if isinstance(item, dict) and item.get("type") == "text"
                and isinstance(item.get("text"), str)
            )
        if not isinstance(content, str) or not content.strip():
            raise OpenAIProviderError(
                "OpenAI response message content is empty.", failure_kind="malformed_output"
            )
        return content.strip()
