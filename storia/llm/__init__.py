"""Provider-backed scene classification."""

from .cache import ResponseCache
from .classifier import OpenAIPageClassifier, PageClassifier, parse_descriptors
from .openai_client import OpenAIChatClient, OpenAIProviderError
from .prompts import PromptLibrary
from .rate_limiter import RateLimiter

__all__ = [
    "OpenAIChatClient",
    "OpenAIPageClassifier",
    "OpenAIProviderError",
    "PageClassifier",
    "PromptLibrary",
    "RateLimiter",
    "ResponseCache",
    "parse_descriptors",
]
