# ahamai/errors.py
from typing import List, Optional


class AhamAIError(Exception):
    """Base class for errors raised inside the app."""


class ProviderError(AhamAIError):
    """A single upstream API call failed or returned nothing usable."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class AllMethodsFailed(AhamAIError):
    """Every method in a fallback chain failed."""

    def __init__(self, label: str, errors: List[Exception]):
        self.label = label
        self.errors = errors
        super().__init__(f"All methods failed for {label}")


class InvalidToolArguments(AhamAIError):
    pass


class UnknownTool(AhamAIError):
    pass


class LLMError(AhamAIError):
    """The OpenAI-compatible completion endpoint failed."""
