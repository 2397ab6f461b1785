"""Base protocol and types for decision providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol, TypedDict

if TYPE_CHECKING:
    from pydantic import BaseModel


class Message(TypedDict):
    """A single chat message.

    Attributes:
        role: Message role - "system", "user", or "assistant".
        content: Message content text.
    """

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass
class ParseResult:
    """Result of a schema-constrained request.

    Attributes:
        parsed: Structured value returned by the provider, nulls stripped.
        raw_text: Raw completion text, when the provider exposes it.
        raw_json: The decoded JSON object before any stripping, when
            available. The pipeline prefers this over ``parsed``.
    """

    parsed: Any
    raw_text: str | None = None
    raw_json: Any = None


class DecisionProvider(Protocol):
    """Protocol for the language-model backend of the decision pipeline.

    Two operations are needed: a schema-constrained request for the first
    tier and a plain text completion for the JSON-only retry.
    """

    @property
    def name(self) -> str:
        """Provider identifier, e.g. ``"openai"``."""
        ...

    async def parse_with_schema(
        self,
        model: str,
        schema: type[BaseModel],
        schema_name: str,
        messages: list[Message],
        temperature: float = 0.2,
    ) -> ParseResult:
        """Request output constrained to ``schema``.

        Raises:
            ProviderError: If the request fails or no structured value comes back.
        """
        ...

    async def complete_text(
        self,
        model: str,
        messages: list[Message],
        temperature: float = 0.2,
    ) -> str:
        """Request a plain text completion.

        Raises:
            ProviderError: If the request fails.
        """
        ...


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class ProviderConnectionError(ProviderError):
    """Raised when connection to the provider fails."""

    pass


class ProviderRateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""

    pass


class ProviderModelError(ProviderError):
    """Raised when the requested model is unavailable."""

    pass
