"""LangChain adapter for the decision provider protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from chancery.observability.logging import get_logger
from chancery.providers.base import (
    Message,
    ParseResult,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
)
from chancery.providers.structured_output import (
    message_text,
    unwrap_structured_result,
    with_structured_output,
)

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel
    from pydantic import BaseModel

log = get_logger(__name__)


def _wrap_error(provider: str, action: str, error: Exception) -> ProviderError:
    """Map a backend exception onto the provider error hierarchy."""
    if isinstance(error, ProviderError):
        return error
    kind = type(error).__name__
    message = f"{action} failed: {error}"
    if "RateLimit" in kind:
        return ProviderRateLimitError(provider, message)
    if "Connection" in kind or "Timeout" in kind:
        return ProviderConnectionError(provider, message)
    return ProviderError(provider, message)


class LangChainDecisionProvider:
    """Adapts a LangChain chat model to the ``DecisionProvider`` protocol.

    Attributes:
        name: Provider identifier used for schema handling and error messages.
        default_model: The model name this provider was configured with.
    """

    def __init__(self, model: BaseChatModel, name: str, default_model: str) -> None:
        """Initialize with a LangChain chat model.

        Args:
            model: Configured LangChain chat model instance.
            name: Provider identifier (openai, openrouter, groq, ollama).
            default_model: Model name for identification.
        """
        self._model = model
        self._name = name
        self._default_model = default_model

    @property
    def name(self) -> str:
        return self._name

    @property
    def default_model(self) -> str:
        return self._default_model

    async def parse_with_schema(
        self,
        model: str,
        schema: type[BaseModel],
        schema_name: str,
        messages: list[Message],
        temperature: float = 0.2,  # noqa: ARG002 - set at model construction
    ) -> ParseResult:
        """Request structured output matching ``schema``.

        Args:
            model: Model name, for logging only.
            schema: Pydantic model class describing the output.
            schema_name: Name the schema is published under.
            messages: Conversation messages.
            temperature: Unused - set at model construction.

        Returns:
            ParseResult with the parsed dict, raw text and raw JSON.

        Raises:
            ProviderError: If the request fails or nothing could be parsed.
        """
        runnable = with_structured_output(
            self._model, schema, schema_name=schema_name, provider_name=self._name
        )
        lc_messages = [self._to_langchain_message(m) for m in messages]
        try:
            result = await runnable.ainvoke(lc_messages)
        except Exception as e:
            raise _wrap_error(self._name, "Structured request", e) from e

        parsed, raw = unwrap_structured_result(result)
        if parsed is None:
            error = result.get("parsing_error") if isinstance(result, dict) else None
            log.debug("structured_output_unparsed", model=model, error=str(error))
            raise ProviderError(self._name, f"Structured output could not be parsed: {error}")

        raw_json = result.get("parsed") if isinstance(result, dict) else parsed
        return ParseResult(parsed=parsed, raw_text=message_text(raw), raw_json=raw_json)

    async def complete_text(
        self,
        model: str,
        messages: list[Message],
        temperature: float = 0.2,  # noqa: ARG002 - set at model construction
    ) -> str:
        """Request a plain completion and return its text.

        Raises:
            ProviderError: If the request fails.
        """
        lc_messages = [self._to_langchain_message(m) for m in messages]
        try:
            response: AIMessage = await self._model.ainvoke(lc_messages)
        except Exception as e:
            raise _wrap_error(self._name, "Completion", e) from e

        text = message_text(response) or ""
        log.debug("completion_received", model=model, chars=len(text))
        return text

    def _to_langchain_message(self, msg: Message) -> Any:
        """Convert our Message to LangChain message."""
        role = msg["role"]
        content = msg["content"]

        if role == "system":
            return SystemMessage(content=content)
        elif role == "user":
            return HumanMessage(content=content)
        elif role == "assistant":
            return AIMessage(content=content)
        else:
            raise ValueError(f"Unknown role: {role}")

    async def close(self) -> None:
        """Close provider (no-op for LangChain)."""
        pass

    async def __aenter__(self) -> LangChainDecisionProvider:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()
