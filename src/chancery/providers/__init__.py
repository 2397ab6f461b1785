"""Decision provider abstraction and LangChain-backed implementations."""

from chancery.providers.base import (
    DecisionProvider,
    Message,
    ParseResult,
    ProviderConnectionError,
    ProviderError,
    ProviderModelError,
    ProviderRateLimitError,
)
from chancery.providers.factory import (
    create_chat_model,
    create_decision_provider,
    get_default_model,
)
from chancery.providers.langchain_provider import LangChainDecisionProvider

__all__ = [
    "DecisionProvider",
    "LangChainDecisionProvider",
    "Message",
    "ParseResult",
    "ProviderConnectionError",
    "ProviderError",
    "ProviderModelError",
    "ProviderRateLimitError",
    "create_chat_model",
    "create_decision_provider",
    "get_default_model",
]
