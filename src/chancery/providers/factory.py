"""Build decision providers from a provider name.

Every provider goes through LangChain's ``init_chat_model``. What differs
per provider is resolved first: where the API key comes from, which
endpoint to talk to, and for Ollama, which context window to request.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from chancery.observability.logging import get_logger
from chancery.providers.base import ProviderError
from chancery.providers.langchain_provider import LangChainDecisionProvider

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

log = get_logger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OLLAMA_DEFAULT_NUM_CTX = 32_768

# None: the caller has to name a model
PROVIDER_DEFAULTS: dict[str, str | None] = {
    "openai": "gpt-5-nano",
    "openrouter": "openai/gpt-5-nano",
    "groq": "openai/gpt-oss-20b",
    "ollama": None,
}

# Used by create_decision_provider when no default exists
_FALLBACK_MODELS = {"ollama": "qwen3:4b-instruct-32k"}


@dataclass(frozen=True)
class _ProviderSpec:
    init_name: str
    package: str
    key_env: str | None = None
    base_url: str | None = None


_SPECS: dict[str, _ProviderSpec] = {
    "openai": _ProviderSpec("openai", "langchain-openai", key_env="OPENAI_API_KEY"),
    # OpenAI-compatible endpoint, built as an OpenAI model
    "openrouter": _ProviderSpec(
        "openai", "langchain-openai", key_env="OPENROUTER_API_KEY", base_url=OPENROUTER_BASE_URL
    ),
    "groq": _ProviderSpec("groq", "langchain-groq", key_env="GROQ_API_KEY"),
    "ollama": _ProviderSpec("ollama", "langchain-ollama"),
}

KNOWN_PROVIDERS = frozenset(_SPECS)


def get_default_model(provider_name: str) -> str | None:
    """Default model for a provider, or None if one must be given."""
    return PROVIDER_DEFAULTS.get(provider_name.lower())


def create_chat_model(provider_name: str, model: str, **kwargs: Any) -> BaseChatModel:
    """Build a configured LangChain chat model.

    Args:
        provider_name: One of ``openai``, ``openrouter``, ``groq``, ``ollama``.
        model: Model identifier.
        **kwargs: ``api_key``, ``base_url``, ``host`` (Ollama), ``temperature``
            and any other option for the chat model class.

    Raises:
        ProviderError: If the provider is unknown, lacks credentials, or its
            LangChain integration is not installed.
    """
    provider = provider_name.lower()
    spec = _SPECS.get(provider)
    if spec is None:
        log.error("provider_unknown", provider=provider)
        raise ProviderError(provider, f"Unknown provider: {provider}")

    if provider == "ollama":
        options = _ollama_options(model, kwargs)
    else:
        options = _hosted_options(provider, spec, kwargs)
    options = filter_model_kwargs(provider, model, options)

    try:
        chat_model = _init_chat_model_safe(spec.init_name, model, **options)
    except ImportError as e:
        log.error("provider_import_error", provider=provider, package=spec.package)
        raise ProviderError(
            provider, f"{spec.package} not installed. Run: pip install {spec.package}"
        ) from e

    log.info("chat_model_created", provider=provider, model=model)
    return chat_model


def create_decision_provider(
    provider: str,
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    temperature: float = 0.2,
) -> LangChainDecisionProvider:
    """Create the provider the decision parser talks to.

    Args:
        provider: Provider name.
        model: Model name; the provider default when omitted.
        api_key: Overrides the provider's API key environment variable.
        base_url: Endpoint override. For Ollama this is the host.
        temperature: Sampling temperature, fixed when the model is built.

    Raises:
        ProviderError: If the chat model cannot be created.
    """
    name = provider.lower()
    resolved_model = model or get_default_model(name) or _FALLBACK_MODELS.get(name)
    if resolved_model is None:
        raise ProviderError(name, f"No default model for provider: {name}")

    options: dict[str, Any] = {"temperature": temperature, "api_key": api_key}
    if base_url:
        options["host" if name == "ollama" else "base_url"] = base_url

    chat_model = create_chat_model(name, resolved_model, **options)
    return LangChainDecisionProvider(chat_model, name=name, default_model=resolved_model)


def _init_chat_model_safe(provider: str, model: str, **kwargs: Any) -> BaseChatModel:
    # Imported lazily; ImportError for a missing integration reaches the caller
    from langchain.chat_models import init_chat_model

    result: BaseChatModel = init_chat_model(model=model, model_provider=provider, **kwargs)
    return result


def _hosted_options(provider: str, spec: _ProviderSpec, kwargs: dict[str, Any]) -> dict[str, Any]:
    options = dict(kwargs)
    key_env = spec.key_env or ""
    api_key = options.get("api_key") or os.getenv(key_env)
    if not api_key:
        log.error("provider_config_error", provider=provider, missing=key_env)
        raise ProviderError(provider, f"API key required. Set {key_env} environment variable.")
    options["api_key"] = api_key
    if spec.base_url and not options.get("base_url"):
        options["base_url"] = spec.base_url
    return options


def _ollama_options(model: str, kwargs: dict[str, Any]) -> dict[str, Any]:
    options = {k: v for k, v in kwargs.items() if k not in ("api_key", "host")}
    host = kwargs.get("host") or os.getenv("OLLAMA_HOST")
    if not host:
        log.error("provider_config_error", provider="ollama", missing="OLLAMA_HOST")
        raise ProviderError(
            "ollama", "OLLAMA_HOST not configured. Set OLLAMA_HOST environment variable."
        )
    options["base_url"] = host
    if "num_ctx" not in options:
        options["num_ctx"] = _query_ollama_num_ctx(host, model) or OLLAMA_DEFAULT_NUM_CTX
    return options


def _is_reasoning_model(model: str) -> bool:
    # o-series and gpt-5 reject a caller-set temperature
    return model.lower().removeprefix("openai/").startswith(("o1", "o3", "o4", "gpt-5"))


def filter_model_kwargs(provider: str, model: str, kwargs: dict[str, Any]) -> dict[str, Any]:
    """Remove unset options and options the model would reject.

    Args:
        provider: Lower-case provider name.
        model: Model identifier.
        kwargs: Candidate constructor options.

    Returns:
        A new dict safe to pass to ``init_chat_model``.
    """
    drops_temperature = provider in ("openai", "openrouter") and _is_reasoning_model(model)
    filtered: dict[str, Any] = {}
    for key, value in kwargs.items():
        if value is None:
            continue
        if key == "temperature" and drops_temperature:
            log.warning(
                "param_rejected_by_model",
                param=key,
                model=model,
                reason="reasoning_model_controls_temperature",
            )
            continue
        filtered[key] = value
    return filtered


def _num_ctx_from_show(data: dict[str, Any]) -> tuple[int | None, str]:
    for line in str(data.get("parameters") or "").splitlines():
        fields = line.split()
        if len(fields) >= 2 and fields[0] == "num_ctx" and fields[-1].isdigit():
            return int(fields[-1]), "parameters"
    for key, value in (data.get("model_info") or {}).items():
        if key.endswith(".context_length") and isinstance(value, int):
            return value, "model_info"
    return None, ""


def _query_ollama_num_ctx(host: str, model: str) -> int | None:
    """Ask an Ollama server for a model's context window.

    The ``num_ctx`` line of the model's Modelfile parameters wins; the
    architecture ``*.context_length`` from ``model_info`` is the fallback.

    Args:
        host: Ollama base URL.
        model: Model name as Ollama knows it.

    Returns:
        Context length in tokens, or None if the server is unreachable or
        reports neither value.
    """
    import httpx

    try:
        with httpx.Client(timeout=10.0) as client:
            response = client.post(f"{host.rstrip('/')}/api/show", json={"model": model})
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        log.warning("ollama_show_failed", model=model, error=str(exc))
        return None

    num_ctx, source = _num_ctx_from_show(data)
    if num_ctx is not None:
        log.info("ollama_num_ctx_detected", model=model, num_ctx=num_ctx, source=source)
    return num_ctx
