"""Configuration loading.

Resolution order for every setting:

1. Environment variable (e.g. ``LLM_PROVIDER``)
2. YAML config file, when one is given
3. Built-in default

Per-request provider overrides come from ``x-llm-*`` headers and are layered
on top by ``LLMRequestOverrides``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping  # noqa: TC003 - used at runtime
from dataclasses import dataclass, field, replace
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

from chancery.models.options import GameOptions

DEFAULT_PROVIDER = "openai"
DEFAULT_MODEL = "gpt-5-nano"
DEFAULT_GROQ_MODEL = "openai/gpt-oss-20b"
DEFAULT_TEMPERATURE = 0.2

SUPPORTED_PROVIDERS = ("openai", "openrouter", "groq", "ollama")
# Providers a request header may select.
HEADER_PROVIDERS = ("openai", "openrouter", "groq")


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""


def _check_provider(provider: str, allowed: tuple[str, ...]) -> str:
    name = provider.strip().lower()
    if name not in allowed:
        raise ConfigError(f"Unsupported LLM provider: {provider}")
    return name


@dataclass
class ChanceryConfig:
    """Settings for the decision pipeline.

    Attributes:
        provider: Default provider (``LLM_PROVIDER``).
        model: Default model (``LLM_MODEL``).
        openrouter_model: Model used with OpenRouter (``OPENROUTER_MODEL``);
            falls back to ``model``.
        groq_model: Model used with Groq (``GROQ_MODEL``).
        temperature: Sampling temperature for decision requests.
        game_options: Default policy toggles.
    """

    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    openrouter_model: str | None = None
    groq_model: str = DEFAULT_GROQ_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    game_options: GameOptions = field(default_factory=GameOptions)

    def resolve_model(self, provider: str | None = None) -> str:
        """Pick the model for ``provider`` (default: the configured one)."""
        name = (provider or self.provider).lower()
        if name == "openrouter":
            return (self.openrouter_model or "").strip() or self.model
        if name == "groq":
            return self.groq_model
        return self.model

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChanceryConfig:
        """Create config from dictionary.

        Args:
            data: Mapping with optional ``provider``, ``model``,
                ``openrouter_model``, ``groq_model``, ``temperature`` and
                ``game_options`` keys.

        Raises:
            ConfigError: If a value is invalid.
        """
        options = dict(data.get("game_options") or {})
        try:
            return cls(
                provider=_check_provider(
                    str(data.get("provider", DEFAULT_PROVIDER)), SUPPORTED_PROVIDERS
                ),
                model=str(data.get("model", DEFAULT_MODEL)),
                openrouter_model=data.get("openrouter_model"),
                groq_model=str(data.get("groq_model", DEFAULT_GROQ_MODEL)),
                temperature=float(data.get("temperature", DEFAULT_TEMPERATURE)),
                game_options=GameOptions(**options),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def with_env(self, environ: Mapping[str, str] | None = None) -> ChanceryConfig:
        """Return a copy with environment overrides applied."""
        env = os.environ if environ is None else environ
        provider = env.get("LLM_PROVIDER")
        return replace(
            self,
            provider=(
                _check_provider(provider, SUPPORTED_PROVIDERS) if provider else self.provider
            ),
            model=env.get("LLM_MODEL") or self.model,
            openrouter_model=env.get("OPENROUTER_MODEL") or self.openrouter_model,
            groq_model=env.get("GROQ_MODEL") or self.groq_model,
        )


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ChanceryConfig:
    """Load configuration from an optional YAML file plus the environment.

    Args:
        path: YAML config file. Skipped when None.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        Resolved ChanceryConfig.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    config = ChanceryConfig()
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        yaml = YAML(typ="safe")
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.load(f)
        except Exception as e:
            raise ConfigError(f"Failed to parse config at {path}: {e}") from e
        if data is not None:
            if not isinstance(data, dict):
                raise ConfigError(f"Config at {path} must be a mapping")
            config = ChanceryConfig.from_dict(data)
    return config.with_env(environ)


def _read_header(headers: Mapping[str, Any], name: str) -> str | None:
    value = headers.get(name)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if isinstance(value, str):
        return value.strip() or None
    return None


@dataclass(frozen=True)
class LLMRequestOverrides:
    """Provider settings a single request may override.

    Attributes:
        provider: Provider for this request.
        api_key: API key override.
        base_url: Endpoint override.
        model: Model override.
    """

    provider: str
    api_key: str | None = None
    base_url: str | None = None
    model: str | None = None

    @classmethod
    def from_headers(
        cls,
        headers: Mapping[str, Any],
        default_provider: str = DEFAULT_PROVIDER,
    ) -> LLMRequestOverrides:
        """Read ``x-llm-provider``, ``x-llm-api-key``, ``x-llm-base-url`` and ``x-llm-model``.

        Raises:
            ConfigError: If ``x-llm-provider`` names an unsupported provider.
        """
        lowered = {str(k).lower(): v for k, v in headers.items()}
        provider_header = _read_header(lowered, "x-llm-provider")
        provider = (
            _check_provider(provider_header, HEADER_PROVIDERS)
            if provider_header
            else default_provider
        )
        return cls(
            provider=provider,
            api_key=_read_header(lowered, "x-llm-api-key"),
            base_url=_read_header(lowered, "x-llm-base-url"),
            model=_read_header(lowered, "x-llm-model"),
        )

    def resolve_model(self, config: ChanceryConfig) -> str:
        """The header model if given, else the config's model for this provider."""
        return self.model or config.resolve_model(self.provider)
