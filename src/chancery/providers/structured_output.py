"""Structured output helpers.

All providers use LangChain's ``json_schema`` method. OpenAI's strict mode
adds two constraints the Pydantic-generated schema does not satisfy out of
the box:

- every property must be listed in ``required`` (handled by
  ``_make_all_required()``);
- ``oneOf`` and ``discriminator`` are not accepted (the action union is
  rewritten to ``anyOf``, which is equivalent for tagged variants).

Optional fields therefore become required-but-nullable for OpenAI; the nulls
the model sends back are stripped again before normalization.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from chancery.observability.logging import get_logger

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel
    from langchain_core.runnables import Runnable
    from pydantic import BaseModel

log = get_logger(__name__)

# Providers speaking the OpenAI API with strict json_schema support.
STRICT_SCHEMA_PROVIDERS = frozenset({"openai", "openrouter"})


def _make_all_required(schema: dict[str, Any], schema_name: str = "root") -> dict[str, Any]:
    """Post-process JSON schema to make all properties required.

    Args:
        schema: JSON schema dict to modify in-place.
        schema_name: Name for logging (e.g., "DecisionParseOutput").

    Returns:
        Modified schema with all properties in required array.
    """
    if "properties" in schema:
        current_required = set(schema.get("required", []))
        all_props = set(schema.get("properties", {}).keys())
        for field in sorted(all_props - current_required):
            log.debug("schema_field_made_required", field=field, schema=schema_name)
        schema["required"] = sorted(all_props)

        for prop_name, prop_schema in schema.get("properties", {}).items():
            if isinstance(prop_schema, dict):
                _make_all_required(prop_schema, schema_name=f"{schema_name}.{prop_name}")

    if "items" in schema and isinstance(schema["items"], dict):
        _make_all_required(schema["items"], schema_name=f"{schema_name}[]")

    for key in ("anyOf", "oneOf", "allOf"):
        for variant in schema.get(key, []):
            if isinstance(variant, dict):
                _make_all_required(variant, schema_name=schema_name)

    if "$defs" in schema:
        for def_name, def_schema in schema["$defs"].items():
            if isinstance(def_schema, dict):
                _make_all_required(def_schema, schema_name=def_name)

    return schema


def _strip_discriminators(schema: Any) -> Any:
    """Rewrite ``oneOf`` to ``anyOf`` and drop ``discriminator`` in-place."""
    if isinstance(schema, dict):
        schema.pop("discriminator", None)
        if "oneOf" in schema:
            schema["anyOf"] = schema.pop("oneOf")
        for value in schema.values():
            _strip_discriminators(value)
    elif isinstance(schema, list):
        for item in schema:
            _strip_discriminators(item)
    return schema


def build_json_schema(
    schema: type[BaseModel],
    schema_name: str | None = None,
    provider_name: str | None = None,
) -> dict[str, Any]:
    """Build the JSON schema sent to the provider.

    Args:
        schema: Pydantic model class for the output.
        schema_name: Name to publish the schema under. Defaults to the class name.
        provider_name: Provider name; OpenAI-compatible providers get the
            strict-mode post-processing.

    Returns:
        A fresh schema dict (Pydantic's cached schema is never mutated).
    """
    json_schema = copy.deepcopy(schema.model_json_schema())
    json_schema["title"] = schema_name or schema.__name__

    if is_strict_provider(provider_name):
        log.debug("applying_openai_strict_schema", schema=json_schema["title"])
        _strip_discriminators(json_schema)
        _make_all_required(json_schema, schema_name=json_schema["title"])

    return json_schema


def is_strict_provider(provider_name: str | None) -> bool:
    return bool(provider_name) and provider_name.lower() in STRICT_SCHEMA_PROVIDERS


def with_structured_output(
    model: BaseChatModel,
    schema: type[BaseModel],
    schema_name: str | None = None,
    provider_name: str | None = None,
) -> Runnable[Any, Any]:
    """Wrap a model with structured output capability.

    Args:
        model: Base chat model to configure.
        schema: Pydantic model class for output schema validation.
        schema_name: Name to publish the schema under.
        provider_name: Provider name. Used to apply OpenAI-specific schema
            transformations.

    Returns:
        Runnable whose ``ainvoke()`` returns ``{"raw", "parsed", "parsing_error"}``.
    """
    json_schema = build_json_schema(schema, schema_name, provider_name)
    return model.with_structured_output(
        json_schema,
        method="json_schema",
        include_raw=True,
        strict=True if is_strict_provider(provider_name) else None,
    )


def unwrap_structured_result(raw_result: Any) -> tuple[Any, Any]:
    """Split an ``include_raw=True`` result into (parsed, raw message).

    When ``with_structured_output(include_raw=True)`` is used, ``ainvoke()``
    returns ``{"raw": AIMessage, "parsed": ..., "parsing_error": ...}``.
    Anything else (mocks, providers returning values directly) is treated
    as the parsed value with no raw message.

    When the parsed result is a dict, null values are stripped.
    """
    from chancery.decision.actions import strip_null_values

    if isinstance(raw_result, dict) and "parsed" in raw_result:
        parsed = raw_result["parsed"]
        raw = raw_result.get("raw")
    else:
        parsed, raw = raw_result, None
    if isinstance(parsed, dict):
        parsed = strip_null_values(parsed)
    return parsed, raw


def message_text(message: Any) -> str | None:
    """Extract text content from a LangChain message (str or content blocks)."""
    content = getattr(message, "content", None)
    if content is None:
        return None
    if isinstance(content, list):
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block) for block in content
        )
    return str(content)
