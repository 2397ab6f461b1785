"""Tests for structured output schema handling."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessage
from pydantic import BaseModel, Field

from chancery.models.decision import DecisionParseOutput
from chancery.providers.structured_output import (
    _make_all_required,
    build_json_schema,
    is_strict_provider,
    message_text,
    unwrap_structured_result,
    with_structured_output,
)


class Inner(BaseModel):
    value: int
    note: str | None = None


class Outer(BaseModel):
    name: str
    items: list[Inner] = Field(default_factory=list)
    comment: str | None = None


def _all_objects(schema: Any) -> list[dict[str, Any]]:
    found: list[dict[str, Any]] = []
    if isinstance(schema, dict):
        if "properties" in schema:
            found.append(schema)
        for value in schema.values():
            found.extend(_all_objects(value))
    elif isinstance(schema, list):
        for item in schema:
            found.extend(_all_objects(item))
    return found


class TestMakeAllRequired:
    """Tests for the OpenAI strict-mode required-field rewrite."""

    def test_top_level_and_defs(self) -> None:
        schema = _make_all_required(Outer.model_json_schema())

        assert schema["required"] == ["comment", "items", "name"]
        assert schema["$defs"]["Inner"]["required"] == ["note", "value"]

    def test_nested_items_without_defs(self) -> None:
        schema = {
            "type": "object",
            "properties": {
                "rows": {
                    "type": "array",
                    "items": {"type": "object", "properties": {"a": {}, "b": {}}},
                }
            },
        }
        _make_all_required(schema)
        assert schema["properties"]["rows"]["items"]["required"] == ["a", "b"]

    def test_any_of_variants(self) -> None:
        schema = {"anyOf": [{"type": "object", "properties": {"x": {}}}, {"type": "null"}]}
        _make_all_required(schema)
        assert schema["anyOf"][0]["required"] == ["x"]


class TestBuildJsonSchema:
    """Tests for provider-specific schema construction."""

    def test_strict_provider_schema(self) -> None:
        schema = build_json_schema(DecisionParseOutput, "decision_parse", "openai")
        dumped = json.dumps(schema)

        assert schema["title"] == "decision_parse"
        assert '"oneOf"' not in dumped
        assert '"discriminator"' not in dumped
        assert '"anyOf"' in dumped
        for obj in _all_objects(schema):
            assert obj["required"] == sorted(obj["properties"])

    def test_non_strict_provider_keeps_discriminator(self) -> None:
        schema = build_json_schema(DecisionParseOutput, provider_name="ollama")
        dumped = json.dumps(schema)

        assert schema["title"] == "DecisionParseOutput"
        assert '"discriminator"' in dumped
        assert schema["required"] != sorted(schema["properties"])

    def test_does_not_mutate_cached_schema(self) -> None:
        before = json.dumps(DecisionParseOutput.model_json_schema(), sort_keys=True)
        build_json_schema(DecisionParseOutput, "decision_parse", "openrouter")
        after = json.dumps(DecisionParseOutput.model_json_schema(), sort_keys=True)
        assert before == after

    @pytest.mark.parametrize(
        ("provider", "expected"),
        [("openai", True), ("OpenRouter", True), ("groq", False), ("ollama", False), (None, False)],
    )
    def test_is_strict_provider(self, provider: str | None, expected: bool) -> None:
        assert is_strict_provider(provider) is expected


class TestWithStructuredOutput:
    """Tests for wrapping a chat model."""

    def test_openai_uses_strict_json_schema(self) -> None:
        model = MagicMock()

        runnable = with_structured_output(model, Outer, "outer", "openai")

        assert runnable is model.with_structured_output.return_value
        args, kwargs = model.with_structured_output.call_args
        assert args[0]["title"] == "outer"
        assert kwargs == {"method": "json_schema", "include_raw": True, "strict": True}

    def test_ollama_not_strict(self) -> None:
        model = MagicMock()
        with_structured_output(model, Outer, provider_name="ollama")
        assert model.with_structured_output.call_args.kwargs["strict"] is None


class TestUnwrapStructuredResult:
    """Tests for include_raw result unwrapping."""

    def test_include_raw_dict(self) -> None:
        raw = AIMessage(content='{"name": "x"}')
        parsed, message = unwrap_structured_result(
            {"raw": raw, "parsed": {"name": "x", "comment": None}, "parsing_error": None}
        )
        assert parsed == {"name": "x"}
        assert message is raw

    def test_plain_value(self) -> None:
        parsed, message = unwrap_structured_result({"name": "x", "comment": None})
        assert parsed == {"name": "x"}
        assert message is None

    def test_failed_parse(self) -> None:
        parsed, _ = unwrap_structured_result(
            {"raw": AIMessage(content="nope"), "parsed": None, "parsing_error": ValueError()}
        )
        assert parsed is None


class TestMessageText:
    """Tests for text extraction from messages."""

    def test_string_content(self) -> None:
        assert message_text(AIMessage(content="hello")) == "hello"

    def test_content_blocks(self) -> None:
        message = AIMessage(content=[{"type": "text", "text": "a"}, {"type": "text", "text": "b"}])
        assert message_text(message) == "ab"

    def test_missing_message(self) -> None:
        assert message_text(None) is None
