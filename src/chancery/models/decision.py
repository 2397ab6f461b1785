"""Pydantic models for decision bundles and the parse output."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from chancery.models.action import Action, NonEmpty  # noqa: TC001 - pydantic needs runtime types


class ActionBundle(BaseModel):
    """A labelled, non-empty set of actions forming one course of action."""

    model_config = ConfigDict(extra="forbid")

    label: NonEmpty = Field(description="Short label, e.g. 'A: Faithful' or 'B: Alternative'")
    actions: list[Action] = Field(min_length=1, description="Actions to apply, in order")
    tradeoffs: list[str] = Field(default_factory=list, description="Known costs of this bundle")


class DecisionParseOutput(BaseModel):
    """Two alternative bundles proposed for one task.

    Bundle A is the faithful interpretation of the player's intent, bundle B
    the conservative alternative.
    """

    model_config = ConfigDict(extra="forbid")

    task_id: NonEmpty
    intent_summary: NonEmpty = Field(description="One-sentence summary of the player's intent")
    proposed_bundles: list[ActionBundle] = Field(min_length=2, max_length=2)
    clarifying_questions: list[str] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Dump to plain JSON-compatible data, omitting unset optional params."""
        return self.model_dump(mode="json", exclude_none=True)
