"""Pydantic models for the caller-supplied task context.

Only the prompt, sources, perceived facts, constraints and recent messages
are read by the decision pipeline. Richer callers may send additional
fields (story arcs, chat summaries); those are ignored.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from chancery.models.action import EntityId, NonEmpty  # noqa: TC001 - pydantic needs runtime types

TaskType = Literal[
    "diplomacy",
    "war",
    "finance",
    "interior",
    "intrigue",
    "appointment",
    "petition",
    "crisis",
]


class ContextSource(BaseModel):
    """Reference excerpt surfaced to the model (e.g. an encyclopedia article)."""

    source_type: Literal["wikipedia"] = "wikipedia"
    title: NonEmpty
    url: NonEmpty
    excerpt: str = ""


class PerceivedFact(BaseModel):
    """A fact the court believes about the situation, with its confidence."""

    model_config = ConfigDict(extra="ignore")

    fact_id: NonEmpty
    domain: Literal["diplomacy", "war", "finance", "interior", "intrigue", "society", "economy"]
    statement: NonEmpty
    value: float | str | bool | None = None
    confidence: float = Field(ge=0, le=1)


class TaskConstraints(BaseModel):
    """Caller-declared action policy for a task.

    ``forbidden_action_types`` always wins over the allowed and suggested lists.
    """

    allowed_action_types: list[str] = Field(default_factory=list)
    forbidden_action_types: list[str] = Field(default_factory=list)
    suggested_action_types: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """One message from the task's recent conversation."""

    model_config = ConfigDict(extra="ignore")

    role: Literal["player", "courtier", "system"]
    sender_character_id: EntityId | None = None
    content: NonEmpty


class TaskContext(BaseModel):
    """Decision-relevant view of a task awaiting the player's ruling."""

    model_config = ConfigDict(extra="ignore")

    task_id: NonEmpty
    task_type: TaskType = "petition"
    nation_id: NonEmpty
    prompt: NonEmpty
    sources: list[ContextSource] = Field(default_factory=list)
    perceived_facts: list[PerceivedFact] = Field(default_factory=list)
    constraints: TaskConstraints = Field(default_factory=TaskConstraints)
    last_messages: list[ChatMessage] = Field(default_factory=list)

    def last_player_message(self) -> str | None:
        """Return the most recent message the player sent, if any."""
        for message in reversed(self.last_messages):
            if message.role == "player":
                return message.content
        return None
