"""Pydantic models for actions, decisions, task context, scenarios and options."""

from chancery.models.action import (
    ACTION_PARAM_KEYS,
    ACTION_TYPES,
    Action,
    ActionParams,
    ActionType,
    action_to_dict,
    validate_action,
)
from chancery.models.context import (
    ChatMessage,
    ContextSource,
    PerceivedFact,
    TaskConstraints,
    TaskContext,
)
from chancery.models.decision import ActionBundle, DecisionParseOutput
from chancery.models.options import GameOptions
from chancery.models.scenario import (
    Appointment,
    Character,
    Office,
    ProvinceSnapshot,
    Scenario,
    ScenarioIndex,
    ScenarioNation,
)

__all__ = [
    "ACTION_PARAM_KEYS",
    "ACTION_TYPES",
    "Action",
    "ActionBundle",
    "ActionParams",
    "ActionType",
    "Appointment",
    "Character",
    "ChatMessage",
    "ContextSource",
    "DecisionParseOutput",
    "GameOptions",
    "Office",
    "PerceivedFact",
    "ProvinceSnapshot",
    "Scenario",
    "ScenarioIndex",
    "ScenarioNation",
    "TaskConstraints",
    "TaskContext",
    "action_to_dict",
    "validate_action",
]
