"""Decision pipeline: normalization, coercion, synthesis and orchestration."""

from chancery.decision.actions import normalize_action
from chancery.decision.bundles import build_fallback_action, normalize_decision
from chancery.decision.coerce import coerce_decision
from chancery.decision.errors import DecisionParseError, LooseJSONError, SynthesisError
from chancery.decision.ids import (
    build_game_task_id,
    build_turn_task_id,
    is_uuid,
    normalize_scenario_geo_regions,
    stabilize_region_key,
)
from chancery.decision.loose_json import parse_loose_json
from chancery.decision.parser import DecisionParser, parse_decision, parse_decision_with_report
from chancery.decision.report import DroppedAction, NormalizationReport
from chancery.decision.rng import SeededRandom, hash_string
from chancery.decision.synthesize import SynthesizedDecision, synthesize_decision

__all__ = [
    "DecisionParseError",
    "DecisionParser",
    "DroppedAction",
    "LooseJSONError",
    "NormalizationReport",
    "SeededRandom",
    "SynthesisError",
    "SynthesizedDecision",
    "build_fallback_action",
    "build_game_task_id",
    "build_turn_task_id",
    "coerce_decision",
    "hash_string",
    "is_uuid",
    "normalize_action",
    "normalize_decision",
    "normalize_scenario_geo_regions",
    "parse_decision",
    "parse_decision_with_report",
    "parse_loose_json",
    "stabilize_region_key",
    "synthesize_decision",
]
