"""Scenario referential coercer.

Second validation pass keyed to the live game world: policy filtering, then
every identifier on a surviving action is checked against the scenario and
replaced by a deterministic fallback when it does not exist. After this
pass no action references an entity the scenario does not contain.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from chancery.decision.bundles import build_fallback_action
from chancery.decision.errors import format_validation_errors
from chancery.models.action import ACTION_PARAM_KEYS, action_to_dict, validate_action
from chancery.models.decision import ActionBundle, DecisionParseOutput
from chancery.models.options import GameOptions
from chancery.models.scenario import Scenario, ScenarioIndex
from chancery.observability.logging import get_logger

if TYPE_CHECKING:
    from chancery.decision.report import NormalizationReport
    from chancery.models.action import Action
    from chancery.models.context import TaskContext

log = get_logger(__name__)

PROVINCE_FIELDS = ("province_id", "from_province_id", "to_province_id")


def _set_or_remove(params: dict[str, Any], key: str, fallback: str | None) -> None:
    if fallback is None:
        params.pop(key, None)
    else:
        params[key] = fallback


def _coerce_field(
    params: dict[str, Any],
    key: str,
    is_valid: bool,
    fallback: str | None,
) -> None:
    if key in params and not is_valid:
        _set_or_remove(params, key, fallback)


def _coerce_relation_delta(entry: dict[str, Any], index: ScenarioIndex) -> dict[str, Any]:
    entry = dict(entry)
    valid_source = index.is_nation(entry.get("from_nation_id"))
    _coerce_field(entry, "from_nation_id", valid_source, index.player_nation_id)
    target = entry.get("target_nation_id")
    _coerce_field(
        entry,
        "target_nation_id",
        index.is_nation(target) and target != index.player_nation_id,
        index.non_player_nation_id,
    )
    return entry


def coerce_params(action_type: str, params: dict[str, Any], index: ScenarioIndex) -> dict[str, Any]:
    """Repair every identifier field present in ``params``.

    Fields are only rewritten, never invented, with one exception: a valid
    ``office_id`` on a kind that declares ``character_id`` gets the office's
    appointed character when no character was given. A field without a
    usable fallback is removed, so the action either validates without it or
    is dropped by the caller.
    """
    params = dict(params)

    target = params.get("target_nation_id")
    _coerce_field(
        params,
        "target_nation_id",
        index.is_nation(target) and target != index.player_nation_id,
        index.non_player_nation_id,
    )
    for key in ("nation_id", "from_nation_id"):
        _coerce_field(params, key, index.is_nation(params.get(key)), index.player_nation_id)

    for key in PROVINCE_FIELDS:
        _coerce_field(params, key, index.is_province(params.get(key)), index.home_province_id)

    valid_office = index.is_office(params.get("office_id"))
    _coerce_field(params, "office_id", valid_office, index.home_office_id)

    office_id = params.get("office_id")
    appointed = index.appointed_character(office_id) if isinstance(office_id, str) else None
    if (
        appointed is not None
        and "character_id" in ACTION_PARAM_KEYS[action_type]
        and "character_id" not in params
    ):
        params["character_id"] = appointed

    _coerce_field(
        params,
        "character_id",
        index.is_character(params.get("character_id")),
        appointed or index.fallback_character_id,
    )
    _coerce_field(
        params,
        "chair_character_id",
        index.is_character(params.get("chair_character_id")),
        index.fallback_character_id,
    )

    relation_deltas = params.get("relation_deltas")
    if isinstance(relation_deltas, list):
        params["relation_deltas"] = [
            _coerce_relation_delta(entry, index)
            for entry in relation_deltas
            if isinstance(entry, dict)
        ]

    return params


def _policy_violation(
    action_type: str,
    task_context: TaskContext,
    options: GameOptions,
) -> str | None:
    constraints = task_context.constraints
    if action_type in constraints.forbidden_action_types:
        return "forbidden"
    if constraints.allowed_action_types and action_type not in constraints.allowed_action_types:
        return "not_allowed"
    if options.strict_actions_only and action_type == "freeform_effect":
        return "strict_actions_only"
    return None


def coerce_action(
    action: Action,
    index: ScenarioIndex,
    options: GameOptions | None = None,
    report: NormalizationReport | None = None,
    *,
    bundle_index: int = 0,
) -> Action | None:
    """Repair one action's references; None if it no longer validates."""
    options = options or GameOptions()
    data = action_to_dict(action)
    params = coerce_params(action.type, data.get("params", {}), index)
    if options.limit_freeform_deltas and action.type == "freeform_effect":
        params["limit_deltas"] = True

    try:
        return validate_action({"type": action.type, "params": params})
    except ValidationError as e:
        errors = format_validation_errors(e)
        log.debug(
            "action_dropped",
            reason="invalid_after_coercion",
            action_type=action.type,
            bundle=bundle_index,
            errors=errors,
        )
        if report is not None:
            report.drop("coerce", bundle_index, action.type, "invalid_after_coercion", errors)
        return None


def coerce_decision(
    decision: DecisionParseOutput,
    scenario: Scenario | ScenarioIndex,
    task_context: TaskContext,
    options: GameOptions | None = None,
    report: NormalizationReport | None = None,
) -> DecisionParseOutput:
    """Filter by policy and repair references against the scenario.

    Args:
        decision: Structurally normalized decision.
        scenario: Scenario (or its prebuilt index) to coerce against.
        task_context: Supplies the allowed/forbidden constraints and the
            fallback action's topic.
        options: Game policy toggles.
        report: Optional report to record drops in.

    Returns:
        A new decision; bundle and action order is preserved and every
        bundle keeps at least one action.
    """
    options = options or GameOptions()
    index = scenario.index() if isinstance(scenario, Scenario) else scenario

    bundles: list[ActionBundle] = []
    for bundle_index, bundle in enumerate(decision.proposed_bundles):
        actions: list[Action] = []
        for action in bundle.actions:
            violation = _policy_violation(action.type, task_context, options)
            if violation is not None:
                log.debug(
                    "action_dropped",
                    reason=violation,
                    action_type=action.type,
                    bundle=bundle_index,
                )
                if report is not None:
                    report.drop("coerce", bundle_index, action.type, violation)
                continue
            coerced = coerce_action(action, index, options, report, bundle_index=bundle_index)
            if coerced is not None:
                actions.append(coerced)

        if not actions:
            actions.append(build_fallback_action(task_context))
            if report is not None:
                report.fallback_actions += 1

        bundles.append(
            ActionBundle(label=bundle.label, actions=actions, tradeoffs=list(bundle.tradeoffs))
        )

    return decision.model_copy(update={"proposed_bundles": bundles})
