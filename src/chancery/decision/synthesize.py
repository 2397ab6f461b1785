"""Deterministic decision synthesizer.

Builds a two-bundle decision without any model, drawing every choice from a
mulberry32 stream seeded by ``(seed, turn_index, task_id)``. Identical inputs
always produce identical decisions.

The result is validated against the decision model but not coerced against
the scenario; callers apply coercion uniformly afterwards.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from chancery.decision.actions import strip_null_values
from chancery.decision.errors import SynthesisError
from chancery.decision.rng import SeededRandom, derive_seed
from chancery.models.action import validate_action
from chancery.models.decision import ActionBundle, DecisionParseOutput
from chancery.observability.logging import get_logger

if TYPE_CHECKING:
    from chancery.models.action import Action
    from chancery.models.context import TaskContext
    from chancery.models.scenario import Scenario

log = get_logger(__name__)

AUTO_INTENT_SUMMARY = "Auto-resolved at end of week."

# Synthesis order of the catalog; pool draws index into this order.
KNOWN_ACTIONS: tuple[str, ...] = (
    "send_spy",
    "counterintelligence",
    "send_envoy",
    "improve_relations",
    "sign_treaty",
    "issue_ultimatum",
    "sanction",
    "recognize_claim",
    "adjust_tax_rate",
    "issue_debt",
    "cut_spending",
    "fund_project",
    "subsidize_sector",
    "appoint_official",
    "reform_law",
    "crackdown",
    "mobilize",
    "raise_levies",
    "fortify",
    "deploy_force",
    "reorganize_army",
    "fund_faction",
    "leak_story",
    "create_committee",
    "apply_trajectory_modifier",
    "freeform_effect",
)

DEFAULT_ACTIONS: tuple[str, ...] = (
    "send_envoy",
    "improve_relations",
    "adjust_tax_rate",
    "issue_debt",
    "fund_project",
)


@dataclass(frozen=True)
class SynthesizedDecision:
    """Synthesizer output.

    Attributes:
        decision: Validated two-bundle decision.
        chosen_actions: The actions applied when the turn auto-resolves
            (bundle A's primary action).
    """

    decision: DecisionParseOutput
    chosen_actions: list[Action] = field(default_factory=list)


def summarize_prompt(prompt: str) -> str:
    """First six words of the prompt, or a neutral placeholder."""
    words = prompt.split()
    if not words:
        return "the matter at hand"
    return " ".join(words[:6])


@dataclass
class _Draws:
    """Per-action shared draws, taken before the kind-specific ones."""

    rng: SeededRandom
    scenario: Scenario
    target_nation: str
    province: str | None
    office: str | None
    character: str | None
    topic: str

    def maybe(self, value: Any) -> Any:
        return value if self.rng.rand_bool() else None


def _pick_target_nation(scenario: Scenario, player_nation_id: str, rng: SeededRandom) -> str:
    candidates = [n.nation_id for n in scenario.nations if n.nation_id != player_nation_id]
    if not candidates:
        return scenario.nations[0].nation_id
    return rng.pick(candidates)


def _pick_province(scenario: Scenario, rng: SeededRandom) -> str | None:
    provinces = [p.geo_region_id for p in scenario.province_snapshots]
    return rng.pick(provinces) if provinces else None


def _pick_office(scenario: Scenario, rng: SeededRandom) -> str | None:
    offices = [o.office_id for o in scenario.offices]
    return rng.pick(offices) if offices else None


def _pick_character(scenario: Scenario, rng: SeededRandom) -> str | None:
    characters = [c.character_id for c in scenario.characters]
    return rng.pick(characters) if characters else None


# --- Per-kind parameter builders. Dict literal order is draw order. ---


def _send_spy(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "target_nation_id": d.target_nation,
        "objective": r.pick(
            [
                "naval_intel",
                "army_intel",
                "economic_intel",
                "political_intel",
                "sabotage",
                "influence",
            ]
        ),
        "budget": r.rand_int(200, 1500),
        "duration_weeks": r.rand_int(4, 16),
        "risk_tolerance": r.pick(["low", "medium", "high"]),
    }


def _counterintelligence(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "budget": r.rand_int(200, 1200),
        "focus": r.pick(["ports", "court", "frontier", "finance"]),
        "duration_weeks": r.rand_int(4, 12),
    }


def _send_envoy(d: _Draws) -> dict[str, Any]:
    return {
        "target_nation_id": d.target_nation,
        "message_tone": d.rng.pick(["conciliatory", "neutral", "firm", "hostile"]),
        "topic": d.topic,
        "offer": d.maybe("Limited concessions"),
    }


def _improve_relations(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "target_nation_id": d.target_nation,
        "budget": r.rand_int(200, 1200),
        "message_tone": r.pick(["conciliatory", "neutral", "firm"]),
        "duration_weeks": r.rand_int(4, 12),
    }


def _sign_treaty(d: _Draws) -> dict[str, Any]:
    return {
        "target_nation_id": d.target_nation,
        "treaty_type": d.rng.pick(["trade", "non_aggression", "alliance", "research", "access"]),
        "concessions": [],
    }


def _issue_ultimatum(d: _Draws) -> dict[str, Any]:
    return {
        "target_nation_id": d.target_nation,
        "demand": f"Concessions on {d.topic}",
        "deadline_weeks": d.rng.rand_int(2, 8),
        "backdown_cost_legitimacy": d.rng.rand_float(2, 10),
    }


def _sanction(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "target_nation_id": d.target_nation,
        "scope": r.pick(["trade", "finance", "naval"]),
        "severity": r.rand_int(1, 3),
        "duration_weeks": r.rand_int(4, 12),
    }


def _recognize_claim(d: _Draws) -> dict[str, Any]:
    return {
        "target_nation_id": d.target_nation,
        "claim": f"Claim concerning {d.topic}",
        "public": d.rng.rand_bool(),
    }


def _adjust_tax_rate(d: _Draws) -> dict[str, Any]:
    return {
        "new_tax_rate": d.rng.rand_float(0.15, 0.45),
        "rationale": d.maybe("Balance the treasury."),
    }


def _issue_debt(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "amount": r.rand_int(500, 5000),
        "interest_rate_annual": r.rand_float(0.03, 0.12),
        "maturity_weeks": r.rand_int(12, 104),
    }


def _cut_spending(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "category": r.pick(["military", "administration", "court", "infrastructure", "subsidies"]),
        "weekly_amount": r.rand_int(100, 800),
        "duration_weeks": r.rand_int(4, 16),
    }


def _fund_project(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "project_type": r.pick(
            ["infrastructure", "fortifications", "bureaucracy", "schools", "shipyards"]
        ),
        "province_id": d.province,
        "budget": r.rand_int(400, 2000),
        "duration_weeks": r.rand_int(8, 24),
    }


def _subsidize_sector(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "sector": r.pick(["grain", "textiles", "arms", "shipping", "mining"]),
        "weekly_amount": r.rand_int(200, 1200),
        "duration_weeks": r.rand_int(4, 16),
    }


def _appoint_official(d: _Draws) -> dict[str, Any]:
    return {"office_id": d.office, "character_id": d.character}


def _reform_law(d: _Draws) -> dict[str, Any]:
    return {
        "law_key": "law_" + "_".join(d.topic.split()),
        "change": d.rng.pick(["enact", "repeal", "amend"]),
        "political_capital_cost": d.rng.rand_int(5, 25),
    }


def _crackdown(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "province_id": d.maybe(d.province),
        "intensity": r.rand_int(1, 3),
        "duration_weeks": r.rand_int(4, 12),
        "budget": r.rand_int(200, 1200),
    }


def _mobilize(d: _Draws) -> dict[str, Any]:
    return {
        "scope": d.rng.pick(["partial", "general"]),
        "target_readiness": d.rng.rand_float(0.6, 0.9),
    }


def _raise_levies(d: _Draws) -> dict[str, Any]:
    return {
        "province_id": d.maybe(d.province),
        "manpower": d.rng.rand_int(500, 5000),
    }


def _fortify(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "province_id": d.province,
        "level_increase": r.rand_int(1, 2),
        "budget": r.rand_int(400, 2000),
        "duration_weeks": r.rand_int(8, 24),
    }


def _deploy_force(d: _Draws) -> dict[str, Any]:
    to_province = _pick_province(d.scenario, d.rng)
    return {
        "from_province_id": d.province,
        "to_province_id": to_province,
        "units": d.rng.rand_int(1, 6),
    }


def _reorganize_army(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "focus": r.pick(["training", "logistics", "officer_corps", "standardization"]),
        "budget": r.rand_int(300, 1500),
        "duration_weeks": r.rand_int(6, 20),
    }


def _fund_faction(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "target_nation_id": d.target_nation,
        "faction": f"Faction of {d.topic}",
        "weekly_amount": r.rand_int(200, 1200),
        "duration_weeks": r.rand_int(4, 12),
        "secrecy": r.pick(["low", "medium", "high"]),
    }


def _leak_story(d: _Draws) -> dict[str, Any]:
    return {
        "target": d.target_nation,
        "narrative": f"Reports concerning {d.topic}",
        "plausibility": d.rng.rand_float(0.4, 0.8),
    }


def _create_committee(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "topic": d.topic,
        "chair_character_id": d.maybe(d.character),
        "duration_weeks": r.rand_int(4, 12),
        "budget": r.rand_int(200, 800),
    }


def _apply_trajectory_modifier(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "target_nation_id": d.target_nation,
        "metric": r.pick(
            [
                "gdp_growth_decade",
                "population_growth_decade",
                "stability_drift_decade",
                "literacy_growth_decade",
            ]
        ),
        "delta": r.rand_float(-0.2, 0.3),
        "duration_weeks": r.rand_int(8, 24),
        "note": "Auto-adjusted trajectory",
    }


def _freeform_effect(d: _Draws) -> dict[str, Any]:
    r = d.rng
    return {
        "summary": f"Auto-response to {d.topic}",
        "target_nation_id": d.maybe(d.target_nation),
        "nation_deltas": {
            "stability": r.rand_int(-2, 2),
            "treasury": r.rand_int(-1500, 1500),
        },
        "province_id": d.maybe(d.province),
        "province_deltas": {"unrest": r.rand_int(-5, 5)},
        "relation_deltas": (
            [
                {
                    "target_nation_id": d.target_nation,
                    "delta": r.rand_int(-6, 4),
                    "add_treaties": [],
                    "remove_treaties": [],
                }
            ]
            if r.rand_bool()
            else []
        ),
        "limit_deltas": True,
        "note": "Auto-generated freeform",
    }


_BUILDERS: dict[str, Callable[[_Draws], dict[str, Any]]] = {
    "send_spy": _send_spy,
    "counterintelligence": _counterintelligence,
    "send_envoy": _send_envoy,
    "improve_relations": _improve_relations,
    "sign_treaty": _sign_treaty,
    "issue_ultimatum": _issue_ultimatum,
    "sanction": _sanction,
    "recognize_claim": _recognize_claim,
    "adjust_tax_rate": _adjust_tax_rate,
    "issue_debt": _issue_debt,
    "cut_spending": _cut_spending,
    "fund_project": _fund_project,
    "subsidize_sector": _subsidize_sector,
    "appoint_official": _appoint_official,
    "reform_law": _reform_law,
    "crackdown": _crackdown,
    "mobilize": _mobilize,
    "raise_levies": _raise_levies,
    "fortify": _fortify,
    "deploy_force": _deploy_force,
    "reorganize_army": _reorganize_army,
    "fund_faction": _fund_faction,
    "leak_story": _leak_story,
    "create_committee": _create_committee,
    "apply_trajectory_modifier": _apply_trajectory_modifier,
    "freeform_effect": _freeform_effect,
}


def build_action(
    action_type: str,
    scenario: Scenario,
    task_context: TaskContext,
    rng: SeededRandom,
) -> Action | None:
    """Draw a full parameter set for ``action_type``.

    Returns None when the scenario lacks an entity the kind requires (for
    example ``fortify`` with no provinces).
    """
    builder = _BUILDERS.get(action_type)
    if builder is None:
        return None
    draws = _Draws(
        rng=rng,
        scenario=scenario,
        target_nation=_pick_target_nation(scenario, task_context.nation_id, rng),
        province=_pick_province(scenario, rng),
        office=_pick_office(scenario, rng),
        character=_pick_character(scenario, rng),
        topic=summarize_prompt(task_context.prompt),
    )
    params = strip_null_values(builder(draws))
    try:
        return validate_action({"type": action_type, "params": params})
    except ValidationError:
        log.debug("synthesized_action_invalid", action_type=action_type)
        return None


def candidate_pool(task_context: TaskContext) -> list[str]:
    """Action kinds the synthesizer may draw from, in priority order.

    Suggested kinds win, then allowed kinds, then the default list, then
    the whole catalog; every list is filtered to known, non-forbidden kinds.

    Raises:
        SynthesisError: If every kind is forbidden.
    """
    constraints = task_context.constraints
    forbidden = set(constraints.forbidden_action_types)

    def known(values: list[str] | tuple[str, ...]) -> list[str]:
        return [t for t in values if t in KNOWN_ACTIONS and t not in forbidden]

    candidates = known(constraints.suggested_action_types or constraints.allowed_action_types)
    if not candidates:
        candidates = known(constraints.allowed_action_types)
    if not candidates:
        candidates = known(DEFAULT_ACTIONS)
    if not candidates:
        candidates = known(KNOWN_ACTIONS)
    if not candidates:
        raise SynthesisError("Every action type is forbidden for this task")
    return candidates


def synthesize_decision(
    task_context: TaskContext,
    scenario: Scenario,
    seed: int,
    turn_index: int,
) -> SynthesizedDecision:
    """Build a reproducible decision for a task with no player input.

    Args:
        task_context: Task being auto-resolved.
        scenario: Scenario to draw targets from.
        seed: Game seed.
        turn_index: Current turn.

    Returns:
        The decision and the chosen (primary) action.

    Raises:
        SynthesisError: If every kind is forbidden, or the scenario cannot
            support even a basic diplomatic action.
    """
    rng = SeededRandom(derive_seed(seed, turn_index, task_context.task_id))
    candidates = candidate_pool(task_context)

    primary_type = rng.pick(candidates)
    primary = build_action(primary_type, scenario, task_context, rng) or build_action(
        "improve_relations", scenario, task_context, rng
    )
    if primary is None:
        raise SynthesisError(
            f"Scenario {scenario.scenario_id} cannot support a synthesized action"
        )

    secondary_candidates = [t for t in candidates if t != primary_type]
    secondary_type = rng.pick(secondary_candidates) if secondary_candidates else primary_type
    secondary = build_action(secondary_type, scenario, task_context, rng) or primary

    decision = DecisionParseOutput(
        task_id=task_context.task_id,
        intent_summary=AUTO_INTENT_SUMMARY,
        proposed_bundles=[
            ActionBundle(label="A", actions=[primary], tradeoffs=[]),
            ActionBundle(label="B", actions=[secondary], tradeoffs=[]),
        ],
        clarifying_questions=[],
        assumptions=[],
    )
    log.debug(
        "decision_synthesized",
        task_id=task_context.task_id,
        primary=primary.type,
        secondary=secondary.type,
    )
    return SynthesizedDecision(decision=decision, chosen_actions=[primary])
