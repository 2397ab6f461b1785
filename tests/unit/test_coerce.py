"""Tests for the scenario referential coercer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from chancery.decision.coerce import coerce_decision, coerce_params
from chancery.decision.report import NormalizationReport
from chancery.decision.synthesize import synthesize_decision
from chancery.models.action import ACTION_TYPES, action_to_dict
from chancery.models.decision import DecisionParseOutput
from chancery.models.options import GameOptions
from tests.fixtures.decision_fixtures import (
    BORDER_PROVINCE,
    CHANCELLOR,
    ENVOY,
    FOREIGN_OFFICE,
    HOME_PROVINCE,
    PLAYER_NATION,
    RIVAL_NATION,
    TASK_PROMPT,
    THIRD_NATION,
    UNKNOWN_ID,
    committee_action,
    envoy_action,
    freeform_action,
    make_candidate,
    make_scenario,
    make_stale_scenario,
    make_task_context,
)

if TYPE_CHECKING:
    from chancery.models.context import TaskContext
    from chancery.models.scenario import Scenario, ScenarioIndex

NATION_FIELDS = ("target_nation_id", "nation_id", "from_nation_id")
PROVINCE_FIELDS = ("province_id", "from_province_id", "to_province_id")
CHARACTER_FIELDS = ("character_id", "chair_character_id")


def _decision(*bundle_a: dict[str, Any], bundle_b: list[dict[str, Any]] | None = None) -> Any:
    return DecisionParseOutput.model_validate(
        make_candidate(bundle_a=list(bundle_a) or None, bundle_b=bundle_b)
    )


def _first_params(decision: DecisionParseOutput) -> dict[str, Any]:
    return action_to_dict(decision.proposed_bundles[0].actions[0])["params"]


def _referenced_ids(params: dict[str, Any]) -> dict[str, list[str]]:
    refs: dict[str, list[str]] = {"nation": [], "province": [], "office": [], "character": []}
    for key in NATION_FIELDS:
        if key in params:
            refs["nation"].append(params[key])
    for key in PROVINCE_FIELDS:
        if key in params:
            refs["province"].append(params[key])
    if "office_id" in params:
        refs["office"].append(params["office_id"])
    for key in CHARACTER_FIELDS:
        if key in params:
            refs["character"].append(params[key])
    for entry in params.get("relation_deltas", []):
        for key in NATION_FIELDS:
            if key in entry:
                refs["nation"].append(entry[key])
    return refs


def _assert_closed_over(decision: DecisionParseOutput, index: ScenarioIndex) -> None:
    for bundle in decision.proposed_bundles:
        assert bundle.actions
        for action in bundle.actions:
            refs = _referenced_ids(action_to_dict(action)["params"])
            assert all(index.is_nation(v) for v in refs["nation"])
            assert all(index.is_province(v) for v in refs["province"])
            assert all(index.is_office(v) for v in refs["office"])
            assert all(index.is_character(v) for v in refs["character"])


FORTIFY_UNKNOWN = {
    "type": "fortify",
    "params": {
        "province_id": UNKNOWN_ID,
        "level_increase": 1,
        "budget": 400,
        "duration_weeks": 8,
    },
}


class TestIdentifierRepair:
    """Tests for rewriting identifiers against the scenario."""

    def test_target_equal_to_player_rewritten(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """A self-targeted action is pointed at the first non-player nation."""
        decision = _decision(envoy_action(target=PLAYER_NATION))
        coerced = coerce_decision(decision, scenario, task_context)

        assert _first_params(coerced)["target_nation_id"] == RIVAL_NATION

    def test_unknown_target_rewritten(self, scenario: Scenario, task_context: TaskContext) -> None:
        """An unknown target nation falls back to the first non-player nation."""
        coerced = coerce_decision(
            _decision(envoy_action(target=UNKNOWN_ID)), scenario, task_context
        )
        assert _first_params(coerced)["target_nation_id"] == RIVAL_NATION

    def test_valid_target_untouched(self, scenario: Scenario, task_context: TaskContext) -> None:
        """A valid foreign target is kept."""
        coerced = coerce_decision(
            _decision(envoy_action(target=THIRD_NATION)), scenario, task_context
        )
        assert _first_params(coerced)["target_nation_id"] == THIRD_NATION

    def test_unknown_province_falls_back_to_home(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """An unknown province becomes the player's home province."""
        coerced = coerce_decision(_decision(dict(FORTIFY_UNKNOWN)), scenario, task_context)
        assert _first_params(coerced)["province_id"] == HOME_PROVINCE

    def test_deploy_force_keeps_valid_and_repairs_invalid(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """Each province field of a deployment is checked on its own."""
        deploy = {
            "type": "deploy_force",
            "params": {
                "from_province_id": UNKNOWN_ID,
                "to_province_id": BORDER_PROVINCE,
                "units": 2,
            },
        }
        params = _first_params(coerce_decision(_decision(deploy), scenario, task_context))

        assert params["from_province_id"] == HOME_PROVINCE
        assert params["to_province_id"] == BORDER_PROVINCE

    def test_appointment_repairs_office_then_character(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """The repaired office's appointee replaces an unknown character."""
        appoint = {
            "type": "appoint_official",
            "params": {"office_id": UNKNOWN_ID, "character_id": UNKNOWN_ID},
        }
        params = _first_params(coerce_decision(_decision(appoint), scenario, task_context))

        assert params["office_id"] == FOREIGN_OFFICE
        assert params["character_id"] == ENVOY

    def test_office_fills_missing_character(self, scenario_index: ScenarioIndex) -> None:
        """A valid office supplies its appointee when no character is given."""
        params = coerce_params("appoint_official", {"office_id": FOREIGN_OFFICE}, scenario_index)
        assert params == {"office_id": FOREIGN_OFFICE, "character_id": ENVOY}

    def test_fields_are_not_invented(self, scenario_index: ScenarioIndex) -> None:
        """Absent identifier fields stay absent."""
        params = coerce_params("mobilize", {"scope": "partial"}, scenario_index)
        assert params == {"scope": "partial"}

    def test_chair_falls_back_to_first_character(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """An unknown committee chair becomes the first scenario character."""
        committee = committee_action()
        committee["params"]["chair_character_id"] = UNKNOWN_ID
        params = _first_params(coerce_decision(_decision(committee), scenario, task_context))

        assert params["chair_character_id"] == CHANCELLOR

    def test_relation_deltas_repaired(self, scenario: Scenario, task_context: TaskContext) -> None:
        """Nations inside freeform relation deltas are repaired per entry."""
        freeform = freeform_action()
        freeform["params"]["relation_deltas"] = [
            {"from_nation_id": UNKNOWN_ID, "target_nation_id": PLAYER_NATION, "delta": -5},
            {"target_nation_id": THIRD_NATION, "delta": 3},
        ]
        params = _first_params(coerce_decision(_decision(freeform), scenario, task_context))

        first, second = params["relation_deltas"]
        assert first["from_nation_id"] == PLAYER_NATION
        assert first["target_nation_id"] == RIVAL_NATION
        assert second["target_nation_id"] == THIRD_NATION
        assert "from_nation_id" not in second


class TestMissingFallbacks:
    """Tests for worlds that cannot supply a replacement identifier."""

    def test_missing_fallback_removes_optional_field(self, task_context: TaskContext) -> None:
        """An optional field with no valid replacement is removed."""
        barren = make_scenario(province_snapshots=[])
        project = {
            "type": "fund_project",
            "params": {
                "project_type": "schools",
                "province_id": UNKNOWN_ID,
                "budget": 500,
                "duration_weeks": 8,
            },
        }
        params = _first_params(coerce_decision(_decision(project), barren, task_context))

        assert "province_id" not in params
        assert params["project_type"] == "schools"

    def test_missing_fallback_drops_action_needing_field(self, task_context: TaskContext) -> None:
        """An action that cannot validate without the field is replaced by the fallback."""
        barren = make_scenario(province_snapshots=[])
        report = NormalizationReport()
        coerced = coerce_decision(
            _decision(dict(FORTIFY_UNKNOWN)), barren, task_context, report=report
        )

        action = coerced.proposed_bundles[0].actions[0]
        assert action.type == "create_committee"
        assert action.params.topic == TASK_PROMPT
        assert report.dropped[0].reason == "invalid_after_coercion"
        assert report.dropped[0].stage == "coerce"
        assert report.fallback_actions == 1

    def test_chair_removed_without_characters(self, task_context: TaskContext) -> None:
        """An appointee missing from the character list is never used as chair."""
        characterless = make_scenario(characters=[])
        committee = committee_action()
        committee["params"]["chair_character_id"] = UNKNOWN_ID

        params = _first_params(coerce_decision(_decision(committee), characterless, task_context))

        assert "chair_character_id" not in params
        assert params["topic"] == "Passage rights"

    def test_appointment_dropped_without_characters(self, task_context: TaskContext) -> None:
        """An appointment with no valid character is dropped."""
        characterless = make_scenario(characters=[])
        appoint = {
            "type": "appoint_official",
            "params": {"office_id": FOREIGN_OFFICE, "character_id": UNKNOWN_ID},
        }
        report = NormalizationReport()

        coerced = coerce_decision(_decision(appoint), characterless, task_context, report=report)

        assert coerced.proposed_bundles[0].actions[0].type == "create_committee"
        assert report.dropped[0].reason == "invalid_after_coercion"


class TestPolicy:
    """Tests for task constraints and game options."""

    def test_forbidden_only_action_replaced_by_fallback(self, scenario: Scenario) -> None:
        """A bundle emptied by the forbidden list gets the fallback committee."""
        task_context = make_task_context(constraints={"forbidden_action_types": ["send_envoy"]})
        report = NormalizationReport()
        coerced = coerce_decision(_decision(envoy_action()), scenario, task_context, report=report)

        assert [a.type for a in coerced.proposed_bundles[0].actions] == ["create_committee"]
        assert report.dropped[0].reason == "forbidden"
        for bundle in coerced.proposed_bundles:
            assert all(a.type != "send_envoy" for a in bundle.actions)

    def test_allow_list_filters(self, scenario: Scenario) -> None:
        """Kinds outside a non-empty allow list are dropped."""
        task_context = make_task_context(
            constraints={"allowed_action_types": ["create_committee"]}
        )
        report = NormalizationReport()
        coerced = coerce_decision(
            _decision(envoy_action(), committee_action()), scenario, task_context, report=report
        )

        assert [a.type for a in coerced.proposed_bundles[0].actions] == ["create_committee"]
        assert report.dropped[0].reason == "not_allowed"

    def test_forbidden_wins_over_allowed(self, scenario: Scenario) -> None:
        """A kind both allowed and forbidden is dropped."""
        task_context = make_task_context(
            constraints={
                "allowed_action_types": ["send_envoy"],
                "forbidden_action_types": ["send_envoy"],
            }
        )
        coerced = coerce_decision(_decision(envoy_action()), scenario, task_context)
        assert coerced.proposed_bundles[0].actions[0].type == "create_committee"

    def test_strict_actions_only_drops_freeform(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """Strict mode removes freeform effects."""
        report = NormalizationReport()
        coerced = coerce_decision(
            _decision(freeform_action(), envoy_action()),
            scenario,
            task_context,
            GameOptions(strict_actions_only=True),
            report,
        )

        assert [a.type for a in coerced.proposed_bundles[0].actions] == ["send_envoy"]
        assert report.dropped[0].reason == "strict_actions_only"

    def test_limit_freeform_deltas_tags_survivors(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """Limit mode tags surviving freeform effects."""
        coerced = coerce_decision(
            _decision(freeform_action()),
            scenario,
            task_context,
            GameOptions(limit_freeform_deltas=True),
        )
        assert coerced.proposed_bundles[0].actions[0].params.limit_deltas is True

    def test_freeform_untagged_by_default(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """Freeform effects are left untagged without limit mode."""
        coerced = coerce_decision(_decision(freeform_action()), scenario, task_context)
        assert coerced.proposed_bundles[0].actions[0].params.limit_deltas is None


class TestStructure:
    """Tests for what coercion leaves alone."""

    def test_order_labels_and_metadata_preserved(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """Bundle labels, action order and top-level fields survive coercion."""
        decision = _decision(committee_action("First"), envoy_action(), committee_action("Third"))
        coerced = coerce_decision(decision, scenario, task_context)

        assert [b.label for b in coerced.proposed_bundles] == [
            b.label for b in decision.proposed_bundles
        ]
        assert [a.type for a in coerced.proposed_bundles[0].actions] == [
            "create_committee",
            "send_envoy",
            "create_committee",
        ]
        assert coerced.task_id == decision.task_id
        assert coerced.intent_summary == decision.intent_summary
        assert coerced.proposed_bundles[1].tradeoffs == ["Delays the answer."]

    def test_accepts_prebuilt_index(
        self, scenario: Scenario, scenario_index: ScenarioIndex, task_context: TaskContext
    ) -> None:
        """A prebuilt index gives the same result as the scenario."""
        decision = _decision(envoy_action(target=PLAYER_NATION))
        assert coerce_decision(decision, scenario_index, task_context) == coerce_decision(
            decision, scenario, task_context
        )

    def test_input_decision_not_mutated(
        self, scenario: Scenario, task_context: TaskContext
    ) -> None:
        """The input decision is left unchanged."""
        decision = _decision(envoy_action(target=PLAYER_NATION))
        coerce_decision(decision, scenario, task_context)
        assert _first_params(decision)["target_nation_id"] == PLAYER_NATION


class TestReferentialClosure:
    """Coerced decisions only reference the target world."""

    @pytest.mark.parametrize("seed", range(40))
    def test_stale_decision_closed_over_scenario(self, seed: int, scenario: Scenario) -> None:
        """Decisions drawn against another world only reference this world after coercion."""
        task_context = make_task_context(
            task_id=f"task-{seed}", constraints={"suggested_action_types": list(ACTION_TYPES)}
        )
        stale = synthesize_decision(task_context, make_stale_scenario(), seed, turn_index=1)

        coerced = coerce_decision(stale.decision, scenario, task_context)

        _assert_closed_over(coerced, scenario.index())

    @pytest.mark.parametrize("seed", range(20))
    def test_characterless_world(self, seed: int) -> None:
        """Appointments to characters outside the scenario never leak into actions."""
        characterless = make_scenario(characters=[])
        task_context = make_task_context(
            task_id=f"task-{seed}", constraints={"suggested_action_types": list(ACTION_TYPES)}
        )
        stale = synthesize_decision(task_context, make_stale_scenario(), seed, turn_index=1)
        committee = committee_action()
        committee["params"]["chair_character_id"] = UNKNOWN_ID
        decision = _decision(committee, bundle_b=[envoy_action()])

        for candidate in (stale.decision, decision):
            coerced = coerce_decision(candidate, characterless, task_context)
            _assert_closed_over(coerced, characterless.index())
