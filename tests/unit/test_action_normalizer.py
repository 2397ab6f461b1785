"""Tests for the action field normalizer."""

from __future__ import annotations

import pytest

from chancery.decision.actions import (
    extract_action_type,
    extract_params,
    normalize_action,
    normalize_params,
    strip_null_values,
)
from chancery.decision.ids import stabilize_region_key
from chancery.decision.report import NormalizationReport
from tests.fixtures.decision_fixtures import HOME_PROVINCE, RIVAL_NATION, THIRD_NATION


class TestStripNullValues:
    """Tests for removing explicit nulls."""

    def test_recurses(self) -> None:
        """Nulls are removed from nested dicts and lists of dicts."""
        data = {"a": None, "b": {"c": None, "d": 1}, "e": [{"f": None, "g": 2}]}
        assert strip_null_values(data) == {"b": {"d": 1}, "e": [{"g": 2}]}

    def test_does_not_mutate(self) -> None:
        """The input is left unchanged."""
        data = {"a": None, "b": 1}
        strip_null_values(data)
        assert data == {"a": None, "b": 1}


class TestExtractActionType:
    """Tests for finding the action kind."""

    @pytest.mark.parametrize("key", ["type", "action", "kind", "action_type"])
    def test_reads_alternate_keys(self, key: str) -> None:
        """Each supported tag key is read."""
        assert extract_action_type({key: "mobilize"}) == "mobilize"

    def test_trims(self) -> None:
        """Surrounding whitespace is ignored."""
        assert extract_action_type({"type": "  sanction "}) == "sanction"

    def test_skips_unknown_tags(self) -> None:
        """An unknown value under an earlier key does not hide a valid later one."""
        assert extract_action_type({"type": "diplomacy", "action": "send_envoy"}) == "send_envoy"

    def test_none_for_unknown(self) -> None:
        """Unknown or non-string tags give None."""
        assert extract_action_type({"type": "teleport"}) is None
        assert extract_action_type({"type": 3}) is None


class TestExtractParams:
    """Tests for locating the parameter mapping."""

    def test_explicit_params_win(self) -> None:
        """A params object is used over top-level fields."""
        raw = {"type": "mobilize", "params": {"scope": "partial"}, "scope": "general"}
        assert extract_params(raw) == {"scope": "partial"}

    def test_wrapper_fields_are_not_overwritten(self) -> None:
        """Top-level fields only fill gaps in a wrapper object."""
        raw = {
            "type": "reorganize_army",
            "details": {"focus": "training", "budget": 300},
            "budget": 9999,
            "duration_weeks": 6,
        }
        assert extract_params(raw) == {"focus": "training", "budget": 300, "duration_weeks": 6}

    def test_top_level_fields_without_wrapper(self) -> None:
        """Without params or a wrapper, top-level fields are the params."""
        raw = {"kind": "mobilize", "scope": "general"}
        assert extract_params(raw) == {"scope": "general"}


class TestNormalizeParams:
    """Tests for renaming aliases and filtering fields."""

    def test_alias_applied_when_canonical_absent(self) -> None:
        """Aliases are renamed to their canonical field."""
        params = normalize_params("send_envoy", {"tone": "firm", "target": RIVAL_NATION})
        assert params == {"message_tone": "firm", "target_nation_id": RIVAL_NATION}

    def test_alias_ignored_when_canonical_present(self) -> None:
        """The canonical field wins over its alias."""
        params = normalize_params(
            "improve_relations",
            {"target_nation_id": RIVAL_NATION, "target": THIRD_NATION, "budget": 100},
        )
        assert params["target_nation_id"] == RIVAL_NATION
        assert "target" not in params

    def test_alias_ignored_when_canonical_not_permitted(self) -> None:
        """leak_story has its own free-text ``target`` field."""
        params = normalize_params("leak_story", {"target": "the court", "narrative": "scandal"})
        assert params == {"target": "the court", "narrative": "scandal"}

    def test_non_canonical_fields_dropped(self) -> None:
        """Fields the kind does not declare are removed."""
        params = normalize_params("mobilize", {"scope": "general", "reason": "war scare"})
        assert params == {"scope": "general"}

    def test_region_keys_stabilized(self) -> None:
        """Province keys become stabilized identifiers."""
        params = normalize_params("deploy_force", {"from": "Tyrol", "to": "bavaria", "units": 2})
        assert params == {
            "from_province_id": stabilize_region_key("tyrol"),
            "to_province_id": HOME_PROVINCE,
            "units": 2,
        }

    def test_region_uuid_left_alone(self) -> None:
        """An identifier that is already a UUID is kept."""
        params = normalize_params("fortify", {"province_id": HOME_PROVINCE})
        assert params["province_id"] == HOME_PROVINCE


class TestNormalizeAction:
    """Tests for turning a raw candidate into a validated action."""

    def test_send_envoy_tone_alias(self) -> None:
        """A flat envoy action with aliases validates."""
        action = normalize_action(
            {"type": "send_envoy", "target": RIVAL_NATION, "tone": "firm", "topic": "Passage"}
        )
        assert action is not None
        assert action.type == "send_envoy"
        assert action.params.message_tone == "firm"
        assert action.params.target_nation_id == RIVAL_NATION

    def test_wrapper_with_aliases(self) -> None:
        """Wrapper fields, aliases and region keys combine."""
        action = normalize_action(
            {
                "action": "fund_project",
                "project": {"project_type": "schools", "budget": 500},
                "duration": 8,
                "location": "Bavaria",
            }
        )
        assert action is not None
        assert action.params.project_type == "schools"
        assert action.params.duration_weeks == 8
        assert action.params.province_id == HOME_PROVINCE

    def test_explicit_nulls_treated_as_absent(self) -> None:
        """A null optional field validates as unset."""
        action = normalize_action(
            {
                "type": "send_envoy",
                "params": {
                    "target_nation_id": RIVAL_NATION,
                    "message_tone": "neutral",
                    "topic": "Trade",
                    "offer": None,
                },
            }
        )
        assert action is not None
        assert action.params.offer is None

    def test_unknown_type_dropped_and_reported(self) -> None:
        """An unknown kind is dropped and recorded."""
        report = NormalizationReport()
        assert normalize_action({"type": "teleport"}, report, bundle_index=1) is None

        assert report.dropped_count == 1
        dropped = report.dropped[0]
        assert dropped.stage == "normalize"
        assert dropped.bundle_index == 1
        assert dropped.reason == "unknown_type"
        assert dropped.action_type is None

    def test_invalid_params_dropped_with_errors(self) -> None:
        """Validation errors are kept on the drop entry."""
        report = NormalizationReport()
        assert normalize_action({"type": "send_spy", "target": RIVAL_NATION}, report) is None

        dropped = report.dropped[0]
        assert dropped.reason == "invalid_params"
        assert dropped.action_type == "send_spy"
        assert any("objective" in e and "Field required" in e for e in dropped.errors)

    def test_out_of_range_value_dropped(self) -> None:
        """A value outside its range drops the action."""
        action = normalize_action(
            {
                "type": "sanction",
                "target": RIVAL_NATION,
                "scope": "trade",
                "severity": 9,
                "weeks": 4,
            }
        )
        assert action is None

    @pytest.mark.parametrize("raw", [None, "send_envoy", 3, ["type", "mobilize"]])
    def test_non_dict_candidates_dropped(self, raw: object) -> None:
        """Non-mapping candidates give None."""
        assert normalize_action(raw) is None
