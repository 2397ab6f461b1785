"""Tests for the normalization report."""

from __future__ import annotations

from chancery.decision.report import DroppedAction, NormalizationReport


def test_new_report_is_clean() -> None:
    report = NormalizationReport()

    assert report.is_clean
    assert report.summary() == {
        "dropped": 0,
        "fallback_bundles": 0,
        "fallback_actions": 0,
        "duplicated_bundle": False,
        "truncated_bundles": 0,
    }


def test_drop_records_entry() -> None:
    report = NormalizationReport()
    report.drop("coerce", 1, "send_envoy", "forbidden")
    report.drop("normalize", 0, "send_spy", "invalid_params", ["params.objective: Field required"])

    assert report.dropped_count == 2
    assert not report.is_clean
    assert report.dropped[0] == DroppedAction("coerce", 1, "send_envoy", "forbidden")
    assert report.dropped[1].errors == ("params.objective: Field required",)


def test_any_repair_makes_report_dirty() -> None:
    for change in (
        {"fallback_bundles": 1},
        {"fallback_actions": 2},
        {"duplicated_bundle": True},
        {"truncated_bundles": 1},
    ):
        report = NormalizationReport(**change)
        assert not report.is_clean
        assert report.summary()[next(iter(change))] == next(iter(change.values()))
