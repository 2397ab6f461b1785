"""Bundle structural normalizer.

Whatever shape a candidate decision arrives in, the output always holds
exactly two bundles with at least one valid action each.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from chancery.decision.actions import normalize_action, strip_null_values
from chancery.models.action import CreateCommitteeAction, CreateCommitteeParams
from chancery.models.decision import ActionBundle, DecisionParseOutput
from chancery.observability.logging import get_logger

if TYPE_CHECKING:
    from chancery.decision.report import NormalizationReport
    from chancery.models.action import Action
    from chancery.models.context import TaskContext

log = get_logger(__name__)

BUNDLE_LIST_KEYS = ("proposed_bundles", "bundles")
BUNDLE_A_KEYS = ("bundle_a", "bundleA", "option_a", "optionA")
BUNDLE_B_KEYS = ("bundle_b", "bundleB", "option_b", "optionB")
LABEL_KEYS = ("label", "name", "title", "option", "option_label")
ACTION_LIST_KEYS = ("actions", "steps")
TRADEOFF_KEYS = ("tradeoffs", "tradeoff")

DEFAULT_LABELS = ("A", "B: Alternative")
ALTERNATIVE_LABEL = "B: Alternative"


def _first_present(payload: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _first_list(payload: dict[str, Any], keys: tuple[str, ...]) -> list[Any] | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return None


def _first_text(payload: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(entry) for entry in value]
    return []


def build_fallback_action(task_context: TaskContext) -> Action:
    """The action used whenever a bundle would otherwise be empty."""
    return CreateCommitteeAction(
        type="create_committee",
        params=CreateCommitteeParams(topic=task_context.prompt, duration_weeks=4, budget=0),
    )


def build_fallback_bundles(task_context: TaskContext) -> list[ActionBundle]:
    """Two inquiry bundles used when a candidate carries no bundles at all."""
    return [
        ActionBundle(
            label="A: Convene inquiry",
            actions=[build_fallback_action(task_context)],
            tradeoffs=["Slower response while gathering findings."],
        ),
        ActionBundle(
            label="B: Convene inquiry",
            actions=[build_fallback_action(task_context)],
            tradeoffs=["Minimal action; may be seen as evasive."],
        ),
    ]


def locate_bundles(payload: dict[str, Any]) -> list[Any]:
    """Find the candidate bundle list under any of the accepted spellings."""
    bundles = _first_list(payload, BUNDLE_LIST_KEYS)
    if bundles is not None:
        return bundles
    bundle_a = _first_present(payload, BUNDLE_A_KEYS)
    bundle_b = _first_present(payload, BUNDLE_B_KEYS)
    if bundle_a and bundle_b:
        return [bundle_a, bundle_b]
    return []


def normalize_bundle(
    raw: Any,
    index: int,
    task_context: TaskContext,
    report: NormalizationReport | None = None,
) -> ActionBundle:
    """Normalize one bundle candidate, backfilling the fallback action if empty."""
    bundle = raw if isinstance(raw, dict) else {}
    label = _first_text(bundle, LABEL_KEYS) or DEFAULT_LABELS[min(index, 1)]

    raw_actions = _first_list(bundle, ACTION_LIST_KEYS) or []
    actions: list[Action] = []
    for raw_action in raw_actions:
        action = normalize_action(raw_action, report, bundle_index=index)
        if action is not None:
            actions.append(action)

    if not actions:
        log.debug("bundle_backfilled", bundle=index, candidates=len(raw_actions))
        actions.append(build_fallback_action(task_context))
        if report is not None:
            report.fallback_actions += 1

    tradeoffs = _string_list(_first_list(bundle, TRADEOFF_KEYS))
    return ActionBundle(label=label, actions=actions, tradeoffs=tradeoffs)


def normalize_decision(
    raw: Any,
    task_context: TaskContext,
    player_text: str,
    report: NormalizationReport | None = None,
) -> DecisionParseOutput:
    """Normalize a decision candidate of unknown shape.

    Args:
        raw: Decoded model output. Non-dict values count as an empty candidate.
        task_context: Task the decision answers; supplies fallbacks.
        player_text: The player's ruling, used as the default intent summary.
        report: Optional report to record repairs in.

    Returns:
        A decision with exactly two non-empty bundles.
    """
    payload = strip_null_values(raw) if isinstance(raw, dict) else {}

    task_id = payload.get("task_id")
    if not (isinstance(task_id, str) and task_id.strip()):
        task_id = task_context.task_id

    intent_summary = payload.get("intent_summary")
    if not (isinstance(intent_summary, str) and intent_summary.strip()):
        intent_summary = player_text.strip() or task_context.prompt

    bundles = [
        normalize_bundle(candidate, index, task_context, report)
        for index, candidate in enumerate(locate_bundles(payload))
    ]

    if len(bundles) == 1:
        bundles.append(bundles[0].model_copy(update={"label": ALTERNATIVE_LABEL}, deep=True))
        if report is not None:
            report.duplicated_bundle = True
    elif len(bundles) > 2:
        if report is not None:
            report.truncated_bundles = len(bundles) - 2
        bundles = bundles[:2]
    elif not bundles:
        bundles = build_fallback_bundles(task_context)
        if report is not None:
            report.fallback_bundles = 2

    return DecisionParseOutput(
        task_id=task_id,
        intent_summary=intent_summary,
        proposed_bundles=bundles,
        clarifying_questions=_string_list(payload.get("clarifying_questions")),
        assumptions=_string_list(payload.get("assumptions")),
    )
