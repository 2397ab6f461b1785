"""Action field normalizer.

Turns one loosely-shaped action candidate into a validated ``Action`` or
``None``. Models name the same concept many ways, so each concept is looked
up through an ordered tuple of candidate keys tried in priority order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from chancery.decision.errors import format_validation_errors
from chancery.decision.ids import is_uuid, stabilize_region_key
from chancery.models.action import ACTION_PARAM_KEYS, ACTION_TYPES, validate_action
from chancery.observability.logging import get_logger

if TYPE_CHECKING:
    from chancery.decision.report import NormalizationReport
    from chancery.models.action import Action

log = get_logger(__name__)

ACTION_TYPE_KEYS = ("type", "action", "kind", "action_type")
PARAM_WRAPPER_KEYS = ("force", "project", "committee", "details", "payload", "spec", "data")

# (alias, canonical) pairs, applied in order.
PARAM_ALIASES: tuple[tuple[str, str], ...] = (
    ("target", "target_nation_id"),
    ("target_id", "target_nation_id"),
    ("nation_id", "target_nation_id"),
    ("nation", "target_nation_id"),
    ("destination", "to_province_id"),
    ("to", "to_province_id"),
    ("origin", "from_province_id"),
    ("from", "from_province_id"),
    ("tone", "message_tone"),
    ("offer_text", "offer"),
    ("deadline", "deadline_weeks"),
    ("backdown_cost", "backdown_cost_legitimacy"),
    ("interest_rate", "interest_rate_annual"),
    ("rate", "interest_rate_annual"),
    ("maturity", "maturity_weeks"),
    ("duration", "duration_weeks"),
    ("weeks", "duration_weeks"),
    ("chair", "chair_character_id"),
    ("chair_id", "chair_character_id"),
    ("office", "office_id"),
    ("appointee", "character_id"),
    ("person", "character_id"),
    ("law", "law_key"),
    ("province", "province_id"),
    ("location", "province_id"),
    ("project", "project_type"),
    ("sector_name", "sector"),
    ("readiness", "target_readiness"),
    ("amount", "weekly_amount"),
    ("spending", "weekly_amount"),
)

REGION_FIELDS = ("province_id", "from_province_id", "to_province_id")


def strip_null_values(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively strip null values from a dictionary.

    Models often send explicit null for optional fields. Null is treated as
    absent so alias lookup and defaults apply. The input is not mutated.

    Args:
        data: Dictionary potentially containing null values.

    Returns:
        New dictionary with null values removed at all levels.
    """

    def _strip(item: Any) -> Any:
        if isinstance(item, dict):
            return {key: _strip(value) for key, value in item.items() if value is not None}
        if isinstance(item, list):
            return [_strip(i) for i in item]
        return item

    stripped = _strip(data)
    return stripped if isinstance(stripped, dict) else {}


def extract_action_type(raw: dict[str, Any]) -> str | None:
    """Return the first candidate tag that names a catalog action kind."""
    for key in ACTION_TYPE_KEYS:
        candidate = raw.get(key)
        if isinstance(candidate, str):
            trimmed = candidate.strip()
            if trimmed in ACTION_TYPES:
                return trimmed
    return None


def extract_params(raw: dict[str, Any]) -> dict[str, Any]:
    """Collect the parameter candidate for an action.

    An explicit ``params`` object wins outright. Otherwise the first wrapper
    object found is the base, and remaining top-level fields are merged in
    without overwriting what the wrapper supplied.
    """
    explicit = raw.get("params")
    if isinstance(explicit, dict):
        return dict(explicit)

    base: dict[str, Any] = {}
    wrapper_key: str | None = None
    for key in PARAM_WRAPPER_KEYS:
        candidate = raw.get(key)
        if isinstance(candidate, dict):
            base = candidate
            wrapper_key = key
            break

    merged = dict(base)
    for key, value in raw.items():
        if key in ACTION_TYPE_KEYS or key == "params" or key == wrapper_key:
            continue
        merged.setdefault(key, value)
    return merged


def normalize_params(action_type: str, params: dict[str, Any]) -> dict[str, Any]:
    """Apply aliases, stabilize region keys and drop non-canonical fields."""
    allowed = ACTION_PARAM_KEYS[action_type]
    normalized = dict(params)

    for alias, canonical in PARAM_ALIASES:
        if canonical not in allowed or canonical in normalized or alias not in normalized:
            continue
        normalized[canonical] = normalized.pop(alias)

    for key in REGION_FIELDS:
        if key not in allowed:
            continue
        value = normalized.get(key)
        if isinstance(value, str) and value.strip() and not is_uuid(value):
            normalized[key] = stabilize_region_key(value)

    return {key: value for key, value in normalized.items() if key in allowed}


def normalize_action(
    raw: Any,
    report: NormalizationReport | None = None,
    *,
    bundle_index: int = 0,
) -> Action | None:
    """Normalize one action candidate.

    Never raises: anything that cannot become a valid action yields ``None``
    (and a report entry when a report is given).

    Args:
        raw: Action candidate of unknown shape.
        report: Optional report to record drops in.
        bundle_index: Bundle position, used only for the report.

    Returns:
        The validated action, or None.
    """
    candidate = strip_null_values(raw) if isinstance(raw, dict) else {}
    action_type = extract_action_type(candidate)
    if action_type is None:
        log.debug("action_dropped", reason="unknown_type", bundle=bundle_index)
        if report is not None:
            report.drop("normalize", bundle_index, None, "unknown_type")
        return None

    params = normalize_params(action_type, extract_params(candidate))
    try:
        return validate_action({"type": action_type, "params": params})
    except ValidationError as e:
        errors = format_validation_errors(e)
        log.debug(
            "action_dropped",
            reason="invalid_params",
            action_type=action_type,
            bundle=bundle_index,
            errors=errors,
        )
        if report is not None:
            report.drop("normalize", bundle_index, action_type, "invalid_params", errors)
        return None
