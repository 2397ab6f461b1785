"""Deterministic identifiers: stabilized region IDs and task IDs.

Region keys such as ``"Bavaria"`` map to a fixed UUID-shaped identifier by
hashing a namespaced, normalized form of the key. The mapping is a pure
function of the key, so independent calls, turns and processes agree on
the same province identifier without a registry.
"""

from __future__ import annotations

import copy
import hashlib
import re
import uuid
from typing import Any

GEO_REGION_NAMESPACE = "thecourt:geo-region"

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_uuid(value: object) -> bool:
    """Return True if ``value`` is a canonical version 1-5 UUID string."""
    return isinstance(value, str) and _UUID_RE.match(value) is not None


def _hash_to_uuid(material: str, version: int) -> str:
    digest = bytearray(hashlib.sha256(material.encode("utf-8")).digest()[:16])
    digest[6] = (digest[6] & 0x0F) | (version << 4)
    digest[8] = (digest[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(digest)))


def stabilize_region_key(key: str) -> str:
    """Map a human-readable region key to its stable identifier.

    The key is trimmed and lower-cased first, so ``" Bavaria "`` and
    ``"bavaria"`` stabilize to the same identifier.

    Args:
        key: Region key, e.g. ``"bavaria"``.

    Returns:
        Version-5-style UUID string derived from SHA-256.
    """
    normalized = key.strip().lower()
    return _hash_to_uuid(f"{GEO_REGION_NAMESPACE}:{normalized}", version=5)


def build_game_task_id(game_id: str, index: int) -> str:
    """Deterministic task identifier for the ``index``-th task of a game."""
    return _hash_to_uuid(f"task:{game_id}:{index}", version=4)


def build_turn_task_id(seed: int, turn_index: int, index: int) -> str:
    """Deterministic task identifier for the ``index``-th task of a turn."""
    return _hash_to_uuid(f"{seed}:{turn_index}:{index}", version=4)


def normalize_scenario_geo_regions(raw: Any) -> tuple[Any, bool]:
    """Rewrite a raw scenario so every region reference uses a stable ID.

    Province snapshots and region assignments whose ``geo_region_id`` is a
    plain key are rewritten to the stabilized identifier, recording the key
    under ``geo_region_key``. Nation capitals given as keys are stabilized
    too. The input is never mutated.

    Args:
        raw: Scenario document as decoded JSON/YAML.

    Returns:
        Tuple of (normalized scenario copy, whether anything changed). Non-dict
        input is returned unchanged with ``False``.
    """
    if not isinstance(raw, dict):
        return raw, False

    scenario = copy.deepcopy(raw)
    changed = False
    province_by_id: dict[str, dict[str, Any]] = {}
    key_by_province_id: dict[str, str] = {}

    for province in scenario.get("province_snapshots") or []:
        if not isinstance(province, dict):
            continue
        current_id = province.get("geo_region_id")
        stored_key = province.get("geo_region_key")
        key = stored_key if isinstance(stored_key, str) else None
        if not key and isinstance(current_id, str) and not is_uuid(current_id):
            key = current_id
            province["geo_region_key"] = key
            changed = True
        if isinstance(current_id, str) and key:
            expected = stabilize_region_key(key)
            if current_id != expected:
                province["geo_region_id"] = expected
                changed = True
        region_id = province.get("geo_region_id")
        if isinstance(region_id, str):
            province_by_id[region_id] = province
            if key:
                key_by_province_id[region_id] = key

    for assignment in scenario.get("region_assignments") or []:
        if not isinstance(assignment, dict):
            continue
        current_id = assignment.get("geo_region_id")
        key = (
            assignment.get("geo_region_key")
            if isinstance(assignment.get("geo_region_key"), str)
            else None
        )
        if not key and isinstance(current_id, str):
            key = current_id if not is_uuid(current_id) else key_by_province_id.get(current_id)
        if key and assignment.get("geo_region_key") != key:
            assignment["geo_region_key"] = key
            changed = True
        if isinstance(current_id, str) and key:
            expected = stabilize_region_key(key)
            if current_id != expected:
                assignment["geo_region_id"] = expected
                changed = True
        region_id = assignment.get("geo_region_id")
        if isinstance(region_id, str) and key:
            province = province_by_id.get(region_id)
            if province is not None and not province.get("geo_region_key"):
                province["geo_region_key"] = key
                changed = True

    for nation in scenario.get("nations") or []:
        if not isinstance(nation, dict):
            continue
        capital = nation.get("capital_geo_region_id")
        if isinstance(capital, str) and not is_uuid(capital):
            nation["capital_geo_region_id"] = stabilize_region_key(capital)
            changed = True

    return scenario, changed
