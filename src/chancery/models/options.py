"""Per-game policy toggles applied during coercion."""

from __future__ import annotations

from collections.abc import Mapping  # noqa: TC003 - used at runtime in signature only
from typing import Any

from pydantic import BaseModel

TRUE_VALUES = frozenset({"1", "true", "yes", "on", "limited", "conservative"})

FREEFORM_DELTA_HEADER = "x-freeform-delta-limit"
STRICT_ACTIONS_HEADER = "x-strict-actions-only"


def _header_flag(headers: Mapping[str, Any], name: str) -> bool:
    value = headers.get(name)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if not isinstance(value, str):
        return False
    return value.strip().lower() in TRUE_VALUES


class GameOptions(BaseModel):
    """Policy toggles for a game.

    Attributes:
        limit_freeform_deltas: Tag surviving ``freeform_effect`` actions with
            ``limit_deltas: true`` so the engine applies them conservatively.
        strict_actions_only: Drop ``freeform_effect`` actions entirely.
    """

    limit_freeform_deltas: bool = False
    strict_actions_only: bool = False

    @classmethod
    def from_headers(cls, headers: Mapping[str, Any]) -> GameOptions:
        """Read options from request headers.

        Header names are matched lower-case. Values such as ``"true"``,
        ``"on"`` or ``"conservative"`` enable a toggle; anything else leaves
        it off.
        """
        lowered = {str(k).lower(): v for k, v in headers.items()}
        return cls(
            limit_freeform_deltas=_header_flag(lowered, FREEFORM_DELTA_HEADER),
            strict_actions_only=_header_flag(lowered, STRICT_ACTIONS_HEADER),
        )
