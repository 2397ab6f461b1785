"""Diagnostics collected while normalizing and coercing a decision."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

DropStage = Literal["normalize", "coerce"]


@dataclass(frozen=True)
class DroppedAction:
    """One action removed from a bundle.

    Attributes:
        stage: Pipeline stage that removed it.
        bundle_index: Position of the bundle in the candidate.
        action_type: Tag of the action, when one was recognised.
        reason: Short machine-readable reason, e.g. ``"forbidden"``.
        errors: Validation messages, when the reason is a failed validation.
    """

    stage: DropStage
    bundle_index: int
    action_type: str | None
    reason: str
    errors: tuple[str, ...] = ()


@dataclass
class NormalizationReport:
    """Accumulates what the normalizer and coercer changed.

    The report never affects the produced decision; it exists so callers can
    see how much repair a candidate needed.
    """

    dropped: list[DroppedAction] = field(default_factory=list)
    fallback_bundles: int = 0
    fallback_actions: int = 0
    duplicated_bundle: bool = False
    truncated_bundles: int = 0

    def drop(
        self,
        stage: DropStage,
        bundle_index: int,
        action_type: str | None,
        reason: str,
        errors: list[str] | None = None,
    ) -> None:
        self.dropped.append(
            DroppedAction(
                stage=stage,
                bundle_index=bundle_index,
                action_type=action_type,
                reason=reason,
                errors=tuple(errors or ()),
            )
        )

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)

    @property
    def is_clean(self) -> bool:
        """True when nothing was dropped, duplicated, truncated or backfilled."""
        return not (
            self.dropped
            or self.fallback_bundles
            or self.fallback_actions
            or self.duplicated_bundle
            or self.truncated_bundles
        )

    def summary(self) -> dict[str, int | bool]:
        """Compact counts for structured logging."""
        return {
            "dropped": self.dropped_count,
            "fallback_bundles": self.fallback_bundles,
            "fallback_actions": self.fallback_actions,
            "duplicated_bundle": self.duplicated_bundle,
            "truncated_bundles": self.truncated_bundles,
        }
