"""Decision pipeline orchestrator.

Two tiers turn a player's ruling into a validated decision:

1. A schema-constrained request. The candidate is normalized, coerced
   against the scenario (when one is given) and validated.
2. On any failure in tier 1, a single plain-text retry instructed to return
   only JSON. The text is recovered with the loose-JSON parser and goes
   through the same normalize/coerce/validate path.

Only a failure of tier 2 reaches the caller, as ``DecisionParseError``.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from chancery.config import load_config
from chancery.decision.bundles import normalize_decision
from chancery.decision.coerce import coerce_decision
from chancery.decision.errors import DecisionParseError, format_validation_errors
from chancery.decision.loose_json import parse_loose_json
from chancery.decision.report import NormalizationReport
from chancery.models.action import ACTION_TYPES
from chancery.models.decision import DecisionParseOutput
from chancery.models.options import GameOptions
from chancery.models.scenario import Scenario
from chancery.observability.logging import get_logger
from chancery.prompts.decision import build_decision_messages

if TYPE_CHECKING:
    from chancery.models.context import TaskContext
    from chancery.models.scenario import ScenarioIndex
    from chancery.providers.base import DecisionProvider

log = get_logger(__name__)

SCHEMA_NAME = "decision_parse"
DECISION_TEMPERATURE = 0.2
MAX_ATTEMPTS = 2


def _error_messages(error: Exception) -> list[str]:
    if isinstance(error, ValidationError):
        return format_validation_errors(error)
    return [str(error)]


def prompt_context(task_context: TaskContext, options: GameOptions) -> TaskContext:
    """Context as shown to the model.

    Under ``strict_actions_only`` the allowed list excludes ``freeform_effect``
    (an empty list becomes the whole catalog minus ``freeform_effect``).
    """
    if not options.strict_actions_only:
        return task_context
    constraints = task_context.constraints
    allowed = constraints.allowed_action_types or list(ACTION_TYPES)
    strict = constraints.model_copy(
        update={"allowed_action_types": [t for t in allowed if t != "freeform_effect"]}
    )
    return task_context.model_copy(update={"constraints": strict})


class DecisionParser:
    """Parses player rulings into decisions with a bound provider and scenario.

    Attributes:
        provider: Backend used for both tiers.
        model: Model name passed to the provider.
        options: Game policy toggles applied during coercion.
    """

    def __init__(
        self,
        provider: DecisionProvider,
        model: str | None = None,
        scenario: Scenario | ScenarioIndex | None = None,
        options: GameOptions | None = None,
        temperature: float = DECISION_TEMPERATURE,
    ) -> None:
        """Initialize the parser.

        Args:
            provider: Decision provider.
            model: Model name. Defaults to the provider's default model, then
                the configured model for the provider.
            scenario: Scenario to coerce against. Coercion is skipped if None.
            options: Game policy toggles.
            temperature: Sampling temperature for both tiers.
        """
        self.provider = provider
        self.model = (
            model
            or getattr(provider, "default_model", None)
            or load_config().resolve_model(provider.name)
        )
        self.options = options or GameOptions()
        self.temperature = temperature
        self._index = scenario.index() if isinstance(scenario, Scenario) else scenario

    def finalize(
        self,
        raw: Any,
        task_context: TaskContext,
        player_text: str,
        report: NormalizationReport | None = None,
    ) -> DecisionParseOutput:
        """Normalize, coerce and validate one candidate.

        Raises:
            pydantic.ValidationError: If the result does not validate.
        """
        decision = normalize_decision(raw, task_context, player_text, report)
        if self._index is not None:
            decision = coerce_decision(decision, self._index, task_context, self.options, report)
        return DecisionParseOutput.model_validate(decision.to_payload())

    async def parse(self, task_context: TaskContext, player_text: str) -> DecisionParseOutput:
        """Parse a ruling into a decision.

        Raises:
            DecisionParseError: If both tiers fail.
        """
        decision, _ = await self.parse_with_report(task_context, player_text)
        return decision

    async def parse_with_report(
        self,
        task_context: TaskContext,
        player_text: str,
    ) -> tuple[DecisionParseOutput, NormalizationReport]:
        """Parse a ruling and return the repair report of the successful tier.

        Args:
            task_context: Task being decided.
            player_text: The player's ruling.

        Returns:
            Tuple of (decision, report).

        Raises:
            DecisionParseError: If both tiers fail.
        """
        shown = prompt_context(task_context, self.options)
        log.info(
            "decision_parse_started",
            task_id=task_context.task_id,
            provider=self.provider.name,
            model=self.model,
        )

        report = NormalizationReport()
        try:
            result = await self.provider.parse_with_schema(
                self.model,
                DecisionParseOutput,
                SCHEMA_NAME,
                build_decision_messages(shown, player_text),
                self.temperature,
            )
            candidate = result.raw_json if result.raw_json is not None else result.parsed
            decision = self.finalize(candidate, task_context, player_text, report)
            self._log_completed(task_context, tier=1, report=report)
            return decision, report

        except (KeyboardInterrupt, asyncio.CancelledError):
            raise

        except Exception as e:
            first_errors = _error_messages(e)
            log.warning(
                "decision_tier_failed",
                tier=1,
                task_id=task_context.task_id,
                error_type=type(e).__name__,
                errors=first_errors,
            )

        report = NormalizationReport()
        try:
            text = await self.provider.complete_text(
                self.model,
                build_decision_messages(shown, player_text, json_only=True),
                self.temperature,
            )
            decision = self.finalize(parse_loose_json(text), task_context, player_text, report)

        except (KeyboardInterrupt, asyncio.CancelledError):
            raise

        except Exception as e:
            last_errors = _error_messages(e)
            log.warning(
                "decision_tier_failed",
                tier=2,
                task_id=task_context.task_id,
                error_type=type(e).__name__,
                errors=last_errors,
            )
            raise DecisionParseError(
                f"Failed to parse decision after {MAX_ATTEMPTS} attempts",
                attempts=MAX_ATTEMPTS,
                last_errors=last_errors,
            ) from e

        self._log_completed(task_context, tier=2, report=report)
        return decision, report

    def _log_completed(
        self, task_context: TaskContext, tier: int, report: NormalizationReport
    ) -> None:
        log.info(
            "decision_parse_completed",
            task_id=task_context.task_id,
            tier=tier,
            **report.summary(),
        )
        for dropped in report.dropped:
            log.debug(
                "decision_action_dropped",
                stage=dropped.stage,
                bundle=dropped.bundle_index,
                action_type=dropped.action_type,
                reason=dropped.reason,
            )


async def parse_decision(
    task_context: TaskContext,
    player_text: str,
    provider: DecisionProvider,
    *,
    model: str | None = None,
    scenario: Scenario | ScenarioIndex | None = None,
    options: GameOptions | None = None,
) -> DecisionParseOutput:
    """Parse a player's ruling into a validated two-bundle decision.

    Args:
        task_context: Task being decided.
        player_text: The player's ruling.
        provider: Decision provider.
        model: Model override.
        scenario: Scenario to coerce against; skipped if None.
        options: Game policy toggles.

    Returns:
        The validated decision.

    Raises:
        DecisionParseError: If no valid decision could be produced.
    """
    parser = DecisionParser(provider, model=model, scenario=scenario, options=options)
    return await parser.parse(task_context, player_text)


async def parse_decision_with_report(
    task_context: TaskContext,
    player_text: str,
    provider: DecisionProvider,
    *,
    model: str | None = None,
    scenario: Scenario | ScenarioIndex | None = None,
    options: GameOptions | None = None,
) -> tuple[DecisionParseOutput, NormalizationReport]:
    """Like ``parse_decision``, also returning the normalization report."""
    parser = DecisionParser(provider, model=model, scenario=scenario, options=options)
    return await parser.parse_with_report(task_context, player_text)
