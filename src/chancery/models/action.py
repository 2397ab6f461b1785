"""Pydantic models for the canonical action catalog.

Actions are the only legal way for a decision to change ground truth in the
simulation. Every action is a ``{"type": ..., "params": {...}}`` pair whose
params model forbids unknown fields; ``Action`` is the discriminated union
over all 26 kinds.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter

# Loose UUID shape: any version, either case.
UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

EntityId = Annotated[str, StringConstraints(pattern=UUID_PATTERN)]
NonEmpty = Annotated[str, StringConstraints(min_length=1)]
Money = Annotated[int, Field(ge=0)]
Weeks = Annotated[int, Field(ge=1, le=52)]

Tone = Literal["conciliatory", "neutral", "firm", "hostile"]
RiskTolerance = Literal["low", "medium", "high"]
TrajectoryMetric = Literal[
    "gdp_growth_decade",
    "population_growth_decade",
    "stability_drift_decade",
    "literacy_growth_decade",
]

ActionType = Literal[
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
    "freeform_effect",
    "create_committee",
    "apply_trajectory_modifier",
]

ACTION_TYPES: tuple[str, ...] = get_args(ActionType)


class ActionParams(BaseModel):
    """Base for action parameter records. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


# --- Intelligence ---


class SendSpyParams(ActionParams):
    target_nation_id: EntityId
    objective: Literal[
        "naval_intel", "army_intel", "economic_intel", "political_intel", "sabotage", "influence"
    ]
    budget: Money
    duration_weeks: Weeks
    risk_tolerance: RiskTolerance


class CounterIntelligenceParams(ActionParams):
    budget: Money
    focus: Literal["ports", "court", "frontier", "finance"] = "court"
    duration_weeks: Weeks


# --- Diplomacy ---


class SendEnvoyParams(ActionParams):
    target_nation_id: EntityId
    message_tone: Tone
    topic: NonEmpty
    offer: str | None = None


class ImproveRelationsParams(ActionParams):
    target_nation_id: EntityId
    budget: Money
    message_tone: Tone = "neutral"
    duration_weeks: Weeks


class SignTreatyParams(ActionParams):
    target_nation_id: EntityId
    treaty_type: Literal["trade", "non_aggression", "alliance", "research", "access"]
    concessions: list[NonEmpty] = Field(default_factory=list)


class IssueUltimatumParams(ActionParams):
    target_nation_id: EntityId
    demand: NonEmpty
    deadline_weeks: int = Field(ge=1, le=12)
    backdown_cost_legitimacy: float = Field(default=5, ge=0, le=25)


class SanctionParams(ActionParams):
    target_nation_id: EntityId
    scope: Literal["trade", "finance", "naval"]
    severity: int = Field(ge=1, le=5)
    duration_weeks: Weeks


class RecognizeClaimParams(ActionParams):
    target_nation_id: EntityId
    claim: NonEmpty
    public: bool = True


# --- Finance ---


class AdjustTaxRateParams(ActionParams):
    new_tax_rate: float = Field(ge=0, le=0.9)
    rationale: str | None = None


class IssueDebtParams(ActionParams):
    amount: Money
    interest_rate_annual: float = Field(ge=0, le=1)
    maturity_weeks: int = Field(ge=4, le=520)


class CutSpendingParams(ActionParams):
    category: Literal["military", "administration", "court", "infrastructure", "subsidies"]
    weekly_amount: Money
    duration_weeks: Weeks


class FundProjectParams(ActionParams):
    project_type: Literal["infrastructure", "fortifications", "bureaucracy", "schools", "shipyards"]
    province_id: EntityId | None = None
    budget: Money
    duration_weeks: Weeks


class SubsidizeSectorParams(ActionParams):
    sector: Literal["grain", "textiles", "arms", "shipping", "mining"]
    weekly_amount: Money
    duration_weeks: Weeks


# --- Interior and administration ---


class AppointOfficialParams(ActionParams):
    office_id: EntityId
    character_id: EntityId


class ReformLawParams(ActionParams):
    law_key: NonEmpty
    change: Literal["enact", "repeal", "amend"]
    political_capital_cost: int = Field(default=10, ge=0, le=100)


class CrackdownParams(ActionParams):
    province_id: EntityId | None = None
    intensity: int = Field(ge=1, le=5)
    duration_weeks: Weeks
    budget: Money


class CreateCommitteeParams(ActionParams):
    topic: NonEmpty
    chair_character_id: EntityId | None = None
    duration_weeks: Weeks
    budget: Money


# --- Military ---


class MobilizeParams(ActionParams):
    scope: Literal["partial", "general"]
    target_readiness: float = Field(default=0.75, ge=0, le=1)


class RaiseLeviesParams(ActionParams):
    province_id: EntityId | None = None
    manpower: int = Field(ge=0)


class FortifyParams(ActionParams):
    province_id: EntityId
    level_increase: int = Field(ge=1, le=3)
    budget: Money
    duration_weeks: Weeks


class DeployForceParams(ActionParams):
    from_province_id: EntityId
    to_province_id: EntityId
    units: int = Field(ge=1)


class ReorganizeArmyParams(ActionParams):
    focus: Literal["training", "logistics", "officer_corps", "standardization"]
    budget: Money
    duration_weeks: Weeks


# --- Covert influence ---


class FundFactionParams(ActionParams):
    target_nation_id: EntityId
    faction: NonEmpty
    weekly_amount: Money
    duration_weeks: Weeks
    secrecy: Literal["low", "medium", "high"] = "high"


class LeakStoryParams(ActionParams):
    target: NonEmpty
    narrative: NonEmpty
    plausibility: float = Field(default=0.6, ge=0, le=1)


# --- Freeform and trajectory ---


class FreeformNationDeltas(ActionParams):
    """Additive nation-level deltas. Every field is optional."""

    gdp: float | None = None
    tax_rate: float | None = None
    tax_capacity: float | None = None
    compliance: float | None = None
    treasury: float | None = None
    debt: float | None = None
    stability: float | None = None
    legitimacy: float | None = None
    population: float | None = None
    literacy: float | None = None
    admin_capacity: float | None = None
    corruption: float | None = None
    manpower_pool: float | None = None
    force_size: float | None = None
    readiness: float | None = None
    supply: float | None = None
    war_exhaustion: float | None = None
    tech_level_mil: float | None = None


class FreeformProvinceDeltas(ActionParams):
    """Additive province-level deltas. Every field is optional."""

    population: float | None = None
    productivity: float | None = None
    infrastructure: float | None = None
    unrest: float | None = None
    compliance_local: float | None = None
    garrison: float | None = None


class FreeformRelationDelta(ActionParams):
    from_nation_id: EntityId | None = None
    target_nation_id: EntityId
    delta: float = Field(ge=-100, le=100)
    set_at_war: bool | None = None
    add_treaties: list[NonEmpty] = Field(default_factory=list)
    remove_treaties: list[NonEmpty] = Field(default_factory=list)


class FreeformEffectParams(ActionParams):
    summary: NonEmpty
    target_nation_id: EntityId | None = None
    nation_deltas: FreeformNationDeltas = Field(default_factory=FreeformNationDeltas)
    province_id: EntityId | None = None
    province_deltas: FreeformProvinceDeltas = Field(default_factory=FreeformProvinceDeltas)
    relation_deltas: list[FreeformRelationDelta] = Field(default_factory=list)
    limit_deltas: bool | None = None
    note: str | None = None


class ApplyTrajectoryModifierParams(ActionParams):
    target_nation_id: EntityId
    metric: TrajectoryMetric
    delta: float
    duration_weeks: Weeks
    note: str | None = None


# --- Tagged actions ---


class _ActionBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


class SendSpyAction(_ActionBase):
    type: Literal["send_spy"]
    params: SendSpyParams


class CounterIntelligenceAction(_ActionBase):
    type: Literal["counterintelligence"]
    params: CounterIntelligenceParams


class SendEnvoyAction(_ActionBase):
    type: Literal["send_envoy"]
    params: SendEnvoyParams


class ImproveRelationsAction(_ActionBase):
    type: Literal["improve_relations"]
    params: ImproveRelationsParams


class SignTreatyAction(_ActionBase):
    type: Literal["sign_treaty"]
    params: SignTreatyParams


class IssueUltimatumAction(_ActionBase):
    type: Literal["issue_ultimatum"]
    params: IssueUltimatumParams


class SanctionAction(_ActionBase):
    type: Literal["sanction"]
    params: SanctionParams


class RecognizeClaimAction(_ActionBase):
    type: Literal["recognize_claim"]
    params: RecognizeClaimParams


class AdjustTaxRateAction(_ActionBase):
    type: Literal["adjust_tax_rate"]
    params: AdjustTaxRateParams


class IssueDebtAction(_ActionBase):
    type: Literal["issue_debt"]
    params: IssueDebtParams


class CutSpendingAction(_ActionBase):
    type: Literal["cut_spending"]
    params: CutSpendingParams


class FundProjectAction(_ActionBase):
    type: Literal["fund_project"]
    params: FundProjectParams


class SubsidizeSectorAction(_ActionBase):
    type: Literal["subsidize_sector"]
    params: SubsidizeSectorParams


class AppointOfficialAction(_ActionBase):
    type: Literal["appoint_official"]
    params: AppointOfficialParams


class ReformLawAction(_ActionBase):
    type: Literal["reform_law"]
    params: ReformLawParams


class CrackdownAction(_ActionBase):
    type: Literal["crackdown"]
    params: CrackdownParams


class MobilizeAction(_ActionBase):
    type: Literal["mobilize"]
    params: MobilizeParams


class RaiseLeviesAction(_ActionBase):
    type: Literal["raise_levies"]
    params: RaiseLeviesParams


class FortifyAction(_ActionBase):
    type: Literal["fortify"]
    params: FortifyParams


class DeployForceAction(_ActionBase):
    type: Literal["deploy_force"]
    params: DeployForceParams


class ReorganizeArmyAction(_ActionBase):
    type: Literal["reorganize_army"]
    params: ReorganizeArmyParams


class FundFactionAction(_ActionBase):
    type: Literal["fund_faction"]
    params: FundFactionParams


class LeakStoryAction(_ActionBase):
    type: Literal["leak_story"]
    params: LeakStoryParams


class FreeformEffectAction(_ActionBase):
    type: Literal["freeform_effect"]
    params: FreeformEffectParams


class CreateCommitteeAction(_ActionBase):
    type: Literal["create_committee"]
    params: CreateCommitteeParams


class ApplyTrajectoryModifierAction(_ActionBase):
    type: Literal["apply_trajectory_modifier"]
    params: ApplyTrajectoryModifierParams


Action = Annotated[
    SendSpyAction
    | CounterIntelligenceAction
    | SendEnvoyAction
    | ImproveRelationsAction
    | SignTreatyAction
    | IssueUltimatumAction
    | SanctionAction
    | RecognizeClaimAction
    | AdjustTaxRateAction
    | IssueDebtAction
    | CutSpendingAction
    | FundProjectAction
    | SubsidizeSectorAction
    | AppointOfficialAction
    | ReformLawAction
    | CrackdownAction
    | MobilizeAction
    | RaiseLeviesAction
    | FortifyAction
    | DeployForceAction
    | ReorganizeArmyAction
    | FundFactionAction
    | LeakStoryAction
    | FreeformEffectAction
    | CreateCommitteeAction
    | ApplyTrajectoryModifierAction,
    Field(discriminator="type"),
]

action_adapter: TypeAdapter[Action] = TypeAdapter(Action)

PARAMS_BY_TYPE: dict[str, type[ActionParams]] = {
    "send_spy": SendSpyParams,
    "counterintelligence": CounterIntelligenceParams,
    "send_envoy": SendEnvoyParams,
    "improve_relations": ImproveRelationsParams,
    "sign_treaty": SignTreatyParams,
    "issue_ultimatum": IssueUltimatumParams,
    "sanction": SanctionParams,
    "recognize_claim": RecognizeClaimParams,
    "adjust_tax_rate": AdjustTaxRateParams,
    "issue_debt": IssueDebtParams,
    "cut_spending": CutSpendingParams,
    "fund_project": FundProjectParams,
    "subsidize_sector": SubsidizeSectorParams,
    "appoint_official": AppointOfficialParams,
    "reform_law": ReformLawParams,
    "crackdown": CrackdownParams,
    "mobilize": MobilizeParams,
    "raise_levies": RaiseLeviesParams,
    "fortify": FortifyParams,
    "deploy_force": DeployForceParams,
    "reorganize_army": ReorganizeArmyParams,
    "fund_faction": FundFactionParams,
    "leak_story": LeakStoryParams,
    "freeform_effect": FreeformEffectParams,
    "create_committee": CreateCommitteeParams,
    "apply_trajectory_modifier": ApplyTrajectoryModifierParams,
}

# Canonical parameter allow-list per action kind, derived from the models.
ACTION_PARAM_KEYS: dict[str, frozenset[str]] = {
    kind: frozenset(model.model_fields) for kind, model in PARAMS_BY_TYPE.items()
}


def validate_action(data: Any) -> Action:
    """Validate a ``{"type", "params"}`` mapping into a typed action.

    Raises:
        pydantic.ValidationError: If the tag or parameters do not validate.
    """
    return action_adapter.validate_python(data)


def action_to_dict(action: Action) -> dict[str, Any]:
    """Dump an action to plain JSON-compatible data, omitting unset optionals."""
    return action.model_dump(mode="json", exclude_none=True)
