"""Scenario models: the referential ground truth for coercion.

``Scenario`` accepts a full scenario document and keeps only what the
decision pipeline needs. ``ScenarioIndex`` is the derived, read-only lookup
view (valid-ID sets and deterministic fallbacks) used by the coercer and the
synthesizer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from chancery.models.action import NonEmpty  # noqa: TC001 - pydantic needs runtime types

OfficeDomain = Literal["foreign", "interior", "finance", "war", "intelligence", "chancellery"]


class _ScenarioRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ScenarioNation(_ScenarioRecord):
    nation_id: NonEmpty
    name: NonEmpty
    tag: str | None = None
    capital_geo_region_id: str | None = None


class ProvinceSnapshot(_ScenarioRecord):
    geo_region_id: NonEmpty
    geo_region_key: str | None = None
    nation_id: NonEmpty


class Office(_ScenarioRecord):
    office_id: NonEmpty
    nation_id: NonEmpty
    name: NonEmpty
    domain: OfficeDomain | None = None


class Character(_ScenarioRecord):
    character_id: NonEmpty
    name: NonEmpty
    title: str | None = None


class Appointment(_ScenarioRecord):
    office_id: NonEmpty
    character_id: NonEmpty
    start_turn: int = Field(default=0, ge=0)


class Scenario(_ScenarioRecord):
    """The current game world as far as decisions are concerned."""

    scenario_id: NonEmpty
    name: NonEmpty
    player_nation_id: NonEmpty
    nations: list[ScenarioNation] = Field(min_length=1)
    province_snapshots: list[ProvinceSnapshot] = Field(default_factory=list)
    offices: list[Office] = Field(default_factory=list)
    characters: list[Character] = Field(default_factory=list)
    appointments: list[Appointment] = Field(default_factory=list)

    def index(self) -> ScenarioIndex:
        """Build the lookup view used for coercion and synthesis."""
        return ScenarioIndex.from_scenario(self)


@dataclass(frozen=True)
class ScenarioIndex:
    """Valid identifiers and fallbacks derived from a scenario.

    Attributes:
        nation_ids: Every nation in the scenario, in scenario order.
        province_ids: Every province snapshot's region ID, in scenario order.
        office_ids: Every office, in scenario order.
        character_ids: Every character, in scenario order.
        player_nation_id: The player's nation.
        non_player_nation_id: First nation that is not the player's (the
            player's own nation when it is the only one).
        home_province_id: First province owned by the player, else the first
            province, else None.
        home_office_id: First office of the player's nation, else the first
            office, else None.
        fallback_character_id: First scenario character, else None.
        appointments: Office ID to currently appointed character ID.
    """

    nation_ids: tuple[str, ...]
    province_ids: tuple[str, ...]
    office_ids: tuple[str, ...]
    character_ids: tuple[str, ...]
    player_nation_id: str
    non_player_nation_id: str
    home_province_id: str | None
    home_office_id: str | None
    fallback_character_id: str | None
    appointments: dict[str, str]

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> ScenarioIndex:
        player = scenario.player_nation_id
        nation_ids = tuple(n.nation_id for n in scenario.nations)
        non_player = next((n for n in nation_ids if n != player), player)

        province_ids = tuple(p.geo_region_id for p in scenario.province_snapshots)
        home_province = next(
            (p.geo_region_id for p in scenario.province_snapshots if p.nation_id == player),
            province_ids[0] if province_ids else None,
        )

        office_ids = tuple(o.office_id for o in scenario.offices)
        home_office = next(
            (o.office_id for o in scenario.offices if o.nation_id == player),
            office_ids[0] if office_ids else None,
        )

        appointments = {a.office_id: a.character_id for a in scenario.appointments}
        character_ids = tuple(c.character_id for c in scenario.characters)
        fallback_character = character_ids[0] if character_ids else None

        return cls(
            nation_ids=nation_ids,
            province_ids=province_ids,
            office_ids=office_ids,
            character_ids=character_ids,
            player_nation_id=player,
            non_player_nation_id=non_player,
            home_province_id=home_province,
            home_office_id=home_office,
            fallback_character_id=fallback_character,
            appointments=appointments,
        )

    def is_nation(self, value: object) -> bool:
        return isinstance(value, str) and value in self.nation_ids

    def is_province(self, value: object) -> bool:
        return isinstance(value, str) and value in self.province_ids

    def is_office(self, value: object) -> bool:
        return isinstance(value, str) and value in self.office_ids

    def is_character(self, value: object) -> bool:
        return isinstance(value, str) and value in self.character_ids

    def appointed_character(self, office_id: str) -> str | None:
        """Return the valid character currently holding ``office_id``, if any."""
        character = self.appointments.get(office_id)
        return character if self.is_character(character) else None
