"""Municipality lineage models: reference rows, version records, entities, events.

Row models accept the column names of the published CSV collections
(``yomi``, ``prefecture_code``, ``county_code``, ``city_code_before`` ...)
as validation aliases and expose jurisdiction-neutral field names.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator

from src.models.common import EventType, LineageBase


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class Jurisdiction(LineageBase):
    """Top-level jurisdiction (prefecture)."""

    code: str
    name: str
    phonetic_name: str = Field(default="", validation_alias=AliasChoices("phonetic_name", "yomi"))


class SubJurisdiction(LineageBase):
    """Optional intermediate tier (regional office / subprefecture)."""

    code: str
    name: str
    phonetic_name: str = Field(default="", validation_alias=AliasChoices("phonetic_name", "yomi"))
    parent_jurisdiction_code: str = Field(
        validation_alias=AliasChoices("parent_jurisdiction_code", "prefecture_code"),
    )


class District(LineageBase):
    """County: administrative-only grouping with no governance of its own."""

    code: str
    name: str
    phonetic_name: str = Field(default="", validation_alias=AliasChoices("phonetic_name", "yomi"))
    parent_jurisdiction_code: str = Field(
        validation_alias=AliasChoices("parent_jurisdiction_code", "prefecture_code"),
    )


class EntityMasterRecord(LineageBase):
    """One row of the entity-master collection (entity-master input layout)."""

    id: str
    name: str = ""
    phonetic_name: str = Field(default="", validation_alias=AliasChoices("phonetic_name", "yomi"))
    jurisdiction_code: str = Field(
        default="", validation_alias=AliasChoices("jurisdiction_code", "prefecture_code"),
    )


# ---------------------------------------------------------------------------
# Version records
# ---------------------------------------------------------------------------


class VersionRecord(LineageBase):
    """One administrative unit as it existed during one contiguous interval.

    ``valid_from`` is inclusive and empty when the record predates the
    log; ``valid_to`` is exclusive and empty while the unit still exists.
    Dates are ISO ``YYYY-MM-DD`` strings and compare lexicographically.
    """

    entity_id: str | None = Field(
        default=None, validation_alias=AliasChoices("entity_id", "municipality_id"),
    )
    unit_code: str = Field(default="", validation_alias=AliasChoices("unit_code", "code", "city_code"))
    name: str = ""
    phonetic_name: str = Field(default="", validation_alias=AliasChoices("phonetic_name", "yomi"))
    jurisdiction_code: str = Field(
        default="", validation_alias=AliasChoices("jurisdiction_code", "prefecture_code"),
    )
    sub_jurisdiction_code: str = Field(
        default="", validation_alias=AliasChoices("sub_jurisdiction_code", "subprefecture_code"),
    )
    district_code: str = Field(
        default="", validation_alias=AliasChoices("district_code", "county_code"),
    )
    valid_from: str = ""
    valid_to: str = ""

    @field_validator("entity_id", mode="before")
    @classmethod
    def _blank_entity_id_is_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_current(self) -> bool:
        return not self.valid_to


# ---------------------------------------------------------------------------
# Change events
# ---------------------------------------------------------------------------


class ChangeEvent(LineageBase):
    """Directed, dated edge between a before- and after-reference.

    References are unit codes (optionally period-suffixed, e.g.
    ``18201_20050101``) in the flat layout and entity ids in the
    entity-master layout. ``implicit`` marks events synthesized by the
    engine; source rows never set it.
    """

    code: str
    date: str
    event_type: str
    before_ref: str = Field(
        validation_alias=AliasChoices("before_ref", "city_code_before", "municipality_id_before"),
    )
    after_ref: str = Field(
        validation_alias=AliasChoices("after_ref", "city_code_after", "municipality_id_after"),
    )
    implicit: bool = False

    @property
    def is_absorption(self) -> bool:
        return self.event_type == EventType.ABSORPTION

    @property
    def is_self_referential(self) -> bool:
        return self.before_ref == self.after_ref


# ---------------------------------------------------------------------------
# Derived entities
# ---------------------------------------------------------------------------


class Entity(LineageBase):
    """Persistent municipality identity spanning renames and jurisdiction moves.

    Built once by the aggregator; ``versions`` is sorted ascending by
    ``valid_from``.
    """

    id: str
    name: str
    phonetic_name: str = ""
    jurisdiction_code: str = ""
    versions: tuple[VersionRecord, ...]

    @property
    def is_current(self) -> bool:
        return any(v.is_current for v in self.versions)

    @property
    def latest_version(self) -> VersionRecord:
        return self.versions[-1]

    @property
    def unit_codes(self) -> tuple[str, ...]:
        """Distinct unit codes of this entity's versions, first-seen order."""
        return tuple(dict.fromkeys(v.unit_code for v in self.versions if v.unit_code))

    @property
    def refs(self) -> frozenset[str]:
        """Every reference an event may use to point at this entity."""
        return frozenset((self.id, *self.unit_codes))

    def previous_version(self, version: VersionRecord) -> VersionRecord | None:
        """Version immediately preceding ``version`` with a touching boundary."""
        if not version.valid_from:
            return None
        for candidate in self.versions:
            if candidate is version or candidate == version:
                continue
            if candidate.valid_to == version.valid_from:
                return candidate
        return None


class AdjacentEvents(LineageBase):
    """Events immediately before and after one version record."""

    before: tuple[ChangeEvent, ...] = ()
    after: tuple[ChangeEvent, ...] = ()
