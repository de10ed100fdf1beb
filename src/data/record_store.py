"""Record store: the validated, immutable input collections plus code lookups.

Populated once per load from the rows a RecordSource returns; never
mutated afterwards. A reload builds a new RecordStore.

Provides:
  validate_rows(model, rows) -> list[model]
  join_entity_master(masters, versions, report) -> list[VersionRecord]
  RecordStore.build(...) -> RecordStore
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from pydantic import BaseModel, TypeAdapter

from src.engine.data_quality import AnomalyKind, DataQualityReport
from src.models.municipality import (
    ChangeEvent,
    District,
    EntityMasterRecord,
    Jurisdiction,
    SubJurisdiction,
    VersionRecord,
)

M = TypeVar("M", bound=BaseModel)


def validate_rows(model: type[M], rows: Sequence[dict[str, str]]) -> list[M]:
    """Validate raw CSV rows against a row model.

    Raises:
        pydantic.ValidationError: If any row fails validation.
    """
    return TypeAdapter(list[model]).validate_python(list(rows))


def join_entity_master(
    masters: Iterable[EntityMasterRecord],
    versions: Iterable[VersionRecord],
    report: DataQualityReport,
) -> list[VersionRecord]:
    """Attach master attributes to interval-only version rows.

    In the entity-master layout version rows carry only ``entity_id`` and
    interval/jurisdiction fields. Name, phonetic name and jurisdiction come
    from the master row; ``unit_code`` becomes the entity id. Versions with
    no master row are dropped as MISSING_MASTER anomalies.
    """
    by_id = {m.id: m for m in masters}
    joined: list[VersionRecord] = []
    for v in versions:
        master = by_id.get(v.entity_id or "")
        if master is None:
            report.add(AnomalyKind.MISSING_MASTER, v.entity_id or "(blank)")
            continue
        joined.append(v.model_copy(update={
            "unit_code": v.unit_code or master.id,
            "name": v.name or master.name,
            "phonetic_name": v.phonetic_name or master.phonetic_name,
            "jurisdiction_code": v.jurisdiction_code or master.jurisdiction_code,
        }))
    return joined


def _index_by_code(
    records: Iterable[M],
    code_of: Callable[[M], str],
    collection: str,
    report: DataQualityReport,
) -> dict[str, M]:
    """code -> record, last write wins; duplicates are reported."""
    index: dict[str, M] = {}
    for rec in records:
        code = code_of(rec)
        if code in index:
            report.add(AnomalyKind.DUPLICATE_CODE, code, collection)
        index[code] = rec
    return index


@dataclass(frozen=True)
class RecordStore:
    """Immutable input collections with O(1) lookup by code."""

    jurisdictions: tuple[Jurisdiction, ...] = ()
    sub_jurisdictions: tuple[SubJurisdiction, ...] = ()
    districts: tuple[District, ...] = ()
    versions: tuple[VersionRecord, ...] = ()
    events: tuple[ChangeEvent, ...] = ()

    jurisdiction_by_code: dict[str, Jurisdiction] = field(default_factory=dict)
    sub_jurisdiction_by_code: dict[str, SubJurisdiction] = field(default_factory=dict)
    district_by_code: dict[str, District] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        *,
        jurisdictions: Iterable[Jurisdiction] = (),
        sub_jurisdictions: Iterable[SubJurisdiction] = (),
        districts: Iterable[District] = (),
        versions: Iterable[VersionRecord] = (),
        events: Iterable[ChangeEvent] = (),
        report: DataQualityReport | None = None,
    ) -> RecordStore:
        """Freeze the collections and build code lookups.

        Version records legitimately share a unit code across intervals
        (their code lookup lives in EventIndex), so only a
        repeated (unit_code, valid_from) pair is reported as a duplicate;
        duplicate codes in the reference tables and the event log are
        reported too.
        """
        report = report if report is not None else DataQualityReport()
        jurisdictions = tuple(jurisdictions)
        sub_jurisdictions = tuple(sub_jurisdictions)
        districts = tuple(districts)
        versions = tuple(versions)
        events = tuple(events)

        _index_by_code(events, lambda e: e.code, "change_events", report)
        _index_by_code(
            (v for v in versions if v.unit_code),
            lambda v: f"{v.unit_code}@{v.valid_from or '(start)'}",
            "versions",
            report,
        )

        return cls(
            jurisdictions=jurisdictions,
            sub_jurisdictions=sub_jurisdictions,
            districts=districts,
            versions=versions,
            events=events,
            jurisdiction_by_code=_index_by_code(
                jurisdictions, lambda r: r.code, "jurisdictions", report,
            ),
            sub_jurisdiction_by_code=_index_by_code(
                sub_jurisdictions, lambda r: r.code, "sub_jurisdictions", report,
            ),
            district_by_code=_index_by_code(districts, lambda r: r.code, "districts", report),
        )

    @property
    def known_refs(self) -> frozenset[str]:
        """Every unit code and entity id present in the version records."""
        refs = {v.unit_code for v in self.versions if v.unit_code}
        refs.update(v.entity_id for v in self.versions if v.entity_id)
        return frozenset(refs)
