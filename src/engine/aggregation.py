"""Entity aggregation: fold version records into persistent entities.

A unit that moves between districts without changing its name often gets
a new unit code. Jurisdiction-only change events whose before/after records
share a name are used to alias those codes (union-find), so such a unit
keeps one Entity across the code change.

Algorithm:
  1. Union after-code into before-code for same-name jurisdiction-only events.
  2. Resolve each version's unit code to its representative.
  3. Group by (representative, name); blank names are dropped.
  4. Entity id = "{representative}-{name}" (deterministic across reloads).
  5. Versions sorted by valid_from (empty first), then valid_to (empty last).
  6. Display attributes from the last version.

Version records that already carry an ``entity_id`` (entity-master layout)
are grouped by that id instead.

Deterministic: a pure function of its inputs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from src.engine.data_quality import AnomalyKind, DataQualityReport
from src.engine.disjoint_set import DisjointSet
from src.engine.event_index import EventIndex
from src.models.common import JURISDICTION_ONLY_EVENT_TYPES
from src.models.municipality import ChangeEvent, Entity, VersionRecord

logger = logging.getLogger(__name__)

_OPEN_END = "\uffff"  # sorts after any ISO date


def version_sort_key(v: VersionRecord) -> tuple[str, str]:
    """Ascending valid_from (empty = earliest), then valid_to (empty = latest)."""
    return (v.valid_from, v.valid_to or _OPEN_END)


def entity_id_for(representative_code: str, name: str) -> str:
    return f"{representative_code}-{name}"


def build_code_aliases(events: Iterable[ChangeEvent], index: EventIndex) -> DisjointSet:
    """Alias unit codes linked by a same-name jurisdiction-only event.

    Names are compared between the versions in effect on the event date:
    the before-code's version ending on it and the after-code's version
    starting on it. Codes are reused across renames, so the last record
    filed under a code is only a fallback.

    The after-code's representative is merged into the before-code's, so
    the oldest code stays canonical along a chain of moves.
    """
    aliases = DisjointSet()
    for ev in events:
        if ev.event_type not in JURISDICTION_ONLY_EVENT_TYPES:
            continue
        before = index.version_ending(ev.before_ref, ev.date)
        after = index.version_starting(ev.after_ref, ev.date)
        if before is None or after is None:
            continue
        if before.name.strip() and before.name.strip() == after.name.strip():
            aliases.union(ev.before_ref, ev.after_ref)
    return aliases


@dataclass(frozen=True)
class Aggregation:
    """Result of one aggregation pass."""

    entities: tuple[Entity, ...] = ()
    entity_by_id: dict[str, Entity] = field(default_factory=dict)
    # ref (entity id or unit code) -> ids of entities answering to it
    entity_ids_by_ref: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def entities_for_ref(self, ref: str) -> list[Entity]:
        return [self.entity_by_id[eid] for eid in self.entity_ids_by_ref.get(ref, ())]


def aggregate_entities(
    versions: Sequence[VersionRecord],
    events: Sequence[ChangeEvent],
    index: EventIndex,
    report: DataQualityReport | None = None,
) -> Aggregation:
    """Group version records into entities.

    Args:
        versions: All version records, in source order.
        events: The change-event log.
        index: Index built over the same records (boundary version lookups).
        report: Receives BLANK_NAME anomalies for dropped records.
    """
    report = report if report is not None else DataQualityReport()
    aliases = build_code_aliases(events, index)

    groups: dict[str, list[VersionRecord]] = {}
    for v in versions:
        name = v.name.strip()
        if not name:
            report.add(AnomalyKind.BLANK_NAME, v.unit_code or v.entity_id or "(no code)")
            continue
        if v.entity_id:
            key = v.entity_id
        else:
            key = entity_id_for(aliases.find(v.unit_code), name)
        groups.setdefault(key, []).append(v)

    entities: list[Entity] = []
    for entity_id, members in groups.items():
        ordered = tuple(
            v.model_copy(update={"entity_id": entity_id})
            for v in sorted(members, key=version_sort_key)
        )
        last = ordered[-1]
        entities.append(Entity(
            id=entity_id,
            name=last.name,
            phonetic_name=last.phonetic_name,
            jurisdiction_code=last.jurisdiction_code,
            versions=ordered,
        ))

    entity_by_id = {e.id: e for e in entities}
    ids_by_ref: dict[str, list[str]] = {}
    for e in entities:
        for ref in sorted(e.refs):
            ids_by_ref.setdefault(ref, []).append(e.id)

    logger.info(
        "Aggregated %d version records into %d entities (%d current, %d aliased codes)",
        len(versions), len(entities), sum(1 for e in entities if e.is_current), len(aliases),
    )
    return Aggregation(
        entities=tuple(entities),
        entity_by_id=entity_by_id,
        entity_ids_by_ref={ref: tuple(ids) for ref, ids in ids_by_ref.items()},
    )
