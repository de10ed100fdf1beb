"""Adjacency resolver: events immediately before and after one version.

``before`` holds the events that produced the version (dated on its
``valid_from``), ``after`` the events that ended it (dated on its
``valid_to``). When two touching versions of the same entity sit in
different districts and the log has no event for the move, an implicit
jurisdiction-change event is synthesized on demand. Synthesized events
are never written back to the log.

Pure and reentrant; safe to call from concurrent readers.
"""

from __future__ import annotations

import logging

from src.engine.aggregation import Aggregation
from src.engine.event_index import EventIndex
from src.models.common import AdminClass, EventType, admin_class
from src.models.municipality import AdjacentEvents, ChangeEvent, Entity, VersionRecord

logger = logging.getLogger(__name__)


def implicit_event_code(entity_id: str, date: str) -> str:
    return f"implicit-{entity_id}-{date}"


class AdjacencyResolver:
    """Resolves the events bordering a version record of an entity."""

    def __init__(self, index: EventIndex, aggregation: Aggregation) -> None:
        self._index = index
        self._aggregation = aggregation

    def adjacent_events(
        self,
        entity_id: str,
        version: VersionRecord,
        *,
        include_merger_partners: bool = False,
    ) -> AdjacentEvents:
        """Events bordering ``version`` of entity ``entity_id``.

        Args:
            entity_id: Id of the entity the version belongs to.
            version: One of the entity's version records.
            include_merger_partners: Also return, in ``after``, every event
                sharing date and ``after_ref`` with an event already there
                (the other parties of the merger that ended this version).

        Returns:
            AdjacentEvents; both sides empty for unknown entities.
        """
        entity = self._aggregation.entity_by_id.get(entity_id)
        if entity is None:
            return AdjacentEvents()
        refs = entity.refs

        before: list[ChangeEvent] = []
        if version.valid_from:
            before = [ev for ev in self._index.after_any(refs) if ev.date == version.valid_from]

        after: list[ChangeEvent] = []
        if version.valid_to:
            after = [ev for ev in self._index.before_any(refs) if ev.date == version.valid_to]
            if include_merger_partners:
                after = self._with_partners(after)

        implicit = self._implicit_jurisdiction_change(entity, version, before)
        if implicit is not None:
            before.append(implicit)

        return AdjacentEvents(before=tuple(before), after=tuple(after))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _with_partners(self, events: list[ChangeEvent]) -> list[ChangeEvent]:
        seen = {ev.code for ev in events}
        out = list(events)
        for ev in events:
            if not ev.after_ref.strip():
                continue
            for partner in self._index.after(ev.after_ref):
                if partner.date == ev.date and partner.code not in seen:
                    seen.add(partner.code)
                    out.append(partner)
        return out

    def _implicit_jurisdiction_change(
        self,
        entity: Entity,
        version: VersionRecord,
        before: list[ChangeEvent],
    ) -> ChangeEvent | None:
        """Synthesize a district move not recorded in the log, if any."""
        prev = entity.previous_version(version)
        if prev is None or prev.district_code == version.district_code:
            return None

        refs = entity.refs
        if any(ev.before_ref in refs for ev in before):
            return None

        # Districts are dropped on city incorporation; not a separate move.
        if not version.district_code:
            if any(ev.event_type == EventType.CITY_STATUS for ev in before):
                return None
            prev_cls = admin_class(prev.name, prev.phonetic_name)
            new_cls = admin_class(version.name, version.phonetic_name)
            if new_cls == AdminClass.CITY and prev_cls != AdminClass.CITY:
                return None

        logger.debug(
            "Synthesizing jurisdiction change for %s on %s (%s -> %s)",
            entity.id, version.valid_from, prev.district_code, version.district_code,
        )
        return ChangeEvent(
            code=implicit_event_code(entity.id, version.valid_from),
            date=version.valid_from,
            event_type=EventType.JURISDICTION_CHANGE,
            before_ref=entity.id,
            after_ref=entity.id,
            implicit=True,
        )
