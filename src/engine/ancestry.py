"""Ancestry resolver: lineage walks over the change-event graph.

For a reference (entity id or unit code) the resolver collects the events
that lead to it, most recent first:

  1. Status step: an earlier, same-stem municipality one class below in the
     same jurisdiction (town -> city, village -> town) is taken as the
     predecessor through an inferred status-change event. The inference is
     controlled by ``StatusChangeHeuristic``.
  2. Otherwise the most recent date group of events producing the
     reference; every distinct predecessor of that group is walked once.
  3. A reference with no predecessor is an original formation.

The walk uses an explicit worklist and an owned visited set, so malformed
logs with cycles still terminate. Dangling references and the blank side
of a creation or abolition end their branch. A unit code shared by several
entities is resolved by date to the entity in effect at each event.

``ancestors_with_mergers`` additionally attaches the earlier absorption
history of a host municipality that survived an absorption.

Pure and reentrant; safe to call from concurrent readers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from src.engine.aggregation import Aggregation
from src.engine.event_index import EventIndex, split_period_ref
from src.models.common import STATUS_TRANSITIONS, admin_class, split_name, split_phonetic
from src.models.municipality import ChangeEvent, Entity, VersionRecord

logger = logging.getLogger(__name__)

DEFAULT_STATUS_PLACEHOLDER_DATE = "2000-01-01"


@dataclass(frozen=True)
class StatusChangeHeuristic:
    """How implicit town->city / village->town transitions are inferred.

    The source log does not always record status enactments. When a
    predecessor is matched by name stem, the inferred event is dated on
    the predecessor's end date if it touches the successor's start date
    (``prefer_version_boundary``), otherwise on ``placeholder_date``.
    Placeholder-dated events are approximations and are flagged in logs.
    """

    enabled: bool = True
    placeholder_date: str = DEFAULT_STATUS_PLACEHOLDER_DATE
    prefer_version_boundary: bool = True


def sort_most_recent_first(events: Iterable[ChangeEvent]) -> list[ChangeEvent]:
    """Deduplicate by event code and sort by date descending (stable)."""
    unique: dict[str, ChangeEvent] = {}
    for ev in events:
        unique.setdefault(ev.code, ev)
    return sorted(unique.values(), key=lambda ev: ev.date, reverse=True)


class AncestryResolver:
    """Computes ancestor chains over an indexed event log."""

    def __init__(
        self,
        index: EventIndex,
        aggregation: Aggregation,
        heuristic: StatusChangeHeuristic | None = None,
    ) -> None:
        self._index = index
        self._aggregation = aggregation
        self._heuristic = heuristic or StatusChangeHeuristic()
        self._entities_by_jurisdiction: dict[str, list[Entity]] = {}
        for entity in aggregation.entities:
            self._entities_by_jurisdiction.setdefault(entity.jurisdiction_code, []).append(entity)

    # ------------------------------------------------------------------
    # Public queries
    # ------------------------------------------------------------------

    def ancestors(self, ref: str) -> list[ChangeEvent]:
        """Full lineage of ``ref``, most recent event first."""
        return sort_most_recent_first(self._walk(ref, set()))

    def ancestors_with_mergers(self, ref: str) -> list[ChangeEvent]:
        """Lineage plus the surviving host's earlier absorption history.

        When the lineage holds an absorption whose after-party is the
        queried municipality itself (it survived the absorption), the
        host's own earlier absorptions are added once, without repeating
        events already present.
        """
        base = self.ancestors(ref)
        node = self._node(ref)
        collected = list(base)

        # base is most recent first; older absorptions fall inside this history
        for ev in base:
            if not ev.is_absorption or self._owner(ev.after_ref, ev.date, ending=False) != node:
                continue
            older = self.surviving_ancestors(node, before_date=ev.date)
            logger.debug("Host %s absorbed on %s: %d older events", node, ev.date, len(older))
            collected.extend(older)
            break

        return sort_most_recent_first(collected)

    def surviving_ancestors(self, ref: str, before_date: str | None = None) -> list[ChangeEvent]:
        """Earlier absorptions in which ``ref`` took part as the before-party.

        Only absorption events strictly earlier than ``before_date`` count.
        Each one's before-party ancestry (restricted to events earlier than
        that absorption) is appended.
        """
        node = self._node(ref)
        visited: set[str] = {node}
        collected: list[ChangeEvent] = []

        for ev in self._index.before_any(self._expand(node)):
            if not ev.is_absorption:
                continue
            if before_date is not None and not ev.date < before_date:
                continue
            if self._owner(ev.before_ref, ev.date, ending=True) != node:
                continue
            collected.append(ev)
            collected.extend(self._walk(node, visited, cutoff=ev.date))

        return sort_most_recent_first(collected)

    def status_changes(self, ref: str) -> list[ChangeEvent]:
        """Inferred status-change events leading to ``ref`` (may be empty)."""
        entity = self._single_entity(ref)
        if entity is None or not self._heuristic.enabled:
            return []
        return self._infer_status_changes(entity)

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    def _walk(self, start: str, visited: set[str], cutoff: str | None = None) -> list[ChangeEvent]:
        """Depth-first worklist walk from ``start``.

        Nodes are entity ids, or the raw reference when it names no single
        entity. ``visited`` holds nodes, is shared with the caller and is
        updated in place. ``cutoff`` restricts log events to dates strictly
        before it. A blank reference (the missing side of a creation or
        abolition) is never a node.
        """
        collected: list[ChangeEvent] = []
        if not start.strip():
            return collected
        node = self._node(start)
        visited.add(node)
        stack: list[str] = [node]

        while stack:
            node = stack.pop()
            step = self.status_changes(node)
            if not step:
                step = self._latest_predecessor_group(node, cutoff)
            collected.extend(step)

            predecessors: list[str] = []
            for ev in step:
                pred = self._owner(ev.before_ref, ev.date, ending=True)
                if not pred.strip() or pred in visited:
                    continue
                visited.add(pred)
                predecessors.append(pred)
            stack.extend(reversed(predecessors))

        return collected

    def _latest_predecessor_group(self, node: str, cutoff: str | None) -> list[ChangeEvent]:
        """Events of the most recent date that produced ``node``.

        An event belongs to ``node`` when its after-party resolves to it
        on the event date. Events whose before-party resolves to the same
        node are internal to it and are not lineage steps.
        """
        _, period_date = split_period_ref(node)

        candidates = [
            ev for ev in self._index.after_any(self._expand(node))
            if self._owner(ev.after_ref, ev.date, ending=False) == node
            and self._owner(ev.before_ref, ev.date, ending=True) != node
        ]
        if period_date is not None:
            candidates = [ev for ev in candidates if ev.date <= period_date]
        if cutoff is not None:
            candidates = [ev for ev in candidates if ev.date < cutoff]
        if not candidates:
            return []

        latest = max(ev.date for ev in candidates)
        return [ev for ev in candidates if ev.date == latest]

    # ------------------------------------------------------------------
    # Status-change inference
    # ------------------------------------------------------------------

    def _infer_status_changes(self, target: Entity) -> list[ChangeEvent]:
        target_cls = admin_class(target.name, target.phonetic_name)
        if target_cls is None:
            return []

        stem, _ = split_name(target.name)
        phonetic_stem = split_phonetic(target.phonetic_name)[0] if target.phonetic_name else ""
        start = target.versions[0].valid_from
        explicit_predecessors = {ev.before_ref for ev in self._index.after_any(target.refs)}

        inferred: list[ChangeEvent] = []
        for cand in self._entities_by_jurisdiction.get(target.jurisdiction_code, []):
            if cand.id == target.id or cand.is_current:
                continue
            event_type = STATUS_TRANSITIONS.get(
                (admin_class(cand.name, cand.phonetic_name), target_cls),
            )
            if event_type is None:
                continue
            same_stem = split_name(cand.name)[0] == stem or (
                bool(phonetic_stem) and split_phonetic(cand.phonetic_name)[0] == phonetic_stem
            )
            if not same_stem:
                continue
            ended = cand.latest_version.valid_to
            if start and ended > start:
                continue
            if cand.refs & explicit_predecessors:
                continue

            if self._heuristic.prefer_version_boundary and start and ended == start:
                date = ended
            else:
                date = self._heuristic.placeholder_date
                logger.info(
                    "Status change %s -> %s dated with placeholder %s",
                    cand.id, target.id, date,
                )
            inferred.append(ChangeEvent(
                code=f"status-{target.id}-{cand.id}",
                date=date,
                event_type=event_type,
                before_ref=cand.id,
                after_ref=target.id,
                implicit=True,
            ))
        return inferred

    # ------------------------------------------------------------------
    # Reference helpers
    # ------------------------------------------------------------------

    def _single_entity(self, ref: str) -> Entity | None:
        entities = self._aggregation.entities_for_ref(ref)
        return entities[0] if len(entities) == 1 else None

    def _expand(self, ref: str) -> frozenset[str]:
        """All references of the entity ``ref`` unambiguously names."""
        entity = self._single_entity(ref)
        if entity is None:
            return frozenset({ref})
        return entity.refs

    def _node(self, ref: str) -> str:
        """Walk node for ``ref``: its entity id, or ``ref`` itself."""
        entity = self._single_entity(ref)
        return entity.id if entity is not None else ref

    def _owner(self, ref: str, date: str, *, ending: bool) -> str:
        """Walk node ``ref`` denoted on ``date``.

        A unit code shared by several entities (a rename that kept its
        code) is resolved to the entity whose version under that code was
        in effect up to ``date`` (``ending``) or from ``date`` on. Falls
        back to ``ref`` when no version matches.
        """
        entities = self._aggregation.entities_for_ref(ref)
        if len(entities) == 1:
            return entities[0].id
        for entity in entities:
            for v in entity.versions:
                if v.unit_code == ref and _in_effect(v, date, ending=ending):
                    return entity.id
        return ref


def _in_effect(v: VersionRecord, date: str, *, ending: bool) -> bool:
    """Whether ``v`` was in effect just before (``ending``) or just after ``date``."""
    if ending:
        return (not v.valid_from or v.valid_from < date) and (not v.valid_to or date <= v.valid_to)
    return (not v.valid_from or v.valid_from <= date) and (not v.valid_to or date < v.valid_to)
