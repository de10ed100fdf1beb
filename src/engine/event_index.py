"""Bidirectional index over the change-event log.

Built in a single pass; cannot fail for well-typed input. References that
point at no record stay in the maps as dangling keys; the resolvers treat
them as "no further ancestry".
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from src.models.municipality import ChangeEvent, VersionRecord

logger = logging.getLogger(__name__)

INITIAL_SUFFIX = "initial"


def split_period_ref(ref: str) -> tuple[str, str | None]:
    """Split a period-suffixed reference into (base code, ISO date).

    '18201_20050101' -> ('18201', '2005-01-01')
    '20581_initial'  -> ('20581', None)
    '18201'          -> ('18201', None)

    Suffixes that are not an 8-digit date are left alone.
    """
    base, sep, suffix = ref.partition("_")
    if not sep:
        return ref, None
    if suffix == INITIAL_SUFFIX:
        return base, None
    if len(suffix) == 8 and suffix.isdigit():
        return base, f"{suffix[:4]}-{suffix[4:6]}-{suffix[6:]}"
    return ref, None


@dataclass(frozen=True)
class EventIndex:
    """Code and adjacency lookups used by the aggregator and resolvers.

    ``events_by_after[ref]`` lists events whose ``after_ref`` is ``ref``;
    ``events_by_before[ref]`` those whose ``before_ref`` is ``ref``. Both
    keep source order per key and are never deduplicated, so "first
    occurrence" rules downstream stay deterministic.
    """

    unit_by_code: dict[str, VersionRecord] = field(default_factory=dict)
    versions_by_code: dict[str, list[VersionRecord]] = field(default_factory=dict)
    events_by_after: dict[str, list[ChangeEvent]] = field(default_factory=dict)
    events_by_before: dict[str, list[ChangeEvent]] = field(default_factory=dict)
    position: dict[str, int] = field(default_factory=dict)  # event code -> first log index

    @classmethod
    def build(
        cls,
        versions: Iterable[VersionRecord],
        events: Iterable[ChangeEvent],
    ) -> EventIndex:
        unit_by_code: dict[str, VersionRecord] = {}
        versions_by_code: dict[str, list[VersionRecord]] = {}
        for v in versions:
            if v.unit_code:
                unit_by_code[v.unit_code] = v  # last write wins
                versions_by_code.setdefault(v.unit_code, []).append(v)

        by_after: dict[str, list[ChangeEvent]] = {}
        by_before: dict[str, list[ChangeEvent]] = {}
        position: dict[str, int] = {}
        for i, ev in enumerate(events):
            position.setdefault(ev.code, i)
            by_after.setdefault(ev.after_ref, []).append(ev)
            by_before.setdefault(ev.before_ref, []).append(ev)

        logger.info(
            "Event index built: %d units, %d after-keys, %d before-keys",
            len(unit_by_code), len(by_after), len(by_before),
        )
        return cls(
            unit_by_code=unit_by_code,
            versions_by_code=versions_by_code,
            events_by_after=by_after,
            events_by_before=by_before,
            position=position,
        )

    def after(self, ref: str) -> list[ChangeEvent]:
        """Events that produced ``ref`` (empty list for unknown refs)."""
        return self.events_by_after.get(ref, [])

    def before(self, ref: str) -> list[ChangeEvent]:
        """Events that consumed ``ref`` (empty list for unknown refs)."""
        return self.events_by_before.get(ref, [])

    def version_ending(self, code: str, date: str) -> VersionRecord | None:
        """Version filed under ``code`` whose interval ends on ``date``.

        Falls back to the last record filed under the code when no version
        ends there.
        """
        for v in self.versions_by_code.get(code, ()):
            if v.valid_to == date:
                return v
        return self.unit_by_code.get(code)

    def version_starting(self, code: str, date: str) -> VersionRecord | None:
        """Version filed under ``code`` whose interval starts on ``date``.

        Same fallback as ``version_ending``.
        """
        for v in self.versions_by_code.get(code, ()):
            if v.valid_from == date:
                return v
        return self.unit_by_code.get(code)

    def after_any(self, refs: Iterable[str]) -> list[ChangeEvent]:
        """Events produced by any of ``refs``, deduplicated by event code."""
        return self._in_log_order(ev for ref in refs for ev in self.after(ref))

    def before_any(self, refs: Iterable[str]) -> list[ChangeEvent]:
        """Events consuming any of ``refs``, deduplicated by event code."""
        return self._in_log_order(ev for ref in refs for ev in self.before(ref))

    def _in_log_order(self, events: Iterable[ChangeEvent]) -> list[ChangeEvent]:
        unique: dict[str, ChangeEvent] = {}
        for ev in events:
            unique.setdefault(ev.code, ev)
        return sorted(unique.values(), key=lambda ev: self.position.get(ev.code, -1))
