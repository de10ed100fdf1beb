"""Data-quality anomalies found while building the lineage store.

Anomalies are never fatal: the affected row is excluded or the traversal
branch ends, and the anomaly is recorded here and logged once per kind.
Deterministic: the same input always yields the same report.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

from src.models.municipality import ChangeEvent, Entity

logger = logging.getLogger(__name__)


class AnomalyKind(StrEnum):
    """Business-level data problems the store tolerates."""

    BLANK_NAME = "blank_name"
    DUPLICATE_CODE = "duplicate_code"
    DANGLING_REFERENCE = "dangling_reference"
    MISSING_MASTER = "missing_master"
    VERSION_GAP = "version_gap"
    VERSION_OVERLAP = "version_overlap"


@dataclass(frozen=True)
class Anomaly:
    """One data-quality finding."""

    kind: AnomalyKind
    subject: str
    detail: str = ""


@dataclass
class DataQualityReport:
    """Anomalies collected during one load."""

    anomalies: list[Anomaly] = field(default_factory=list)

    def add(self, kind: AnomalyKind, subject: str, detail: str = "") -> None:
        self.anomalies.append(Anomaly(kind=kind, subject=subject, detail=detail))

    def extend(self, anomalies: Iterable[Anomaly]) -> None:
        self.anomalies.extend(anomalies)

    def of_kind(self, kind: AnomalyKind) -> list[Anomaly]:
        return [a for a in self.anomalies if a.kind == kind]

    def counts(self) -> dict[AnomalyKind, int]:
        return dict(Counter(a.kind for a in self.anomalies))

    @property
    def is_clean(self) -> bool:
        return not self.anomalies

    def log_summary(self) -> None:
        """Log one WARNING line per anomaly kind, with a few sample subjects."""
        for kind, count in sorted(self.counts().items()):
            samples = [a.subject for a in self.of_kind(kind)[:3]]
            logger.warning("Data quality: %d x %s (e.g. %s)", count, kind.value, ", ".join(samples))


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def check_version_continuity(entities: Iterable[Entity]) -> list[Anomaly]:
    """Flag gaps and overlaps between consecutive versions of each entity.

    Consecutive versions should touch: ``versions[i].valid_to ==
    versions[i + 1].valid_from``. An open-ended version followed by
    another one is an overlap.
    """
    found: list[Anomaly] = []
    for entity in entities:
        for prev, nxt in zip(entity.versions, entity.versions[1:]):
            if not prev.valid_to:
                found.append(Anomaly(
                    AnomalyKind.VERSION_OVERLAP, entity.id,
                    f"open-ended version followed by one starting {nxt.valid_from or '(start)'}",
                ))
            elif not nxt.valid_from or nxt.valid_from == prev.valid_to:
                continue
            elif nxt.valid_from > prev.valid_to:
                found.append(Anomaly(
                    AnomalyKind.VERSION_GAP, entity.id,
                    f"{prev.valid_to} -> {nxt.valid_from}",
                ))
            else:
                found.append(Anomaly(
                    AnomalyKind.VERSION_OVERLAP, entity.id,
                    f"{nxt.valid_from} < {prev.valid_to}",
                ))
    return found


def check_event_references(
    events: Iterable[ChangeEvent],
    known_refs: set[str] | frozenset[str],
) -> list[Anomaly]:
    """Flag event references that point at no known record.

    Period-suffixed references (``code_YYYYMMDD``) count as known when
    either the full reference or its base code is known. A blank reference
    is the missing side of a creation or abolition and is not checked.
    """
    found: list[Anomaly] = []
    for ev in events:
        for ref in (ev.before_ref, ev.after_ref):
            if not ref.strip() or ref in known_refs or ref.split("_", 1)[0] in known_refs:
                continue
            found.append(Anomaly(AnomalyKind.DANGLING_REFERENCE, ref, f"event {ev.code}"))
    return found
