"""Lineage store: load lifecycle and query surface.

One ``LineageStore`` is constructed explicitly (no module-level singleton)
and handed to whatever needs lineage answers. ``load()`` fetches every
collection concurrently, validates rows, and builds an immutable
``LineageSnapshot``; queries read from the snapshot. ``reset()`` discards
it wholesale; there is no partial mutation.

Concurrent ``load()`` callers share one in-flight task: fetches run at
most once per load, and every caller observes the same outcome.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel

from src.config.settings import Settings, get_settings
from src.data.csv_source import RecordSource, source_from_settings
from src.data.record_store import RecordStore, join_entity_master, validate_rows
from src.engine.adjacency import AdjacencyResolver
from src.engine.aggregation import Aggregation, aggregate_entities
from src.engine.ancestry import AncestryResolver, StatusChangeHeuristic
from src.engine.data_quality import (
    DataQualityReport,
    check_event_references,
    check_version_continuity,
)
from src.engine.event_index import EventIndex
from src.models.municipality import (
    AdjacentEvents,
    ChangeEvent,
    District,
    Entity,
    EntityMasterRecord,
    Jurisdiction,
    SubJurisdiction,
    VersionRecord,
)

logger = logging.getLogger(__name__)


class LoadError(RuntimeError):
    """Raised when a load fails; the store is left unloaded."""


class LoadState(StrEnum):
    """Lifecycle of a LineageStore."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineageSnapshot:
    """Everything derived from one load. Read-only."""

    records: RecordStore
    index: EventIndex
    aggregation: Aggregation
    adjacency: AdjacencyResolver
    ancestry: AncestryResolver
    report: DataQualityReport


def build_snapshot(
    records: RecordStore,
    *,
    heuristic: StatusChangeHeuristic | None = None,
    report: DataQualityReport | None = None,
) -> LineageSnapshot:
    """Index, aggregate and wire resolvers over a record store.

    Deterministic: the same records always give the same entity ids and
    ordering.
    """
    report = report if report is not None else DataQualityReport()
    index = EventIndex.build(records.versions, records.events)
    aggregation = aggregate_entities(records.versions, records.events, index, report)

    report.extend(check_version_continuity(aggregation.entities))
    report.extend(check_event_references(
        records.events, records.known_refs | set(aggregation.entity_by_id),
    ))

    return LineageSnapshot(
        records=records,
        index=index,
        aggregation=aggregation,
        adjacency=AdjacencyResolver(index, aggregation),
        ancestry=AncestryResolver(index, aggregation, heuristic),
        report=report,
    )


def heuristic_from_settings(settings: Settings) -> StatusChangeHeuristic:
    return StatusChangeHeuristic(
        enabled=settings.STATUS_CHANGE_HEURISTIC_ENABLED,
        placeholder_date=settings.STATUS_CHANGE_PLACEHOLDER_DATE,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class LineageStore:
    """Loads the lineage collections once and answers lineage queries."""

    def __init__(
        self,
        source: RecordSource,
        *,
        settings: Settings | None = None,
        heuristic: StatusChangeHeuristic | None = None,
    ) -> None:
        self._source = source
        self._settings = settings or get_settings()
        self._heuristic = heuristic or heuristic_from_settings(self._settings)
        self._snapshot: LineageSnapshot | None = None
        self._load_task: asyncio.Task[LineageSnapshot] | None = None
        self._generation = 0
        self._error: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> LineageStore:
        settings = settings or get_settings()
        return cls(source_from_settings(settings), settings=settings)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> LoadState:
        if self._snapshot is not None:
            return LoadState.LOADED
        if self._load_task is not None:
            return LoadState.LOADING
        if self._error is not None:
            return LoadState.FAILED
        return LoadState.IDLE

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def loading(self) -> bool:
        return self._load_task is not None

    @property
    def error(self) -> str | None:
        return self._error

    async def load(self) -> None:
        """Load every collection; no-op when already loaded.

        A caller arriving while a load is in flight waits for that load
        instead of starting another one.

        Raises:
            LoadError: If any fetch or row validation fails. The store is
                left unloaded with ``error`` set. Also raised to callers
                waiting on a load that ``reset()`` discarded.
        """
        if self._snapshot is not None:
            logger.debug("Lineage data already loaded, skipping")
            return

        if self._load_task is None:
            self._error = None
            self._load_task = asyncio.get_running_loop().create_task(
                self._load(self._generation),
            )
        else:
            logger.info("Lineage data load in progress, waiting")

        await asyncio.shield(self._load_task)

    def reset(self) -> None:
        """Discard all loaded data; the next ``load()`` starts from scratch."""
        self._generation += 1
        self._snapshot = None
        self._load_task = None
        self._error = None

    async def _load(self, generation: int) -> LineageSnapshot:
        logger.info("Starting lineage data load from %s", self._source.name)
        try:
            snapshot = await self._fetch_and_build()
        except Exception as exc:
            if generation == self._generation:
                self._load_task = None
                self._error = str(exc)
            logger.error("Failed to load lineage data: %s", exc)
            if isinstance(exc, LoadError):
                raise
            msg = f"Failed to load lineage data from {self._source.name}: {exc}"
            raise LoadError(msg) from exc

        if generation != self._generation:
            logger.info("Lineage data load discarded by reset")
            msg = "load discarded by reset"
            raise LoadError(msg)

        self._snapshot = snapshot
        self._load_task = None
        snapshot.report.log_summary()
        logger.info(
            "Lineage data loaded: %d entities, %d events",
            len(snapshot.aggregation.entities), len(snapshot.records.events),
        )
        return snapshot

    async def _fetch(
        self,
        file_name: str,
        model: type[BaseModel],
        *,
        optional: bool = False,
    ) -> list:
        try:
            rows = await self._source.fetch_rows(file_name, optional=optional)
            return validate_rows(model, rows)
        except Exception as exc:
            msg = f"{file_name}: {exc}"
            raise LoadError(msg) from exc

    async def _fetch_and_build(self) -> LineageSnapshot:
        s = self._settings
        (
            jurisdictions,
            sub_jurisdictions,
            districts,
            masters,
            interval_versions,
            flat_versions,
            events,
        ) = await asyncio.gather(
            self._fetch(s.PREFECTURES_FILE, Jurisdiction),
            self._fetch(s.SUBPREFECTURES_FILE, SubJurisdiction, optional=True),
            self._fetch(s.COUNTIES_FILE, District),
            self._fetch(s.MUNICIPALITIES_FILE, EntityMasterRecord, optional=True),
            self._fetch(s.MUNICIPALITY_VERSIONS_FILE, VersionRecord, optional=True),
            self._fetch(s.CITIES_FILE, VersionRecord, optional=True),
            self._fetch(s.CHANGE_EVENTS_FILE, ChangeEvent),
        )
        logger.info(
            "Collections fetched: %d jurisdictions, %d sub-jurisdictions, %d districts, "
            "%d masters, %d interval versions, %d flat versions, %d events",
            len(jurisdictions), len(sub_jurisdictions), len(districts),
            len(masters), len(interval_versions), len(flat_versions), len(events),
        )

        report = DataQualityReport()
        if masters:
            versions = join_entity_master(masters, interval_versions, report)
        elif flat_versions:
            versions = flat_versions
        else:
            msg = (
                f"no version records: expected {s.CITIES_FILE} or "
                f"{s.MUNICIPALITIES_FILE} + {s.MUNICIPALITY_VERSIONS_FILE}"
            )
            raise LoadError(msg)

        records = RecordStore.build(
            jurisdictions=jurisdictions,
            sub_jurisdictions=sub_jurisdictions,
            districts=districts,
            versions=versions,
            events=events,
            report=report,
        )
        return build_snapshot(records, heuristic=self._heuristic, report=report)

    # ------------------------------------------------------------------
    # Queries (empty results while unloaded)
    # ------------------------------------------------------------------

    @property
    def entities(self) -> tuple[Entity, ...]:
        return self._snapshot.aggregation.entities if self._snapshot else ()

    @property
    def quality_report(self) -> DataQualityReport:
        return self._snapshot.report if self._snapshot else DataQualityReport()

    def get_entity(self, entity_id: str) -> Entity | None:
        if self._snapshot is None:
            return None
        return self._snapshot.aggregation.entity_by_id.get(entity_id)

    def entities_for_ref(self, ref: str) -> list[Entity]:
        """Entities an event reference (entity id or unit code) points at."""
        if self._snapshot is None:
            return []
        return self._snapshot.aggregation.entities_for_ref(ref)

    def list_current_entities(self) -> list[Entity]:
        """Entities with at least one still-valid version."""
        current = [e for e in self.entities if e.is_current]
        logger.debug("Current entities: %d of %d", len(current), len(self.entities))
        return current

    def search(self, query: str) -> list[Entity]:
        """Case-insensitive substring search, current and dissolved entities.

        Matches the entity name and phonetic name, its jurisdiction name,
        and the district and sub-jurisdiction names / phonetic names of
        any of its versions. A blank query returns every entity.
        """
        if self._snapshot is None:
            return []
        needle = query.strip().lower()
        if not needle:
            return list(self.entities)
        records = self._snapshot.records
        return [e for e in self.entities if needle in _search_text(e, records)]

    def adjacent_events(
        self,
        entity_id: str,
        version: VersionRecord,
        *,
        include_merger_partners: bool = False,
    ) -> AdjacentEvents:
        if self._snapshot is None:
            return AdjacentEvents()
        return self._snapshot.adjacency.adjacent_events(
            entity_id, version, include_merger_partners=include_merger_partners,
        )

    def ancestors(self, entity_id: str) -> list[ChangeEvent]:
        if self._snapshot is None:
            return []
        return self._snapshot.ancestry.ancestors(entity_id)

    def ancestors_with_mergers(self, entity_id: str) -> list[ChangeEvent]:
        if self._snapshot is None:
            return []
        return self._snapshot.ancestry.ancestors_with_mergers(entity_id)


def _search_text(entity: Entity, records: RecordStore) -> str:
    """Lower-cased, newline-joined searchable fields of an entity."""
    fields = [entity.name, entity.phonetic_name]
    jurisdiction = records.jurisdiction_by_code.get(entity.jurisdiction_code)
    if jurisdiction is not None:
        fields.append(jurisdiction.name)
    for v in entity.versions:
        district = records.district_by_code.get(v.district_code)
        if district is not None:
            fields.extend((district.name, district.phonetic_name))
        sub = records.sub_jurisdiction_by_code.get(v.sub_jurisdiction_code)
        if sub is not None:
            fields.extend((sub.name, sub.phonetic_name))
    return "\n".join(fields).lower()
