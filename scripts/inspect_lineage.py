"""Inspect the lineage of one municipality from the command line.

Loads the CSV collections from a directory or base URL and prints an
entity's versions, the events adjacent to each version and its ancestry
as JSON.

Usage:
    python -m scripts --data-dir data 18201-丸岡町
    python -m scripts.inspect_lineage --base-url https://example.org/csv --search 伊達
    python -m scripts.inspect_lineage --data-dir data --with-mergers 01100-札幌市
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from src.config.settings import Settings, get_settings
from src.engine.lineage_store import LineageStore, LoadError
from src.models.municipality import ChangeEvent, Entity
from src.observability.log_config import configure_logging


def _event_dict(ev: ChangeEvent) -> dict:
    return ev.model_dump(mode="json")


def _entity_report(store: LineageStore, entity: Entity, *, with_mergers: bool) -> dict:
    """Versions, adjacent events and ancestry of one entity."""
    versions = []
    for v in entity.versions:
        adjacent = store.adjacent_events(entity.id, v, include_merger_partners=True)
        versions.append({
            **v.model_dump(mode="json"),
            "events_before": [_event_dict(ev) for ev in adjacent.before],
            "events_after": [_event_dict(ev) for ev in adjacent.after],
        })
    ancestry = (
        store.ancestors_with_mergers(entity.id) if with_mergers
        else store.ancestors(entity.id)
    )
    return {
        "id": entity.id,
        "name": entity.name,
        "phonetic_name": entity.phonetic_name,
        "jurisdiction_code": entity.jurisdiction_code,
        "is_current": entity.is_current,
        "versions": versions,
        "ancestors": [_event_dict(ev) for ev in ancestry],
    }


def _settings(args: argparse.Namespace) -> Settings:
    """Environment settings with the command-line data location applied."""
    settings = get_settings()
    if args.base_url:
        return settings.model_copy(update={"DATA_BASE_URL": args.base_url})
    if args.data_dir:
        return settings.model_copy(update={"DATA_BASE_URL": "", "DATA_DIR": args.data_dir})
    return settings


async def _run(args: argparse.Namespace) -> int:
    store = LineageStore.from_settings(_settings(args))
    try:
        await store.load()
    except LoadError as exc:
        print(f"Load failed: {exc}", file=sys.stderr)
        return 2

    if args.search is not None:
        hits = store.search(args.search)
        payload: object = [
            {"id": e.id, "name": e.name, "is_current": e.is_current} for e in hits
        ]
    elif args.entity_id:
        entity = store.get_entity(args.entity_id)
        if entity is None:
            candidates = store.entities_for_ref(args.entity_id)
            if len(candidates) != 1:
                print(f"Unknown entity: {args.entity_id}", file=sys.stderr)
                return 1
            entity = candidates[0]
        payload = _entity_report(store, entity, with_mergers=args.with_mergers)
    else:
        report = store.quality_report
        payload = {
            "entities": len(store.entities),
            "current_entities": len(store.list_current_entities()),
            "anomalies": {kind.value: n for kind, n in report.counts().items()},
        }

    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def main() -> None:
    """Run the lineage inspection."""
    parser = argparse.ArgumentParser(
        description="Inspect municipality lineage from CSV collections",
    )
    parser.add_argument(
        "entity_id", nargs="?", default=None,
        help="Entity id or unit code; omit for a load summary",
    )
    parser.add_argument("--data-dir", default=None, help="Directory holding the CSV files")
    parser.add_argument("--base-url", default=None, help="HTTP base URL serving the CSV files")
    parser.add_argument("--search", default=None, help="List entities matching a substring")
    parser.add_argument(
        "--with-mergers", action="store_true",
        help="Include the surviving host's earlier absorption history",
    )
    args = parser.parse_args()

    configure_logging(get_settings())
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
