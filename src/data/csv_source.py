"""Record sources: fetch the tabular collections the lineage store loads.

All sources implement ``RecordSource``: they return the rows of one named
CSV collection as header-keyed dicts with trimmed keys and values. Row
validation happens later, in the store, against the Pydantic row models.

Two implementations:
  HttpCsvSource: httpx.AsyncClient against a static file host
  LocalCsvSource: files on disk, read off the event loop
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import httpx

from src.config.settings import Settings

logger = logging.getLogger(__name__)

Row = dict[str, str]


def parse_csv(text: str, *, source: str = "<csv>") -> list[Row]:
    """Parse header-first CSV text into dicts.

    Strips a UTF-8 BOM, trims headers and values, skips blank lines.
    Short rows are padded with "" and surplus cells are dropped (logged
    once per source, like a parser warning).
    """
    text = text.lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text))
    header: list[str] | None = None
    rows: list[Row] = []
    ragged = 0

    for raw in reader:
        if not raw or all(not cell.strip() for cell in raw):
            continue
        if header is None:
            header = [h.strip() for h in raw]
            continue
        cells = [c.strip() for c in raw]
        if len(cells) != len(header):
            ragged += 1
            cells = (cells + [""] * len(header))[: len(header)]
        rows.append(dict(zip(header, cells)))

    if ragged:
        logger.warning("CSV parse warnings for %s: %d ragged rows", source, ragged)
    return rows


class RecordSource(ABC):
    """Abstract source of named CSV collections."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable source description for logs and errors."""
        ...

    @abstractmethod
    async def fetch_rows(self, file_name: str, *, optional: bool = False) -> list[Row]:
        """Fetch and parse one collection.

        Args:
            file_name: Collection file name, e.g. ``cities.csv``.
            optional: When True a missing collection yields ``[]``
                instead of an error.

        Raises:
            FileNotFoundError / httpx.HTTPError: required collection
                missing or unreachable.
        """
        ...


class HttpCsvSource(RecordSource):
    """Collections served over HTTP under a common base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return self._base_url

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def fetch_rows(self, file_name: str, *, optional: bool = False) -> list[Row]:
        url = f"{self._base_url}/{file_name}"
        async with self._client() as client:
            resp = await client.get(url)
        if optional and resp.status_code == httpx.codes.NOT_FOUND:
            logger.info("Optional collection %s not found, treating as empty", url)
            return []
        resp.raise_for_status()
        return parse_csv(resp.text, source=url)


class LocalCsvSource(RecordSource):
    """Collections stored as files in one directory."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    @property
    def name(self) -> str:
        return str(self._dir)

    async def fetch_rows(self, file_name: str, *, optional: bool = False) -> list[Row]:
        path = self._dir / file_name
        if not path.exists():
            if optional:
                logger.info("Optional collection %s not found, treating as empty", path)
                return []
            msg = f"Collection file not found: {path}"
            raise FileNotFoundError(msg)
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return parse_csv(text, source=str(path))


def source_from_settings(settings: Settings) -> RecordSource:
    """HTTP source when DATA_BASE_URL is set, local directory otherwise."""
    if settings.DATA_BASE_URL:
        return HttpCsvSource(settings.DATA_BASE_URL, timeout=settings.FETCH_TIMEOUT_S)
    return LocalCsvSource(settings.DATA_DIR)
