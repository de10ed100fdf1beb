"""Tests for CSV parsing and the HTTP / local record sources."""

import httpx
import pytest

from src.config.settings import Settings
from src.data.csv_source import (
    HttpCsvSource,
    LocalCsvSource,
    parse_csv,
    source_from_settings,
)

CITIES_CSV = "\ufeffcode, name ,yomi\n01100,札幌市 ,さっぽろし\n\n01202,函館市,はこだてし\n"


class TestParseCsv:
    def test_bom_and_whitespace_stripped(self) -> None:
        rows = parse_csv(CITIES_CSV)
        assert rows == [
            {"code": "01100", "name": "札幌市", "yomi": "さっぽろし"},
            {"code": "01202", "name": "函館市", "yomi": "はこだてし"},
        ]

    def test_ragged_rows_padded_and_logged(self, caplog) -> None:
        rows = parse_csv("a,b,c\n1,2\n4,5,6,7\n", source="t.csv")
        assert rows == [{"a": "1", "b": "2", "c": ""}, {"a": "4", "b": "5", "c": "6"}]
        assert "2 ragged rows" in caplog.text

    def test_header_only(self) -> None:
        assert parse_csv("a,b\n") == []

    def test_empty_text(self) -> None:
        assert parse_csv("") == []

    def test_quoted_commas(self) -> None:
        assert parse_csv('a,b\n"x,y",z\n') == [{"a": "x,y", "b": "z"}]


def _transport(files: dict[str, str], seen: list[str]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        name = request.url.path.rsplit("/", 1)[-1]
        if name in files:
            return httpx.Response(200, text=files[name])
        return httpx.Response(404)
    return httpx.MockTransport(handler)


class TestHttpCsvSource:
    @pytest.mark.anyio
    async def test_fetch_rows(self) -> None:
        seen: list[str] = []
        source = HttpCsvSource(
            "https://data.example.org/csv/",
            transport=_transport({"cities.csv": CITIES_CSV}, seen),
        )
        rows = await source.fetch_rows("cities.csv")
        assert [r["code"] for r in rows] == ["01100", "01202"]
        assert seen == ["/csv/cities.csv"]

    @pytest.mark.anyio
    async def test_optional_404_is_empty(self) -> None:
        source = HttpCsvSource("https://data.example.org", transport=_transport({}, []))
        assert await source.fetch_rows("subprefectures.csv", optional=True) == []

    @pytest.mark.anyio
    async def test_required_404_raises(self) -> None:
        source = HttpCsvSource("https://data.example.org", transport=_transport({}, []))
        with pytest.raises(httpx.HTTPStatusError):
            await source.fetch_rows("cities.csv")

    @pytest.mark.anyio
    async def test_optional_server_error_still_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)
        source = HttpCsvSource("https://data.example.org", transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.HTTPStatusError):
            await source.fetch_rows("subprefectures.csv", optional=True)


class TestLocalCsvSource:
    @pytest.mark.anyio
    async def test_reads_file(self, tmp_path) -> None:
        (tmp_path / "cities.csv").write_text(CITIES_CSV, encoding="utf-8")
        rows = await LocalCsvSource(tmp_path).fetch_rows("cities.csv")
        assert len(rows) == 2

    @pytest.mark.anyio
    async def test_missing_optional_is_empty(self, tmp_path) -> None:
        assert await LocalCsvSource(tmp_path).fetch_rows("x.csv", optional=True) == []

    @pytest.mark.anyio
    async def test_missing_required_raises(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            await LocalCsvSource(tmp_path).fetch_rows("x.csv")


class TestSourceFromSettings:
    def test_http_when_base_url_set(self) -> None:
        source = source_from_settings(Settings(DATA_BASE_URL="https://data.example.org"))
        assert isinstance(source, HttpCsvSource)
        assert source.name == "https://data.example.org"

    def test_local_otherwise(self, tmp_path) -> None:
        source = source_from_settings(Settings(DATA_BASE_URL="", DATA_DIR=str(tmp_path)))
        assert isinstance(source, LocalCsvSource)
        assert source.name == str(tmp_path)
