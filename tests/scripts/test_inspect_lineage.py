"""Tests for the lineage inspection script."""

import argparse
import json

import pytest

from scripts.inspect_lineage import _run
from tests.builders import FLAT_FILES


def _args(data_dir, **overrides) -> argparse.Namespace:
    values = {
        "entity_id": None,
        "data_dir": str(data_dir),
        "base_url": None,
        "search": None,
        "with_mergers": False,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


@pytest.fixture
def data_dir(tmp_path):
    for name, text in FLAT_FILES.items():
        (tmp_path / name).write_text(text, encoding="utf-8")
    return tmp_path


class TestInspectLineage:
    @pytest.mark.anyio
    async def test_summary(self, data_dir, capsys) -> None:
        assert await _run(_args(data_dir)) == 0
        out = json.loads(capsys.readouterr().out)
        assert out == {"entities": 4, "current_entities": 2, "anomalies": {}}

    @pytest.mark.anyio
    async def test_entity_report(self, data_dir, capsys) -> None:
        assert await _run(_args(data_dir, entity_id="01100-札幌市")) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["name"] == "札幌市"
        assert [e["code"] for e in out["ancestors"]] == ["e1"]
        assert [e["code"] for e in out["versions"][0]["events_before"]] == []

    @pytest.mark.anyio
    async def test_unit_code_resolves_entity(self, data_dir, capsys) -> None:
        assert await _run(_args(data_dir, entity_id="01999")) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["id"] == "01999-篠路村"
        assert [e["code"] for e in out["versions"][0]["events_after"]] == ["e1", "e2"]

    @pytest.mark.anyio
    async def test_search(self, data_dir, capsys) -> None:
        assert await _run(_args(data_dir, search="だて")) == 0
        out = json.loads(capsys.readouterr().out)
        assert [e["name"] for e in out] == ["伊達町", "伊達市"]

    @pytest.mark.anyio
    async def test_unknown_entity(self, data_dir, capsys) -> None:
        assert await _run(_args(data_dir, entity_id="nope")) == 1
        assert "Unknown entity" in capsys.readouterr().err

    @pytest.mark.anyio
    async def test_load_failure(self, tmp_path, capsys) -> None:
        assert await _run(_args(tmp_path)) == 2
        assert "Load failed" in capsys.readouterr().err
