"""Tests for row validation, entity-master joining and the record store."""

import pytest
from pydantic import ValidationError

from src.data.record_store import RecordStore, join_entity_master, validate_rows
from src.engine.data_quality import AnomalyKind, DataQualityReport
from src.models.common import EventType
from src.models.municipality import (
    ChangeEvent,
    District,
    EntityMasterRecord,
    Jurisdiction,
    VersionRecord,
)
from tests.builders import event, version


class TestValidateRows:
    def test_published_column_names(self) -> None:
        rows = [{
            "code": "01100", "name": "札幌市", "yomi": "さっぽろし",
            "prefecture_code": "01", "subprefecture_code": "", "county_code": "",
            "valid_from": "1922-08-01", "valid_to": "",
        }]
        (rec,) = validate_rows(VersionRecord, rows)
        assert rec.unit_code == "01100"
        assert rec.phonetic_name == "さっぽろし"
        assert rec.jurisdiction_code == "01"
        assert rec.entity_id is None
        assert rec.is_current

    def test_event_columns(self) -> None:
        rows = [{
            "code": "c1", "date": "1955-04-01", "event_type": "編入",
            "city_code_before": "A", "city_code_after": "B",
        }]
        (ev,) = validate_rows(ChangeEvent, rows)
        assert (ev.before_ref, ev.after_ref) == ("A", "B")
        assert ev.is_absorption
        assert not ev.implicit

    def test_missing_required_column_raises(self) -> None:
        with pytest.raises(ValidationError):
            validate_rows(Jurisdiction, [{"code": "01"}])


class TestJoinEntityMaster:
    def test_master_attributes_fill_versions(self) -> None:
        masters = [EntityMasterRecord(id="m1", name="甲町", phonetic_name="こうちょう",
                                      jurisdiction_code="01")]
        versions = [VersionRecord(entity_id="m1", district_code="C1", valid_from="1950-01-01")]
        (joined,) = join_entity_master(masters, versions, DataQualityReport())
        assert joined.unit_code == "m1"
        assert joined.name == "甲町"
        assert joined.phonetic_name == "こうちょう"
        assert joined.jurisdiction_code == "01"
        assert joined.district_code == "C1"

    def test_missing_master_dropped(self) -> None:
        report = DataQualityReport()
        versions = [VersionRecord(entity_id="ghost")]
        assert join_entity_master([], versions, report) == []
        assert [a.subject for a in report.of_kind(AnomalyKind.MISSING_MASTER)] == ["ghost"]

    def test_blank_entity_id_becomes_none(self) -> None:
        rec = VersionRecord.model_validate({"municipality_id": "  ", "code": "A"})
        assert rec.entity_id is None


class TestRecordStoreBuild:
    def test_lookups(self) -> None:
        store = RecordStore.build(
            jurisdictions=[Jurisdiction(code="01", name="北海道")],
            districts=[District(code="C1", name="雨竜郡", parent_jurisdiction_code="01")],
            versions=[version("A", "甲町", county="C1")],
        )
        assert store.jurisdiction_by_code["01"].name == "北海道"
        assert store.district_by_code["C1"].name == "雨竜郡"
        assert store.known_refs == {"A"}

    def test_duplicate_codes_last_write_wins(self) -> None:
        report = DataQualityReport()
        store = RecordStore.build(
            jurisdictions=[Jurisdiction(code="01", name="旧"), Jurisdiction(code="01", name="新")],
            report=report,
        )
        assert store.jurisdiction_by_code["01"].name == "新"
        assert report.counts() == {AnomalyKind.DUPLICATE_CODE: 1}

    def test_duplicate_event_code_reported(self) -> None:
        report = DataQualityReport()
        ev = event("e1", "1950-01-01", EventType.RENAME, "A", "B")
        RecordStore.build(events=[ev, ev], report=report)
        assert [a.detail for a in report.of_kind(AnomalyKind.DUPLICATE_CODE)] == ["change_events"]

    def test_versions_sharing_code_are_not_duplicates(self) -> None:
        report = DataQualityReport()
        RecordStore.build(
            versions=[version("A", "甲村", end="1950-01-01"), version("A", "甲町", start="1950-01-01")],
            report=report,
        )
        assert report.is_clean

    def test_collections_are_tuples(self) -> None:
        store = RecordStore.build(versions=[version("A", "甲町")])
        assert isinstance(store.versions, tuple)
        assert isinstance(store.events, tuple)
