from __future__ import annotations

import json
import sqlite3

import pytest
from pydantic import ValidationError

from metastore.errors import SnapshotDecodeError, StoreResult, QueryError
from metastore.models import CREATE_SCHEMA_SQL, MetaRecord, MetaTable
from metastore.snapshot import decode_snapshot, encode_snapshot


def _database_image() -> bytes:
    conn = sqlite3.connect(":memory:")
    conn.executescript(CREATE_SCHEMA_SQL)
    image = conn.serialize()
    conn.close()
    return image


def test_snapshot_is_json_byte_array() -> None:
    image = _database_image()

    payload = encode_snapshot(image)

    values = json.loads(payload)
    assert values[:6] == list(b"SQLite")
    assert all(0 <= v <= 255 for v in values)
    assert decode_snapshot(payload) == image


@pytest.mark.parametrize(
    "payload",
    ["{broken", '{"a": 1}', "[1, 300]", '["x"]', "[1, 2, 3]"],
)
def test_decode_snapshot_rejects_bad_payloads(payload: str) -> None:
    with pytest.raises(SnapshotDecodeError):
        decode_snapshot(payload)


def test_record_coerces_device_id_and_value() -> None:
    record = MetaRecord(device_id=12, filter_type="daily", period_index=0, value=" 42.5 ")

    assert record.device_id == "12"
    assert record.value == 42.5
    assert record.key() == ("12", "daily", 0)


def test_record_rejects_non_numeric_value() -> None:
    with pytest.raises(ValidationError):
        MetaRecord(device_id="d", filter_type="daily", period_index=0, value="lots")


def test_table_defaults() -> None:
    assert MetaTable.META.default_for("daily") == 10000
    assert MetaTable.META.default_for("weekly") == 10000
    assert MetaTable.ACTIVATION.default_for("daily") == 24
    assert MetaTable.ACTIVATION.default_for("weekly") == 720
    assert MetaTable.ACTIVATION.default_for("monthly") == 720


def test_schema_enforces_natural_key_uniqueness() -> None:
    conn = sqlite3.connect(":memory:")
    conn.executescript(CREATE_SCHEMA_SQL)
    insert = "INSERT INTO meta (device_id, filter_type, period_index, value) VALUES ('d', 'daily', 1, 5)"
    conn.execute(insert)

    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(insert)


def test_store_result_helpers() -> None:
    good = StoreResult.success(5.0)
    bad = StoreResult.failure(QueryError("boom"), value=10000.0)

    assert good.ok and good.unwrap() == 5.0
    assert not bad.ok and bad.defaulted
    assert bad.unwrap_or(1.0) == 1.0
    with pytest.raises(QueryError):
        bad.unwrap()


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("12.5kg", 12.5), ("  -3e2 steps", -300.0), (".5", 0.5), ("7", 7.0)],
)
def test_record_value_uses_leading_number(raw: str, expected: float) -> None:
    record = MetaRecord(device_id="d", filter_type="daily", period_index=0, value=raw)

    assert record.value == expected


def test_record_rejects_string_without_leading_number() -> None:
    with pytest.raises(ValidationError):
        MetaRecord(device_id="d", filter_type="daily", period_index=0, value="kg12")
