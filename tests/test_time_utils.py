# tests/test_time_utils.py
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from functions.utils.time_utils import epoch_ms_to_iso, parse_iso_timestamp, to_iso, utc_now_iso

EMITTED = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def test_now_and_epoch_share_one_format() -> None:
    assert EMITTED.match(utc_now_iso())
    assert epoch_ms_to_iso(1714557600000) == "2024-05-01T10:00:00.000Z"


def test_to_iso_converts_other_offsets_to_utc() -> None:
    bangkok = timezone(timedelta(hours=7))
    assert to_iso(datetime(2024, 5, 1, 17, 0, tzinfo=bangkok)) == "2024-05-01T10:00:00.000Z"


def test_epoch_rejects_non_numbers() -> None:
    assert epoch_ms_to_iso(None) is None
    assert epoch_ms_to_iso("1714557600000") is None
    assert epoch_ms_to_iso(True) is None


def test_parse_accepts_z_offsets_and_naive_values() -> None:
    expected = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    assert parse_iso_timestamp("2024-05-01T10:00:00.000Z") == expected
    assert parse_iso_timestamp("2024-05-01T10:00:00+00:00") == expected
    assert parse_iso_timestamp("2024-05-01T10:00:00") == expected
    assert parse_iso_timestamp("yesterday") is None
