# feedcore/utils/test_datetime_utils.py
"""
시간 유틸리티 테스트

사용법: python -m pytest feedcore/utils/test_datetime_utils.py -v
"""

import pytest
from datetime import datetime, timedelta, timezone

from feedcore.utils.datetime_utils import DateTimeUtils

EXPECTED = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


class _ProtoTimestamp:
    """to_datetime() 을 노출하는 SDK 타임스탬프 객체 흉내"""
    def __init__(self, value):
        self._value = value

    def to_datetime(self):
        return self._value


class _JsTimestamp:
    """toDate() 를 노출하는 타임스탬프 객체 흉내"""
    def __init__(self, value):
        self._value = value

    def toDate(self):
        return self._value


def test_normalize_iso_variants():
    """ISO 포맷 파싱 테스트"""
    test_cases = [
        "2024-01-15T10:30:00Z",
        "2024-01-15T10:30:00+09:00",
        "2024-01-15T10:30:00.123456Z",
        "2024-01-15T10:30:00"
    ]

    for iso_string in test_cases:
        result = DateTimeUtils.normalize_timestamp(iso_string)
        assert result.ok, result.error
        assert result.value.tzinfo == timezone.utc


def test_to_iso_string_uses_z_suffix():
    assert DateTimeUtils.to_iso_string(EXPECTED) == "2024-01-15T10:30:00Z"
    # naive datetime 은 UTC 로 간주
    assert DateTimeUtils.to_iso_string(datetime(2024, 1, 15, 10, 30)) == "2024-01-15T10:30:00Z"


def test_normalize_native_datetime():
    result = DateTimeUtils.normalize_timestamp(EXPECTED.astimezone(timezone(timedelta(hours=9))))
    assert result.ok
    assert result.value == EXPECTED
    assert result.value.tzinfo == timezone.utc


def test_normalize_iso_string():
    result = DateTimeUtils.normalize_timestamp("2024-01-15T19:30:00+09:00")
    assert result.ok
    assert result.value == EXPECTED


def test_normalize_seconds_nanos_mapping():
    seconds = int(EXPECTED.timestamp())
    for raw in (
        {"seconds": seconds, "nanos": 500_000_000},
        {"seconds": seconds, "nanoseconds": 500_000_000},
        {"_seconds": seconds, "_nanoseconds": 500_000_000},
    ):
        result = DateTimeUtils.normalize_timestamp(raw)
        assert result.ok, result.error
        assert result.value == EXPECTED + timedelta(milliseconds=500)


def test_normalize_conversion_methods():
    assert DateTimeUtils.normalize_timestamp(_ProtoTimestamp(EXPECTED)).value == EXPECTED
    assert DateTimeUtils.normalize_timestamp(_JsTimestamp(EXPECTED)).value == EXPECTED


def test_normalize_rejects_invalid_input_without_raising():
    invalid_cases = [
        None,
        "",
        "not-a-date",
        {"seconds": "abc"},
        {"seconds": True},
        {"seconds": 10, "nanos": 2_000_000_000},
        12345,
        object(),
    ]
    for raw in invalid_cases:
        result = DateTimeUtils.normalize_timestamp(raw)
        assert not result.ok
        assert result.value is None
        assert result.error


def test_to_iso_string_error_handling():
    """오류 처리 테스트"""
    with pytest.raises(ValueError):
        DateTimeUtils.to_iso_string("2024-01-15")
