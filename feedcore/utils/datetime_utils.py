# feedcore/utils/datetime_utils.py
"""
프로젝트 전체에서 일관된 시간 처리를 위한 중앙화된 유틸리티 모듈

이 모듈의 목적:
1. 모든 시각을 timezone-aware UTC datetime 으로 통일
2. ISO 포맷 파싱/생성 통일
3. 여러 형태로 들어오는 타임스탬프를 하나의 정규화 함수로 처리
"""

import logging
from datetime import datetime, timedelta, timezone
from numbers import Real
from typing import Any, Mapping, NamedTuple, Optional
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

_NANOS_PER_SECOND = 1_000_000_000

# 변환 메서드를 노출하는 타임스탬프 객체에서 찾아볼 메서드 이름 (우선순위 순)
_CONVERSION_METHODS = ('to_datetime', 'ToDatetime', 'toDate', 'timestamp')


class TimestampResult(NamedTuple):
    """normalize_timestamp 의 결과. 성공 시 value, 실패 시 error 만 채워집니다."""
    value: Optional[datetime]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DateTimeUtils:
    """시간/날짜 처리를 위한 중앙화된 유틸리티 클래스"""

    @staticmethod
    def now() -> datetime:
        """현재 시간을 UTC timezone-aware datetime으로 반환"""
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """timezone-naive 이면 UTC로 가정하고, aware 이면 UTC로 변환"""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def _isoparse_utc(iso_string: str) -> datetime:
        if not iso_string or not iso_string.strip():
            raise ValueError("빈 문자열은 파싱할 수 없습니다")
        iso_string = iso_string.strip()
        # 'Z' 접미사 처리 (UTC 표시)
        if iso_string.endswith('Z'):
            iso_string = iso_string[:-1] + '+00:00'
        return DateTimeUtils.ensure_utc(dateutil_parser.isoparse(iso_string))

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        """datetime 객체를 ISO 포맷 문자열로 변환 (Z 접미사 포함)"""
        try:
            return DateTimeUtils.ensure_utc(dt).isoformat().replace('+00:00', 'Z')
        except Exception as e:
            logger.error(f"ISO 문자열 변환 실패: {dt} - {e}")
            raise ValueError(f"datetime 객체를 ISO 문자열로 변환할 수 없습니다: {dt}")

    @staticmethod
    def from_seconds_nanos(seconds: Real, nanos: Real = 0) -> datetime:
        """{seconds, nanos} 쌍을 UTC datetime 으로 변환"""
        if not 0 <= nanos < _NANOS_PER_SECOND:
            raise ValueError(f"nanos 값이 범위를 벗어났습니다: {nanos}")
        base = datetime.fromtimestamp(seconds, tz=timezone.utc)
        return base + timedelta(microseconds=int(nanos) // 1000)

    @staticmethod
    def normalize_timestamp(raw: Any) -> TimestampResult:
        """
        여러 형태로 들어오는 타임스탬프를 하나의 UTC 시각으로 정규화합니다.
        예외를 던지지 않고 TimestampResult 로 결과를 돌려주며, 건너뛸지 전파할지는 호출자가 결정합니다.

        인식하는 입력 형태:
        - datetime (Firestore DatetimeWithNanoseconds 포함)
        - 변환 메서드를 가진 객체 (to_datetime / ToDatetime / toDate / timestamp)
        - ISO-8601 문자열
        - {'seconds': ..., 'nanos' 또는 'nanoseconds': ...} 매핑
        """
        if raw is None:
            return TimestampResult(None, "타임스탬프 값이 없습니다")
        try:
            if isinstance(raw, datetime):
                return TimestampResult(DateTimeUtils.ensure_utc(raw))

            if isinstance(raw, str):
                return TimestampResult(DateTimeUtils._isoparse_utc(raw))

            if isinstance(raw, Mapping):
                seconds = raw.get('seconds', raw.get('_seconds'))
                if isinstance(seconds, bool) or not isinstance(seconds, Real):
                    return TimestampResult(None, f"seconds 필드가 숫자가 아닙니다: {raw!r}")
                nanos = raw.get('nanos', raw.get('nanoseconds', raw.get('_nanoseconds', 0))) or 0
                if isinstance(nanos, bool) or not isinstance(nanos, Real):
                    return TimestampResult(None, f"nanos 필드가 숫자가 아닙니다: {raw!r}")
                return TimestampResult(DateTimeUtils.from_seconds_nanos(seconds, nanos))

            for method_name in _CONVERSION_METHODS:
                method = getattr(raw, method_name, None)
                if not callable(method):
                    continue
                converted = method()
                if isinstance(converted, datetime):
                    return TimestampResult(DateTimeUtils.ensure_utc(converted))
                if isinstance(converted, Real) and not isinstance(converted, bool):
                    return TimestampResult(datetime.fromtimestamp(converted, tz=timezone.utc))
                return TimestampResult(None, f"{method_name}() 결과를 해석할 수 없습니다: {converted!r}")

            return TimestampResult(None, f"지원하지 않는 타임스탬프 형식입니다: {type(raw).__name__}")
        except (ValueError, TypeError, OverflowError, OSError) as e:
            return TimestampResult(None, f"타임스탬프 변환 실패: {raw!r} - {e}")
