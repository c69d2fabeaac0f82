# feedcore/api/fields.py
from marshmallow import fields

from feedcore.utils.datetime_utils import DateTimeUtils


class IsoDateTime(fields.Field):
    """저장소의 datetime 을 렌더링 계층용 ISO-8601 문자열(UTC, 'Z' 접미사)로 직렬화합니다."""

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return DateTimeUtils.to_iso_string(value)


def blank_to_none(data):
    """폼에서 넘어온 빈 문자열은 값이 없는 것으로 취급합니다."""
    if not isinstance(data, dict):
        return data
    return {key: (None if isinstance(value, str) and not value.strip() else value)
            for key, value in data.items()}
