# feedcore/api/notifications/schemas.py
from marshmallow import Schema, fields, validate

from feedcore.api.fields import IsoDateTime


class GlobalNotificationCreateSchema(Schema):
    """POST /api/notifications/global 요청 본문"""
    message = fields.Str(required=True, validate=validate.Length(min=1, max=500, error="알림 메시지는 1~500자 사이여야 합니다."))


class TargetedNotificationCreateSchema(GlobalNotificationCreateSchema):
    """POST /api/notifications/targeted 요청 본문. 수신자 ID가 추가로 필요합니다."""
    target_user_id = fields.Str(required=True, validate=validate.Length(min=1))


class NotificationResponseSchema(Schema):
    """
    알림 응답 형식. 전체 공지는 읽음 여부를 추적하지 않으므로 is_read 가 null 입니다.
    """
    id = fields.Str(required=True)
    message = fields.Str(required=True)
    created_at = IsoDateTime()
    is_global = fields.Bool()
    target_user_id = fields.Str(allow_none=True)
    is_read = fields.Bool(allow_none=True)
    sender_id = fields.Str(allow_none=True)
