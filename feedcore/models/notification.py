# feedcore/models/notification.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from feedcore.core.errors import ValidationError


class NotificationChannel(Enum):
    """'notifications' 컬렉션을 조회하는 두 개의 독립 채널"""
    GLOBAL = "global"
    TARGETED = "targeted"


@dataclass
class Notification:
    """
    Firestore 'notifications' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    전체 공지(is_global=True)와 특정 사용자 대상 알림(target_user_id)이 한 컬렉션을 공유합니다.
    """
    id: str
    message: str
    created_at: datetime
    is_global: bool
    target_user_id: Optional[str] = None
    is_read: Optional[bool] = None  # 대상 알림에서만 의미가 있습니다
    sender_id: Optional[str] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any], created_at: datetime,
                      channel: Optional[NotificationChannel] = None) -> 'Notification':
        is_global = bool(data.get('is_global', False))
        is_read = None
        if not is_global and channel is not NotificationChannel.GLOBAL:
            is_read = bool(data.get('is_read', False))
        return cls(
            id=doc_id,
            message=data.get('message') or '',
            created_at=created_at,
            is_global=is_global,
            target_user_id=None if is_global else data.get('target_user_id'),
            is_read=is_read,
            sender_id=data.get('sender_id')
        )


def build_notification_document(message: str, sender_id: str,
                                target_user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    새 알림 문서를 만듭니다. created_at 은 저장소가 채웁니다.
    - target_user_id 가 없으면 전체 공지, 있으면 대상 알림(is_read=False)입니다.
    """
    message = (message or '').strip()
    if not message:
        raise ValidationError("알림 메시지는 비어 있을 수 없습니다.")
    if not sender_id:
        raise ValidationError("발신자 ID는 필수입니다.")

    if target_user_id is None:
        return {'message': message, 'sender_id': sender_id, 'is_global': True}

    target_user_id = target_user_id.strip()
    if not target_user_id:
        raise ValidationError("대상 알림에는 수신자 ID가 필요합니다.")
    return {
        'message': message,
        'sender_id': sender_id,
        'is_global': False,
        'target_user_id': target_user_id,
        'is_read': False
    }
