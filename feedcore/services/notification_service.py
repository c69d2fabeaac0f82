# feedcore/services/notification_service.py
import logging
from typing import List, Optional

from feedcore.core.errors import (
    AuthorizationError, NotFoundError, StoreUnavailableError, ValidationError
)
from feedcore.models.notification import Notification, NotificationChannel, build_notification_document
from feedcore.repositories.base import NotificationStore, UserDirectory
from feedcore.services.notification_merger import NotificationMerger

logger = logging.getLogger(__name__)


class NotificationService:
    """
    알림 관련 비즈니스 로직을 담당하는 공용 서비스 클래스.
    - 관리자의 전체 공지/대상 알림 발송
    - 대상 알림 읽음 처리
    - 두 채널을 합친 현재 알림 목록 스냅샷 (실시간 구독은 NotificationAggregator 담당)
    """
    def __init__(self, store: NotificationStore, user_directory: UserDirectory, fetch_limit: int = 15):
        self.store = store
        self.user_directory = user_directory
        self.fetch_limit = fetch_limit

    def _require_admin(self, sender_id: str) -> None:
        if not sender_id:
            raise ValidationError("발신자 ID는 필수입니다.")
        if not self.user_directory.is_admin(sender_id):
            raise AuthorizationError("관리자만 알림을 보낼 수 있습니다.")

    def send_global(self, message: str, sender_id: str) -> str:
        """모든 사용자에게 보이는 전체 공지를 생성합니다."""
        document = build_notification_document(message, sender_id)
        self._require_admin(sender_id)
        notification_id = self.store.add(document)
        logger.info(f"전체 공지 발송 완료 (id: {notification_id}, by: {sender_id})")
        return notification_id

    def send_targeted(self, message: str, target_user_id: str, sender_id: str) -> str:
        """특정 사용자에게 읽음 여부가 추적되는 알림을 생성합니다."""
        if not target_user_id:
            raise ValidationError("대상 알림에는 수신자 ID가 필요합니다.")
        document = build_notification_document(message, sender_id, target_user_id)
        self._require_admin(sender_id)
        notification_id = self.store.add(document)
        logger.info(f"대상 알림 발송 완료 (id: {notification_id}, {sender_id} -> {target_user_id})")
        return notification_id

    def mark_as_read(self, notification_id: str, user_id: str) -> None:
        """
        대상 알림을 읽음 처리합니다. 본인에게 온 알림만 가능하며,
        전체 공지는 읽음 여부를 추적하지 않으므로 ValidationError 입니다.
        """
        record = self.store.get(notification_id)
        if record is None:
            raise NotFoundError("알림을 찾을 수 없습니다.")
        _, data = record
        if data.get('is_global'):
            raise ValidationError("전체 공지는 읽음 처리 대상이 아닙니다.")
        if data.get('target_user_id') != user_id:
            raise AuthorizationError("본인에게 온 알림만 읽음 처리할 수 있습니다.")
        if data.get('is_read'):
            return
        self.store.mark_read(notification_id)
        logger.info(f"알림 읽음 처리 (id: {notification_id}, user_id: {user_id})")

    def recent_for_user(self, user_id: str, limit: Optional[int] = None) -> List[Notification]:
        """
        전체/대상 채널의 최근 알림을 합친 목록.
        한 채널만 실패하면 나머지 채널 결과로 응답하고, 두 채널 모두 실패할 때만 StoreUnavailableError 입니다.
        """
        limit = limit or self.fetch_limit
        merger = NotificationMerger()
        failures = []
        for channel, fetch in (
            (NotificationChannel.GLOBAL, lambda: self.store.list_global(limit)),
            (NotificationChannel.TARGETED, lambda: self.store.list_targeted(user_id, limit)),
        ):
            try:
                merger.apply(channel, fetch())
            except StoreUnavailableError as e:
                logger.warning(f"{channel.value} 알림 조회 실패, 나머지 채널만 사용합니다 (user_id: {user_id}): {e}")
                failures.append(e)

        if len(failures) == len(NotificationChannel):
            raise failures[-1]
        return merger.visible()
