# feedcore/services/presence_service.py
import logging
from datetime import datetime, timedelta
from typing import Callable

from feedcore.core.errors import FeedCoreError
from feedcore.repositories.base import UserDirectory
from feedcore.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)


class PresenceService:
    """
    마지막 활동 시각(last_seen_at)으로 온라인 사용자 수를 계산합니다.
    실시간 구독이 아닌 시점 스냅샷이므로 호출자가 주기적으로 다시 조회해야 합니다.
    """
    def __init__(self, user_directory: UserDirectory, window_minutes: int = 5,
                 clock: Callable[[], datetime] = DateTimeUtils.now):
        self.user_directory = user_directory
        self.window = timedelta(minutes=window_minutes)
        self.clock = clock

    def count_online(self) -> int:
        cutoff = DateTimeUtils.ensure_utc(self.clock()) - self.window
        count = self.user_directory.count_seen_since(cutoff)
        logger.info(f"온라인 사용자 수 조회: {count}")
        return count

    def record_activity(self, uid: str) -> bool:
        """
        사용자의 마지막 활동 시각을 갱신합니다.
        부가 기능이므로 실패해도 예외를 전달하지 않고 로그만 남깁니다.
        """
        try:
            self.user_directory.touch(uid)
            return True
        except FeedCoreError as e:
            logger.warning(f"마지막 활동 시각 갱신 실패 (uid: {uid}): {e}")
            return False
        except Exception as e:
            logger.error(f"마지막 활동 시각 갱신 중 예기치 않은 오류 (uid: {uid}): {e}", exc_info=True)
            return False
