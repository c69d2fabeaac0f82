# feedcore/services/engagement_ledger.py
import logging
from typing import Any, Dict

from feedcore.core.errors import ValidationError
from feedcore.models.content import ContentItem, EngagementKind
from feedcore.repositories.base import ContentRepository

logger = logging.getLogger(__name__)


class EngagementLedger:
    """
    좋아요/저장 관련 비즈니스 로직을 담당하는 서비스 클래스.
    - 카운터와 사용자 집합은 저장소의 원자적 연산(apply_membership)으로 함께 변경됩니다.
    - 같은 사용자의 중복 좋아요는 한 번만 반영되고, 좋아요하지 않은 사용자의 취소는 아무 일도 하지 않습니다.
      따라서 카운터는 0 아래로 내려가지 않습니다.
    """
    def __init__(self, repository: ContentRepository):
        self.repository = repository

    def like(self, post_id: str, user_id: str) -> None:
        self._apply(post_id, user_id, EngagementKind.LIKE, add=True)

    def unlike(self, post_id: str, user_id: str) -> None:
        self._apply(post_id, user_id, EngagementKind.LIKE, add=False)

    def save(self, post_id: str, user_id: str) -> None:
        self._apply(post_id, user_id, EngagementKind.SAVE, add=True)

    def unsave(self, post_id: str, user_id: str) -> None:
        self._apply(post_id, user_id, EngagementKind.SAVE, add=False)

    def toggle_like(self, post_id: str, user_id: str) -> bool:
        """좋아요를 누르거나 취소하고, 변경 후 좋아요 상태를 반환합니다."""
        return self._toggle(post_id, user_id, EngagementKind.LIKE)

    def toggle_save(self, post_id: str, user_id: str) -> bool:
        return self._toggle(post_id, user_id, EngagementKind.SAVE)

    def engagement_state(self, post_id: str, user_id: str) -> Dict[str, Any]:
        """특정 사용자 기준의 좋아요/저장 상태와 카운터"""
        item = self.repository.get(post_id)
        return self.describe(item, user_id)

    @staticmethod
    def describe(item: ContentItem, user_id: str) -> Dict[str, Any]:
        return {
            "post_id": item.id,
            "liked": user_id in item.liked_by,
            "saved": user_id in item.saved_by,
            "like_count": item.like_count,
            "save_count": item.save_count
        }

    def _toggle(self, post_id: str, user_id: str, kind: EngagementKind) -> bool:
        self._require_ids(post_id, user_id)
        item = self.repository.get(post_id)
        is_member = user_id in getattr(item, kind.set_field)
        # 조회와 변경 사이에 상태가 바뀌어도 apply_membership 이 no-op 으로 처리하므로 카운터는 어긋나지 않습니다.
        change = self._apply(post_id, user_id, kind, add=not is_member)
        return user_id in getattr(change.item, kind.set_field)

    def _apply(self, post_id: str, user_id: str, kind: EngagementKind, add: bool):
        self._require_ids(post_id, user_id)
        change = self.repository.apply_membership(post_id, kind, user_id, add)
        action = kind.name.lower() if add else f"un{kind.name.lower()}"
        if change.changed:
            logger.info(f"{action} 처리 완료 (post_id: {post_id}, user_id: {user_id}, "
                        f"{kind.count_field}: {getattr(change.item, kind.count_field)})")
        else:
            logger.debug(f"{action} 요청이 이미 반영된 상태라 변경 없음 (post_id: {post_id}, user_id: {user_id})")
        return change

    @staticmethod
    def _require_ids(post_id: str, user_id: str) -> None:
        if not post_id or not str(post_id).strip():
            raise ValidationError("게시글 ID는 필수입니다.")
        if not user_id or not str(user_id).strip():
            raise ValidationError("사용자 ID는 필수입니다.")
