# feedcore/repositories/base.py
"""
저장소 계층의 추상 인터페이스.

모든 컴포넌트는 전역 싱글톤 대신 create_app 에서 생성된 저장소 객체를 주입받습니다.
Firestore 구현(firestore.py)과 테스트/로컬 개발용 인메모리 구현(memory.py)이 같은 계약을 따릅니다.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from feedcore.core.errors import AuthorizationError, ValidationError, report_anomaly
from feedcore.models.content import Comment, ContentItem, EngagementKind
from feedcore.models.user import UserProfile

logger = logging.getLogger(__name__)

# (문서 ID, 원본 문서 데이터) 쌍. 알림 채널은 이 형태의 배치를 그대로 전달합니다.
RawRecord = Tuple[str, Dict[str, Any]]
BatchCallback = Callable[[List[RawRecord]], None]
ErrorCallback = Callable[[Exception], None]


@dataclass
class MembershipChange:
    """apply_membership 결과. changed 가 False 면 이미 원하는 상태였던 것(no-op)입니다."""
    changed: bool
    item: ContentItem


class WatchHandle(ABC):
    """실시간 구독 해제 핸들"""

    @abstractmethod
    def unsubscribe(self) -> None:
        ...


class UserDirectory(ABC):
    """'users' 컬렉션 읽기 전용 접근 + 마지막 활동 시각 갱신"""

    @abstractmethod
    def get_profile(self, uid: str) -> Optional[UserProfile]:
        ...

    def is_admin(self, uid: str) -> bool:
        profile = self.get_profile(uid)
        return bool(profile and profile.is_admin)

    @abstractmethod
    def count_seen_since(self, cutoff: datetime) -> int:
        """last_seen_at >= cutoff 인 사용자 수"""
        ...

    @abstractmethod
    def touch(self, uid: str) -> None:
        """last_seen_at 을 저장소 시각으로 갱신합니다."""
        ...


class ContentRepository(ABC):
    """
    콘텐츠(게시글/스토리), 댓글, 참여(좋아요/저장) 집합에 대한 영속성 및 원자적 변경 기본 연산.
    """

    def __init__(self, user_directory: UserDirectory):
        self.user_directory = user_directory

    def create(self, item: ContentItem) -> str:
        """
        새 콘텐츠를 저장하고 문서 ID를 반환합니다.
        - 텍스트/이미지/동영상이 모두 없거나, 스토리에 이미지/동영상이 없으면 ValidationError
        - created_at 은 클라이언트 값이 아닌 저장소가 부여한 시각을 사용합니다.
        """
        prepared = item.prepared_for_create()
        content_id = self._insert(prepared)
        logger.info(f"{prepared.kind.value} 생성 완료 (id: {content_id}, author: {prepared.author.user_id})")
        return content_id

    @abstractmethod
    def _insert(self, item: ContentItem) -> str:
        ...

    @abstractmethod
    def get(self, content_id: str) -> ContentItem:
        """존재하지 않으면 NotFoundError"""
        ...

    @abstractmethod
    def list_recent(self, limit: int) -> List[ContentItem]:
        """created_at 내림차순 최근 콘텐츠"""
        ...

    @abstractmethod
    def list_by_author(self, author_id: str, limit: int) -> List[ContentItem]:
        ...

    @abstractmethod
    def delete(self, content_id: str, requester_id: str) -> None:
        """
        콘텐츠와 하위 댓글을 하나의 트랜잭션으로 삭제합니다.
        - 없으면 NotFoundError, 작성자/관리자가 아니면 AuthorizationError
        """
        ...

    @abstractmethod
    def add_comment(self, post_id: str, comment: Comment) -> str:
        """댓글을 생성하면서 부모 콘텐츠의 comment_count 를 원자적으로 1 증가시킵니다."""
        ...

    @abstractmethod
    def list_comments(self, post_id: str, limit: int) -> List[Comment]:
        ...

    @abstractmethod
    def get_comment(self, post_id: str, comment_id: str) -> Comment:
        """존재하지 않으면 NotFoundError"""
        ...

    @abstractmethod
    def apply_membership(self, post_id: str, kind: EngagementKind, user_id: str, add: bool) -> MembershipChange:
        """
        카운터(±1)와 사용자 집합 변경을 함께 커밋하는 원자적 연산.
        - add=True 인데 이미 포함되어 있거나, add=False 인데 포함되어 있지 않으면 아무것도 바꾸지 않습니다.
        """
        ...

    # --- 공용 헬퍼 ---

    @staticmethod
    def _check_limit(limit: int) -> None:
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            raise ValidationError(f"limit 은 1 이상의 정수여야 합니다: {limit}")

    def _authorize_delete(self, content_id: str, data: Dict[str, Any], requester_id: str) -> None:
        """
        저장된 원본 문서의 author.user_id 로 권한을 확인합니다.
        다른 필드가 손상된 문서라도 작성자나 관리자는 삭제할 수 있습니다.
        """
        if not requester_id:
            raise AuthorizationError("삭제를 요청한 사용자를 확인할 수 없습니다.")
        author = (data or {}).get('author')
        author_id = author.get('user_id') if isinstance(author, dict) else None
        if author_id and author_id == requester_id:
            return
        if self.user_directory.is_admin(requester_id):
            logger.info(f"관리자 권한으로 콘텐츠 삭제 (id: {content_id}, admin: {requester_id})")
            return
        raise AuthorizationError("작성자 또는 관리자만 삭제할 수 있습니다.")

    @staticmethod
    def _decode_items(records: Iterable[RawRecord]) -> List[ContentItem]:
        """디코딩할 수 없는 문서는 건너뛰고 데이터 품질 이상으로 기록합니다."""
        items = []
        for doc_id, data in records:
            try:
                items.append(ContentItem.from_document(doc_id, data))
            except ValueError as e:
                report_anomaly("invalid_content_document", str(e), doc_id=doc_id)
        return items

    @staticmethod
    def _decode_comments(records: Iterable[RawRecord]) -> List[Comment]:
        comments = []
        for doc_id, data in records:
            try:
                comments.append(Comment.from_document(doc_id, data))
            except ValueError as e:
                report_anomaly("invalid_comment_document", str(e), doc_id=doc_id)
        return comments


class NotificationStore(ABC):
    """'notifications' 컬렉션 저장 및 두 채널(전체/대상) 조회·실시간 구독"""

    @abstractmethod
    def add(self, document: Dict[str, Any]) -> str:
        """created_at 을 저장소 시각으로 채워 저장하고 ID 를 반환합니다."""
        ...

    @abstractmethod
    def get(self, notification_id: str) -> Optional[RawRecord]:
        ...

    @abstractmethod
    def mark_read(self, notification_id: str) -> None:
        ...

    @abstractmethod
    def list_global(self, limit: int) -> List[RawRecord]:
        ...

    @abstractmethod
    def list_targeted(self, user_id: str, limit: int) -> List[RawRecord]:
        ...

    @abstractmethod
    def watch_global(self, limit: int, on_batch: BatchCallback, on_error: ErrorCallback) -> WatchHandle:
        """전체 공지 최근 N개 실시간 구독. 변경될 때마다 현재 결과 전체를 on_batch 로 전달합니다."""
        ...

    @abstractmethod
    def watch_targeted(self, user_id: str, limit: int, on_batch: BatchCallback,
                       on_error: ErrorCallback) -> WatchHandle:
        ...
