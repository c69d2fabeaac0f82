# feedcore/repositories/memory.py
"""
인메모리 저장소 구현. 로컬 개발(STORE_BACKEND=memory)과 테스트에서 사용합니다.

Firestore 구현과 같은 문서(dict) 형태로 저장하고 같은 디코딩 경로를 거치므로,
모델 변환 로직도 함께 검증됩니다. 원자성은 저장소 단위 락으로 보장합니다.
"""

import copy
import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from feedcore.core.errors import NotFoundError, StoreUnavailableError
from feedcore.models.content import Comment, ContentItem, EngagementKind
from feedcore.models.notification import NotificationChannel
from feedcore.models.user import UserProfile
from feedcore.repositories.base import (
    BatchCallback, ContentRepository, ErrorCallback, MembershipChange,
    NotificationStore, RawRecord, UserDirectory, WatchHandle
)
from feedcore.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class MonotonicClock:
    """저장소가 부여하는 시각. 같은 저장소에서의 쓰기마다 단조 증가합니다."""

    def __init__(self, clock: Clock = DateTimeUtils.now):
        self._clock = clock
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def stamp(self) -> datetime:
        with self._lock:
            value = DateTimeUtils.ensure_utc(self._clock())
            if self._last is not None and value <= self._last:
                value = self._last + timedelta(microseconds=1)
            self._last = value
            return value


class _AvailabilityMixin:
    """테스트에서 저장소 장애를 흉내 내기 위한 스위치"""
    available = True

    def _ensure_available(self, operation: str) -> None:
        if not self.available:
            logger.error(f"인메모리 저장소 사용 불가 ({operation})")
            raise StoreUnavailableError(f"저장소에 연결할 수 없습니다 ({operation}).")


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryUserDirectory(_AvailabilityMixin, UserDirectory):
    def __init__(self, clock: Clock = DateTimeUtils.now):
        self._clock = clock
        self._profiles: Dict[str, UserProfile] = {}
        self._lock = threading.Lock()

    def put_profile(self, profile: UserProfile) -> None:
        with self._lock:
            self._profiles[profile.uid] = copy.copy(profile)

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        self._ensure_available("사용자 조회")
        with self._lock:
            profile = self._profiles.get(uid)
            return copy.copy(profile) if profile else None

    def count_seen_since(self, cutoff: datetime) -> int:
        self._ensure_available("온라인 사용자 집계")
        with self._lock:
            return sum(
                1 for profile in self._profiles.values()
                if profile.last_seen_at is not None and profile.last_seen_at >= cutoff
            )

    def touch(self, uid: str) -> None:
        self._ensure_available("마지막 활동 시각 갱신")
        with self._lock:
            profile = self._profiles.get(uid)
            if profile is None:
                raise NotFoundError(f"사용자 프로필이 없습니다: {uid}")
            profile.last_seen_at = DateTimeUtils.ensure_utc(self._clock())


class InMemoryContentRepository(_AvailabilityMixin, ContentRepository):
    def __init__(self, user_directory: UserDirectory, clock: Clock = DateTimeUtils.now):
        super().__init__(user_directory)
        self._clock = MonotonicClock(clock)
        self._posts: Dict[str, Dict[str, Any]] = {}
        self._comments: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def put_raw(self, doc_id: str, data: Dict[str, Any]) -> None:
        """검증 없이 원본 문서를 그대로 넣습니다. (외부 데이터 임포트/이상 데이터 재현용)"""
        with self._lock:
            self._posts[doc_id] = copy.deepcopy(data)
            self._comments.setdefault(doc_id, {})

    def _insert(self, item: ContentItem) -> str:
        self._ensure_available("콘텐츠 생성")
        content_id = _new_id()
        document = item.to_document()
        with self._lock:
            document['created_at'] = self._clock.stamp()
            self._posts[content_id] = document
            self._comments[content_id] = {}
        return content_id

    def get(self, content_id: str) -> ContentItem:
        self._ensure_available("콘텐츠 조회")
        with self._lock:
            data = self._posts.get(content_id)
            if data is None:
                raise NotFoundError("콘텐츠를 찾을 수 없습니다.")
            return ContentItem.from_document(content_id, copy.deepcopy(data))

    def _sorted_records(self, predicate=None) -> List[RawRecord]:
        with self._lock:
            records = [
                (doc_id, copy.deepcopy(data)) for doc_id, data in self._posts.items()
                if predicate is None or predicate(data)
            ]
        # created_at 을 해석할 수 없는 문서는 맨 뒤로 보내고 디코딩 단계에서 건너뜁니다.
        records.sort(key=lambda record: record[0])
        records.sort(key=lambda record: _sort_instant(record[1].get('created_at')), reverse=True)
        return records

    def list_recent(self, limit: int) -> List[ContentItem]:
        self._check_limit(limit)
        self._ensure_available("최근 콘텐츠 조회")
        return self._decode_items(self._sorted_records()[:limit])

    def list_by_author(self, author_id: str, limit: int) -> List[ContentItem]:
        self._check_limit(limit)
        self._ensure_available("작성자별 콘텐츠 조회")
        records = self._sorted_records(lambda data: (data.get('author') or {}).get('user_id') == author_id)
        return self._decode_items(records[:limit])

    def delete(self, content_id: str, requester_id: str) -> None:
        self._ensure_available("콘텐츠 삭제")
        with self._lock:
            data = self._posts.get(content_id)
            if data is None:
                raise NotFoundError("삭제할 콘텐츠가 없습니다.")
            self._authorize_delete(content_id, data, requester_id)
            removed = self._comments.pop(content_id, {})
            del self._posts[content_id]
        logger.info(f"콘텐츠 삭제 완료 (id: {content_id}, 댓글 {len(removed)}건 함께 삭제, by: {requester_id})")

    def add_comment(self, post_id: str, comment: Comment) -> str:
        prepared = comment.prepared_for_create(post_id)
        self._ensure_available("댓글 생성")
        comment_id = _new_id()
        with self._lock:
            post = self._posts.get(post_id)
            if post is None:
                raise NotFoundError("댓글을 작성할 게시물이 존재하지 않습니다.")
            document = prepared.to_document()
            document['created_at'] = self._clock.stamp()
            self._comments.setdefault(post_id, {})[comment_id] = document
            post['comment_count'] = int(post.get('comment_count') or 0) + 1
        return comment_id

    def list_comments(self, post_id: str, limit: int) -> List[Comment]:
        self._check_limit(limit)
        self._ensure_available("댓글 조회")
        with self._lock:
            records = [(cid, copy.deepcopy(data)) for cid, data in self._comments.get(post_id, {}).items()]
        records.sort(key=lambda record: (_sort_instant(record[1].get('created_at')), record[0]))
        return self._decode_comments(records[:limit])

    def get_comment(self, post_id: str, comment_id: str) -> Comment:
        self._ensure_available("댓글 조회")
        with self._lock:
            data = self._comments.get(post_id, {}).get(comment_id)
            if data is None:
                raise NotFoundError("댓글을 찾을 수 없습니다.")
            return Comment.from_document(comment_id, copy.deepcopy(data))

    def count_comments(self, post_id: str) -> int:
        with self._lock:
            return len(self._comments.get(post_id, {}))

    def apply_membership(self, post_id: str, kind: EngagementKind, user_id: str, add: bool) -> MembershipChange:
        self._ensure_available("참여 상태 변경")
        with self._lock:
            data = self._posts.get(post_id)
            if data is None:
                raise NotFoundError("게시글을 찾을 수 없습니다.")
            members = list(data.get(kind.set_field) or [])
            changed = (user_id in members) != add
            if changed:
                if add:
                    members.append(user_id)
                else:
                    members.remove(user_id)
                data[kind.set_field] = members
                data[kind.count_field] = int(data.get(kind.count_field) or 0) + (1 if add else -1)
            return MembershipChange(changed=changed, item=ContentItem.from_document(post_id, copy.deepcopy(data)))


def _sort_instant(raw: Any) -> datetime:
    parsed = DateTimeUtils.normalize_timestamp(raw)
    return parsed.value if parsed.ok else datetime.min.replace(tzinfo=timezone.utc)


class _MemoryWatch(WatchHandle):
    def __init__(self, store: 'InMemoryNotificationStore', watch_id: str):
        self._store = store
        self._watch_id = watch_id

    def unsubscribe(self) -> None:
        self._store._remove_watch(self._watch_id)


class InMemoryNotificationStore(_AvailabilityMixin, NotificationStore):
    """
    인메모리 알림 저장소. 문서가 바뀔 때마다 해당 채널 구독자에게 현재 최근 N개를 다시 전달합니다.
    (Firestore on_snapshot 과 같은 '전체 결과 재전송' 방식)
    """
    def __init__(self, clock: Clock = DateTimeUtils.now):
        self._clock = MonotonicClock(clock)
        self._documents: Dict[str, Dict[str, Any]] = {}
        # watch_id -> (channel, user_id, limit, on_batch, on_error)
        self._watches: Dict[str, Tuple[NotificationChannel, Optional[str], int, BatchCallback, ErrorCallback]] = {}
        self._lock = threading.RLock()

    def put_raw(self, doc_id: str, data: Dict[str, Any]) -> None:
        """검증 없이 원본 문서를 넣고 구독자에게 알립니다."""
        with self._lock:
            self._documents[doc_id] = copy.deepcopy(data)
        self._notify_watchers()

    def add(self, document: Dict[str, Any]) -> str:
        self._ensure_available("알림 생성")
        notification_id = _new_id()
        with self._lock:
            self._documents[notification_id] = dict(copy.deepcopy(document), created_at=self._clock.stamp())
        self._notify_watchers()
        return notification_id

    def get(self, notification_id: str) -> Optional[RawRecord]:
        self._ensure_available("알림 조회")
        with self._lock:
            data = self._documents.get(notification_id)
            return (notification_id, copy.deepcopy(data)) if data is not None else None

    def mark_read(self, notification_id: str) -> None:
        self._ensure_available("알림 읽음 처리")
        with self._lock:
            data = self._documents.get(notification_id)
            if data is None:
                raise NotFoundError("알림을 찾을 수 없습니다.")
            data['is_read'] = True
        self._notify_watchers()

    def _query(self, channel: NotificationChannel, user_id: Optional[str], limit: int) -> List[RawRecord]:
        with self._lock:
            if channel is NotificationChannel.GLOBAL:
                records = [(nid, copy.deepcopy(d)) for nid, d in self._documents.items() if d.get('is_global') is True]
            else:
                records = [(nid, copy.deepcopy(d)) for nid, d in self._documents.items()
                           if d.get('target_user_id') == user_id]
        records.sort(key=lambda record: record[0])
        records.sort(key=lambda record: _sort_instant(record[1].get('created_at')), reverse=True)
        return records[:limit]

    def list_global(self, limit: int) -> List[RawRecord]:
        self._ensure_available("전체 공지 조회")
        return self._query(NotificationChannel.GLOBAL, None, limit)

    def list_targeted(self, user_id: str, limit: int) -> List[RawRecord]:
        self._ensure_available("대상 알림 조회")
        return self._query(NotificationChannel.TARGETED, user_id, limit)

    def _add_watch(self, channel: NotificationChannel, user_id: Optional[str], limit: int,
                   on_batch: BatchCallback, on_error: ErrorCallback) -> WatchHandle:
        self._ensure_available("알림 구독")
        watch_id = _new_id()
        with self._lock:
            self._watches[watch_id] = (channel, user_id, limit, on_batch, on_error)
        # 구독 직후 현재 결과를 한 번 전달합니다.
        on_batch(self._query(channel, user_id, limit))
        return _MemoryWatch(self, watch_id)

    def _remove_watch(self, watch_id: str) -> None:
        with self._lock:
            self._watches.pop(watch_id, None)

    def watch_global(self, limit: int, on_batch: BatchCallback, on_error: ErrorCallback) -> WatchHandle:
        return self._add_watch(NotificationChannel.GLOBAL, None, limit, on_batch, on_error)

    def watch_targeted(self, user_id: str, limit: int, on_batch: BatchCallback,
                       on_error: ErrorCallback) -> WatchHandle:
        return self._add_watch(NotificationChannel.TARGETED, user_id, limit, on_batch, on_error)

    def active_watch_count(self) -> int:
        with self._lock:
            return len(self._watches)

    def emit_error(self, channel: NotificationChannel, error: Exception) -> None:
        """해당 채널의 모든 구독에 오류를 전달합니다. (채널 장애 재현용)"""
        with self._lock:
            targets = [watch for watch in self._watches.values() if watch[0] is channel]
        for _, _, _, _, on_error in targets:
            on_error(error)

    def _notify_watchers(self) -> None:
        with self._lock:
            watches = list(self._watches.values())
        # 콜백은 락 밖에서 호출합니다.
        for channel, user_id, limit, on_batch, on_error in watches:
            try:
                on_batch(self._query(channel, user_id, limit))
            except Exception as e:
                logger.error(f"알림 구독 콜백 실패 ({channel.value}): {e}", exc_info=True)
                on_error(e)
