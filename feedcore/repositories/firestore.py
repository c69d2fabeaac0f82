# feedcore/repositories/firestore.py
"""
Cloud Firestore(firebase_admin) 기반 저장소 구현.

- 모든 카운터/집합 변경은 트랜잭션 + Increment / ArrayUnion / ArrayRemove 로 처리합니다.
  (클라이언트 측 read-modify-write 금지)
- google.api_core 예외는 StoreUnavailableError 로 변환합니다.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from feedcore.core.errors import FeedCoreError, NotFoundError, StoreUnavailableError
from feedcore.models.content import Comment, ContentItem, EngagementKind
from feedcore.models.user import UserProfile
from feedcore.repositories.base import (
    BatchCallback, ContentRepository, ErrorCallback, MembershipChange,
    NotificationStore, RawRecord, UserDirectory, WatchHandle
)
from feedcore.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

POSTS_COLLECTION = 'posts'
COMMENTS_SUBCOLLECTION = 'comments'
NOTIFICATIONS_COLLECTION = 'notifications'
USERS_COLLECTION = 'users'


@contextmanager
def store_call(operation: str):
    """Firestore 호출 중 발생한 전송/서비스 오류를 StoreUnavailableError 로 변환합니다."""
    try:
        yield
    except FeedCoreError:
        raise
    except google_exceptions.GoogleAPIError as e:
        logger.error(f"Firestore 호출 실패 ({operation}): {e}", exc_info=True)
        raise StoreUnavailableError(f"저장소에 연결할 수 없습니다 ({operation}).") from e


def _records(snapshots) -> List[RawRecord]:
    return [(snapshot.id, snapshot.to_dict() or {}) for snapshot in snapshots]


class FirestoreUserDirectory(UserDirectory):
    def __init__(self, db):
        self.db = db
        self.users_ref = self.db.collection(USERS_COLLECTION)

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        if not uid:
            return None
        with store_call("사용자 조회"):
            doc = self.users_ref.document(uid).get()
        if not doc.exists:
            return None
        data = doc.to_dict() or {}
        last_seen = DateTimeUtils.normalize_timestamp(data.get('last_seen_at'))
        return UserProfile(
            uid=doc.id,
            display_name=data.get('display_name'),
            photo_url=data.get('photo_url'),
            last_seen_at=last_seen.value,
            is_admin=bool(data.get('is_admin', False))
        )

    def count_seen_since(self, cutoff: datetime) -> int:
        with store_call("온라인 사용자 집계"):
            # count() 집계는 문서를 모두 가져오지 않고 숫자만 서버에서 계산합니다.
            query = self.users_ref.where('last_seen_at', '>=', cutoff)
            count_result = query.count().get()
            return int(count_result[0][0].value)

    def touch(self, uid: str) -> None:
        with store_call("마지막 활동 시각 갱신"):
            self.users_ref.document(uid).update({'last_seen_at': firestore.SERVER_TIMESTAMP})


class FirestoreContentRepository(ContentRepository):
    """
    'posts' 컬렉션과 'posts/{id}/comments' 서브컬렉션을 다루는 저장소.
    """
    def __init__(self, db, user_directory: UserDirectory):
        super().__init__(user_directory)
        self.db = db
        self.posts_ref = self.db.collection(POSTS_COLLECTION)

    def _comments_ref(self, post_id: str):
        return self.posts_ref.document(post_id).collection(COMMENTS_SUBCOLLECTION)

    def _insert(self, item: ContentItem) -> str:
        document = item.to_document()
        document['created_at'] = firestore.SERVER_TIMESTAMP
        with store_call("콘텐츠 생성"):
            doc_ref = self.posts_ref.document()
            doc_ref.set(document)
        return doc_ref.id

    def get(self, content_id: str) -> ContentItem:
        with store_call("콘텐츠 조회"):
            doc = self.posts_ref.document(content_id).get()
        if not doc.exists:
            raise NotFoundError("콘텐츠를 찾을 수 없습니다.")
        return ContentItem.from_document(doc.id, doc.to_dict() or {})

    def list_recent(self, limit: int) -> List[ContentItem]:
        self._check_limit(limit)
        with store_call("최근 콘텐츠 조회"):
            query = self.posts_ref.order_by('created_at', direction=firestore.Query.DESCENDING).limit(limit)
            records = _records(query.stream())
        items = self._decode_items(records)
        logger.info(f"Firestore: 최근 콘텐츠 {len(items)}건 조회")
        return items

    def list_by_author(self, author_id: str, limit: int) -> List[ContentItem]:
        self._check_limit(limit)
        with store_call("작성자별 콘텐츠 조회"):
            query = (self.posts_ref.where('author.user_id', '==', author_id)
                     .order_by('created_at', direction=firestore.Query.DESCENDING)
                     .limit(limit))
            records = _records(query.stream())
        return self._decode_items(records)

    def delete(self, content_id: str, requester_id: str) -> None:
        post_ref = self.posts_ref.document(content_id)

        @firestore.transactional
        def _delete_in_transaction(transaction):
            snapshot = post_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("삭제할 콘텐츠가 없습니다.")
            self._authorize_delete(content_id, snapshot.to_dict() or {}, requester_id)

            # 트랜잭션 안에서는 모든 읽기가 쓰기보다 먼저 수행되어야 합니다.
            # Transaction.get 은 Query 만 받으므로 컬렉션은 select([]) 로 감쌉니다.
            comments_query = post_ref.collection(COMMENTS_SUBCOLLECTION).select([])
            comment_refs = [doc.reference for doc in transaction.get(comments_query)]
            for comment_ref in comment_refs:
                transaction.delete(comment_ref)
            transaction.delete(post_ref)
            return len(comment_refs)

        with store_call("콘텐츠 삭제"):
            removed_comments = _delete_in_transaction(self.db.transaction())
        logger.info(f"콘텐츠 삭제 완료 (id: {content_id}, 댓글 {removed_comments}건 함께 삭제, by: {requester_id})")

    def add_comment(self, post_id: str, comment: Comment) -> str:
        prepared = comment.prepared_for_create(post_id)
        post_ref = self.posts_ref.document(post_id)
        comment_ref = post_ref.collection(COMMENTS_SUBCOLLECTION).document()

        @firestore.transactional
        def _add_in_transaction(transaction):
            snapshot = post_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("댓글을 작성할 게시물이 존재하지 않습니다.")
            document = prepared.to_document()
            document['created_at'] = firestore.SERVER_TIMESTAMP
            transaction.set(comment_ref, document)
            transaction.update(post_ref, {'comment_count': firestore.Increment(1)})

        with store_call("댓글 생성"):
            _add_in_transaction(self.db.transaction())
        return comment_ref.id

    def list_comments(self, post_id: str, limit: int) -> List[Comment]:
        self._check_limit(limit)
        with store_call("댓글 조회"):
            query = self._comments_ref(post_id).order_by('created_at').limit(limit)
            records = _records(query.stream())
        return self._decode_comments(records)

    def get_comment(self, post_id: str, comment_id: str) -> Comment:
        with store_call("댓글 조회"):
            doc = self._comments_ref(post_id).document(comment_id).get()
        if not doc.exists:
            raise NotFoundError("댓글을 찾을 수 없습니다.")
        return Comment.from_document(doc.id, doc.to_dict() or {})

    def apply_membership(self, post_id: str, kind: EngagementKind, user_id: str, add: bool) -> MembershipChange:
        post_ref = self.posts_ref.document(post_id)

        @firestore.transactional
        def _apply_in_transaction(transaction):
            snapshot = post_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("게시글을 찾을 수 없습니다.")
            data = snapshot.to_dict() or {}
            members = set(data.get(kind.set_field) or [])
            if (user_id in members) == add:
                return False, data

            transaction.update(post_ref, {
                kind.set_field: firestore.ArrayUnion([user_id]) if add else firestore.ArrayRemove([user_id]),
                kind.count_field: firestore.Increment(1 if add else -1)
            })
            if add:
                members.add(user_id)
            else:
                members.discard(user_id)
            data[kind.set_field] = sorted(members)
            data[kind.count_field] = int(data.get(kind.count_field) or 0) + (1 if add else -1)
            return True, data

        with store_call("참여 상태 변경"):
            changed, data = _apply_in_transaction(self.db.transaction())
        return MembershipChange(changed=changed, item=ContentItem.from_document(post_id, data))


class _FirestoreWatch(WatchHandle):
    def __init__(self, watch):
        self._watch = watch

    def unsubscribe(self) -> None:
        self._watch.unsubscribe()


class FirestoreNotificationStore(NotificationStore):
    def __init__(self, db):
        self.db = db
        self.notifications_ref = self.db.collection(NOTIFICATIONS_COLLECTION)

    def _global_query(self, limit: int):
        return (self.notifications_ref.where('is_global', '==', True)
                .order_by('created_at', direction=firestore.Query.DESCENDING)
                .limit(limit))

    def _targeted_query(self, user_id: str, limit: int):
        return (self.notifications_ref.where('target_user_id', '==', user_id)
                .order_by('created_at', direction=firestore.Query.DESCENDING)
                .limit(limit))

    def add(self, document: Dict[str, Any]) -> str:
        document = dict(document, created_at=firestore.SERVER_TIMESTAMP)
        with store_call("알림 생성"):
            doc_ref = self.notifications_ref.document()
            doc_ref.set(document)
        return doc_ref.id

    def get(self, notification_id: str) -> Optional[RawRecord]:
        with store_call("알림 조회"):
            doc = self.notifications_ref.document(notification_id).get()
        if not doc.exists:
            return None
        return doc.id, doc.to_dict() or {}

    def mark_read(self, notification_id: str) -> None:
        with store_call("알림 읽음 처리"):
            self.notifications_ref.document(notification_id).update({'is_read': True})

    def list_global(self, limit: int) -> List[RawRecord]:
        with store_call("전체 공지 조회"):
            return _records(self._global_query(limit).stream())

    def list_targeted(self, user_id: str, limit: int) -> List[RawRecord]:
        with store_call("대상 알림 조회"):
            return _records(self._targeted_query(user_id, limit).stream())

    def _watch(self, query, on_batch: BatchCallback, on_error: ErrorCallback) -> WatchHandle:
        def _on_snapshot(docs, changes, read_time):
            try:
                on_batch(_records(docs))
            except Exception as e:
                logger.error(f"알림 스냅샷 처리 실패: {e}", exc_info=True)
                on_error(e)

        # on_snapshot 콜백은 SDK 의 watch 스레드에서 호출됩니다.
        return _FirestoreWatch(query.on_snapshot(_on_snapshot))

    def watch_global(self, limit: int, on_batch: BatchCallback, on_error: ErrorCallback) -> WatchHandle:
        return self._watch(self._global_query(limit), on_batch, on_error)

    def watch_targeted(self, user_id: str, limit: int, on_batch: BatchCallback,
                       on_error: ErrorCallback) -> WatchHandle:
        return self._watch(self._targeted_query(user_id, limit), on_batch, on_error)
