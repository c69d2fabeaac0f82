# feedcore/models/content.py
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Set

from feedcore.core.errors import ValidationError
from feedcore.utils.datetime_utils import DateTimeUtils
from feedcore.utils.hashtags import extract_hashtags


class ContentKind(Enum):
    """콘텐츠 유형. 게시글(post)은 영구 노출, 스토리(story)는 노출 기간이 지나면 보이지 않습니다."""
    POST = "post"
    STORY = "story"


class EngagementKind(Enum):
    """좋아요/저장 각각이 사용하는 (사용자 집합 필드, 카운터 필드) 쌍"""
    LIKE = ("liked_by", "like_count")
    SAVE = ("saved_by", "save_count")

    @property
    def set_field(self) -> str:
        return self.value[0]

    @property
    def count_field(self) -> str:
        return self.value[1]


@dataclass
class Author:
    """콘텐츠/댓글 문서 내부에 저장될 작성자 정보. 작성 시점의 스냅샷이며 이후 갱신되지 않습니다."""
    user_id: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Author':
        data = data or {}
        return cls(
            user_id=data.get('user_id') or '',
            display_name=data.get('display_name'),
            photo_url=data.get('photo_url')
        )


def _clean(value: Optional[str]) -> Optional[str]:
    """앞뒤 공백을 제거하고 빈 문자열은 None 으로 취급합니다."""
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class ContentItem:
    """
    Firestore 'posts' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    게시글과 스토리는 같은 컬렉션에 저장되며 kind 로 구분합니다.
    """
    kind: ContentKind
    author: Author
    text: Optional[str] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    # 스토리 전용 배경음악 정보
    music_url: Optional[str] = None
    music_start_time: Optional[float] = None
    music_end_time: Optional[float] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    like_count: int = 0
    liked_by: Set[str] = field(default_factory=set)
    comment_count: int = 0
    save_count: int = 0
    saved_by: Set[str] = field(default_factory=set)
    tags: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_story(self) -> bool:
        return self.kind is ContentKind.STORY

    def validate(self) -> None:
        """생성 전 유효성 검사. 실패 시 ValidationError 를 발생시킵니다."""
        if not self.author or not (self.author.user_id or '').strip():
            raise ValidationError("작성자 ID는 필수입니다.")
        if not (self.text or self.image_url or self.video_url):
            raise ValidationError("게시글에는 텍스트, 이미지 또는 동영상 중 하나 이상이 필요합니다.")
        if self.is_story:
            if not (self.image_url or self.video_url):
                raise ValidationError("스토리에는 이미지 또는 동영상이 필요합니다.")
            if self.music_start_time is not None and self.music_start_time < 0:
                raise ValidationError("음악 시작 시간은 0 이상이어야 합니다.")
            if (self.music_start_time is not None and self.music_end_time is not None
                    and self.music_end_time <= self.music_start_time):
                raise ValidationError("음악 종료 시간은 시작 시간보다 커야 합니다.")
        elif self.music_url or self.music_start_time is not None or self.music_end_time is not None:
            raise ValidationError("배경음악은 스토리에만 설정할 수 있습니다.")

    def prepared_for_create(self) -> 'ContentItem':
        """
        저장 직전의 새 콘텐츠를 만듭니다.
        - 텍스트/URL 정규화, 해시태그 추출
        - 카운터와 사용자 집합 초기화, 클라이언트가 보낸 id/created_at 은 무시
        """
        item = replace(
            self,
            author=Author(
                user_id=self.author.user_id.strip() if self.author and self.author.user_id else '',
                display_name=self.author.display_name if self.author else None,
                photo_url=self.author.photo_url if self.author else None
            ),
            text=_clean(self.text),
            image_url=_clean(self.image_url),
            video_url=_clean(self.video_url),
            music_url=_clean(self.music_url),
            id=None,
            created_at=None,
            like_count=0, liked_by=set(),
            comment_count=0,
            save_count=0, saved_by=set()
        )
        item.validate()
        return replace(item, tags=extract_hashtags(item.text))

    def to_document(self) -> Dict[str, Any]:
        """Firestore 에 저장할 dict 로 변환합니다. id 는 문서 ID 로 따로 관리합니다."""
        return {
            'kind': self.kind.value,
            'author': {
                'user_id': self.author.user_id,
                'display_name': self.author.display_name,
                'photo_url': self.author.photo_url
            },
            'text': self.text,
            'image_url': self.image_url,
            'video_url': self.video_url,
            'music_url': self.music_url,
            'music_start_time': self.music_start_time,
            'music_end_time': self.music_end_time,
            'created_at': self.created_at,
            'like_count': self.like_count,
            'liked_by': sorted(self.liked_by),
            'comment_count': self.comment_count,
            'save_count': self.save_count,
            'saved_by': sorted(self.saved_by),
            'tags': sorted(self.tags)
        }

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> 'ContentItem':
        """
        Firestore 문서를 ContentItem 으로 변환합니다.
        작성자 ID 가 없거나 created_at 을 해석할 수 없으면 ValueError 를 발생시킵니다.
        """
        author = Author.from_dict(data.get('author'))
        if not author.user_id:
            raise ValueError(f"작성자 정보가 없는 문서입니다: {doc_id}")
        parsed = DateTimeUtils.normalize_timestamp(data.get('created_at'))
        if not parsed.ok:
            raise ValueError(f"created_at 을 해석할 수 없습니다 ({doc_id}): {parsed.error}")
        try:
            kind = ContentKind(data.get('kind') or ContentKind.POST.value)
        except ValueError:
            raise ValueError(f"알 수 없는 콘텐츠 유형입니다 ({doc_id}): {data.get('kind')}")

        liked_by = set(data.get('liked_by') or [])
        saved_by = set(data.get('saved_by') or [])
        return cls(
            id=doc_id,
            kind=kind,
            author=author,
            text=data.get('text'),
            image_url=data.get('image_url'),
            video_url=data.get('video_url'),
            music_url=data.get('music_url'),
            music_start_time=data.get('music_start_time'),
            music_end_time=data.get('music_end_time'),
            created_at=parsed.value,
            like_count=int(data.get('like_count') or 0),
            liked_by=liked_by,
            comment_count=int(data.get('comment_count') or 0),
            save_count=int(data.get('save_count') or 0),
            saved_by=saved_by,
            tags=frozenset(data.get('tags') or [])
        )


@dataclass
class Comment:
    """
    'posts/{post_id}/comments' 서브컬렉션의 문서 구조를 정의하는 데이터클래스.
    """
    post_id: str
    author: Author
    text: str
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    def prepared_for_create(self, post_id: str) -> 'Comment':
        text = _clean(self.text)
        if not text:
            raise ValidationError("댓글 내용은 비어 있을 수 없습니다.")
        if not self.author or not (self.author.user_id or '').strip():
            raise ValidationError("댓글 작성자 ID는 필수입니다.")
        return replace(self, post_id=post_id, text=text, id=None, created_at=None)

    def to_document(self) -> Dict[str, Any]:
        return {
            'post_id': self.post_id,
            'author': {
                'user_id': self.author.user_id,
                'display_name': self.author.display_name,
                'photo_url': self.author.photo_url
            },
            'text': self.text,
            'created_at': self.created_at
        }

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> 'Comment':
        parsed = DateTimeUtils.normalize_timestamp(data.get('created_at'))
        if not parsed.ok:
            raise ValueError(f"created_at 을 해석할 수 없습니다 ({doc_id}): {parsed.error}")
        return cls(
            id=doc_id,
            post_id=data.get('post_id') or '',
            author=Author.from_dict(data.get('author')),
            text=data.get('text') or '',
            created_at=parsed.value
        )
