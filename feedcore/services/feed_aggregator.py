# feedcore/services/feed_aggregator.py
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from feedcore.models.content import ContentItem, ContentKind
from feedcore.repositories.base import ContentRepository
from feedcore.services.story_grouper import StoryGrouper, StoryGroups
from feedcore.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

DEFAULT_VISIBILITY_WINDOW = timedelta(hours=24)


@dataclass
class Feed:
    posts: List[ContentItem] = field(default_factory=list)
    stories: List[ContentItem] = field(default_factory=list)
    story_groups: StoryGroups = field(default_factory=StoryGroups)


def newest_first(items: List[ContentItem]) -> List[ContentItem]:
    """created_at 내림차순, 같은 시각이면 id 오름차순으로 정렬합니다."""
    ordered = sorted(items, key=lambda item: item.id or '')
    ordered.sort(key=lambda item: item.created_at, reverse=True)
    return ordered


class FeedAggregator:
    """
    피드 로드/새로고침마다 한 번 호출됩니다.
    최근 콘텐츠를 가져와 게시글과 노출 기간 내 스토리로 나누고, 스토리는 StoryGrouper 로 묶습니다.
    만료된 스토리는 조회 시점에 걸러낼 뿐 삭제하지 않습니다.
    """
    def __init__(self, repository: ContentRepository, grouper: Optional[StoryGrouper] = None,
                 visibility_window: timedelta = DEFAULT_VISIBILITY_WINDOW,
                 clock: Callable[[], datetime] = DateTimeUtils.now):
        self.repository = repository
        self.grouper = grouper or StoryGrouper()
        self.visibility_window = visibility_window
        self.clock = clock

    def is_story_active(self, story: ContentItem, now: datetime) -> bool:
        return now - story.created_at < self.visibility_window

    def load_feed(self, limit: int) -> Feed:
        # 저장소 장애(StoreUnavailableError)는 피드를 보여줄 수 없으므로 그대로 전달합니다.
        items = self.repository.list_recent(limit)
        now = DateTimeUtils.ensure_utc(self.clock())

        posts, stories = [], []
        expired = 0
        for item in items:
            if item.kind is ContentKind.STORY:
                if self.is_story_active(item, now):
                    stories.append(item)
                else:
                    expired += 1
            else:
                posts.append(item)

        posts = newest_first(posts)
        stories = newest_first(stories)
        logger.info(f"피드 로드: 게시글 {len(posts)}건, 활성 스토리 {len(stories)}건 (만료 {expired}건 제외)")
        return Feed(posts=posts, stories=stories, story_groups=self.grouper.group(stories))

    def load_author_stories(self, author_id: str, limit: int) -> List[ContentItem]:
        """특정 작성자의 현재 활성 스토리 (대시보드의 '내 스토리' 관리용)"""
        now = DateTimeUtils.ensure_utc(self.clock())
        items = self.repository.list_by_author(author_id, limit)
        return newest_first([item for item in items if item.is_story and self.is_story_active(item, now)])
