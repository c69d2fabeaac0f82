# feedcore/services/story_grouper.py
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from feedcore.models.content import Author, ContentItem


@dataclass(frozen=True)
class AuthorSummary:
    """스토리 미리보기 레일에 표시할 작성자 정보. 가장 최근 스토리의 스냅샷에서 가져옵니다."""
    author_id: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    @classmethod
    def from_author(cls, author: Author) -> 'AuthorSummary':
        return cls(author_id=author.user_id, display_name=author.display_name, photo_url=author.photo_url)


@dataclass
class StoryGroups:
    authors: List[AuthorSummary] = field(default_factory=list)
    by_author: Dict[str, List[ContentItem]] = field(default_factory=dict)


class StoryGrouper:
    """
    스토리를 작성자별로 묶습니다.
    - 작성자별 목록은 created_at 오름차순 (오래된 것부터 순서대로 시청)
    - 작성자 레일은 각 작성자의 가장 최근 스토리 시각 내림차순 (방금 올린 사람이 먼저)
    같은 입력이면 입력 순서와 관계없이 항상 같은 결과를 돌려줍니다.
    """

    def group(self, stories: Iterable[ContentItem]) -> StoryGroups:
        unique: Dict[str, ContentItem] = {}
        for story in stories:
            # 같은 스토리가 여러 번 들어와도 한 번만 반영합니다.
            unique.setdefault(story.id, story)

        buckets: Dict[str, List[ContentItem]] = {}
        for story in unique.values():
            buckets.setdefault(story.author.user_id, []).append(story)

        by_author: Dict[str, List[ContentItem]] = {}
        latest: Dict[str, ContentItem] = {}
        for author_id, items in buckets.items():
            ordered = sorted(items, key=lambda item: (item.created_at, item.id))
            by_author[author_id] = ordered
            latest[author_id] = ordered[-1]

        author_ids = sorted(latest)
        author_ids.sort(key=lambda author_id: latest[author_id].created_at, reverse=True)

        return StoryGroups(
            authors=[AuthorSummary.from_author(latest[author_id].author) for author_id in author_ids],
            by_author={author_id: by_author[author_id] for author_id in author_ids}
        )
