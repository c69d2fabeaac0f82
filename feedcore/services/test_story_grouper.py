# feedcore/services/test_story_grouper.py
import random
from datetime import datetime, timedelta, timezone

from feedcore.models.content import Author, ContentItem, ContentKind
from feedcore.services.story_grouper import AuthorSummary, StoryGrouper

BASE = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _story(story_id, user_id, minutes, display_name=None):
    return ContentItem(
        id=story_id, kind=ContentKind.STORY,
        author=Author(user_id=user_id, display_name=display_name or user_id),
        image_url="https://img.example/s.png", created_at=BASE + timedelta(minutes=minutes)
    )


STORIES = [
    _story("s1", "alice", 0, "Alice (old)"),
    _story("s2", "bob", 5),
    _story("s3", "alice", 10, "Alice"),
    _story("s4", "carol", 10),
    _story("s5", "bob", 1),
]


def test_groups_by_author():
    groups = StoryGrouper().group(STORIES)

    assert [summary.author_id for summary in groups.authors] == ["alice", "carol", "bob"]
    assert [s.id for s in groups.by_author["alice"]] == ["s1", "s3"]
    assert [s.id for s in groups.by_author["bob"]] == ["s5", "s2"]
    # 작성자 요약은 가장 최근 스토리의 스냅샷을 사용합니다.
    assert groups.authors[0] == AuthorSummary(author_id="alice", display_name="Alice")


def test_is_deterministic_regardless_of_input_order():
    expected = StoryGrouper().group(STORIES)
    shuffled = list(STORIES)
    for seed in range(5):
        random.Random(seed).shuffle(shuffled)
        assert StoryGrouper().group(shuffled) == expected


def test_duplicate_stories_are_collapsed():
    groups = StoryGrouper().group(STORIES + [STORIES[0], STORIES[1]])
    assert sum(len(items) for items in groups.by_author.values()) == len(STORIES)


def test_empty_input():
    groups = StoryGrouper().group([])
    assert groups.authors == [] and groups.by_author == {}
