# feedcore/models/test_content.py
import pytest
from datetime import datetime, timezone

from feedcore.core.errors import ValidationError
from feedcore.models.content import Author, ContentItem, ContentKind
from feedcore.models.notification import Notification, NotificationChannel, build_notification_document
from feedcore.utils.hashtags import extract_hashtags

AT = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _item(**overrides):
    values = dict(kind=ContentKind.POST, author=Author(user_id="alice"), text="hello")
    values.update(overrides)
    return ContentItem(**values)


def test_extract_hashtags():
    assert extract_hashtags("hello #world") == {"world"}
    assert extract_hashtags("#Dog #dog #산책_2024 no#") == {"dog", "산책_2024"}
    assert extract_hashtags(None) == frozenset()


def test_prepared_for_create_resets_client_values():
    item = _item(
        text="  산책 #Walk  ", image_url="  ", id="client-id", created_at=AT,
        like_count=7, liked_by={"x"}, comment_count=3, save_count=2, saved_by={"y"}
    )
    prepared = item.prepared_for_create()

    assert prepared.text == "산책 #Walk"
    assert prepared.image_url is None
    assert prepared.id is None and prepared.created_at is None
    assert (prepared.like_count, prepared.comment_count, prepared.save_count) == (0, 0, 0)
    assert prepared.liked_by == set() and prepared.saved_by == set()
    assert prepared.tags == {"walk"}


@pytest.mark.parametrize("overrides", [
    dict(text="   "),
    dict(author=Author(user_id="")),
    dict(kind=ContentKind.STORY, text="story without media"),
    dict(kind=ContentKind.STORY, image_url="https://img.example/a.png", music_start_time=-1),
    dict(kind=ContentKind.STORY, image_url="https://img.example/a.png", music_start_time=10, music_end_time=5),
    dict(music_url="https://music.example/a.mp3"),
])
def test_validation_rejects_invalid_content(overrides):
    with pytest.raises(ValidationError):
        _item(**overrides).prepared_for_create()


def test_story_with_music_trim_is_valid():
    story = _item(kind=ContentKind.STORY, text=None, video_url="https://video.example/a.mp4",
                  music_url="https://music.example/a.mp3", music_start_time=0, music_end_time=15.5)
    assert story.prepared_for_create().is_story


def test_from_document_rejects_missing_author_and_bad_timestamp():
    with pytest.raises(ValueError):
        ContentItem.from_document("p1", {"text": "x", "created_at": AT})
    with pytest.raises(ValueError):
        ContentItem.from_document("p1", {"author": {"user_id": "alice"}, "created_at": "garbage"})
    with pytest.raises(ValueError):
        ContentItem.from_document("p1", {"author": {"user_id": "alice"}, "created_at": AT, "kind": "reel"})


def test_from_document_accepts_seconds_mapping():
    item = ContentItem.from_document("p1", {
        "kind": "story", "author": {"user_id": "alice"}, "image_url": "https://img.example/a.png",
        "created_at": {"seconds": int(AT.timestamp()), "nanoseconds": 0},
        "liked_by": ["bob"], "like_count": 1
    })
    assert item.is_story
    assert item.created_at == AT
    assert item.liked_by == {"bob"}


def test_build_notification_document():
    assert build_notification_document(" 공지 ", "admin") == {
        'message': "공지", 'sender_id': "admin", 'is_global': True
    }
    targeted = build_notification_document("hi", "admin", "alice")
    assert targeted['target_user_id'] == "alice"
    assert targeted['is_read'] is False
    assert targeted['is_global'] is False

    with pytest.raises(ValidationError):
        build_notification_document("  ", "admin")
    with pytest.raises(ValidationError):
        build_notification_document("hi", "admin", "  ")


def test_global_notification_is_read_is_none():
    notification = Notification.from_document(
        "n1", {"message": "m", "is_global": True, "is_read": True}, AT, NotificationChannel.GLOBAL
    )
    assert notification.is_read is None
    assert notification.target_user_id is None
