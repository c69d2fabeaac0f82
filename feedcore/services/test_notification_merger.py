# feedcore/services/test_notification_merger.py
from datetime import datetime, timedelta, timezone

from feedcore.models.notification import NotificationChannel
from feedcore.services.notification_merger import NotificationMerger

BASE = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _global(doc_id, minutes):
    return doc_id, {"message": f"global {doc_id}", "is_global": True, "created_at": BASE + timedelta(minutes=minutes)}


def _targeted(doc_id, minutes, is_read=False):
    return doc_id, {"message": f"to alice {doc_id}", "is_global": False, "target_user_id": "alice",
                    "is_read": is_read, "created_at": BASE + timedelta(minutes=minutes)}


def test_merges_channels_newest_first():
    merger = NotificationMerger()
    merger.apply(NotificationChannel.GLOBAL, [_global("g1", 0), _global("g2", 10)])
    visible = merger.apply(NotificationChannel.TARGETED, [_targeted("t1", 5)])

    assert [n.id for n in visible] == ["g2", "t1", "g1"]
    assert visible[0].is_read is None
    assert visible[1].is_read is False


def test_replaying_a_batch_is_idempotent():
    merger = NotificationMerger()
    batch = [_global("g1", 0), _global("g2", 1)]
    first = merger.apply(NotificationChannel.GLOBAL, batch)
    second = merger.apply(NotificationChannel.GLOBAL, batch)

    assert first == second
    assert len(merger) == 2
    assert merger.anomalies == []


def test_upsert_reflects_read_state_change():
    merger = NotificationMerger()
    merger.apply(NotificationChannel.TARGETED, [_targeted("t1", 0)])
    visible = merger.apply(NotificationChannel.TARGETED, [_targeted("t1", 0, is_read=True)])
    assert [n.is_read for n in visible] == [True]


def test_cross_channel_collision_is_last_write_wins():
    merger = NotificationMerger()
    merger.apply(NotificationChannel.GLOBAL, [_global("same", 0)])
    visible = merger.apply(NotificationChannel.TARGETED, [_targeted("same", 0)])

    assert len(visible) == 1
    assert visible[0].message == "to alice same"
    assert [a.kind for a in merger.anomalies] == ["notification_channel_collision"]


def test_equal_timestamps_sort_by_id():
    merger = NotificationMerger()
    visible = merger.apply(NotificationChannel.GLOBAL, [_global("b", 0), _global("a", 0)])
    assert [n.id for n in visible] == ["a", "b"]


def test_unparseable_timestamps_are_skipped():
    merger = NotificationMerger()
    visible = merger.apply(NotificationChannel.GLOBAL, [
        ("ok", {"message": "m", "is_global": True, "created_at": {"seconds": int(BASE.timestamp()), "nanos": 0}}),
        ("missing", {"message": "m", "is_global": True}),
        ("garbage", {"message": "m", "is_global": True, "created_at": "not-a-time"}),
    ])

    assert [n.id for n in visible] == ["ok"]
    assert [a.context["notification_id"] for a in merger.anomalies] == ["missing", "garbage"]


def test_redelivered_bad_record_is_reported_once():
    merger = NotificationMerger()
    broken = ("broken", {"message": "m", "is_global": True, "created_at": "garbage"})
    for minutes in range(5):
        merger.apply(NotificationChannel.GLOBAL, [broken, _global(f"g{minutes}", minutes)])

    assert len(merger) == 5
    assert [a.kind for a in merger.anomalies] == ["invalid_notification_timestamp"]


def test_alternating_collision_is_reported_once():
    merger = NotificationMerger()
    for _ in range(3):
        merger.apply(NotificationChannel.GLOBAL, [_global("same", 0)])
        merger.apply(NotificationChannel.TARGETED, [_targeted("same", 0)])

    assert len(merger) == 1
    assert [a.kind for a in merger.anomalies] == ["notification_channel_collision"]
