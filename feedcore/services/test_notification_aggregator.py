# feedcore/services/test_notification_aggregator.py
import threading

import pytest

from feedcore.core.errors import ValidationError
from feedcore.models.notification import NotificationChannel, build_notification_document
from feedcore.services.notification_aggregator import ChannelState, NotificationAggregator


class Recorder:
    def __init__(self):
        self.updates = []

    def __call__(self, notifications):
        self.updates.append(notifications)

    @property
    def latest_ids(self):
        return [n.id for n in self.updates[-1]] if self.updates else []


@pytest.fixture
def aggregator(notification_store):
    aggregator = NotificationAggregator(notification_store, fetch_limit=15)
    yield aggregator
    aggregator.close()


def test_initial_snapshot_merges_both_channels(aggregator, notification_store, clock):
    global_id = notification_store.add(build_notification_document("공지", "admin"))
    clock.advance(minutes=1)
    targeted_id = notification_store.add(build_notification_document("hi alice", "admin", "alice"))
    notification_store.add(build_notification_document("hi bob", "admin", "bob"))

    recorder = Recorder()
    subscription = aggregator.subscribe("alice", recorder)
    subscription.flush()

    assert recorder.latest_ids == [targeted_id, global_id]
    assert subscription.states() == {
        NotificationChannel.GLOBAL: ChannelState.ACTIVE,
        NotificationChannel.TARGETED: ChannelState.ACTIVE,
    }


def test_live_updates_are_delivered(aggregator, notification_store, clock):
    recorder = Recorder()
    subscription = aggregator.subscribe("alice", recorder)
    subscription.flush()

    clock.advance(minutes=1)
    new_id = notification_store.add(build_notification_document("새 알림", "admin", "alice"))
    subscription.flush()

    assert recorder.latest_ids == [new_id]


def test_one_channel_error_does_not_stop_the_other(aggregator, notification_store, clock):
    recorder = Recorder()
    subscription = aggregator.subscribe("alice", recorder)
    subscription.flush()

    notification_store.emit_error(NotificationChannel.GLOBAL, RuntimeError("permission denied"))
    subscription.flush()
    assert subscription.state(NotificationChannel.GLOBAL) is ChannelState.ERROR
    assert subscription.state(NotificationChannel.TARGETED) is ChannelState.ACTIVE
    assert notification_store.active_watch_count() == 1

    clock.advance(minutes=1)
    notification_store.add(build_notification_document("공지", "admin"))
    targeted_id = notification_store.add(build_notification_document("hi", "admin", "alice"))
    subscription.flush()

    assert recorder.latest_ids == [targeted_id]


def test_setup_failure_marks_channels_error(aggregator, notification_store):
    notification_store.available = False
    subscription = aggregator.subscribe("alice", Recorder())

    assert subscription.state(NotificationChannel.GLOBAL) is ChannelState.ERROR
    assert subscription.state(NotificationChannel.TARGETED) is ChannelState.ERROR


def test_callback_errors_do_not_kill_the_consumer(aggregator, notification_store, clock):
    received = []

    def flaky(notifications):
        received.append(notifications)
        if len(received) == 1:
            raise RuntimeError("render failed")

    subscription = aggregator.subscribe("alice", flaky)
    subscription.flush()
    clock.advance(minutes=1)
    notification_store.add(build_notification_document("hi", "admin", "alice"))
    subscription.flush()

    assert [n.message for n in received[-1]] == ["hi"]


def test_unsubscribe_twice_is_noop(aggregator, notification_store):
    subscription = aggregator.subscribe("alice", Recorder())
    subscription.flush()

    subscription()
    subscription.unsubscribe()

    assert subscription.closed
    assert notification_store.active_watch_count() == 0
    assert aggregator.active_count() == 0
    assert subscription.state(NotificationChannel.GLOBAL) is ChannelState.UNSUBSCRIBED


def test_no_updates_after_unsubscribe(aggregator, notification_store):
    recorder = Recorder()
    subscription = aggregator.subscribe("alice", recorder)
    subscription.flush()
    delivered = len(recorder.updates)

    subscription.unsubscribe()
    notification_store.add(build_notification_document("late", "admin", "alice"))

    assert len(recorder.updates) == delivered


def test_resubscribe_with_same_key_releases_previous_pair(aggregator, notification_store):
    first = aggregator.subscribe("alice", Recorder())
    second = aggregator.subscribe("bob", Recorder())

    assert first.closed
    assert not second.closed
    assert aggregator.active() is second
    assert aggregator.active_count() == 1
    assert notification_store.active_watch_count() == 2


def test_different_keys_are_independent(aggregator, notification_store):
    aggregator.subscribe("alice", Recorder(), key="tab-1")
    aggregator.subscribe("alice", Recorder(), key="tab-2")

    assert aggregator.active_count() == 2
    assert notification_store.active_watch_count() == 4

    aggregator.close()
    assert aggregator.active_count() == 0
    assert notification_store.active_watch_count() == 0


def test_subscribe_requires_user(aggregator):
    with pytest.raises(ValidationError):
        aggregator.subscribe("", Recorder())


def test_unsubscribe_from_inside_callback_stops_consumer(aggregator, notification_store):
    ready = threading.Event()
    holder = []

    def close_on_first_update(notifications):
        ready.wait(2)
        holder[0].unsubscribe()

    subscription = aggregator.subscribe("alice", close_on_first_update)
    holder.append(subscription)
    ready.set()

    assert subscription.join(2)
    assert subscription.closed
    assert notification_store.active_watch_count() == 0
    assert aggregator.active_count() == 0


def test_unsubscribe_with_pending_events_stops_consumer(aggregator, notification_store, clock):
    release = threading.Event()

    def slow(notifications):
        release.wait(2)

    subscription = aggregator.subscribe("alice", slow)
    for _ in range(3):
        clock.advance(seconds=1)
        notification_store.add(build_notification_document("hi", "admin", "alice"))

    closer = threading.Thread(target=subscription.unsubscribe)
    closer.start()
    release.set()
    closer.join(2)

    assert subscription.join(2)
    assert subscription.closed
