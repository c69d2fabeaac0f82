# feedcore/services/test_notification_service.py
import pytest

from feedcore.core.errors import AuthorizationError, NotFoundError, StoreUnavailableError, ValidationError
from feedcore.services.notification_service import NotificationService


@pytest.fixture
def service(notification_store, users):
    return NotificationService(notification_store, users, fetch_limit=15)


def test_only_admin_can_send(service):
    with pytest.raises(AuthorizationError):
        service.send_global("공지", "alice")
    with pytest.raises(AuthorizationError):
        service.send_targeted("hi", "bob", "alice")

    assert service.send_global("공지", "admin")
    assert service.send_targeted("hi", "bob", "admin")


def test_send_validates_message(service):
    with pytest.raises(ValidationError):
        service.send_global("   ", "admin")
    with pytest.raises(ValidationError):
        service.send_targeted("hi", "", "admin")


def test_recent_for_user_merges_channels(service, clock):
    global_id = service.send_global("공지", "admin")
    clock.advance(minutes=1)
    mine = service.send_targeted("for alice", "alice", "admin")
    service.send_targeted("for bob", "bob", "admin")

    notifications = service.recent_for_user("alice")
    assert [n.id for n in notifications] == [mine, global_id]
    assert notifications[1].is_read is None


def test_mark_as_read(service, notification_store):
    notification_id = service.send_targeted("hi", "alice", "admin")

    with pytest.raises(AuthorizationError):
        service.mark_as_read(notification_id, "bob")

    service.mark_as_read(notification_id, "alice")
    service.mark_as_read(notification_id, "alice")
    assert notification_store.get(notification_id)[1]['is_read'] is True


def test_mark_as_read_rejects_global_and_missing(service):
    global_id = service.send_global("공지", "admin")
    with pytest.raises(ValidationError):
        service.mark_as_read(global_id, "alice")
    with pytest.raises(NotFoundError):
        service.mark_as_read("missing", "alice")


def test_recent_for_user_degrades_when_one_channel_fails(service, notification_store, monkeypatch):
    mine = service.send_targeted("for alice", "alice", "admin")

    def _fail(limit):
        raise StoreUnavailableError("global channel down")

    monkeypatch.setattr(notification_store, "list_global", _fail)
    assert [n.id for n in service.recent_for_user("alice")] == [mine]


def test_recent_for_user_fails_when_both_channels_fail(service, notification_store):
    notification_store.available = False
    with pytest.raises(StoreUnavailableError):
        service.recent_for_user("alice")
