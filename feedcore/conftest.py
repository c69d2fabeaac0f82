# feedcore/conftest.py
"""
pytest 공용 픽스처. 모든 테스트는 인메모리 저장소와 조작 가능한 시계를 사용합니다.
"""

from datetime import datetime, timedelta, timezone

import pytest
from flask_jwt_extended import create_access_token

from feedcore.models.user import UserProfile
from feedcore.repositories.memory import (
    InMemoryContentRepository, InMemoryNotificationStore, InMemoryUserDirectory
)


class FakeClock:
    """테스트에서 시간을 직접 움직이기 위한 시계"""

    def __init__(self, start=None):
        self.current = start or datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users(clock):
    directory = InMemoryUserDirectory(clock)
    directory.put_profile(UserProfile(uid="alice", display_name="Alice", photo_url="https://img.example/alice.png"))
    directory.put_profile(UserProfile(uid="bob", display_name="Bob"))
    directory.put_profile(UserProfile(uid="admin", display_name="Admin", is_admin=True))
    return directory


@pytest.fixture
def content_repo(users, clock):
    return InMemoryContentRepository(users, clock)


@pytest.fixture
def notification_store(clock):
    return InMemoryNotificationStore(clock)


# --- Flask 앱 ---

@pytest.fixture
def app():
    from feedcore import create_app

    app = create_app('testing')
    app.services['users'].put_profile(UserProfile(uid="alice", display_name="Alice"))
    app.services['users'].put_profile(UserProfile(uid="bob", display_name="Bob"))
    app.services['users'].put_profile(UserProfile(uid="admin", display_name="Admin", is_admin=True))
    yield app
    app.services['notification_aggregator'].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """사용자 ID로 Authorization 헤더를 만드는 함수를 돌려줍니다."""
    def _headers(user_id):
        with app.app_context():
            token = create_access_token(identity=user_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers
