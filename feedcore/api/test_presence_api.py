# feedcore/api/test_presence_api.py
from datetime import datetime, timedelta, timezone


def test_online_count_and_heartbeat(app, client, auth_headers):
    assert client.get('/api/presence/online-count').get_json()['online_count'] == 0

    response = client.post('/api/presence/heartbeat', headers=auth_headers("alice"))
    assert response.get_json() == {"recorded": True}
    assert client.get('/api/presence/online-count').get_json()['online_count'] == 1

    # 프로필이 없는 사용자는 기록되지 않지만 오류로 응답하지 않습니다.
    ghost = client.post('/api/presence/heartbeat', headers=auth_headers("ghost"))
    assert ghost.status_code == 200
    assert ghost.get_json() == {"recorded": False}

    users = app.services['users']
    users.available = False
    assert client.get('/api/presence/online-count').status_code == 503
    users.available = True

    profile = users.get_profile("alice")
    profile.last_seen_at = datetime.now(timezone.utc) - timedelta(minutes=10)
    users.put_profile(profile)
    assert client.get('/api/presence/online-count').get_json()['online_count'] == 0
