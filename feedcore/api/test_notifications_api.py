# feedcore/api/test_notifications_api.py
from datetime import datetime, timezone


def test_admin_sends_and_user_reads(client, auth_headers):
    admin, alice = auth_headers("admin"), auth_headers("alice")

    global_response = client.post('/api/notifications/global', json={"message": "점검 안내"}, headers=admin)
    assert global_response.status_code == 201
    targeted_response = client.post('/api/notifications/targeted',
                                    json={"message": "환영합니다", "target_user_id": "alice"}, headers=admin)
    assert targeted_response.status_code == 201
    targeted_id = targeted_response.get_json()['id']

    listed = client.get('/api/notifications', headers=alice).get_json()
    assert [n['message'] for n in listed['notifications']] == ["환영합니다", "점검 안내"]
    assert listed['unread_count'] == 1
    assert listed['notifications'][1]['is_read'] is None
    assert listed['notifications'][0]['created_at'].endswith("Z")

    assert client.post(f'/api/notifications/{targeted_id}/read', headers=alice).status_code == 204
    assert client.get('/api/notifications', headers=alice).get_json()['unread_count'] == 0


def test_non_admin_cannot_send(client, auth_headers):
    response = client.post('/api/notifications/global', json={"message": "spam"}, headers=auth_headers("bob"))
    assert response.status_code == 403


def test_send_validation(client, auth_headers):
    admin = auth_headers("admin")
    assert client.post('/api/notifications/global', json={}, headers=admin).status_code == 400
    assert client.post('/api/notifications/targeted', json={"message": "hi"}, headers=admin).status_code == 400


def test_mark_read_errors(client, auth_headers):
    admin = auth_headers("admin")
    global_id = client.post('/api/notifications/global', json={"message": "공지"}, headers=admin).get_json()['id']
    targeted_id = client.post('/api/notifications/targeted',
                              json={"message": "hi", "target_user_id": "alice"}, headers=admin).get_json()['id']

    assert client.post(f'/api/notifications/{global_id}/read', headers=auth_headers("alice")).status_code == 400
    assert client.post(f'/api/notifications/{targeted_id}/read', headers=auth_headers("bob")).status_code == 403
    assert client.post('/api/notifications/missing/read', headers=auth_headers("alice")).status_code == 404


def test_notification_with_bad_timestamp_is_skipped(app, client, auth_headers):
    store = app.services['notification_store']
    store.put_raw("broken", {"message": "broken", "is_global": True, "created_at": "??"})
    store.put_raw("legacy", {"message": "legacy", "is_global": True,
                             "created_at": {"seconds": int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()),
                                            "nanoseconds": 0}})

    listed = client.get('/api/notifications', headers=auth_headers("alice")).get_json()
    assert [n['id'] for n in listed['notifications']] == ["legacy"]
    assert listed['notifications'][0]['created_at'] == "2024-01-01T00:00:00Z"


def test_stream_pushes_merged_list_and_releases_subscription(app, client, auth_headers):
    app.config['NOTIFICATION_STREAM_KEEPALIVE_SECONDS'] = 1
    aggregator = app.services['notification_aggregator']

    response = client.get('/api/notifications/stream', headers=auth_headers("alice"))
    assert response.status_code == 200
    assert response.mimetype == 'text/event-stream'
    assert aggregator.active_count() == 1

    chunks = response.iter_encoded()
    assert next(chunks) == b": connected\n\n"
    assert next(chunks).startswith(b"event: notifications\n")

    response.close()
    assert aggregator.active_count() == 0
