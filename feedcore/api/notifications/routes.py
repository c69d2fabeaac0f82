# feedcore/api/notifications/routes.py
import json
import logging
import queue
from flask import Blueprint, request, jsonify, Response, current_app, stream_with_context
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from feedcore.api.notifications.schemas import (
    GlobalNotificationCreateSchema, NotificationResponseSchema, TargetedNotificationCreateSchema
)

notifications_bp = Blueprint('notifications_bp', __name__)


def _notifications_payload(notifications):
    return {
        "notifications": NotificationResponseSchema(many=True).dump(notifications),
        "unread_count": sum(1 for n in notifications if n.is_read is False)
    }


def _sse_event(event: str, payload) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


@notifications_bp.route('', methods=['GET'])
@jwt_required()
def get_notifications():
    """
    전체 공지와 나에게 온 알림을 합친 최근 목록을 반환합니다.
    한쪽 채널 조회에 실패하면 나머지 채널 결과만으로 응답합니다.
    """
    notification_service = current_app.services['notifications']
    user_id = get_jwt_identity()
    limit = request.args.get('limit', None, type=int)
    notifications = notification_service.recent_for_user(user_id, limit)
    return jsonify(_notifications_payload(notifications)), 200


@notifications_bp.route('/global', methods=['POST'])
@jwt_required()
def send_global_notification():
    """모든 사용자에게 전체 공지를 보냅니다. (관리자 전용)"""
    notification_service = current_app.services['notifications']
    sender_id = get_jwt_identity()
    try:
        data = GlobalNotificationCreateSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    notification_id = notification_service.send_global(data['message'], sender_id)
    return jsonify({"id": notification_id}), 201


@notifications_bp.route('/targeted', methods=['POST'])
@jwt_required()
def send_targeted_notification():
    """특정 사용자에게 알림을 보냅니다. (관리자 전용)"""
    notification_service = current_app.services['notifications']
    sender_id = get_jwt_identity()
    try:
        data = TargetedNotificationCreateSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    notification_id = notification_service.send_targeted(data['message'], data['target_user_id'], sender_id)
    return jsonify({"id": notification_id}), 201


@notifications_bp.route('/<string:notification_id>/read', methods=['POST'])
@jwt_required()
def mark_notification_read(notification_id: str):
    notification_service = current_app.services['notifications']
    user_id = get_jwt_identity()
    notification_service.mark_as_read(notification_id, user_id)
    return Response(status=204)


@notifications_bp.route('/stream', methods=['GET'])
@jwt_required()
def stream_notifications():
    """
    Server-Sent Events 로 알림 목록 변경을 실시간 전달합니다.
    - 연결마다 NotificationAggregator 구독을 하나 만들고, 연결이 끊기면 해제합니다.
    - 같은 사용자가 새로 연결하면 이전 연결의 구독은 해제되고 그 스트림은 종료됩니다.
    """
    aggregator = current_app.services['notification_aggregator']
    user_id = get_jwt_identity()
    keepalive_seconds = current_app.config['NOTIFICATION_STREAM_KEEPALIVE_SECONDS']

    updates = queue.Queue()
    subscription = aggregator.subscribe(user_id, updates.put, key=f"stream:{user_id}")

    @stream_with_context
    def generate():
        try:
            yield ": connected\n\n"
            while not subscription.closed:
                try:
                    notifications = updates.get(timeout=keepalive_seconds)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                yield _sse_event("notifications", _notifications_payload(notifications))
        finally:
            subscription.unsubscribe()
            logging.info(f"알림 스트림 종료 (user_id: {user_id})")

    return Response(generate(), mimetype='text/event-stream',
                    headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'})
