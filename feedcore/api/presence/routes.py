# feedcore/api/presence/routes.py
from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

presence_bp = Blueprint('presence_bp', __name__)


@presence_bp.route('/online-count', methods=['GET'])
@jwt_required(optional=True)
def get_online_count():
    """
    최근 활동 시각 기준 온라인 사용자 수.
    시점 스냅샷이므로 화면에서는 주기적으로 다시 호출합니다.
    """
    presence_service = current_app.services['presence']
    return jsonify({
        "online_count": presence_service.count_online(),
        "window_minutes": current_app.config['PRESENCE_WINDOW_MINUTES']
    }), 200


@presence_bp.route('/heartbeat', methods=['POST'])
@jwt_required()
def heartbeat():
    """로그인한 사용자의 마지막 활동 시각을 갱신합니다. 실패해도 200 으로 응답합니다."""
    presence_service = current_app.services['presence']
    recorded = presence_service.record_activity(get_jwt_identity())
    return jsonify({"recorded": recorded}), 200
