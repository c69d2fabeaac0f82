# feedcore/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import logging
from datetime import timedelta
from flask import Flask, jsonify
from marshmallow import ValidationError
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException
import firebase_admin
from firebase_admin import credentials, firestore

# - 설정 및 예외
from feedcore.core.config import config_by_name
from feedcore.core.errors import FeedCoreError

# - API 블루프린트
from feedcore.api.posts.routes import posts_bp
from feedcore.api.notifications.routes import notifications_bp
from feedcore.api.presence.routes import presence_bp

# - 저장소 및 서비스
from feedcore.repositories.firestore import (
    FirestoreContentRepository, FirestoreNotificationStore, FirestoreUserDirectory
)
from feedcore.repositories.memory import (
    InMemoryContentRepository, InMemoryNotificationStore, InMemoryUserDirectory
)
from feedcore.services import (
    EngagementLedger, FeedAggregator, NotificationAggregator, NotificationService, PresenceService
)


def _init_stores(app):
    """STORE_BACKEND 설정에 따라 (사용자 디렉터리, 콘텐츠 저장소, 알림 저장소)를 만듭니다."""
    backend = app.config['STORE_BACKEND']

    if backend == 'memory':
        user_directory = InMemoryUserDirectory()
        logging.info("In-memory store initialized")
        return user_directory, InMemoryContentRepository(user_directory), InMemoryNotificationStore()

    if backend != 'firestore':
        raise ValueError(f"지원하지 않는 STORE_BACKEND 입니다: {backend}")

    if not firebase_admin._apps:
        cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
        if not cred_path or not os.path.exists(cred_path):
            raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
        firebase_admin.initialize_app(credentials.Certificate(cred_path))

    db = firestore.client()
    user_directory = FirestoreUserDirectory(db)
    logging.info("Firestore store initialized successfully")
    return user_directory, FirestoreContentRepository(db, user_directory), FirestoreNotificationStore(db)


def create_app(config_name=None):
    """
    Flask 애플리케이션 팩토리 함수.
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 확장 기능 및 저장소 초기화
    # =====================================================================================
    JWTManager(app)

    try:
        user_directory, content_repository, notification_store = _init_stores(app)
    except Exception as e:
        logging.error(f"Failed to initialize store: {e}")
        raise

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    # 5-1. 저장소
    app.services['users'] = user_directory
    app.services['content'] = content_repository
    app.services['notification_store'] = notification_store

    # 5-2. 저장소를 주입받는 도메인 서비스
    app.services['engagement'] = EngagementLedger(content_repository)
    app.services['feed'] = FeedAggregator(
        content_repository,
        visibility_window=timedelta(hours=app.config['STORY_VISIBILITY_HOURS'])
    )
    app.services['notifications'] = NotificationService(
        notification_store, user_directory,
        fetch_limit=app.config['NOTIFICATION_FETCH_LIMIT']
    )
    app.services['notification_aggregator'] = NotificationAggregator(
        notification_store, fetch_limit=app.config['NOTIFICATION_FETCH_LIMIT']
    )
    app.services['presence'] = PresenceService(
        user_directory, window_minutes=app.config['PRESENCE_WINDOW_MINUTES']
    )

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(posts_bp, url_prefix='/api/posts')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(presence_bp, url_prefix='/api/presence')

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(FeedCoreError)
    def handle_feedcore_error(err):
        if err.status_code >= 500:
            logging.error(f"{err.error_code}: {err.message}", exc_info=True)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # 라우팅 404/405 등 HTTP 예외는 그대로 응답합니다.
        if isinstance(err, HTTPException):
            return err
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
