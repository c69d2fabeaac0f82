# feedcore/core/config.py

import os # 환경 변수를 읽기 위해 사용합니다.


def _int_env(key: str, default: int) -> int:
    value = os.getenv(key)
    return int(value) if value else default


class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰 서명 키. 인증 자체는 외부 서비스가 담당하고, 여기서는 토큰의 subject 만 사용합니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    # 'firestore' 또는 'memory'. memory 는 로컬 개발과 테스트용 인메모리 저장소입니다.
    STORE_BACKEND = os.getenv('STORE_BACKEND', 'firestore')
    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')

    # 스토리 노출 기간(시간). 24시간을 표준 값으로 사용합니다.
    STORY_VISIBILITY_HOURS = _int_env('STORY_VISIBILITY_HOURS', 24)
    # 피드 한 번 로드 시 가져오는 최대 콘텐츠 수
    FEED_FETCH_LIMIT = _int_env('FEED_FETCH_LIMIT', 100)
    # 전체/개인 알림 채널별 최근 N개
    NOTIFICATION_FETCH_LIMIT = _int_env('NOTIFICATION_FETCH_LIMIT', 15)
    # 마지막 활동 시각이 이 시간(분) 안에 있으면 온라인으로 간주합니다.
    PRESENCE_WINDOW_MINUTES = _int_env('PRESENCE_WINDOW_MINUTES', 5)
    # SSE 알림 스트림 keep-alive 주기(초)
    NOTIFICATION_STREAM_KEEPALIVE_SECONDS = _int_env('NOTIFICATION_STREAM_KEEPALIVE_SECONDS', 25)


class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH', Config.FIREBASE_CREDENTIALS_PATH)


class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다. 항상 인메모리 저장소를 사용합니다."""
    TESTING = True
    DEBUG = False
    STORE_BACKEND = 'memory'
    JWT_SECRET_KEY = os.getenv('TEST_JWT_SECRET_KEY', 'feedcore-testing-secret-key-0123456789')


class ProductionConfig(Config):
    DEBUG = False


# create_app 에서 FLASK_ENV 값에 따라 설정 클래스를 선택하는 데 사용됩니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
