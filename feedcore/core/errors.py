# feedcore/core/errors.py
"""
feedcore 전역에서 사용하는 예외 계층.

- ValidationError / AuthorizationError / NotFoundError 는 호출자에게 그대로 전달되어
  UI 가 조치 가능한 메시지를 보여줄 수 있도록 합니다.
- StoreUnavailableError 는 백엔드 저장소(Firestore)에 접근할 수 없을 때 사용합니다.
- DataQualityAnomaly 는 예외로 던지지 않고 로그로만 남기는 데이터 품질 이상 기록입니다.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

anomaly_logger = logging.getLogger('feedcore.data_quality')


class FeedCoreError(Exception):
    """모든 도메인 예외의 기반 클래스. API 계층에서 error_code / status_code 로 변환됩니다."""
    error_code = "FEEDCORE_ERROR"
    status_code = 500
    default_message = "요청을 처리하는 중 오류가 발생했습니다."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error_code": self.error_code, "message": self.message}


class ValidationError(FeedCoreError):
    """필수 콘텐츠/식별자가 누락된 경우. 쓰기 전에 거부됩니다."""
    error_code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "요청 데이터가 올바르지 않습니다."


class AuthorizationError(FeedCoreError):
    """작성자 또는 관리자가 아닌 사용자가 보호된 작업을 시도한 경우."""
    error_code = "FORBIDDEN"
    status_code = 403
    default_message = "이 작업을 수행할 권한이 없습니다."


class NotFoundError(FeedCoreError):
    error_code = "NOT_FOUND"
    status_code = 404
    default_message = "요청한 리소스를 찾을 수 없습니다."


class StoreUnavailableError(FeedCoreError):
    error_code = "STORE_UNAVAILABLE"
    status_code = 503
    default_message = "데이터 저장소에 연결할 수 없습니다. 잠시 후 다시 시도해 주세요."


@dataclass
class DataQualityAnomaly:
    """
    잘못된 타임스탬프, 채널 간 ID 충돌 등 치명적이지 않은 데이터 이상 기록.
    호출자에게 예외로 전달되지 않습니다.
    """
    kind: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)


def report_anomaly(kind: str, message: str, **context: Any) -> DataQualityAnomaly:
    """데이터 품질 이상을 경고 로그로 남기고 기록 객체를 반환합니다."""
    anomaly = DataQualityAnomaly(kind=kind, message=message, context=context)
    anomaly_logger.warning(f"[{kind}] {message} {context}")
    return anomaly
