# feedcore/services/notification_merger.py
"""
두 알림 채널(전체/대상)에서 들어오는 배치를 하나의 목록으로 합치는 조정 단계.
전송 계층과 분리되어 있어 단독으로 테스트할 수 있습니다.
"""

from typing import Dict, Iterable, List, Set, Tuple

from feedcore.core.errors import DataQualityAnomaly, report_anomaly
from feedcore.models.notification import Notification, NotificationChannel
from feedcore.repositories.base import RawRecord
from feedcore.utils.datetime_utils import DateTimeUtils


class NotificationMerger:
    """
    ID 를 키로 하는 맵을 유지합니다.
    - 배치가 들어올 때마다 ID 기준으로 upsert 하고, created_at 내림차순 목록을 다시 만듭니다.
    - 같은 ID 가 두 채널에 모두 나타나면 나중 값이 이기며 데이터 품질 이상으로 기록합니다.
    - 타임스탬프를 해석할 수 없는 레코드는 건너뜁니다.

    스냅샷은 변경될 때마다 전체 결과를 다시 보내므로, 이상은 (종류, 알림 ID) 마다 한 번만 기록합니다.
    """
    def __init__(self):
        self._entries: Dict[str, Notification] = {}
        self._channels: Dict[str, NotificationChannel] = {}
        self._reported: Set[Tuple[str, str]] = set()
        self.anomalies: List[DataQualityAnomaly] = []

    def apply(self, channel: NotificationChannel, records: Iterable[RawRecord]) -> List[Notification]:
        for doc_id, data in records:
            parsed = DateTimeUtils.normalize_timestamp((data or {}).get('created_at'))
            if not parsed.ok:
                self._report("invalid_notification_timestamp", parsed.error, doc_id, channel=channel.value)
                continue

            previous = self._channels.get(doc_id)
            if previous is not None and previous is not channel:
                self._report(
                    "notification_channel_collision",
                    "같은 알림 ID 가 전체/대상 채널에 모두 존재합니다. 마지막 값을 사용합니다.",
                    doc_id, previous=previous.value, current=channel.value
                )

            self._entries[doc_id] = Notification.from_document(doc_id, data, parsed.value, channel)
            self._channels[doc_id] = channel
        return self.visible()

    def _report(self, kind: str, message: str, doc_id: str, **context) -> None:
        key = (kind, doc_id)
        if key in self._reported:
            return
        self._reported.add(key)
        self.anomalies.append(report_anomaly(kind, message, notification_id=doc_id, **context))

    def visible(self) -> List[Notification]:
        """created_at 내림차순, 같은 시각이면 id 오름차순"""
        ordered = sorted(self._entries.values(), key=lambda n: n.id)
        ordered.sort(key=lambda n: n.created_at, reverse=True)
        return ordered

    def __len__(self) -> int:
        return len(self._entries)
