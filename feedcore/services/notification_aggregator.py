# feedcore/services/notification_aggregator.py
"""
전체 공지와 사용자 대상 알림, 두 개의 독립적인 실시간 구독을 하나의 업데이트 스트림으로 합칩니다.

구조:
- 각 채널의 구독(watch)은 생산자로서 배치/오류 이벤트를 하나의 큐에 넣기만 합니다.
- 구독마다 하나의 소비자 스레드가 큐를 비우며 NotificationMerger 를 소유하고,
  배치를 반영할 때마다 정렬된 목록으로 on_update 를 호출합니다.
- 한 채널이 실패해도 그 채널만 ERROR 상태가 되고, 다른 채널은 계속 전달됩니다.
"""

import logging
import queue
import threading
from enum import Enum
from functools import partial
from typing import Callable, Dict, List, Optional

from feedcore.core.errors import ValidationError
from feedcore.models.notification import Notification, NotificationChannel
from feedcore.repositories.base import NotificationStore, WatchHandle
from feedcore.services.notification_merger import NotificationMerger

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[List[Notification]], None]

_BATCH = "batch"
_ERROR = "error"
_STOP = "stop"


class ChannelState(Enum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    ERROR = "error"
    UNSUBSCRIBED = "unsubscribed"


class NotificationSubscription:
    """
    한 사용자에 대한 (전체, 대상) 구독 쌍.
    호출하거나 unsubscribe() 하면 두 채널을 모두 해제하며, 두 번째 호출부터는 아무 일도 하지 않습니다.
    """
    def __init__(self, store: NotificationStore, user_id: str, on_update: UpdateCallback,
                 fetch_limit: int, on_closed: Optional[Callable[['NotificationSubscription'], None]] = None,
                 shutdown_timeout: float = 5.0):
        self.user_id = user_id
        self._store = store
        self._on_update = on_update
        self._fetch_limit = fetch_limit
        self._on_closed = on_closed
        self._shutdown_timeout = shutdown_timeout
        self._events: queue.Queue = queue.Queue()
        self._merger = NotificationMerger()
        self._states: Dict[NotificationChannel, ChannelState] = {
            channel: ChannelState.IDLE for channel in NotificationChannel
        }
        self._handles: Dict[NotificationChannel, WatchHandle] = {}
        self._lock = threading.Lock()
        self._closed = False
        self._consumer = threading.Thread(
            target=self._consume, name=f"notifications-{user_id}", daemon=True
        )

    # --- 상태 조회 ---

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def merger(self) -> NotificationMerger:
        return self._merger

    def state(self, channel: NotificationChannel) -> ChannelState:
        with self._lock:
            return self._states[channel]

    def states(self) -> Dict[NotificationChannel, ChannelState]:
        with self._lock:
            return dict(self._states)

    # --- 수명 주기 ---

    def start(self) -> 'NotificationSubscription':
        self._consumer.start()
        self._open(NotificationChannel.GLOBAL, lambda on_batch, on_error:
                   self._store.watch_global(self._fetch_limit, on_batch, on_error))
        self._open(NotificationChannel.TARGETED, lambda on_batch, on_error:
                   self._store.watch_targeted(self.user_id, self._fetch_limit, on_batch, on_error))
        return self

    def _open(self, channel: NotificationChannel, opener) -> None:
        self._set_state(channel, ChannelState.SUBSCRIBING)
        try:
            handle = opener(partial(self._push, _BATCH, channel), partial(self._push, _ERROR, channel))
        except Exception as e:
            logger.error(f"{channel.value} 알림 채널 구독 실패 (user_id: {self.user_id}): {e}", exc_info=True)
            self._set_state(channel, ChannelState.ERROR)
            return

        with self._lock:
            if not self._closed and self._states[channel] is not ChannelState.ERROR:
                self._handles[channel] = handle
                return
        # 구독 설정 도중 해제되었거나 이미 오류가 난 채널
        self._release_handle(channel, handle)

    def unsubscribe(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            handles = list(self._handles.items())
            self._handles.clear()
            for channel in self._states:
                self._states[channel] = ChannelState.UNSUBSCRIBED

        for channel, handle in handles:
            self._release_handle(channel, handle)

        # 남은 이벤트를 먼저 비운 뒤 종료 신호를 넣습니다. 콜백 안에서 해제해도 소비자 스레드가 끝납니다.
        self._drain()
        self._events.put((_STOP, None, None))
        if self._consumer.is_alive() and threading.current_thread() is not self._consumer:
            self._consumer.join(self._shutdown_timeout)

        if self._on_closed is not None:
            self._on_closed(self)
        logger.info(f"알림 구독 해제 완료 (user_id: {self.user_id})")

    __call__ = unsubscribe

    def flush(self) -> None:
        """지금까지 큐에 들어온 이벤트가 모두 처리될 때까지 기다립니다."""
        if self._closed:
            return
        self._events.join()

    def join(self, timeout: Optional[float] = None) -> bool:
        """소비자 스레드가 끝날 때까지 기다리고, 끝났으면 True 를 반환합니다."""
        if threading.current_thread() is not self._consumer and self._consumer.is_alive():
            self._consumer.join(timeout)
        return not self._consumer.is_alive()

    # --- 생산자 측 ---

    def _push(self, kind: str, channel: NotificationChannel, payload) -> None:
        if self._closed:
            return
        if kind == _BATCH:
            payload = list(payload)
        self._events.put((kind, channel, payload))

    # --- 소비자 측 ---

    def _consume(self) -> None:
        while True:
            kind, channel, payload = self._events.get()
            try:
                if kind == _STOP:
                    return
                if self._closed:
                    return
                if kind == _ERROR:
                    self._fail_channel(channel, payload)
                    continue
                if self.state(channel) is ChannelState.ERROR:
                    continue

                self._set_state(channel, ChannelState.ACTIVE)
                visible = self._merger.apply(channel, payload)
                logger.debug(f"{channel.value} 알림 {len(payload)}건 반영, 전체 {len(visible)}건 (user_id: {self.user_id})")
                self._on_update(visible)
            except Exception as e:
                logger.error(f"알림 업데이트 처리 실패 (user_id: {self.user_id}): {e}", exc_info=True)
            finally:
                self._events.task_done()

    def _fail_channel(self, channel: NotificationChannel, error) -> None:
        """실패한 채널만 ERROR 로 전환하고 정리합니다. 다른 채널은 계속 전달됩니다."""
        logger.warning(f"{channel.value} 알림 채널 오류, 나머지 채널로 계속 전달합니다 "
                       f"(user_id: {self.user_id}): {error}")
        self._set_state(channel, ChannelState.ERROR)
        with self._lock:
            handle = self._handles.pop(channel, None)
        if handle is not None:
            self._release_handle(channel, handle)

    def _set_state(self, channel: NotificationChannel, state: ChannelState) -> None:
        with self._lock:
            if self._closed:
                return
            self._states[channel] = state

    def _release_handle(self, channel: NotificationChannel, handle: WatchHandle) -> None:
        try:
            handle.unsubscribe()
        except Exception as e:
            logger.warning(f"{channel.value} 알림 채널 해제 실패 (user_id: {self.user_id}): {e}")

    def _drain(self) -> None:
        while True:
            try:
                self._events.get_nowait()
            except queue.Empty:
                return
            self._events.task_done()


class NotificationAggregator:
    """
    구독 키마다 최대 하나의 활성 구독만 유지합니다.
    같은 키로 다시 구독하면(예: 사용자 전환) 이전 구독 쌍을 완전히 해제한 뒤 새로 구독합니다.
    """
    def __init__(self, store: NotificationStore, fetch_limit: int = 15):
        self.store = store
        self.fetch_limit = fetch_limit
        self._subscriptions: Dict[str, NotificationSubscription] = {}
        self._lock = threading.Lock()
        self._subscribe_lock = threading.RLock()

    def subscribe(self, user_id: str, on_update: UpdateCallback, key: str = "default") -> NotificationSubscription:
        if not user_id:
            raise ValidationError("알림을 구독할 사용자 ID가 필요합니다.")

        with self._subscribe_lock:
            with self._lock:
                previous = self._subscriptions.pop(key, None)
            if previous is not None:
                logger.info(f"기존 알림 구독 해제 후 재구독 (key: {key}, 이전 user_id: {previous.user_id}, "
                            f"새 user_id: {user_id})")
                previous.unsubscribe()

            subscription = NotificationSubscription(
                self.store, user_id, on_update, self.fetch_limit,
                on_closed=partial(self._release, key)
            )
            with self._lock:
                self._subscriptions[key] = subscription
            subscription.start()
        logger.info(f"알림 구독 시작 (key: {key}, user_id: {user_id})")
        return subscription

    def active(self, key: str = "default") -> Optional[NotificationSubscription]:
        with self._lock:
            return self._subscriptions.get(key)

    def active_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def close(self) -> None:
        """모든 구독을 해제합니다."""
        with self._lock:
            subscriptions = list(self._subscriptions.values())
        for subscription in subscriptions:
            subscription.unsubscribe()

    def _release(self, key: str, subscription: NotificationSubscription) -> None:
        with self._lock:
            if self._subscriptions.get(key) is subscription:
                del self._subscriptions[key]
