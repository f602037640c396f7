"""
services/notifier.py — 사용자 알림(토스트) 전달 채널

컨트롤러는 실패를 예외로 올리지 않고 이 싱크로 보고한다.
"""

import logging
import threading
import time
from typing import Dict, List, Protocol

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, level: str, message: str) -> None: ...


class LoggingSink:
    """알림을 로그로만 남긴다."""

    def notify(self, level: str, message: str) -> None:
        log_level = logging.ERROR if level == "error" else logging.INFO
        logger.log(log_level, f"[알림:{level}] {message}")


class ToastQueue:
    """
    알림을 쌓아두었다가 화면이 가져갈 때 비워준다 (GET /api/notifications).
    오래된 알림은 최대 개수를 넘으면 버린다.
    """

    def __init__(self, max_items: int = 50):
        self._lock = threading.Lock()
        self._items: List[Dict[str, object]] = []
        self.max_items = max_items

    def notify(self, level: str, message: str) -> None:
        with self._lock:
            self._items.append({"level": level, "message": message, "ts": time.time()})
            if len(self._items) > self.max_items:
                del self._items[: len(self._items) - self.max_items]
        LoggingSink().notify(level, message)

    def drain(self) -> List[Dict[str, object]]:
        with self._lock:
            items, self._items = self._items, []
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
