"""
時鐘 / 計時器

唯一接觸實際排程的地方。Coordinator 在每個期數邊界排一個延遲回呼，
新排的回呼會取代尚未執行的那一個
"""
from datetime import datetime, timezone
from typing import Callable, Optional
import logging
import threading

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """不含時區的 UTC 時間（SQLite 的 DateTime 欄位不保存 tzinfo）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimerDriver:
    """以 threading.Timer 實作，最多只保留一個待執行的回呼"""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Optional[threading.Timer] = None

    def schedule(self, delay_seconds: float, callback: Callable[[], None], name: str = "timer") -> None:
        """
        在 delay_seconds 秒後執行 callback（負數視為 0）

        注意：
            - 尚未執行的回呼會先被取消
            - 回呼拋出的異常在這裡記錄，因為 timer thread 沒有呼叫者
        """
        delay = max(0.0, delay_seconds)
        timer = threading.Timer(delay, self._run, args=(name, callback))
        timer.daemon = True
        timer.name = name

        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
            self._pending = timer
            timer.start()

        logger.debug("Armed %s in %.3fs", name, delay)

    def cancel(self) -> None:
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None and self._pending.is_alive()

    def _run(self, name: str, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Timer callback %s failed", name)
