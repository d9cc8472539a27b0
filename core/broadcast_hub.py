"""
Broadcast Hub：把生命週期事件推播給所有連線中的觀察者

不認識期數。每個觀察者有自己的佇列，broadcast 只負責放進佇列，
慢的或斷線的觀察者不會拖住期數轉換或其他觀察者
"""
from typing import Optional, Set
import logging
import queue
import threading

logger = logging.getLogger(__name__)


class Observer:
    """
    送達或略過（deliver-or-skip）的接收端

    子類別實作 ready 與 _deliver。offer 沒送達時回傳 False，不拋異常
    """

    def __init__(self):
        self._closed = False

    @property
    def ready(self) -> bool:
        return not self._closed

    def close(self) -> None:
        self._closed = True

    def offer(self, message: dict) -> bool:
        if not self.ready:
            return False
        return self._deliver(message)

    def _deliver(self, message: dict) -> bool:
        raise NotImplementedError


class QueueObserver(Observer):
    """執行緒安全的佇列接收端（同一個 process 內使用）"""

    def __init__(self, maxsize: int = 0):
        super().__init__()
        self.queue: "queue.Queue[dict]" = queue.Queue(maxsize=maxsize)

    def _deliver(self, message: dict) -> bool:
        try:
            self.queue.put_nowait(message)
            return True
        except queue.Full:
            logger.warning("Observer queue full, dropping %s", message.get("type"))
            return False

    def drain(self) -> list:
        """取出佇列中所有訊息（不阻塞）"""
        messages = []
        while True:
            try:
                messages.append(self.queue.get_nowait())
            except queue.Empty:
                return messages


class BroadcastHub:
    """觀察者註冊表 + 送達或略過的廣播"""

    def __init__(self):
        self._lock = threading.Lock()
        self._observers: Set[Observer] = set()

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def attach(self, observer: Observer, initial: Optional[dict] = None) -> None:
        """
        註冊觀察者，先送出 initial

        initial 在加入集合之前就放進佇列，所以一定排在任何廣播之前
        """
        if initial is not None:
            self._send(observer, initial)
        with self._lock:
            self._observers.add(observer)
        logger.info("Observer attached (%d connected)", self.observer_count)

    def detach(self, observer: Observer) -> None:
        with self._lock:
            self._observers.discard(observer)
        logger.info("Observer detached (%d connected)", self.observer_count)

    def broadcast(self, message: dict) -> int:
        """
        把 message 交給每個已註冊的觀察者

        流程：
        1. 在 lock 內複製觀察者集合
        2. 在 lock 外逐一送出（廣播期間 attach/detach 都安全）
        3. 未就緒或送出失敗的觀察者直接略過

        返回：
            成功收下訊息的觀察者數量
        """
        with self._lock:
            observers = list(self._observers)

        delivered = sum(1 for observer in observers if self._send(observer, message))
        logger.debug(
            "Broadcast %s to %d/%d observers", message.get("type"), delivered, len(observers)
        )
        return delivered

    @staticmethod
    def _send(observer: Observer, message: dict) -> bool:
        try:
            return observer.offer(message)
        except Exception as e:
            logger.debug("Skipping observer after send failure: %s", e)
            return False
