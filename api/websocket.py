"""
WebSocket 即時推播：/ws

每個連線有自己的 WebSocketObserver。Hub 從執行期數轉換的執行緒放進佇列，
event loop 上的 pump task 再把佇列內容送到 socket
"""
import asyncio
import contextlib
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from core.broadcast_hub import Observer

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


class WebSocketObserver(Observer):
    """
    綁定在 socket 所屬 event loop 上的 asyncio.Queue 接收端

    offer() 可以從任何執行緒呼叫；透過 call_soon_threadsafe 交給 loop，不會阻塞呼叫者
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = 100):
        super().__init__()
        self._loop = loop
        self._queue: "asyncio.Queue[dict]" = asyncio.Queue(maxsize=maxsize)

    @property
    def ready(self) -> bool:
        return not self._closed and not self._loop.is_closed()

    def _deliver(self, message: dict) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._put, message)
        except RuntimeError:
            # ready 檢查之後 loop 才關閉
            return False
        return True

    def _put(self, message: dict) -> None:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("WebSocket observer queue full, dropping %s", message.get("type"))

    async def get(self) -> dict:
        return await self._queue.get()


async def _pump(websocket: WebSocket, observer: WebSocketObserver, coordinator) -> None:
    """
    把佇列中的訊息送到 socket

    送出失敗（客戶端已斷線）時關閉並移除觀察者，之後的廣播直接略過它
    """
    while True:
        message = await observer.get()
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.info(f"WebSocket send failed, detaching observer: {e}")
            observer.close()
            coordinator.detach_observer(observer)
            return


@router.websocket("/ws")
async def period_feed(websocket: WebSocket):
    """
    即時期數推播

    訊息：
        {"type": "gameState", "period": {...}}    連線時一次
        {"type": "periodStart", "period": {...}}  廣播
        {"type": "periodEnd", "period": {...}}    廣播

    客戶端送來的訊息只讀取不處理，用來接收斷線訊號
    """
    coordinator = websocket.app.state.coordinator
    await websocket.accept()

    observer = WebSocketObserver(
        asyncio.get_running_loop(),
        maxsize=coordinator.settings.observer_queue_size
    )
    # attach 會讀資料庫，不放在 event loop 上執行
    await run_in_threadpool(coordinator.attach_observer, observer)
    sender = asyncio.create_task(_pump(websocket, observer, coordinator))
    logger.info("WebSocket client connected")

    try:
        while True:
            data = await websocket.receive_text()
            logger.debug(f"WebSocket message received: {data}")
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    finally:
        coordinator.detach_observer(observer)
        observer.close()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender
