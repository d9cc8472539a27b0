"""
Round Coordinator：驅動期數生命週期

職責：
1. 持有進行中期數的 handle，並排定其結束計時器
2. 每期只執行一次結束轉換（開獎、寫入、結算）
3. 冷卻時間後開啟下一期
4. 透過 BroadcastHub 推播 gameState / periodStart / periodEnd

每個 application 一個實例，明確建立後經由 app.state 交給 request handler。

**並發安全**：
所有轉換、下注、觀察者註冊都在同一把 lock 之下，
與結束計時器同時到達的下注只會看到「進行中」或「已結束」其中一種，不會看到一半。
重複觸發的計時器是 no-op，因為結束轉換會先檢查資料庫是否已有開獎結果
"""
from datetime import datetime, timedelta
from functools import partial
from typing import Callable, List, Optional
import logging
import threading

from sqlalchemy.orm import Session

from models import RoundPhase
from schemas import BetResponse, GameStateResponse, PeriodEvent, PeriodSnapshot
from core.broadcast_hub import BroadcastHub, Observer
from core.round_manager import RoundManager, betting_closed
from core.round_store import RoundStore
from core.state_machine import RoundStateMachine
from core.timer import TimerDriver, utcnow
from database import Settings
from services.outcome_service import Outcome, draw_outcome
from services.settlement_service import SettlementReport

logger = logging.getLogger(__name__)


class RoundCoordinator:
    """期數生命週期狀態機 + 排程 + 推播"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        hub: BroadcastHub,
        timer: TimerDriver,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
        draw: Callable[[], Outcome] = draw_outcome
    ):
        self._session_factory = session_factory
        self.hub = hub
        self._timer = timer
        self.settings = settings
        self._clock = clock
        self._draw = draw

        self._lock = threading.Lock()
        self._phase: Optional[RoundPhase] = None
        self._active: Optional[PeriodSnapshot] = None
        self._stopped = False

    # ============ Configuration ============

    @property
    def round_duration(self) -> timedelta:
        return timedelta(milliseconds=self.settings.round_duration_ms)

    @property
    def lock_window(self) -> timedelta:
        return timedelta(milliseconds=self.settings.lock_window_ms)

    @property
    def cooldown(self) -> timedelta:
        return timedelta(milliseconds=self.settings.cooldown_ms)

    # ============ Lifecycle ============

    def start(self) -> PeriodSnapshot:
        """
        啟動（或重新啟動）生命週期

        流程：
        1. 結算已開獎但仍有未結算下注的期數（重啟後的復原）
        2. 取得進行中的期數，沒有就從現在開始建立一期
        3. 依 end_time 排定結束計時器；已經過期（停機後重啟）則立即結束

        返回：
            進行中期數的 snapshot
        """
        with self._lock:
            self._stopped = False
            self._phase = None
            self._recover_pending_settlements()

            now = self._clock()
            with self._session_factory() as db:
                round_obj = RoundManager.open_round(db, now, self.round_duration)
                snapshot = PeriodSnapshot.model_validate(round_obj)

            self._active = snapshot
            self._phase = RoundStateMachine.transition(None, RoundPhase.OPEN)
            self._arm_close(snapshot, now)

        logger.info(f"Round coordinator started on round {snapshot.id}")
        return snapshot

    def stop(self) -> None:
        """取消待執行的計時器；之後才到的回呼一律忽略"""
        with self._lock:
            self._stopped = True
            self._timer.cancel()
        logger.info("Round coordinator stopped")

    def close_round(self, round_id: Optional[str] = None) -> Optional[SettlementReport]:
        """
        結束轉換：OPEN/LOCKED -> SETTLING -> COOLDOWN

        流程：
        1. 防護：已開獎且沒有未結算下注的期數直接返回（重複觸發或重入）
        2. 開獎並 commit（結算失敗後的重新驅動會跳過，保留已存的結果）
        3. 在第二個 transaction 中結算未結算的下注
        4. 排定冷卻後的下一期
        5. 推播 periodEnd（已開獎的 snapshot）

        步驟 2 或 3 失敗時異常往上拋，不排下一期，階段停在 SETTLING。
        是否自動重試由 settings.retry_delay_ms 決定

        參數：
            round_id: 要結束的期數（預設為進行中的期數）

        返回：
            SettlementReport；no-op 時為 None
        """
        with self._lock:
            if self._stopped:
                logger.info("Coordinator stopped, ignoring close request")
                return None

            round_id = round_id or (self._active.id if self._active else None)
            if round_id is None:
                return None

            with self._session_factory() as db:
                round_obj = RoundStore.get_round(db, round_id)
                drawn = round_obj.is_settled
                if drawn and not RoundStore.has_pending_bets(db, round_id):
                    logger.info(f"Round {round_id} already settled, ignoring duplicate close")
                    return None

            self._phase = RoundStateMachine.transition(self._phase, RoundPhase.SETTLING)

            try:
                if not drawn:
                    outcome = self._draw()
                    with self._session_factory() as db:
                        RoundManager.record_outcome(db, round_id, outcome)
                else:
                    logger.warning(f"Round {round_id} already drawn, resuming settlement")

                with self._session_factory() as db:
                    report = RoundManager.settle_round(db, round_id)

                with self._session_factory() as db:
                    snapshot = PeriodSnapshot.model_validate(RoundStore.get_round(db, round_id))
            except Exception as e:
                logger.error(f"Close transition failed for round {round_id}: {e}")
                self._schedule_retry(partial(self.close_round, round_id), f"close-{round_id}")
                raise

            if self._active and self._active.id == round_id:
                self._active = None
            self._phase = RoundStateMachine.transition(self._phase, RoundPhase.COOLDOWN)
            self._timer.schedule(
                self.cooldown.total_seconds(),
                self._on_cooldown_elapsed,
                name="next-round"
            )
            self.hub.broadcast(PeriodEvent(type="periodEnd", period=snapshot).to_message())

        return report

    def start_next_round(self) -> Optional[PeriodSnapshot]:
        """
        開啟下一期：COOLDOWN -> OPEN

        新期數 commit 且結束計時器排好之後，才推播 periodStart

        返回：
            新期數的 snapshot；已有進行中的期數時為 None
        """
        with self._lock:
            if self._stopped:
                logger.info("Coordinator stopped, not opening a new round")
                return None
            if self._active is not None:
                logger.info(f"Round {self._active.id} already open, ignoring start request")
                return None

            now = self._clock()
            try:
                with self._session_factory() as db:
                    round_obj = RoundManager.open_round(db, now, self.round_duration)
                    snapshot = PeriodSnapshot.model_validate(round_obj)
            except Exception as e:
                logger.error(f"Failed to open next round: {e}")
                self._schedule_retry(self.start_next_round, "next-round")
                raise

            self._active = snapshot
            self._arm_close(snapshot, now)
            self._phase = RoundStateMachine.transition(self._phase, RoundPhase.OPEN)
            self.hub.broadcast(PeriodEvent(type="periodStart", period=snapshot).to_message())

        return snapshot

    # ============ Requests ============

    def place_bet(self, user_id: int, bet_type, value: str, amount: float) -> BetResponse:
        """
        對進行中的期數下注

        下注時間以資料庫中的時間與伺服器時鐘判斷

        異常：
            InvalidInput, BettingClosed, UserNotFound, InsufficientBalance,
            StoreUnavailable
        """
        with self._lock:
            with self._session_factory() as db:
                bet = RoundManager.place_bet(
                    db,
                    user_id,
                    bet_type,
                    value,
                    amount,
                    now=self._clock(),
                    lock_window=self.lock_window
                )
                return BetResponse.model_validate(bet)

    @property
    def phase(self) -> Optional[RoundPhase]:
        """目前階段；OPEN 在不接受下注時（鎖定期或尚未開始）回報為 LOCKED"""
        phase, active = self._phase, self._active
        if phase == RoundPhase.OPEN and active is not None:
            if betting_closed(active, self._clock(), self.lock_window):
                return RoundPhase.LOCKED
        return phase

    def current_snapshot(self) -> Optional[PeriodSnapshot]:
        """資料庫中最新的一期：進行中的期數，冷卻期間則為剛開獎的那期"""
        with self._lock:
            return self._read_snapshot()

    def game_state(self) -> GameStateResponse:
        with self._lock:
            snapshot = self._read_snapshot()
            phase = self.phase

        remaining = 0
        if snapshot is not None and snapshot.is_active:
            remaining = max(0, int((snapshot.end_time - self._clock()).total_seconds() * 1000))
        return GameStateResponse(phase=phase, remaining_ms=remaining, period=snapshot)

    # ============ Observers ============

    def attach_observer(self, observer: Observer) -> None:
        """
        註冊觀察者並送出 gameState snapshot

        snapshot 在 coordinator lock 內從資料庫讀取，
        觀察者不會漏掉任何一次轉換
        """
        with self._lock:
            snapshot = self._read_snapshot()
            initial = None
            if snapshot is not None:
                initial = PeriodEvent(type="gameState", period=snapshot).to_message()
            self.hub.attach(observer, initial)

    def detach_observer(self, observer: Observer) -> None:
        self.hub.detach(observer)

    # ============ Internals ============

    def _read_snapshot(self) -> Optional[PeriodSnapshot]:
        with self._session_factory() as db:
            round_obj = RoundStore.get_active_round(db) or RoundStore.get_latest_round(db)
            if round_obj is None:
                return None
            return PeriodSnapshot.model_validate(round_obj)

    def _arm_close(self, snapshot: PeriodSnapshot, now: datetime) -> None:
        delay = (snapshot.end_time - now).total_seconds()
        if delay <= 0:
            logger.warning(f"Round {snapshot.id} ended {-delay:.1f}s ago, closing immediately")
        self._timer.schedule(
            max(0.0, delay),
            partial(self._on_round_end, snapshot.id),
            name=f"close-{snapshot.id}"
        )

    def _on_round_end(self, round_id: str) -> None:
        self.close_round(round_id)

    def _on_cooldown_elapsed(self) -> None:
        self.start_next_round()

    def _schedule_retry(self, callback: Callable[[], object], name: str) -> None:
        delay_ms = self.settings.retry_delay_ms
        if delay_ms is None:
            logger.critical(f"{name} failed; auto-retry disabled, operator intervention required")
            return
        logger.warning(f"Retrying {name} in {delay_ms} ms")
        self._timer.schedule(delay_ms / 1000, callback, name=f"retry-{name}")

    def _recover_pending_settlements(self) -> List[SettlementReport]:
        """結算開獎後被中斷的期數（例如程序重啟）"""
        with self._session_factory() as db:
            round_ids = [r.id for r in RoundStore.get_rounds_pending_settlement(db)]

        reports = []
        for round_id in round_ids:
            with self._session_factory() as db:
                report = RoundManager.settle_round(db, round_id)
            logger.warning(f"Recovered interrupted settlement of round {round_id} ({report.settled} bets)")
            reports.append(report)
        return reports
