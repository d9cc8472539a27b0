"""
Round Manager：期數生命週期中的 transaction 單元

職責：
1. 開啟期數（沿用進行中的，或新建）
2. 寫入開獎結果
3. 結算該期下注
4. 在下注時間內下注

每個 public method 都是一個 @transactional 單元。
開獎與結算刻意拆成兩個單元：派彩之前開獎結果已經 commit，
結算失敗時開獎結果保留，等待重新驅動。
排程與推播屬於 RoundCoordinator，不在這裡
"""
from datetime import datetime, timedelta
import logging

from sqlalchemy.orm import Session

from models import Bet, BetType, Color, Round, TransactionType
from core.exceptions import BettingClosed, InvalidInput
from core.round_store import RoundStore
from database import transactional
from services.amount_service import validate_amount
from services.outcome_service import Outcome
from services.settlement_service import SettlementReport, multiplier_for, settle_round

logger = logging.getLogger(__name__)

COLOR_VALUES = frozenset(c.value for c in Color)
NUMBER_VALUES = frozenset(str(n) for n in range(10))


def betting_closed(round_obj, now: datetime, lock_window: timedelta) -> bool:
    """
    該期此刻是否拒絕下注

    規則：
    - 已結束的期數：拒絕
    - now < start_time（期號碰撞後被移到下一個區間的期數）：拒絕
    - end_time - now < 鎖定期：拒絕

    round_obj 可以是 Round 或 PeriodSnapshot（只讀 is_active / start_time / end_time）
    """
    if not round_obj.is_active or now < round_obj.start_time:
        return True
    return round_obj.end_time - now < lock_window


def remaining_ms(round_obj: Round, now: datetime) -> int:
    return max(0, int((round_obj.end_time - now).total_seconds() * 1000))


class RoundManager:
    """期數的 transaction 操作"""

    @staticmethod
    def validate_bet(bet_type, value, amount) -> BetType:
        """
        在碰資料庫之前檢查下注內容

        異常：
            InvalidInput: 未知的下注類型、value 不在該類型的範圍內、
                          金額非正數或超過兩位小數
        """
        try:
            bet_type = BetType(bet_type)
        except ValueError:
            raise InvalidInput(f"Unknown bet type: {bet_type!r}")

        allowed = COLOR_VALUES if bet_type == BetType.COLOR else NUMBER_VALUES
        if value not in allowed:
            raise InvalidInput(f"Invalid {bet_type.value} bet value: {value!r}")

        validate_amount(amount, "Bet amount")
        return bet_type

    @staticmethod
    @transactional
    def open_round(db: Session, now: datetime, duration: timedelta) -> Round:
        """
        回傳進行中的期數；沒有的話從 now 開始建立一期

        返回：
            進行中的 Round
        """
        round_obj = RoundStore.get_active_round(db, lock=True)
        if round_obj:
            return round_obj

        round_obj = RoundStore.create_round(db, now, duration)
        logger.info(
            f"Opened round {round_obj.id} ({round_obj.start_time} -> {round_obj.end_time})"
        )
        return round_obj

    @staticmethod
    @transactional
    def record_outcome(db: Session, round_id: str, outcome: Outcome) -> Round:
        """
        寫入開獎結果（進行中 -> 已開獎）

        異常：
            RoundNotFound: 期數不存在
            DuplicateSettlement: 已經開過獎
        """
        round_obj = RoundStore.set_round_outcome(
            db, round_id, outcome.number, outcome.color, outcome.price
        )
        logger.info(
            f"Round {round_id} drawn: number={outcome.number} "
            f"color={outcome.color} price={outcome.price}"
        )
        return round_obj

    @staticmethod
    @transactional
    def settle_round(db: Session, round_id: str) -> SettlementReport:
        """
        結算已開獎期數中尚未結算的下注

        異常：
            RoundNotFound: 期數不存在
            RoundNotSettled: 尚未開獎
        """
        round_obj = RoundStore.get_round(db, round_id, lock=True)
        return settle_round(db, round_obj)

    @staticmethod
    @transactional
    def place_bet(
        db: Session,
        user_id: int,
        bet_type,
        value: str,
        amount: float,
        now: datetime,
        lock_window: timedelta
    ) -> Bet:
        """
        對進行中的期數下注

        流程：
        1. 鎖定進行中的期數，以資料庫中的 start_time / end_time 檢查下注時間
           （不使用客戶端回報的時間）
        2. 驗證輸入
        3. 原子性扣除本金（餘額不足則失敗）
        4. 建立下注，倍率在此固定
        5. 以 loss 交易記錄本金，帳本才能和餘額對上

        前置條件：
        - 下注時間已關閉時，優先於其他任何拒絕原因

        異常：
            BettingClosed: 沒有進行中的期數、尚未開始，或已進入鎖定期
            InvalidInput: 下注內容錯誤
            UserNotFound: 使用者不存在
            InsufficientBalance: 本金超過餘額
        """
        round_obj = RoundStore.get_active_round(db, lock=True)
        if round_obj is None:
            raise BettingClosed()
        if now < round_obj.start_time:
            raise BettingClosed(round_obj.id, opens_at=round_obj.start_time)
        if betting_closed(round_obj, now, lock_window):
            raise BettingClosed(round_obj.id, remaining_ms(round_obj, now))

        bet_type = RoundManager.validate_bet(bet_type, value, amount)
        amount = float(amount)
        RoundStore.adjust_user_balance(db, user_id, -amount)
        bet = RoundStore.create_bet(
            db,
            user_id=user_id,
            round_id=round_obj.id,
            bet_type=bet_type,
            value=value,
            amount=amount,
            multiplier=multiplier_for(bet_type)
        )
        RoundStore.create_transaction(db, user_id, TransactionType.LOSS, amount)

        logger.info(
            f"User {user_id} bet {amount} on {bet_type.value}={value} in round {round_obj.id}"
        )
        return bet
