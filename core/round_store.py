"""
Round Store：生命週期核心使用的資料存取邊界

所有方法都接收 Session 且只 flush；何時 commit 由呼叫端的 @transactional 決定。
查詢集中在這裡，RoundManager 和 coordinator 只剩業務邏輯
"""
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from sqlalchemy import cast, exists, func, update
from sqlalchemy.orm import Session

from models import (
    Bet,
    BetResult,
    BetType,
    Round,
    Transaction,
    TransactionType,
    User,
)
from core.exceptions import (
    DuplicateSettlement,
    InsufficientBalance,
    RoundNotFound,
    UserNotFound,
)
from core.locks import with_active_round_lock, with_round_lock, with_user_lock
from core.timer import utcnow
from services.amount_service import CENT_DIGITS
from services.naming_service import generate_period_id, next_bucket_start

logger = logging.getLogger(__name__)


class RoundStore:
    """靜態資料存取方法，本身沒有狀態"""

    # ============ Rounds ============

    @staticmethod
    def get_active_round(db: Session, lock: bool = False) -> Optional[Round]:
        if lock:
            return with_active_round_lock(db).first()
        return db.query(Round).filter(Round.is_active.is_(True)).first()

    @staticmethod
    def get_latest_round(db: Session) -> Optional[Round]:
        """最近開始的一期（進行中或已開獎）"""
        return db.query(Round).order_by(Round.start_time.desc()).first()

    @staticmethod
    def get_round(db: Session, round_id: str, lock: bool = False) -> Round:
        query = with_round_lock(round_id, db) if lock else db.query(Round).filter(Round.id == round_id)
        round_obj = query.first()
        if not round_obj:
            raise RoundNotFound(round_id)
        return round_obj

    @staticmethod
    def create_round(db: Session, start_time: datetime, duration: timedelta) -> Round:
        """
        建立一期從 start_time 開始的進行中期數

        流程：
        1. 由 start_time 所在的 3 分鐘區間產生期號
        2. 區間已被佔用時，開始時間移到下一個空區間的起點
        3. 建立 Round

        參數：
            db: SQLAlchemy Session
            start_time: 預定開始時間（UTC，不含時區）
            duration: 下注時間長度

        返回：
            新的 Round（已 flush，未 commit）

        注意：
            - 被移後的期數在 start_time 之前不接受下注（見 round_manager.betting_closed）
        """
        round_id = generate_period_id(start_time)
        while db.get(Round, round_id) is not None:
            start_time = next_bucket_start(start_time)
            logger.warning(f"Period id collision, moving round start to {start_time}")
            round_id = generate_period_id(start_time)

        round_obj = Round(
            id=round_id,
            start_time=start_time,
            end_time=start_time + duration,
            is_active=True
        )
        db.add(round_obj)
        db.flush()
        return round_obj

    @staticmethod
    def set_round_outcome(db: Session, round_id: str, number: int, color: str, price: float) -> Round:
        """
        寫入開獎結果並結束該期（一次完成）

        異常：
            RoundNotFound: 期數不存在
            DuplicateSettlement: 已經開過獎
        """
        round_obj = RoundStore.get_round(db, round_id, lock=True)
        if round_obj.is_settled:
            raise DuplicateSettlement(round_id)

        round_obj.number = number
        round_obj.color = color
        round_obj.price = price
        round_obj.settled_at = utcnow()
        round_obj.is_active = False
        db.flush()
        return round_obj

    @staticmethod
    def get_round_history(db: Session, limit: int, offset: int = 0) -> List[Round]:
        """已開獎的期數，新到舊"""
        return (
            db.query(Round)
            .filter(Round.is_active.is_(False))
            .order_by(Round.end_time.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_rounds_pending_settlement(db: Session) -> List[Round]:
        """已開獎但仍有未結算下注的期數"""
        pending = exists().where(Bet.round_id == Round.id, Bet.result.is_(None))
        return (
            db.query(Round)
            .filter(Round.number.isnot(None), pending)
            .order_by(Round.start_time)
            .all()
        )

    # ============ Bets ============

    @staticmethod
    def get_round_bets(db: Session, round_id: str, pending_only: bool = False) -> List[Bet]:
        query = db.query(Bet).filter(Bet.round_id == round_id)
        if pending_only:
            query = query.filter(Bet.result.is_(None))
        return query.order_by(Bet.id).all()

    @staticmethod
    def has_pending_bets(db: Session, round_id: str) -> bool:
        return db.query(
            exists().where(Bet.round_id == round_id, Bet.result.is_(None))
        ).scalar()

    @staticmethod
    def create_bet(
        db: Session,
        user_id: int,
        round_id: str,
        bet_type: BetType,
        value: str,
        amount: float,
        multiplier: int
    ) -> Bet:
        bet = Bet(
            user_id=user_id,
            round_id=round_id,
            type=bet_type,
            value=value,
            amount=amount,
            multiplier=multiplier
        )
        db.add(bet)
        db.flush()
        return bet

    @staticmethod
    def record_bet_result(db: Session, bet: Bet, result: BetResult, payout: float) -> Bet:
        bet.result = result
        bet.payout = payout
        db.flush()
        return bet

    @staticmethod
    def get_user_bets(db: Session, user_id: int, limit: int, offset: int = 0) -> List[Bet]:
        return (
            db.query(Bet)
            .filter(Bet.user_id == user_id)
            .order_by(Bet.created_at.desc(), Bet.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    # ============ Users and ledger ============

    @staticmethod
    def create_user(db: Session, username: str, balance: float = 0.0) -> User:
        user = User(username=username, balance=balance)
        db.add(user)
        db.flush()
        return user

    @staticmethod
    def get_user(db: Session, user_id: int, lock: bool = False) -> User:
        query = with_user_lock(user_id, db) if lock else db.query(User).filter(User.id == user_id)
        user = query.first()
        if not user:
            raise UserNotFound(user_id)
        return user

    @staticmethod
    def adjust_user_balance(db: Session, user_id: int, delta: float) -> User:
        """
        原子性地對使用者餘額加上帶正負號的 delta

        單一 UPDATE：SET balance = round(balance + :delta, 2)，
        WHERE 條件同樣四捨五入到分，餘額不會變成負數。
        同一使用者的並發調整由資料庫序列化，Python 端沒有 read-modify-write

        異常：
            UserNotFound: 使用者不存在
            InsufficientBalance: 扣款超過餘額
        """
        delta = round(delta, CENT_DIGITS)
        new_balance = func.round(User.balance + cast(delta, User.balance.type), CENT_DIGITS)
        result = db.execute(
            update(User)
            .where(User.id == user_id, new_balance >= 0)
            .values(balance=new_balance)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # 區分「使用者不存在」與「餘額不足」
            RoundStore.get_user(db, user_id)
            raise InsufficientBalance(user_id, -delta)

        user = RoundStore.get_user(db, user_id)
        db.refresh(user)
        return user

    @staticmethod
    def create_transaction(db: Session, user_id: int, kind: TransactionType, amount: float) -> Transaction:
        transaction = Transaction(user_id=user_id, type=kind, amount=round(abs(amount), CENT_DIGITS))
        db.add(transaction)
        db.flush()
        return transaction

    @staticmethod
    def get_user_transactions(db: Session, user_id: int, limit: int, offset: int = 0) -> List[Transaction]:
        return (
            db.query(Transaction)
            .filter(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
