"""
Wallet Manager：使用者與存款 / 提款

每次餘額變動都是經過 RoundStore.adjust_user_balance 的一次原子性調整，
並在同一個 transaction 中寫入對應的帳本紀錄
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Tuple
import logging

from models import Transaction, TransactionType, User
from core.exceptions import InvalidInput, UsernameTaken
from core.round_store import RoundStore
from database import transactional
from services.amount_service import validate_amount

logger = logging.getLogger(__name__)

SIGNS = {
    TransactionType.DEPOSIT: 1,
    TransactionType.WITHDRAWAL: -1,
}


class WalletManager:
    """使用者錢包操作"""

    @staticmethod
    @transactional
    def register_user(db: Session, username: str) -> User:
        """
        建立餘額為 0 的使用者

        異常：
            InvalidInput: 使用者名稱為空
            UsernameTaken: 使用者名稱已被註冊
        """
        username = (username or "").strip()
        if not username:
            raise InvalidInput("Username must not be empty")

        if db.query(User).filter(User.username == username).first():
            raise UsernameTaken(f"Username {username!r} is already taken")

        try:
            user = RoundStore.create_user(db, username)
        except IntegrityError:
            # 與同時進行的註冊競爭失敗
            raise UsernameTaken(f"Username {username!r} is already taken")

        logger.info(f"Registered user {user.id} ({username})")
        return user

    @staticmethod
    @transactional
    def apply_transaction(db: Session, user_id: int, kind, amount) -> Tuple[Transaction, User]:
        """
        存款或提款

        流程：
        1. 驗證類型與金額（正數，最多兩位小數）
        2. 原子性調整餘額（提款為負數，透支則失敗）
        3. 新增帳本紀錄

        返回：
            (Transaction, 更新餘額後的 User)

        異常：
            InvalidInput: 不支援的類型或金額格式錯誤
            UserNotFound: 使用者不存在
            InsufficientBalance: 提款超過餘額
        """
        try:
            kind = TransactionType(kind)
        except ValueError:
            raise InvalidInput(f"Unknown transaction type: {kind!r}")
        if kind not in SIGNS:
            raise InvalidInput(f"Transaction type {kind.value} cannot be requested directly")
        amount = validate_amount(amount)

        user = RoundStore.adjust_user_balance(db, user_id, SIGNS[kind] * amount)
        transaction = RoundStore.create_transaction(db, user_id, kind, amount)

        logger.info(f"User {user_id} {kind.value} {amount}, balance now {user.balance}")
        return transaction, user

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        return RoundStore.get_user(db, user_id)
