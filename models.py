from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship
import enum

from database import Base
from core.timer import utcnow

# 金額欄位：精確到分（兩位小數），Python 端讀回 float
Money = Numeric(12, 2, asdecimal=False)


class RoundPhase(str, enum.Enum):
    OPEN = "OPEN"            # 接受下注
    LOCKED = "LOCKED"        # 開獎前的鎖定期，拒絕下注
    SETTLING = "SETTLING"    # 已開獎，結算中
    COOLDOWN = "COOLDOWN"    # 顯示結果，下一期尚未開始


class Color(str, enum.Enum):
    RED = "red"
    GREEN = "green"
    VIOLET = "violet"


class BetType(str, enum.Enum):
    COLOR = "color"
    NUMBER = "number"


class BetResult(str, enum.Enum):
    WIN = "win"
    LOSS = "loss"


class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    WIN = "win"
    LOSS = "loss"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    balance = Column(Money, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    bets = relationship("Bet", back_populates="user")
    transactions = relationship("Transaction", back_populates="user")


class Round(Base):
    """
    一期開獎（period）

    開獎欄位（number, color, price, settled_at）在進行中全為 NULL，
    開獎後一次全部寫入
    """
    __tablename__ = "rounds"

    id = Column(String, primary_key=True)  # YYYYMMDD<bucket>
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    number = Column(Integer, nullable=True)
    color = Column(String, nullable=True)  # "green", "violet+red", ...
    price = Column(Money, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    settled_at = Column(DateTime, nullable=True)

    bets = relationship("Bet", back_populates="round")

    @property
    def is_settled(self) -> bool:
        return self.number is not None

    @property
    def colors(self) -> tuple:
        if not self.color:
            return ()
        return tuple(self.color.split("+"))


class Bet(Base):
    __tablename__ = "bets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    round_id = Column(String, ForeignKey("rounds.id"), nullable=False, index=True)
    type = Column(Enum(BetType), nullable=False)
    value = Column(String, nullable=False)
    amount = Column(Money, nullable=False)
    multiplier = Column(Integer, nullable=False)
    result = Column(Enum(BetResult), nullable=True)
    payout = Column(Money, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="bets")
    round = relationship("Round", back_populates="bets")


class Transaction(Base):
    """帳本紀錄（只新增不修改）；amount 為正數，正負號由 type 決定"""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(Enum(TransactionType), nullable=False)
    amount = Column(Money, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="transactions")
