from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from models import BetResult, BetType, Color, RoundPhase, TransactionType
from services.amount_service import CENT_DIGITS, is_valid_amount


class CamelModel(BaseModel):
    """輸出 camelCase；輸入接受 snake_case 與 ORM 物件"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


def _check_amount(value: float) -> float:
    if not is_valid_amount(value):
        raise ValueError(f"Amount must have at most {CENT_DIGITS} decimal places")
    return value


# ============ Rounds ============

class PeriodSnapshot(CamelModel):
    id: str
    start_time: datetime
    end_time: datetime
    number: Optional[int] = None
    color: Optional[str] = None
    price: Optional[float] = None
    is_active: bool


class GameStateResponse(CamelModel):
    phase: Optional[RoundPhase] = None
    remaining_ms: int = 0
    period: Optional[PeriodSnapshot] = None


class PeriodEvent(BaseModel):
    """即時推播訊息：gameState、periodStart 或 periodEnd"""
    type: str
    period: PeriodSnapshot

    def to_message(self) -> dict:
        return {"type": self.type, "period": self.period.model_dump(mode="json", by_alias=True)}


# ============ Bets ============

class BetCreate(BaseModel):
    type: BetType
    value: str
    amount: float = Field(gt=0)

    @field_validator("amount")
    @classmethod
    def check_amount(cls, value):
        return _check_amount(value)

    @model_validator(mode="after")
    def check_value(self):
        if self.type == BetType.COLOR:
            allowed = {c.value for c in Color}
        else:
            allowed = {str(n) for n in range(10)}
        if self.value not in allowed:
            raise ValueError(f"Invalid {self.type.value} bet value: {self.value!r}")
        return self


class BetResponse(CamelModel):
    id: int
    user_id: int
    round_id: str = Field(alias="periodId")
    type: BetType
    value: str
    amount: float
    multiplier: int
    result: Optional[BetResult] = None
    payout: Optional[float] = None
    created_at: datetime


# ============ Wallet ============

class TransactionCreate(BaseModel):
    type: TransactionType
    amount: float = Field(gt=0)

    @field_validator("type")
    @classmethod
    def check_type(cls, value):
        if value not in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL):
            raise ValueError("Only deposit and withdrawal can be requested")
        return value

    @field_validator("amount")
    @classmethod
    def check_amount(cls, value):
        return _check_amount(value)


class TransactionResponse(CamelModel):
    id: int
    user_id: int
    type: TransactionType
    amount: float
    created_at: datetime


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=64)


class UserResponse(CamelModel):
    id: int
    username: str
    balance: float
