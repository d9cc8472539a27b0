"""
結算服務：把已開獎期數的下注結算成輸贏

evaluate_bet 是純計算。settle_round 負責副作用，
但不 commit，也不碰期數的時間欄位或 is_active
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, Tuple
import logging

from sqlalchemy.orm import Session

from models import BetResult, BetType, Round, TransactionType
from core.exceptions import RoundNotSettled
from core.round_store import RoundStore

logger = logging.getLogger(__name__)

MULTIPLIERS: Dict[BetType, int] = {
    BetType.COLOR: 2,
    BetType.NUMBER: 9,
}


def multiplier_for(bet_type: BetType) -> int:
    return MULTIPLIERS[BetType(bet_type)]


def evaluate_bet(
    bet_type: BetType,
    value: str,
    amount: float,
    number: int,
    colors: Iterable[str]
) -> Tuple[BetResult, float]:
    """
    以開獎結果判定一筆下注

    規則：
    - 顏色注：value 在開獎顏色中即中獎，派彩 = 本金 x 2
    - 號碼注：value == str(number) 即中獎，派彩 = 本金 x 9
    - 未中獎派彩為 0

    參數：
        bet_type: BetType.COLOR 或 BetType.NUMBER
        value: 選擇的顏色或數字字串
        amount: 本金（最多兩位小數，派彩因此也精確到分）
        number: 開獎號碼
        colors: 開獎顏色（字串或 Color）

    返回：
        (result, payout)
    """
    bet_type = BetType(bet_type)
    if bet_type == BetType.COLOR:
        won = value in {str(getattr(c, "value", c)) for c in colors}
    else:
        won = value == str(number)

    if won:
        return BetResult.WIN, round(amount * MULTIPLIERS[bet_type], 2)
    return BetResult.LOSS, 0.0


@dataclass
class SettlementReport:
    round_id: str
    settled: int = 0
    wins: int = 0
    total_payout: float = 0.0
    payouts_by_user: Dict[int, float] = field(default_factory=dict)


def settle_round(db: Session, round_obj: Round) -> SettlementReport:
    """
    結算一期所有尚未結算的下注（該期必須已開獎）

    流程：
    1. 讀取該期 result 為空的下注
    2. 逐筆以開獎結果判定
    3. 寫入 result 與 payout
    4. 中獎：原子性加款，並新增一筆 win 交易

    注意：
        - 只讀取未結算的下注，部分失敗後重跑也不會重複處理同一筆
        - 加款經過 RoundStore.adjust_user_balance，同一使用者的多筆中獎由資料庫序列化
        - 只 flush 不 commit（由外層 transaction 負責）

    異常：
        RoundNotSettled: 該期尚未開獎
    """
    if not round_obj.is_settled:
        raise RoundNotSettled(round_obj.id)

    report = SettlementReport(round_id=round_obj.id)
    colors = round_obj.colors

    for bet in RoundStore.get_round_bets(db, round_obj.id, pending_only=True):
        result, payout = evaluate_bet(bet.type, bet.value, bet.amount, round_obj.number, colors)
        RoundStore.record_bet_result(db, bet, result, payout)
        report.settled += 1

        if result == BetResult.WIN:
            RoundStore.adjust_user_balance(db, bet.user_id, payout)
            RoundStore.create_transaction(db, bet.user_id, TransactionType.WIN, payout)
            report.wins += 1
            report.total_payout = round(report.total_payout + payout, 2)
            report.payouts_by_user[bet.user_id] = round(
                report.payouts_by_user.get(bet.user_id, 0.0) + payout, 2
            )

    logger.info(
        f"Settled {report.settled} bets for round {round_obj.id}: "
        f"{report.wins} wins, payout {report.total_payout}"
    )
    return report
