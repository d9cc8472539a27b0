"""
歷史紀錄服務

已開獎期數、使用者下注與帳本的分頁查詢，前端可以直接顯示結果表格
"""
from typing import List

from sqlalchemy.orm import Session

from models import Bet, Round, Transaction
from core.round_store import RoundStore

MAX_PAGE_SIZE = 100


def page_bounds(page: int, limit: int) -> tuple:
    """
    把從 1 開始的 (page, limit) 轉成 (offset, limit)

    規則：
    - page 小於 1 視為第 1 頁
    - limit 限制在 1..MAX_PAGE_SIZE
    """
    page = max(1, page)
    limit = min(max(1, limit), MAX_PAGE_SIZE)
    return (page - 1) * limit, limit


def get_period_history(db: Session, page: int, limit: int) -> List[Round]:
    """已開獎期數，新到舊"""
    offset, limit = page_bounds(page, limit)
    return RoundStore.get_round_history(db, limit=limit, offset=offset)


def get_bet_history(db: Session, user_id: int, page: int, limit: int) -> List[Bet]:
    """使用者的下注，新到舊，包含尚未結算的"""
    offset, limit = page_bounds(page, limit)
    return RoundStore.get_user_bets(db, user_id, limit=limit, offset=offset)


def get_transaction_history(db: Session, user_id: int, page: int, limit: int) -> List[Transaction]:
    offset, limit = page_bounds(page, limit)
    return RoundStore.get_user_transactions(db, user_id, limit=limit, offset=offset)
