"""
下注 API Endpoints

職責：
1. 對進行中的期數下注
2. 查詢使用者的下注紀錄

操作者由 user_id query 參數指定；身分驗證由前面的服務處理
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import Settings, get_db
from schemas import BetCreate, BetResponse
from core.exceptions import (
    BettingClosed,
    InsufficientBalance,
    InvalidInput,
    StoreUnavailable,
    UserNotFound,
)
from core.round_coordinator import RoundCoordinator
from services.history_service import get_bet_history
from api.dependencies import get_app_settings, get_coordinator

router = APIRouter(prefix="/api/bets", tags=["bets"])
logger = logging.getLogger(__name__)


@router.post("", response_model=BetResponse, status_code=201)
def place_bet(
    bet_data: BetCreate,
    user_id: int = Query(...),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    """
    對進行中的期數下注

    前置條件：
    - 該期已開始且尚未進入鎖定期（以資料庫中的時間判斷，不使用客戶端時鐘）
    - 餘額足以支付本金
    - 金額最多兩位小數

    效果：
    - 立即扣除本金
    - 建立下注，倍率 2（顏色）或 9（號碼）

    異常：
        400: 下注已關閉 / 餘額不足 / 下注內容錯誤
        404: 使用者不存在
        422: 請求格式錯誤
        503: 資料庫無法使用
    """
    try:
        return coordinator.place_bet(user_id, bet_data.type, bet_data.value, bet_data.amount)

    except BettingClosed as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InsufficientBalance:
        raise HTTPException(status_code=400, detail="Insufficient balance")
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Store unavailable")
    except Exception as e:
        logger.error(f"Failed to place bet: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/history", response_model=List[BetResponse])
def get_bets_history(
    user_id: int = Query(...),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings)
):
    """使用者的下注紀錄，新到舊，分頁"""
    try:
        bets = get_bet_history(db, user_id, page, limit or settings.default_page_size)
        return [BetResponse.model_validate(b) for b in bets]

    except Exception as e:
        logger.error(f"Failed to get bet history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
