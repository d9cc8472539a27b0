"""
期數 API Endpoints

職責：
1. 目前期數 snapshot
2. 已開獎期數紀錄
3. 生命週期階段與倒數
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import Settings, get_db
from schemas import GameStateResponse, PeriodSnapshot
from core.exceptions import StoreUnavailable
from core.round_coordinator import RoundCoordinator
from services.history_service import get_period_history
from api.dependencies import get_app_settings, get_coordinator

router = APIRouter(prefix="/api", tags=["periods"])
logger = logging.getLogger(__name__)


@router.get("/periods/current", response_model=PeriodSnapshot)
def get_current_period(coordinator: RoundCoordinator = Depends(get_coordinator)):
    """
    資料庫中的目前期數

    冷卻期間為剛開獎的那一期
    """
    try:
        snapshot = coordinator.current_snapshot()
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No period yet")
        return snapshot

    except HTTPException:
        raise
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Store unavailable")
    except Exception as e:
        logger.error(f"Failed to get current period: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/periods/history", response_model=List[PeriodSnapshot])
def get_periods_history(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings)
):
    """已開獎期數，新到舊，分頁"""
    try:
        rounds = get_period_history(db, page, limit or settings.default_page_size)
        return [PeriodSnapshot.model_validate(r) for r in rounds]

    except Exception as e:
        logger.error(f"Failed to get period history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/game/state", response_model=GameStateResponse)
def get_game_state(coordinator: RoundCoordinator = Depends(get_coordinator)):
    """
    生命週期階段（OPEN/LOCKED/SETTLING/COOLDOWN）、剩餘毫秒數
    以及目前期數
    """
    try:
        return coordinator.game_state()

    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Store unavailable")
    except Exception as e:
        logger.error(f"Failed to get game state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
