"""
玩家與錢包 API Endpoints

職責：
1. 註冊玩家
2. 查詢玩家餘額
3. 存款與提款
4. 交易紀錄
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import Settings, get_db
from schemas import TransactionCreate, TransactionResponse, UserCreate, UserResponse
from core.exceptions import (
    InsufficientBalance,
    InvalidInput,
    StoreUnavailable,
    UsernameTaken,
    UserNotFound,
)
from core.wallet_manager import WalletManager
from services.history_service import get_transaction_history
from api.dependencies import get_app_settings

router = APIRouter(prefix="/api", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/users", response_model=UserResponse, status_code=201)
def register_user(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    註冊餘額為 0 的玩家

    帳號密碼由前面的身分驗證層處理，這裡只保存使用者名稱
    """
    try:
        user = WalletManager.register_user(db, user_data.username)
        return UserResponse.model_validate(user)

    except UsernameTaken as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Store unavailable")
    except Exception as e:
        logger.error(f"Failed to register user: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db)):
    try:
        return UserResponse.model_validate(WalletManager.get_user(db, user_id))

    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except Exception as e:
        logger.error(f"Failed to get user: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    transaction_data: TransactionCreate,
    user_id: int = Query(...),
    db: Session = Depends(get_db)
):
    """
    存款或提款

    餘額變動是一次原子性的帶號調整（提款為負），與帳本紀錄一起寫入

    異常：
        400: 提款餘額不足 / 輸入錯誤
        404: 使用者不存在
        422: 類型不是 deposit/withdrawal，或金額超過兩位小數
    """
    try:
        transaction, _ = WalletManager.apply_transaction(
            db, user_id, transaction_data.type, transaction_data.amount
        )
        return TransactionResponse.model_validate(transaction)

    except InsufficientBalance:
        raise HTTPException(status_code=400, detail="Insufficient balance")
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Store unavailable")
    except Exception as e:
        logger.error(f"Failed to create transaction: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/transactions/history", response_model=List[TransactionResponse])
def get_transactions_history(
    user_id: int = Query(...),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings)
):
    try:
        transactions = get_transaction_history(db, user_id, page, limit or settings.default_page_size)
        return [TransactionResponse.model_validate(t) for t in transactions]

    except Exception as e:
        logger.error(f"Failed to get transaction history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
