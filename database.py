from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
from typing import Optional
import logging

from core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./color_lottery.db"

    # 期數時間設定（毫秒）
    round_duration_ms: int = 180_000
    lock_window_ms: int = 30_000
    cooldown_ms: int = 30_000
    # 未設定：失敗的轉換等待人工處理
    retry_delay_ms: Optional[int] = None

    observer_queue_size: int = 100
    default_page_size: int = 10
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()


def build_engine(database_url: str, **kwargs):
    """
    依 URL 建立 engine

    SQLite 需要 connect_args={"check_same_thread": False}，
    因為計時器執行緒和 request threadpool 會共用連線
    """
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
        **kwargs
    )


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供資料庫 Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def some_business_logic(db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            bet = Bet(...)
            db.add(bet)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 業務異常原樣重新拋出
        - SQLAlchemy 異常轉成 StoreUnavailable 拋出

    注意：
        - 第一個參數必須是 db: Session（或以 db= 傳入）
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise StoreUnavailable(str(e)) from e
        except Exception as e:
            logger.warning(f"Transaction rolled back in {func.__name__}: {e}")
            db.rollback()
            raise

    return wrapper
