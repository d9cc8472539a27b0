"""
並發控制工具

資料庫層級的 lock，避免期數計時器與 request handler 互相競爭

使用 SELECT ... FOR UPDATE（悲觀鎖）。SQLite 會忽略這個子句並自行序列化寫入；
在 SQLite 上其餘部分由 coordinator lock 負責
"""
from sqlalchemy.orm import Session, Query

from models import Round, User


def with_round_lock(round_id: str, db: Session) -> Query:
    """
    鎖定一期 Round（row-level lock）

    使用場景：
    - 檢查並寫入開獎結果（避免重複開獎）
    - 建立下注前檢查下注時間

    範例：
        round_obj = with_round_lock(round_id, db).first()
        if round_obj and not round_obj.is_settled:
            # 開獎並寫入...
            db.commit()

    參數：
        round_id: 期號
        db: SQLAlchemy Session

    返回：
        Query 物件（呼叫 .first() 或 .one()）

    注意：
        - nowait=False 表示遇到 lock 會等待，而不是立即失敗
        - 必須在 transaction 內使用，結束時 commit 或 rollback
    """
    return db.query(Round).filter(
        Round.id == round_id
    ).with_for_update(nowait=False)


def with_active_round_lock(db: Session) -> Query:
    """
    鎖定進行中的那一期 Round

    返回：
        Query 物件（呼叫 .first()）
    """
    return db.query(Round).filter(
        Round.is_active.is_(True)
    ).with_for_update(nowait=False)


def with_user_lock(user_id: int, db: Session) -> Query:
    """
    鎖定一個 User row

    餘額變動不需要（單一 UPDATE 即可）；需要多次讀取同一使用者並保持一致時使用
    """
    return db.query(User).filter(
        User.id == user_id
    ).with_for_update(nowait=False)
