"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
"""


class LotteryException(Exception):
    """所有彩票異常的基類"""
    pass


# ============ 輸入異常 ============

class InvalidInput(LotteryException):
    """下注或錢包輸入格式錯誤（回報給呼叫者，不重試）"""
    pass


# ============ 下注異常 ============

class BettingClosed(LotteryException):
    """目前不接受下注：沒有進行中的期數、尚未開始，或已進入鎖定期"""
    def __init__(self, round_id=None, remaining_ms=None, opens_at=None):
        self.round_id = round_id
        self.remaining_ms = remaining_ms
        self.opens_at = opens_at
        if round_id is None:
            message = "Betting is closed: no round is accepting bets"
        elif opens_at is not None:
            message = f"Betting for period {round_id} opens at {opens_at:%H:%M:%S}"
        else:
            message = f"Betting is closed for period {round_id} ({remaining_ms} ms left)"
        super().__init__(message)


class InsufficientBalance(LotteryException):
    """餘額不足以扣款"""
    def __init__(self, user_id, amount):
        self.user_id = user_id
        self.amount = amount
        super().__init__(f"Insufficient balance for user {user_id} to debit {amount}")


# ============ User 相關異常 ============

class UserNotFound(LotteryException):
    """使用者不存在"""
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class UsernameTaken(LotteryException):
    """使用者名稱已被註冊"""
    pass


# ============ Round 相關異常 ============

class RoundNotFound(LotteryException):
    """期數不存在"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} not found")


class RoundNotSettled(LotteryException):
    """尚未開獎就要求結算"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} has no outcome yet")


class DuplicateSettlement(LotteryException):
    """該期已有開獎結果（開獎結果只能寫入一次）"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} already has an outcome")


# ============ 狀態轉換異常 ============

class InvalidStateTransition(LotteryException):
    """非法的狀態轉換"""
    pass


# ============ 基礎設施異常 ============

class StoreUnavailable(LotteryException):
    """資料庫失敗；生命週期停在失敗的步驟，不會往下推進"""
    pass
