"""
金額服務：下注與錢包金額的格式檢查

純計算邏輯。所有金額精確到分（兩位小數），
下注、扣款、帳本使用同一個數值，不會各自四捨五入
"""
from decimal import Decimal
import math

from core.exceptions import InvalidInput

CENT_DIGITS = 2


def is_valid_amount(amount) -> bool:
    """
    檢查金額是否為正數且最多兩位小數

    範例：
        10     -> True
        0.01   -> True
        0.004  -> False（低於一分）
        1.234  -> False
        True   -> False（bool 不算數字）
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return False
    if not math.isfinite(amount) or amount <= 0:
        return False
    return Decimal(str(amount)).as_tuple().exponent >= -CENT_DIGITS


def validate_amount(amount, label: str = "Amount") -> float:
    """
    驗證金額並回傳 float

    異常：
        InvalidInput: 非正數、非數字或超過兩位小數
    """
    if not is_valid_amount(amount):
        raise InvalidInput(
            f"{label} must be a positive number with at most {CENT_DIGITS} decimal places, "
            f"got {amount!r}"
        )
    return float(amount)
