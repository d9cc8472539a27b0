"""
開獎服務：產生一期的開獎結果

純計算邏輯，沒有共享的可變狀態，任何執行緒都可以呼叫。
傳入固定 seed 的 random.Random 即可重現開獎
"""
import random
from typing import NamedTuple, Optional, Tuple

from models import Color

PRICE_MIN = 50.0
PRICE_MAX = 150.0


class Outcome(NamedTuple):
    number: int
    colors: Tuple[Color, ...]
    price: float

    @property
    def color(self) -> str:
        """顏色組合的儲存格式，例如 green 或 violet+red"""
        return "+".join(c.value for c in self.colors)


def derive_colors(number: int) -> Tuple[Color, ...]:
    """
    由開獎號碼推導顏色

    顏色對照表：
    ┌────────┬─────────────────┐
    │ number │ colors          │
    ├────────┼─────────────────┤
    │ 0      │ violet + red    │
    │ 5      │ violet + green  │
    │ 奇數   │ red             │
    │ 偶數   │ green           │
    └────────┴─────────────────┘

    參數：
        number: 開獎號碼 0-9

    返回：
        一個或兩個 Color 的 tuple

    異常：
        ValueError: number 不在 0-9
    """
    if not 0 <= number <= 9:
        raise ValueError(f"Drawn number must be 0-9, got {number}")

    if number == 0:
        return (Color.VIOLET, Color.RED)
    elif number == 5:
        return (Color.VIOLET, Color.GREEN)
    elif number % 2:
        return (Color.RED,)
    else:
        return (Color.GREEN,)


def outcome_for_number(number: int, price: float) -> Outcome:
    return Outcome(number=number, colors=derive_colors(number), price=round(price, 2))


def draw_outcome(rng: Optional[random.Random] = None) -> Outcome:
    """
    均勻抽出 [0, 9] 的號碼，以及 [50, 150] 的展示價格

    price 只用於顯示，不參與結算
    """
    rng = rng or random
    number = rng.randint(0, 9)
    price = rng.uniform(PRICE_MIN, PRICE_MAX)
    return outcome_for_number(number, price)
