"""
期數生命週期狀態機

所有階段轉換都經過 RoundStateMachine.transition，
非法的跳轉（例如 COOLDOWN -> SETTLING）直接拋異常，不會弄亂狀態

    (start) ──> OPEN ──> LOCKED ──> SETTLING ──> COOLDOWN ──> OPEN ...
                  └──────────────────^

LOCKED 由時鐘推導（end_time - now < 鎖定期）；Coordinator 只存 OPEN，
查詢時再回報 LOCKED。結算失敗會停在 SETTLING，直到再次驅動
"""
from typing import Dict, FrozenSet, Optional

from models import RoundPhase
from core.exceptions import InvalidStateTransition


class RoundStateMachine:
    """期數階段之間允許的轉換"""

    TRANSITIONS: Dict[Optional[RoundPhase], FrozenSet[RoundPhase]] = {
        None: frozenset({RoundPhase.OPEN, RoundPhase.SETTLING}),
        RoundPhase.OPEN: frozenset({RoundPhase.LOCKED, RoundPhase.SETTLING}),
        RoundPhase.LOCKED: frozenset({RoundPhase.SETTLING}),
        RoundPhase.SETTLING: frozenset({RoundPhase.SETTLING, RoundPhase.COOLDOWN}),
        RoundPhase.COOLDOWN: frozenset({RoundPhase.OPEN}),
    }

    @classmethod
    def can_transition(cls, current: Optional[RoundPhase], target: RoundPhase) -> bool:
        return target in cls.TRANSITIONS.get(current, frozenset())

    @classmethod
    def transition(cls, current: Optional[RoundPhase], target: RoundPhase) -> RoundPhase:
        """
        驗證階段轉換並回傳新階段

        異常：
            InvalidStateTransition: 從 current 無法到達 target
        """
        if not cls.can_transition(current, target):
            name = current.value if current else "START"
            raise InvalidStateTransition(f"Cannot move round from {name} to {target.value}")
        return target
