import pytest

from models import RoundPhase
from core.exceptions import InvalidStateTransition
from core.state_machine import RoundStateMachine


def test_normal_cycle():
    phase = RoundStateMachine.transition(None, RoundPhase.OPEN)
    for target in (RoundPhase.LOCKED, RoundPhase.SETTLING, RoundPhase.COOLDOWN, RoundPhase.OPEN):
        phase = RoundStateMachine.transition(phase, target)
    assert phase == RoundPhase.OPEN


def test_failed_settlement_can_be_driven_again():
    assert RoundStateMachine.can_transition(RoundPhase.SETTLING, RoundPhase.SETTLING)


@pytest.mark.parametrize("current,target", [
    (RoundPhase.COOLDOWN, RoundPhase.SETTLING),
    (RoundPhase.OPEN, RoundPhase.COOLDOWN),
    (RoundPhase.LOCKED, RoundPhase.OPEN),
    (RoundPhase.SETTLING, RoundPhase.OPEN),
    (None, RoundPhase.COOLDOWN),
])
def test_illegal_transitions(current, target):
    with pytest.raises(InvalidStateTransition):
        RoundStateMachine.transition(current, target)
