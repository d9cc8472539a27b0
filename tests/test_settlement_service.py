from datetime import timedelta

import pytest

from models import Bet, BetResult, BetType, Color, Transaction, TransactionType
from core.exceptions import RoundNotSettled
from core.round_manager import RoundManager
from core.round_store import RoundStore
from services.outcome_service import derive_colors
from services.settlement_service import evaluate_bet, multiplier_for, settle_round
from tests.conftest import T0, FixedDraw

LOCK = timedelta(seconds=30)


@pytest.mark.parametrize("number", range(10))
@pytest.mark.parametrize("color", [c.value for c in Color])
def test_color_bet_wins_iff_color_drawn(number, color):
    colors = derive_colors(number)
    result, payout = evaluate_bet(BetType.COLOR, color, 10, number, colors)

    if Color(color) in colors:
        assert (result, payout) == (BetResult.WIN, 20)
    else:
        assert (result, payout) == (BetResult.LOSS, 0)


@pytest.mark.parametrize("number", range(10))
def test_number_bet_wins_only_on_exact_digit(number):
    colors = derive_colors(number)
    for value in range(10):
        result, payout = evaluate_bet(BetType.NUMBER, str(value), 3, number, colors)
        if value == number:
            assert (result, payout) == (BetResult.WIN, 27)
        else:
            assert (result, payout) == (BetResult.LOSS, 0)


def test_violet_pays_on_zero_and_five():
    assert evaluate_bet("color", "violet", 1.5, 0, ("violet", "red")) == (BetResult.WIN, 3.0)
    assert evaluate_bet("color", "red", 1.5, 0, ("violet", "red")) == (BetResult.WIN, 3.0)
    assert evaluate_bet("color", "green", 1.5, 0, ("violet", "red")) == (BetResult.LOSS, 0.0)


def test_multipliers():
    assert multiplier_for(BetType.COLOR) == 2
    assert multiplier_for("number") == 9


def _open_with_bets(db, bets):
    round_id = RoundManager.open_round(db, T0, timedelta(seconds=180)).id
    for user_id, bet_type, value, amount in bets:
        RoundManager.place_bet(
            db, user_id, bet_type, value, amount,
            now=T0 + timedelta(seconds=1), lock_window=LOCK
        )
    return round_id


def test_settle_round_credits_each_win(db, make_user, balance_of):
    alice = make_user(balance=100)
    bob = make_user(balance=100)
    round_id = _open_with_bets(db, [
        (alice, "color", "green", 10),
        (alice, "number", "4", 10),
        (alice, "color", "red", 10),
        (bob, "number", "5", 20),
    ])
    RoundManager.record_outcome(db, round_id, FixedDraw(4)())

    report = RoundManager.settle_round(db, round_id)

    assert report.settled == 4
    assert report.wins == 2
    assert report.total_payout == 110
    assert report.payouts_by_user == {alice: 110}
    assert balance_of(alice) == 70 + 110
    assert balance_of(bob) == 80

    wins = db.query(Transaction).filter(Transaction.type == TransactionType.WIN).all()
    assert sorted(t.amount for t in wins) == [20, 90]
    assert all(t.user_id == alice for t in wins)


def test_settle_round_touches_each_bet_once(db, make_user, balance_of):
    user_id = make_user(balance=10)
    round_id = _open_with_bets(db, [(user_id, "color", "green", 10)])
    RoundManager.record_outcome(db, round_id, FixedDraw(2)())

    assert RoundManager.settle_round(db, round_id).settled == 1
    assert RoundManager.settle_round(db, round_id).settled == 0
    assert balance_of(user_id) == 20


def test_settle_round_leaves_timing_alone(db, make_user):
    user_id = make_user(balance=10)
    round_id = _open_with_bets(db, [(user_id, "color", "red", 1)])
    RoundManager.record_outcome(db, round_id, FixedDraw(1)())
    before = RoundStore.get_round(db, round_id)
    start, end, active = before.start_time, before.end_time, before.is_active

    RoundManager.settle_round(db, round_id)
    after = RoundStore.get_round(db, round_id)

    assert (after.start_time, after.end_time, after.is_active) == (start, end, active)


def test_settle_requires_outcome(db):
    round_obj = RoundStore.create_round(db, T0, timedelta(seconds=180))
    with pytest.raises(RoundNotSettled):
        settle_round(db, round_obj)


def test_losing_bets_get_no_ledger_entry_at_settlement(db, make_user):
    user_id = make_user(balance=10)
    round_id = _open_with_bets(db, [(user_id, "number", "9", 10)])
    RoundManager.record_outcome(db, round_id, FixedDraw(0)())
    ledger_before = db.query(Transaction).filter(Transaction.user_id == user_id).count()

    RoundManager.settle_round(db, round_id)

    bet = db.query(Bet).filter(Bet.round_id == round_id).one()
    assert (bet.result, bet.payout) == (BetResult.LOSS, 0)
    assert db.query(Transaction).filter(Transaction.user_id == user_id).count() == ledger_before
