from datetime import timedelta

import pytest

from models import BetType, TransactionType
from core.exceptions import DuplicateSettlement, InsufficientBalance, RoundNotFound, UserNotFound
from core.round_store import RoundStore
from services.naming_service import generate_period_id
from tests.conftest import T0

DURATION = timedelta(seconds=180)


def test_create_round_derives_id_and_end(db):
    round_obj = RoundStore.create_round(db, T0, DURATION)

    assert round_obj.id == generate_period_id(T0)
    assert round_obj.end_time == T0 + DURATION
    assert round_obj.is_active
    assert not round_obj.is_settled
    assert RoundStore.get_active_round(db).id == round_obj.id


def test_create_round_in_taken_bucket_moves_to_next_bucket(db):
    first = RoundStore.create_round(db, T0 + timedelta(seconds=10), DURATION)
    RoundStore.set_round_outcome(db, first.id, 1, "red", 80.0)

    second = RoundStore.create_round(db, T0 + timedelta(seconds=100), DURATION)

    assert second.id != first.id
    assert second.start_time == T0 + timedelta(minutes=3)
    assert second.id == generate_period_id(T0 + timedelta(minutes=3))


def test_set_round_outcome_writes_all_fields_once(db):
    round_obj = RoundStore.create_round(db, T0, DURATION)

    settled = RoundStore.set_round_outcome(db, round_obj.id, 0, "violet+red", 123.45)

    assert (settled.number, settled.color, settled.price) == (0, "violet+red", 123.45)
    assert settled.settled_at is not None
    assert settled.is_active is False
    assert settled.colors == ("violet", "red")
    assert RoundStore.get_active_round(db) is None

    with pytest.raises(DuplicateSettlement):
        RoundStore.set_round_outcome(db, round_obj.id, 3, "red", 60.0)
    assert RoundStore.get_round(db, round_obj.id).number == 0


def test_unknown_round(db):
    with pytest.raises(RoundNotFound):
        RoundStore.get_round(db, "20000101")
    with pytest.raises(RoundNotFound):
        RoundStore.set_round_outcome(db, "20000101", 1, "red", 70.0)


def test_history_lists_settled_rounds_newest_first(db):
    ids = []
    for i in range(3):
        round_obj = RoundStore.create_round(db, T0 + timedelta(minutes=4 * i), DURATION)
        RoundStore.set_round_outcome(db, round_obj.id, i, "green", 100.0)
        ids.append(round_obj.id)
    RoundStore.create_round(db, T0 + timedelta(minutes=20), DURATION)

    assert [r.id for r in RoundStore.get_round_history(db, limit=10)] == ids[::-1]
    assert [r.id for r in RoundStore.get_round_history(db, limit=1, offset=1)] == [ids[1]]


def test_adjust_user_balance(db):
    user = RoundStore.create_user(db, "alice", balance=10)

    assert RoundStore.adjust_user_balance(db, user.id, 5.5).balance == 15.5
    assert RoundStore.adjust_user_balance(db, user.id, -15.5).balance == 0

    with pytest.raises(InsufficientBalance):
        RoundStore.adjust_user_balance(db, user.id, -0.01)
    with pytest.raises(UserNotFound):
        RoundStore.adjust_user_balance(db, 999, 1)


def test_pending_settlement_query(db):
    user = RoundStore.create_user(db, "bob", balance=10)
    drawn = RoundStore.create_round(db, T0, DURATION)
    RoundStore.create_bet(db, user.id, drawn.id, BetType.COLOR, "red", 1, 2)
    RoundStore.set_round_outcome(db, drawn.id, 1, "red", 90.0)
    open_round = RoundStore.create_round(db, T0 + timedelta(minutes=5), DURATION)
    RoundStore.create_bet(db, user.id, open_round.id, BetType.COLOR, "red", 1, 2)

    assert [r.id for r in RoundStore.get_rounds_pending_settlement(db)] == [drawn.id]
    assert RoundStore.has_pending_bets(db, drawn.id)


def test_create_transaction_stores_magnitude(db):
    user = RoundStore.create_user(db, "carol")
    transaction = RoundStore.create_transaction(db, user.id, TransactionType.WITHDRAWAL, -12.5)
    assert transaction.amount == 12.5
