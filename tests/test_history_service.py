from datetime import timedelta

import pytest

from models import BetType
from core.round_store import RoundStore
from services.history_service import (
    MAX_PAGE_SIZE,
    get_bet_history,
    get_period_history,
    page_bounds,
)
from tests.conftest import T0


@pytest.mark.parametrize("page,limit,expected", [
    (1, 10, (0, 10)),
    (3, 10, (20, 10)),
    (0, 5, (0, 5)),
    (2, 0, (1, 1)),
    (1, 1000, (0, MAX_PAGE_SIZE)),
])
def test_page_bounds(page, limit, expected):
    assert page_bounds(page, limit) == expected


def test_period_history_pages_newest_first(db):
    duration = timedelta(minutes=3)
    for i in range(5):
        round_obj = RoundStore.create_round(db, T0 + i * duration, duration)
        RoundStore.set_round_outcome(db, round_obj.id, i, "green", 100.0)
    RoundStore.create_round(db, T0 + 5 * duration, duration)
    db.commit()

    first = get_period_history(db, page=1, limit=2)
    second = get_period_history(db, page=2, limit=2)
    last = get_period_history(db, page=3, limit=2)

    assert [r.number for r in first] == [4, 3]
    assert [r.number for r in second] == [2, 1]
    assert [r.number for r in last] == [0]


def test_bet_history_only_lists_the_users_bets(db, make_user):
    alice = make_user(balance=10)
    bob = make_user(balance=10)
    round_obj = RoundStore.create_round(db, T0, timedelta(minutes=3))
    RoundStore.create_bet(db, alice, round_obj.id, BetType.COLOR, "red", 1, 2)
    RoundStore.create_bet(db, bob, round_obj.id, BetType.NUMBER, "3", 1, 9)
    RoundStore.create_bet(db, alice, round_obj.id, BetType.NUMBER, "7", 2, 9)
    db.commit()

    bets = get_bet_history(db, alice, page=1, limit=10)

    assert [b.value for b in bets] == ["7", "red"]
