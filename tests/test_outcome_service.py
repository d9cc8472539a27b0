import random

import pytest

from models import Color
from services.outcome_service import derive_colors, draw_outcome, outcome_for_number


@pytest.mark.parametrize("number,expected", [
    (0, (Color.VIOLET, Color.RED)),
    (1, (Color.RED,)),
    (2, (Color.GREEN,)),
    (3, (Color.RED,)),
    (4, (Color.GREEN,)),
    (5, (Color.VIOLET, Color.GREEN)),
    (6, (Color.GREEN,)),
    (7, (Color.RED,)),
    (8, (Color.GREEN,)),
    (9, (Color.RED,)),
])
def test_color_table(number, expected):
    assert derive_colors(number) == expected


def test_violet_only_for_zero_and_five():
    for number in range(10):
        assert (Color.VIOLET in derive_colors(number)) == (number in (0, 5))


@pytest.mark.parametrize("number", [-1, 10])
def test_out_of_range_number_rejected(number):
    with pytest.raises(ValueError):
        derive_colors(number)


def test_stored_color_form():
    assert outcome_for_number(0, 99.999).color == "violet+red"
    assert outcome_for_number(8, 50).color == "green"


def test_seeded_draws_are_reproducible():
    first = [draw_outcome(random.Random(42)) for _ in range(3)]
    second = [draw_outcome(random.Random(42)) for _ in range(3)]
    assert first == second


def test_draws_stay_in_range():
    rng = random.Random(7)
    seen = set()
    for _ in range(500):
        outcome = draw_outcome(rng)
        seen.add(outcome.number)
        assert 0 <= outcome.number <= 9
        assert 50 <= outcome.price <= 150
        assert outcome.price == round(outcome.price, 2)
        assert outcome.colors == derive_colors(outcome.number)
    assert seen == set(range(10))
