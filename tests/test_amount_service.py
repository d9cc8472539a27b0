import pytest

from core.exceptions import InvalidInput
from services.amount_service import is_valid_amount, validate_amount


@pytest.mark.parametrize("amount", [1, 10, 0.01, 0.1, 25.5, 99.99, 1e6])
def test_cent_amounts_are_valid(amount):
    assert is_valid_amount(amount)


@pytest.mark.parametrize("amount", [
    0, -1, -0.01, 0.004, 0.001, 1.234, 1e-05,
    True, "10", None, float("nan"), float("inf"),
])
def test_invalid_amounts(amount):
    assert not is_valid_amount(amount)


def test_validate_amount_returns_float():
    assert validate_amount(5) == 5.0
    assert isinstance(validate_amount(5), float)


def test_validate_amount_names_the_field():
    with pytest.raises(InvalidInput, match="Bet amount"):
        validate_amount(0.004, "Bet amount")
