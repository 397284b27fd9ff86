from decimal import Decimal

from services.duration_service import can_start_call, is_low_balance, max_duration_seconds, seconds_remaining


def test_max_duration_whole_minutes():
    assert max_duration_seconds(100, 10) == 600


def test_max_duration_floors_to_the_second():
    assert max_duration_seconds(95, 10) == 570
    assert max_duration_seconds(Decimal("10"), Decimal("3")) == 200


def test_max_duration_with_zero_rate_or_balance():
    assert max_duration_seconds(100, 0) == 0
    assert max_duration_seconds(0, 10) == 0
    assert max_duration_seconds(-5, 10) == 0


def test_can_start_call_exact_minimum_is_allowed():
    result = can_start_call(100, 10, 60)
    assert result.allowed
    assert result.reason is None

    assert can_start_call(10, 10, 60).allowed


def test_can_start_call_insufficient_balance_names_required_coins():
    result = can_start_call(9, 10, 60)
    assert not result.allowed
    assert "10 coins" in result.reason


def test_can_start_call_rounds_required_coins_up():
    result = can_start_call(1, Decimal("12.5"), 30)
    assert not result.allowed
    assert "7 coins" in result.reason


def test_can_start_call_invalid_pricing():
    result = can_start_call(1000, 0, 60)
    assert not result.allowed
    assert "Invalid pricing" in result.reason

    assert not can_start_call(1000, -3, 0).allowed


def test_zero_minimum_duration_allows_empty_wallet():
    assert can_start_call(0, 10, 0).allowed


def test_low_balance_window():
    assert seconds_remaining(5, 10) == 30
    assert is_low_balance(30, 60)
    assert is_low_balance(60, 60)
    assert not is_low_balance(61, 60)
    assert not is_low_balance(0, 60)
