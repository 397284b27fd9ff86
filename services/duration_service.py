import math
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel

Number = Union[int, float, Decimal]


class CallEligibility(BaseModel):
    allowed: bool
    reason: Optional[str] = None


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def max_duration_seconds(balance: Number, cost_per_minute: Number) -> int:
    """Whole seconds of talk time the balance buys at the given rate."""
    balance = _to_decimal(balance)
    cost_per_minute = _to_decimal(cost_per_minute)
    if cost_per_minute <= 0 or balance <= 0:
        return 0
    return max(0, math.floor(balance * 60 / cost_per_minute))


def can_start_call(balance: Number, cost_per_minute: Number, minimum_duration_seconds: int = 60) -> CallEligibility:
    balance = _to_decimal(balance)
    cost_per_minute = _to_decimal(cost_per_minute)

    if cost_per_minute <= 0:
        return CallEligibility(allowed=False, reason="Invalid pricing for this call.")

    required_balance = Decimal(minimum_duration_seconds) * cost_per_minute / 60
    if balance < required_balance:
        return CallEligibility(
            allowed=False,
            reason=f"Insufficient balance. You need at least {math.ceil(required_balance)} coins to start this call.",
        )

    return CallEligibility(allowed=True)


def seconds_remaining(coins: Number, cost_per_minute: Number) -> int:
    return max_duration_seconds(coins, cost_per_minute)


def is_low_balance(remaining_seconds: int, warning_threshold_seconds: int) -> bool:
    return 0 < remaining_seconds <= warning_threshold_seconds
