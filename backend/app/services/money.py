"""Half-up rounding helpers for currency and shipping weight."""
from decimal import Decimal, ROUND_HALF_UP

_CENTS = Decimal("0.01")
_TENTHS = Decimal("0.1")


def _quantize(value: float, exp: Decimal) -> float:
    # str() first so 2.675 rounds as written, not as its binary approximation
    return float(Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP))


def round2(value: float) -> float:
    """Round a currency amount to cents, half-up."""
    return _quantize(value, _CENTS)


def round1(value: float) -> float:
    """Round a weight in pounds to one decimal place, half-up."""
    return _quantize(value, _TENTHS)


def round_places(value: float, places: int) -> float:
    """Half-up rounding to an arbitrary number of decimal places."""
    return _quantize(value, Decimal(1).scaleb(-places))
