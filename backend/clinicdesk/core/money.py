"""Currency arithmetic. Every stored or displayed amount goes through to_money."""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Quantize to 2 decimal places using ROUND_HALF_UP.

    Accepts Decimal, int, float or str; floats go through str() to avoid
    binary-float surprises.
    """
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Cannot convert {value!r} to Decimal")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, rate) -> Decimal:
    """amount * rate / 100, rounded to currency precision."""
    return to_money(Decimal(amount) * Decimal(str(rate)) / Decimal(100))


def money_sum(values) -> Decimal:
    return to_money(sum((Decimal(v) for v in values), Decimal(0)))
