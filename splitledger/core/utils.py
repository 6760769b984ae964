from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext

from splitledger.core.exceptions import ValidationError

getcontext().prec = 28
CENTS = Decimal("0.01")
ZERO = Decimal("0")

# Allowed gap between the sum of the shares and the expense total
TOLERANCE = CENTS


def qround(d: Decimal) -> Decimal:
    return d.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value, field: str = "amount") -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        # str() first so floats like 0.1 don't drag binary noise along
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", field=field)

    if not d.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return d


def within_tolerance(a: Decimal, b: Decimal) -> bool:
    return abs(a - b) <= TOLERANCE
