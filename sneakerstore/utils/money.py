# sneakerstore/utils/money.py
# Amounts are whole VND: no fractional units are ever stored.

from decimal import Decimal, ROUND_HALF_UP

Money = Decimal

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_vnd(x) -> int:
    return int(D(x).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def parse_amount(v, default=None):
    """Parse a non-negative whole amount; returns `default` on bad input."""
    if v is None or (isinstance(v, str) and not v.strip()):
        return default
    if isinstance(v, bool):
        return default
    try:
        amount = D(v)
    except ArithmeticError:
        return default
    if not amount.is_finite() or amount < 0:
        return default
    return round_vnd(amount)

def format_vnd(x) -> str:
    return f"{round_vnd(x):,}".replace(",", ".") + "₫"
