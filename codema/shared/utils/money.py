"""Fund amounts are kept as Decimal with two places (BRL)."""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0.00")


def round_money(value: Decimal | int | str) -> Decimal:
    """
    Round to centavos, half up.

        >>> round_money("10.125")
        Decimal('10.13')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def percent_of(part: Decimal, whole: Decimal | None) -> float:
    """Share of whole as a percentage with one decimal; 0 when whole is empty."""
    if not whole:
        return 0.0
    return float(round(part / whole * 100, 1))
