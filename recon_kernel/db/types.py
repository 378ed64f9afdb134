"""
Module: recon_kernel.db.types
Responsibility: Decimal coercion and rounding helpers for quantities, money
    and percentages.  Centralizes rounding so every model and engine uses
    identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and engines.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere.  Quantities and amounts use Decimal with explicit
      precision.
    - round_money() and round_percent() are the only sanctioned rounding
      functions; both round half away from zero.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 2
# Scale of every Numeric(38, 9) quantity column.
QUANTITY_DECIMAL_PLACES = 9
QUANTITY_QUANTUM = Decimal(10) ** -QUANTITY_DECIMAL_PLACES
# ROUND_HALF_UP on Decimal rounds half away from zero for negatives too.
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Example:
        round_money(Decimal("10.125")) -> Decimal("10.13")
        round_money(Decimal("-10.125")) -> Decimal("-10.13")
    """
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=rounding)


def round_percent(value: Decimal) -> int:
    """
    Round a percentage to a whole number, half away from zero.

    Example:
        round_percent(Decimal("33.333")) -> 33
        round_percent(Decimal("-2.5")) -> -3
    """
    return int(value.quantize(Decimal("1"), rounding=DEFAULT_ROUNDING))


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Coerce an int / str / Decimal input into Decimal, rejecting floats."""
    if isinstance(value, float):
        raise TypeError("float quantities are not accepted; pass Decimal or str")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)
