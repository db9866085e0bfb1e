"""Decimal precision utilities for financial calculations."""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Optional, Union

from app.utils.logger import get_logger

logger = get_logger(__name__)

# Standard precision for financial amounts (2 decimal places)
FINANCIAL_PRECISION = Decimal("0.01")
ZERO = Decimal("0.00")

Numeric = Union[str, int, float, Decimal]


def parse_decimal(value: Optional[Numeric], precision: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Parse a value to Decimal with proper precision handling.

    Args:
        value: Value to parse (string, int, float, or Decimal)
        precision: Optional precision to round to

    Returns:
        Decimal value, or None if the value is empty, non-numeric, not finite
        or too large to round to ``precision``

    Example:
        >>> parse_decimal("123.456")
        Decimal('123.456')
        >>> parse_decimal("123.456", precision=Decimal("0.01"))
        Decimal('123.46')
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None

    if isinstance(value, float):
        # str() keeps the shortest repr, avoiding binary float noise
        value = str(value)

    if not isinstance(value, (str, int, Decimal)):
        logger.warning("Unsupported type for decimal parsing", type=type(value).__name__)
        return None

    try:
        result = Decimal(value)
    except (ValueError, InvalidOperation):
        logger.warning("Failed to parse decimal", value=value)
        return None

    if not result.is_finite():
        return None

    if precision is not None:
        try:
            result = result.quantize(precision, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            logger.warning("Decimal out of range for precision", value=str(result), precision=str(precision))
            return None

    return result


def parse_financial_amount(value: Optional[Numeric]) -> Optional[Decimal]:
    """
    Parse a financial amount with 2 decimal place precision.

    Example:
        >>> parse_financial_amount("123.456")
        Decimal('123.46')
        >>> parse_financial_amount("1000")
        Decimal('1000.00')
    """
    return parse_decimal(value, precision=FINANCIAL_PRECISION)


def to_money(value: Optional[Numeric]) -> Decimal:
    """Quantize to cents; None and unparseable values count as zero."""
    parsed = parse_financial_amount(value)
    return parsed if parsed is not None else ZERO


def money_sum(values: Iterable[Optional[Numeric]]) -> Decimal:
    """Sum amounts as money, ignoring None."""
    total = ZERO
    for value in values:
        total += to_money(value)
    return total.quantize(FINANCIAL_PRECISION, rounding=ROUND_HALF_UP)


def floor_at_zero(value: Decimal) -> Decimal:
    """max(0, value) at cent precision."""
    return max(ZERO, value).quantize(FINANCIAL_PRECISION, rounding=ROUND_HALF_UP)
