"""
Cash rounding to the nearest five cents.

The penny is out of circulation, so cash tender, cash change and an
explicitly cash-rounded total are rounded to $0.05. Card and other
electronic tender keep exact cents.
"""
from decimal import Decimal, ROUND_HALF_UP

from pos_app.utils.formatters import to_decimal, CENT

NICKELS_PER_DOLLAR = Decimal('20')

# Adjustments smaller than this are not worth a receipt line
MIN_VISIBLE_ADJUSTMENT = Decimal('0.01')


def round_to_cash_nickel(amount) -> Decimal:
    """
    Round an amount to the nearest $0.05, halves rounding up.

    Args:
        amount: Money amount (Decimal, number or numeric string)

    Returns:
        Decimal quantized to cents whose cent value is a multiple of 5.

    Examples:
        round_to_cash_nickel('10.02') -> Decimal('10.00')
        round_to_cash_nickel('10.03') -> Decimal('10.05')
        round_to_cash_nickel('10.025') -> Decimal('10.05')
    """
    nickels = (to_decimal(amount) * NICKELS_PER_DOLLAR).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return (nickels / NICKELS_PER_DOLLAR).quantize(CENT)


def cash_rounding_adjustment(amount) -> Decimal:
    """Difference introduced by cash rounding (rounded minus original)."""
    original = to_decimal(amount)
    return round_to_cash_nickel(original) - original


def has_visible_adjustment(amount) -> bool:
    """True when rounding moves the amount by at least one cent."""
    return abs(cash_rounding_adjustment(amount)) >= MIN_VISIBLE_ADJUSTMENT


def is_cash_method(method) -> bool:
    """Cash tender check, case-insensitive."""
    return str(method or '').strip().lower() == 'cash'


def round_for_method(amount, method) -> Decimal:
    """Apply cash rounding only when the tender is cash."""
    if is_cash_method(method):
        return round_to_cash_nickel(amount)
    return to_decimal(amount)
