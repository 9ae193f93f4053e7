"""
Formatting and coercion helpers shared by receipts, reports and templates.

Money is always handled as ``Decimal``. Anything that cannot be read as a
finite number is treated as zero so that a malformed row never breaks a
receipt or a report.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


CENT = Decimal('0.01')
ZERO = Decimal('0')

Number = Union[int, float, Decimal, str, None]


def to_decimal(value: Number) -> Decimal:
    """
    Coerce a row value into a finite Decimal.

    Args:
        value: Number, numeric string, None or garbage

    Returns:
        Decimal value, or Decimal('0') for None, NaN, infinities and
        values that cannot be parsed.

    Examples:
        to_decimal('12.50') -> Decimal('12.50')
        to_decimal(None) -> Decimal('0')
        to_decimal(float('nan')) -> Decimal('0')
    """
    if value is None or value == "" or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        num = value
    else:
        try:
            num = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError):
            return ZERO

    if not num.is_finite():
        return ZERO
    return num


def to_int(value: Number) -> int:
    """Coerce a quantity into an int, truncating fractions; invalid -> 0."""
    return int(to_decimal(value))


def quantize_money(value: Number) -> Decimal:
    """Round a money amount to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money(value: Number) -> str:
    """
    Format a money amount for display on a receipt.

    Examples:
        money(1234.5) -> "$1,234.50"
        money(-5) -> "-$5.00"
    """
    num = quantize_money(value)
    sign = "-" if num < 0 else ""
    return f"{sign}${abs(num):,.2f}"


def money_plain(value: Number) -> str:
    """Two decimals, no currency symbol, no grouping (CSV cells)."""
    return f"{quantize_money(value):.2f}"


def points(value: Number) -> str:
    """Format a loyalty points figure with thousands separators."""
    return f"{to_decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}"


def safe_ratio(part: Number, whole: Number) -> Decimal:
    """
    Divide part by whole, returning 0 when whole is zero.

    Used for averages, effective tax rates and share-of-total figures.
    """
    denominator = to_decimal(whole)
    if denominator == 0:
        return ZERO
    return to_decimal(part) / denominator


def percentage_of(part: Number, whole: Number) -> Decimal:
    """Share of total as a percentage (0-100), 0 when total is 0."""
    return safe_ratio(part, whole) * 100


def format_hour(hour: int) -> str:
    """
    Render a 0-23 hour bucket in 12-hour clock form.

    Examples:
        format_hour(0) -> "12:00 AM"
        format_hour(12) -> "12:00 PM"
        format_hour(15) -> "3:00 PM"
    """
    period = "AM" if hour < 12 else "PM"
    display = hour % 12 or 12
    return f"{display}:00 {period}"


def get_zone(tz_name: Optional[str]):
    """Resolve an IANA zone name, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(tz_name or 'UTC')
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo('UTC')


def parse_datetime(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """Accept datetimes, dates or ISO-8601 strings; None when unreadable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def to_local(value: Union[str, datetime, None], tz_name: Optional[str]) -> Optional[datetime]:
    """
    Convert a timestamp to the business timezone.

    Naive datetimes are taken to be local wall-clock time already.
    """
    moment = parse_datetime(value)
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(get_zone(tz_name))


def datetime_display(value: Union[str, datetime, None], tz_name: Optional[str] = None) -> str:
    """Receipt timestamp, e.g. "2024-03-05 14:07"; "-" when missing."""
    moment = to_local(value, tz_name)
    if moment is None:
        return "-"
    return moment.strftime("%Y-%m-%d %H:%M")


def date_display(value: Union[str, datetime, date, None]) -> str:
    """ISO calendar date; "-" when missing."""
    moment = parse_datetime(value)
    if moment is None:
        return "-"
    return moment.strftime("%Y-%m-%d")
