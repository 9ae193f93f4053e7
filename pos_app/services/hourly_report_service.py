"""Hourly sales breakdown: 24 local-hour buckets plus peak-hour detection."""
import logging
from decimal import Decimal
from typing import Dict, List, Sequence

from pos_app.utils.formatters import to_decimal, to_local, safe_ratio, format_hour, ZERO

logger = logging.getLogger(__name__)

DEFAULT_PEAK_RATIO = Decimal('0.80')


def _empty_bucket(hour: int) -> Dict:
    return {
        'hour': hour,
        'label': format_hour(hour),
        'sales': ZERO,
        'refunds': ZERO,
        'net_sales': ZERO,
        'transaction_count': 0,
        'refund_count': 0,
        'average_transaction': ZERO,
    }


def build_hourly_breakdown(sales: Sequence[dict], refunds: Sequence[dict],
                           tz_name: str = 'America/Toronto') -> List[Dict]:
    """
    Bucket sales and refunds by local hour of day.

    Args:
        sales: Rows with ``total`` and ``created_at``
        refunds: Rows with ``total_refund_amount`` and ``created_at``
        tz_name: Business timezone used to read the hour

    Returns:
        24 bucket dicts ordered by hour. Rows without a readable
        timestamp are skipped.
    """
    hours = [_empty_bucket(h) for h in range(24)]

    for sale in sales:
        moment = to_local(sale.get('created_at'), tz_name)
        if moment is None:
            logger.warning(f"Skipping sale {sale.get('id')} without timestamp in hourly report")
            continue
        bucket = hours[moment.hour]
        bucket['sales'] += to_decimal(sale.get('total'))
        bucket['transaction_count'] += 1

    for refund in refunds:
        moment = to_local(refund.get('created_at'), tz_name)
        if moment is None:
            continue
        bucket = hours[moment.hour]
        bucket['refunds'] += to_decimal(refund.get('total_refund_amount'))
        bucket['refund_count'] += 1

    for bucket in hours:
        bucket['net_sales'] = bucket['sales'] - bucket['refunds']
        bucket['average_transaction'] = safe_ratio(bucket['sales'], bucket['transaction_count'])

    return hours


def find_peak_hours(hours: Sequence[dict], ratio=DEFAULT_PEAK_RATIO) -> List[int]:
    """Hours whose net sales reach ``ratio`` of the best hour (and are positive)."""
    if not hours:
        return []
    best = max(to_decimal(h['net_sales']) for h in hours)
    threshold = best * to_decimal(ratio)
    return sorted(
        h['hour'] for h in hours
        if to_decimal(h['net_sales']) >= threshold and to_decimal(h['net_sales']) > 0
    )


def generate_hourly_report(sales: Sequence[dict], refunds: Sequence[dict],
                           tz_name: str = 'America/Toronto', peak_ratio=DEFAULT_PEAK_RATIO) -> Dict:
    """Hourly buckets, peak hours and period totals."""
    hours = build_hourly_breakdown(sales, refunds, tz_name)
    total_sales = sum((h['sales'] for h in hours), ZERO)
    total_refunds = sum((h['refunds'] for h in hours), ZERO)
    transactions = sum(h['transaction_count'] for h in hours)
    peak_hours = find_peak_hours(hours, peak_ratio)

    return {
        'hours': hours,
        'peak_hours': peak_hours,
        'peak_hour_labels': [format_hour(h) for h in peak_hours],
        'summary': {
            'total_sales': total_sales,
            'total_refunds': total_refunds,
            'net_sales': total_sales - total_refunds,
            'total_transactions': transactions,
            'average_transaction': safe_ratio(total_sales, transactions),
        },
    }
