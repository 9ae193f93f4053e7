"""
Tax compliance report.

Refunds carry no tax breakdown of their own, so the tax given back is
estimated from the period's effective rate (tax collected over sale
subtotals). The estimate is flagged as such in every output.
"""
import logging
from decimal import Decimal
from typing import Dict, Sequence

from pos_app.services.tax_allocation import merge_amount_maps
from pos_app.utils.formatters import to_decimal, to_int, safe_ratio, to_local, ZERO

logger = logging.getLogger(__name__)

UNCATEGORIZED = 'Uncategorized'


def effective_tax_rate(sales: Sequence[dict]) -> Decimal:
    """Tax collected divided by sale subtotals; 0 when there is no subtotal."""
    collected = sum((to_decimal(s.get('tax')) for s in sales), ZERO)
    taxable = sum((to_decimal(s.get('subtotal')) for s in sales), ZERO)
    return safe_ratio(collected, taxable)


def rate_key(rate) -> str:
    """Grouping label for a fractional rate, e.g. 0.13 -> "13.00%"."""
    return f"{to_decimal(rate) * 100:.2f}%"


def _add_group(groups: Dict, key: str, label_field: str, taxable, tax, quantity) -> None:
    group = groups.setdefault(key, {
        label_field: key, 'taxable_amount': ZERO, 'tax_collected': ZERO, 'item_count': 0,
    })
    group['taxable_amount'] += taxable
    group['tax_collected'] += tax
    group['item_count'] += quantity


def generate_tax_report(sales: Sequence[dict], refunds: Sequence[dict],
                        tz_name: str = 'America/Toronto') -> Dict:
    """
    Aggregate tax collected, taxable and exempt amounts for a period.

    Args:
        sales: Sale rows with ``tax``, ``subtotal``, ``created_at``,
            ``aggregated_taxes``, ``aggregated_rebates`` and ``items``
        refunds: Refund rows with ``total_refund_amount``
        tz_name: Timezone used for the daily breakdown

    Returns:
        Report dict. ``refunded_tax`` is an estimate
        (``refunded_tax_is_estimated`` is always True).
    """
    rate = effective_tax_rate(sales)
    total_collected = ZERO
    total_taxable = ZERO
    total_exempt = ZERO
    by_rate: Dict[str, Dict] = {}
    by_category: Dict[str, Dict] = {}
    daily: Dict[str, Dict] = {}

    for sale in sales:
        sale_tax = to_decimal(sale.get('tax'))
        total_collected += sale_tax

        for item in sale.get('items') or ():
            item_total = to_decimal(item.get('total_price'))
            if item.get('tax_exempt'):
                total_exempt += item_total
                continue
            total_taxable += item_total
            item_tax = to_decimal(item.get('tax_amount'))
            quantity = to_int(item.get('quantity'))
            _add_group(by_rate, rate_key(item.get('tax_rate')), 'rate', item_total, item_tax, quantity)
            _add_group(by_category, item.get('category_name') or UNCATEGORIZED, 'category',
                       item_total, item_tax, quantity)

        moment = to_local(sale.get('created_at'), tz_name)
        day_key = moment.strftime('%Y-%m-%d') if moment else 'unknown'
        day = daily.setdefault(day_key, {
            'date': day_key, 'taxable_amount': ZERO, 'tax_collected': ZERO, 'transaction_count': 0,
        })
        day['tax_collected'] += sale_tax
        day['taxable_amount'] += to_decimal(sale.get('subtotal'))
        day['transaction_count'] += 1

    refunded_tax = sum((to_decimal(r.get('total_refund_amount')) * rate for r in refunds), ZERO)

    return {
        'total_tax_collected': total_collected,
        'total_taxable_amount': total_taxable,
        'total_exempt_amount': total_exempt,
        'effective_tax_rate': rate,
        'refunded_tax': refunded_tax,
        'refunded_tax_is_estimated': True,
        'net_tax_owed': total_collected - refunded_tax,
        'aggregated_taxes': dict(sorted(merge_amount_maps([s.get('aggregated_taxes') for s in sales]).items())),
        'aggregated_rebates': dict(sorted(merge_amount_maps([s.get('aggregated_rebates') for s in sales]).items())),
        'tax_by_rate': sorted(by_rate.values(), key=lambda g: (-g['tax_collected'], g['rate'])),
        'tax_by_category': sorted(by_category.values(), key=lambda g: (-g['tax_collected'], g['category'])),
        'daily_breakdown': sorted(daily.values(), key=lambda d: d['date']),
    }
