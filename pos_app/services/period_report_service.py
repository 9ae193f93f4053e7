"""
End-of-period sales report.

Groups a period's sales, payments, refunds and drawers into the summaries
shown at close of day/week/month. Grouping is done first; sorting only
orders the finished groups for display.
"""
import logging
from typing import Dict, List, Optional, Sequence

from pos_app.utils.formatters import to_decimal, to_int, safe_ratio, percentage_of, ZERO

logger = logging.getLogger(__name__)

TOP_ITEMS_LIMIT = 10
UNCATEGORIZED = 'Uncategorized'


def summarize_sales(sales: Sequence[dict], refunds: Sequence[dict]) -> Dict:
    total_sales = sum((to_decimal(s.get('total')) for s in sales), ZERO)
    total_tax = sum((to_decimal(s.get('tax')) for s in sales), ZERO)
    total_refunds = sum((to_decimal(r.get('total_refund_amount')) for r in refunds), ZERO)
    return {
        'total_sales': total_sales,
        'total_transactions': len(sales),
        'total_tax': total_tax,
        'total_refunds': total_refunds,
        'net_sales': total_sales - total_refunds,
        'average_transaction': safe_ratio(total_sales, len(sales)),
    }


def summarize_payments(payments: Sequence[dict]) -> Dict[str, object]:
    """Payment totals keyed by method, ordered by method name."""
    totals: Dict[str, object] = {}
    for payment in payments:
        method = str(payment.get('payment_method') or 'unknown').lower()
        totals[method] = totals.get(method, ZERO) + to_decimal(payment.get('amount'))
    return dict(sorted(totals.items()))


def summarize_categories(sales: Sequence[dict]) -> List[Dict]:
    groups: Dict[str, Dict] = {}
    for sale in sales:
        for item in sale.get('items') or ():
            name = item.get('category_name') or UNCATEGORIZED
            group = groups.setdefault(name, {'name': name, 'revenue': ZERO, 'quantity': 0, 'items': 0})
            group['revenue'] += to_decimal(item.get('total_price'))
            group['quantity'] += to_int(item.get('quantity'))
            group['items'] += 1

    grand_total = sum((g['revenue'] for g in groups.values()), ZERO)
    for group in groups.values():
        group['percentage_of_total'] = percentage_of(group['revenue'], grand_total)
    return sorted(groups.values(), key=lambda g: (-g['revenue'], g['name']))


def summarize_employees(sales: Sequence[dict], employee_names: Optional[Dict] = None) -> List[Dict]:
    names = employee_names or {}
    groups: Dict = {}
    for sale in sales:
        user_id = sale.get('user_id')
        group = groups.setdefault(user_id, {
            'id': user_id,
            'name': names.get(user_id, 'Unknown'),
            'sales': ZERO,
            'transactions': 0,
        })
        group['sales'] += to_decimal(sale.get('total'))
        group['transactions'] += 1

    grand_total = sum((g['sales'] for g in groups.values()), ZERO)
    for group in groups.values():
        group['average_transaction'] = safe_ratio(group['sales'], group['transactions'])
        group['percentage_of_total'] = percentage_of(group['sales'], grand_total)
    return sorted(groups.values(), key=lambda g: (-g['sales'], str(g['name']), str(g['id'])))


def top_items(sales: Sequence[dict], limit: int = TOP_ITEMS_LIMIT) -> List[Dict]:
    groups: Dict[str, Dict] = {}
    for sale in sales:
        for item in sale.get('items') or ():
            name = str(item.get('name') or 'Item')
            group = groups.setdefault(name, {'name': name, 'revenue': ZERO, 'quantity': 0})
            group['revenue'] += to_decimal(item.get('total_price'))
            group['quantity'] += to_int(item.get('quantity'))

    grand_total = sum((g['revenue'] for g in groups.values()), ZERO)
    for group in groups.values():
        group['percentage_of_total'] = percentage_of(group['revenue'], grand_total)
    return sorted(groups.values(), key=lambda g: (-g['revenue'], g['name']))[:limit]


def summarize_drawers(drawers: Sequence[dict], payment_summary: Dict) -> Dict:
    return {
        'opening_cash': sum((to_decimal(d.get('starting_cash')) for d in drawers), ZERO),
        'expected_cash': sum((to_decimal(d.get('expected_cash')) for d in drawers), ZERO),
        'actual_cash': sum((to_decimal(d.get('actual_cash')) for d in drawers), ZERO),
        'variance': sum((to_decimal(d.get('variance')) for d in drawers), ZERO),
        'drawer_count': len(drawers),
        'cash_sales': to_decimal(payment_summary.get('cash')),
    }


def summarize_discounts(sales: Sequence[dict]) -> Dict:
    total = sum((to_decimal(s.get('discount')) for s in sales), ZERO)
    loyalty = sum((to_decimal(s.get('loyalty_discount')) for s in sales), ZERO)
    return {
        'total_discounts': total,
        'loyalty_discounts': loyalty,
        'manual_discounts': total - loyalty,
    }


def generate_period_report(sales: Sequence[dict], payments: Sequence[dict],
                           refunds: Sequence[dict], drawers: Sequence[dict],
                           employee_names: Optional[Dict] = None) -> Dict:
    """
    Build the end-of-period report.

    Args:
        sales: Sale rows, each with an ``items`` list
        payments: Payment rows for those sales
        refunds: Refund rows in the period
        drawers: Drawer rows opened in the period
        employee_names: Optional ``{user_id: display name}``

    Returns:
        Dict with sales, payment, category, employee, top item, drawer and
        discount summaries.
    """
    payment_summary = summarize_payments(payments)
    report = {
        'sales_summary': summarize_sales(sales, refunds),
        'payment_summary': payment_summary,
        'category_summary': summarize_categories(sales),
        'employee_summary': summarize_employees(sales, employee_names),
        'top_items': top_items(sales),
        'drawer_summary': summarize_drawers(drawers, payment_summary),
        'discount_summary': summarize_discounts(sales),
    }
    logger.debug(f"Period report built from {len(sales)} sales and {len(refunds)} refunds")
    return report
