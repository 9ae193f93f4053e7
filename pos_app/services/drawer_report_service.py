"""Cash drawer reconciliation: expected cash, counted cash and variance flags."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from pos_app.services.cash_rounding import is_cash_method
from pos_app.utils.formatters import to_decimal, parse_datetime, ZERO

logger = logging.getLogger(__name__)

DEFAULT_VARIANCE_THRESHOLD = Decimal('5.00')


def _comparable(moment: Optional[datetime]) -> Optional[datetime]:
    # Aware timestamps are compared as naive UTC
    if moment is None or moment.tzinfo is None:
        return moment
    return (moment - moment.utcoffset()).replace(tzinfo=None)


def _in_window(row: dict, opened: Optional[datetime], closed: Optional[datetime]) -> bool:
    moment = _comparable(parse_datetime(row.get('created_at')))
    if moment is None or opened is None:
        return False
    if moment < opened:
        return False
    return closed is None or moment <= closed


def reconcile_drawer(drawer: dict, payments: Sequence[dict], refunds: Sequence[dict],
                     threshold=DEFAULT_VARIANCE_THRESHOLD, now: Optional[datetime] = None) -> Dict:
    """
    Reconcile one drawer session against cash activity in its window.

    Args:
        drawer: Drawer row (starting/expected/actual cash, opened/closed)
        payments: Payment rows with ``payment_method``, ``amount``, ``created_at``
        refunds: Refund rows with ``refund_method``, ``total_refund_amount``, ``created_at``
        threshold: Absolute variance above which the drawer is flagged
        now: End of window for drawers still open

    Returns:
        Drawer dict enriched with cash activity, expected cash and variance.
    """
    opened = _comparable(parse_datetime(drawer.get('opened_at')))
    closed = _comparable(parse_datetime(drawer.get('closed_at'))) or _comparable(now)

    cash_sales = sum(
        (to_decimal(p.get('amount')) for p in payments
         if is_cash_method(p.get('payment_method')) and _in_window(p, opened, closed)),
        ZERO,
    )
    cash_refunds = sum(
        (to_decimal(r.get('total_refund_amount')) for r in refunds
         if is_cash_method(r.get('refund_method')) and _in_window(r, opened, closed)),
        ZERO,
    )

    starting = to_decimal(drawer.get('starting_cash'))
    actual = to_decimal(drawer.get('actual_cash'))
    calculated_expected = starting + (cash_sales - cash_refunds)
    if drawer.get('expected_cash') not in (None, ''):
        expected = to_decimal(drawer.get('expected_cash'))
    else:
        expected = calculated_expected
    variance = actual - expected

    return {
        'id': drawer.get('id'),
        'opened_at': drawer.get('opened_at'),
        'closed_at': drawer.get('closed_at'),
        'opened_by': drawer.get('opened_by'),
        'closed_by': drawer.get('closed_by'),
        'status': drawer.get('status') or 'open',
        'terminal_id': drawer.get('terminal_id'),
        'notes': drawer.get('notes') or '',
        'starting_cash': starting,
        'expected_cash': expected,
        'actual_cash': actual,
        'total_cash_sales': cash_sales,
        'total_cash_refunds': cash_refunds,
        'net_cash_activity': cash_sales - cash_refunds,
        'calculated_expected': calculated_expected,
        'variance': variance,
        'variance_from_calculated': actual - calculated_expected,
        'flagged': abs(variance) > to_decimal(threshold),
    }


def generate_drawer_report(drawers: Sequence[dict], payments: Sequence[dict], refunds: Sequence[dict],
                           threshold=DEFAULT_VARIANCE_THRESHOLD, now: Optional[datetime] = None) -> Dict:
    """Reconcile every drawer and total the period."""
    rows: List[Dict] = [reconcile_drawer(d, payments, refunds, threshold, now) for d in drawers]
    rows.sort(key=lambda r: (str(r['opened_at'] or ''), str(r['id'])))
    flagged = [r for r in rows if r['flagged']]
    if flagged:
        logger.info(f"{len(flagged)} drawer(s) over variance threshold {threshold}")

    return {
        'drawers': rows,
        'threshold': to_decimal(threshold),
        'summary': {
            'total_drawers': len(rows),
            'total_starting_cash': sum((r['starting_cash'] for r in rows), ZERO),
            'total_expected_cash': sum((r['expected_cash'] for r in rows), ZERO),
            'total_actual_cash': sum((r['actual_cash'] for r in rows), ZERO),
            'total_variance': sum((r['variance'] for r in rows), ZERO),
            'flagged_count': len(flagged),
        },
    }
