"""
Row loading for receipts and reports.

Queries are scoped to one business and a half-open ``[start, end)`` range;
results are plain dicts so the aggregators never see ORM objects.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import selectinload

from pos_app.exceptions import NotFoundError, BusinessLogicError
from pos_app.models import Business, Employee, Sale, SalePayment, Refund, Drawer
from pos_app.services.hourly_report_service import generate_hourly_report
from pos_app.services.period_report_service import generate_period_report
from pos_app.services.tax_report_service import generate_tax_report
from pos_app.services.drawer_report_service import generate_drawer_report
from pos_app.utils.formatters import get_zone

logger = logging.getLogger(__name__)

REPORT_NAMES = ('hourly', 'period', 'tax', 'drawer')


def period_bounds(start: date, end: date, tz_name: Optional[str] = None):
    """
    Whole days from ``start`` through ``end`` inclusive, as datetimes.

    With ``tz_name`` the bounds are midnight in that zone, so day
    boundaries follow the business rather than the database session.
    """
    if end < start:
        raise BusinessLogicError(f"Report end {end} is before start {start}")
    zone = get_zone(tz_name) if tz_name else None
    return (
        datetime.combine(start, time.min, tzinfo=zone),
        datetime.combine(end + timedelta(days=1), time.min, tzinfo=zone),
    )


def _sale_row(sale: Sale) -> Dict:
    return {
        'id': sale.id,
        'sale_number': sale.sale_number,
        'user_id': sale.user_id,
        'subtotal': sale.subtotal,
        'tax': sale.tax,
        'discount': sale.discount,
        'loyalty_discount': sale.loyalty_discount,
        'tip_amount': sale.tip_amount,
        'change_given': sale.change_given,
        'total': sale.total,
        'aggregated_taxes': sale.aggregated_taxes or {},
        'aggregated_rebates': sale.aggregated_rebates or {},
        'tax_breakdown': sale.tax_breakdown or [],
        'created_at': sale.created_at,
        'items': [item.to_row() for item in sale.items],
    }


def load_sales(session, business_id: int, start: datetime, end: datetime,
               employee_id: Optional[int] = None) -> List[Dict]:
    query = session.query(Sale).options(selectinload(Sale.items)).filter(
        Sale.business_id == business_id,
        Sale.created_at >= start,
        Sale.created_at < end,
    )
    if employee_id:
        query = query.filter(Sale.user_id == employee_id)
    return [_sale_row(sale) for sale in query.order_by(Sale.id).all()]


def load_payments(session, business_id: int, start: datetime, end: datetime,
                  employee_id: Optional[int] = None) -> List[Dict]:
    """Payment rows stamped with their sale's timestamp."""
    query = session.query(SalePayment, Sale.created_at).join(Sale, SalePayment.sale_id == Sale.id).filter(
        Sale.business_id == business_id,
        Sale.created_at >= start,
        Sale.created_at < end,
    )
    if employee_id:
        query = query.filter(Sale.user_id == employee_id)
    return [
        {
            'sale_id': payment.sale_id,
            'payment_method': payment.payment_method,
            'custom_method_name': payment.custom_method_name,
            'amount': payment.amount,
            'created_at': created_at,
        }
        for payment, created_at in query.order_by(SalePayment.id).all()
    ]


def load_refunds(session, business_id: int, start: datetime, end: datetime,
                 employee_id: Optional[int] = None) -> List[Dict]:
    query = session.query(Refund).filter(
        Refund.business_id == business_id,
        Refund.created_at >= start,
        Refund.created_at < end,
    )
    if employee_id:
        query = query.filter(Refund.refunded_by == employee_id)
    return [
        {
            'id': refund.id,
            'original_sale_id': refund.original_sale_id,
            'total_refund_amount': refund.total_refund_amount,
            'refund_method': refund.refund_method,
            'refunded_by': refund.refunded_by,
            'created_at': refund.created_at,
        }
        for refund in query.order_by(Refund.id).all()
    ]


def load_drawers(session, business_id: int, start: datetime, end: datetime,
                 employee_id: Optional[int] = None) -> List[Dict]:
    query = session.query(Drawer).filter(
        Drawer.business_id == business_id,
        Drawer.opened_at >= start,
        Drawer.opened_at < end,
    )
    if employee_id:
        query = query.filter(Drawer.opened_by == employee_id)
    return [
        {
            'id': drawer.id,
            'terminal_id': drawer.terminal_id,
            'opened_by': drawer.opener.display_name if drawer.opener else None,
            'closed_by': drawer.closer.display_name if drawer.closer else None,
            'starting_cash': drawer.starting_cash,
            'expected_cash': drawer.expected_cash,
            'actual_cash': drawer.actual_cash,
            'variance': drawer.variance,
            'status': drawer.status,
            'notes': drawer.notes,
            'opened_at': drawer.opened_at,
            'closed_at': drawer.closed_at,
        }
        for drawer in query.order_by(Drawer.opened_at).all()
    ]


def employee_names(session, business_id: int) -> Dict:
    employees = session.query(Employee).filter(Employee.business_id == business_id).all()
    return {e.id: e.display_name for e in employees}


def get_business_settings_row(session, business_id: int) -> Optional[Dict]:
    business = session.query(Business).filter_by(id=business_id).first()
    return business.to_settings_row() if business else None


def load_sale_for_receipt(session, business_id: int, sale_id: int) -> Dict:
    """
    Sale row with items, payments and loyalty customer for receipt rendering.

    Raises:
        NotFoundError: sale missing or belonging to another business
    """
    sale = session.query(Sale).filter_by(id=sale_id, business_id=business_id).first()
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")

    row = _sale_row(sale)
    row['payments'] = [
        {
            'payment_method': p.payment_method,
            'custom_method_name': p.custom_method_name,
            'amount': p.amount,
        }
        for p in sale.payments
    ]
    row['discount_amount'] = sale.discount
    row['loyalty_redemption'] = sale.loyalty_discount
    if sale.customer_name:
        row['loyalty_customer'] = {
            'customer_name': sale.customer_name,
            'customer_email': sale.customer_email,
            'customer_phone': sale.customer_phone,
            'balance': sale.loyalty_balance,
        }
    return row


def generate_report(session, business_id: int, name: str, start: date, end: date,
                    employee_id: Optional[int] = None, config: Optional[dict] = None) -> Dict:
    """
    Load rows for a period and run the named aggregator.

    Args:
        session: Database session
        business_id: Business the report is for
        name: One of 'hourly', 'period', 'tax', 'drawer'
        start: First day (inclusive)
        end: Last day (inclusive)
        employee_id: Restrict to one employee's activity
        config: App config (timezone, thresholds)

    Returns:
        Report dict as produced by the aggregator

    Raises:
        NotFoundError: unknown report name
    """
    if name not in REPORT_NAMES:
        raise NotFoundError(f"Unknown report '{name}'")

    cfg = config or {}
    tz_name = cfg.get('REPORT_TIMEZONE', 'America/Toronto')
    settings = get_business_settings_row(session, business_id)
    if settings and settings.get('timezone'):
        tz_name = settings['timezone']

    period_start, period_end = period_bounds(start, end, tz_name)
    logger.info(f"Generating {name} report for business {business_id} from {start} to {end}")

    if name == 'hourly':
        return generate_hourly_report(
            load_sales(session, business_id, period_start, period_end, employee_id),
            load_refunds(session, business_id, period_start, period_end, employee_id),
            tz_name=tz_name,
            peak_ratio=cfg.get('PEAK_HOUR_RATIO', '0.80'),
        )

    if name == 'tax':
        return generate_tax_report(
            load_sales(session, business_id, period_start, period_end, employee_id),
            load_refunds(session, business_id, period_start, period_end, employee_id),
            tz_name=tz_name,
        )

    if name == 'drawer':
        # Cash activity is matched by timestamp, so load the whole period unfiltered
        return generate_drawer_report(
            load_drawers(session, business_id, period_start, period_end, employee_id),
            load_payments(session, business_id, period_start, period_end),
            load_refunds(session, business_id, period_start, period_end),
            threshold=cfg.get('CASH_VARIANCE_THRESHOLD', '5.00'),
            now=datetime.now(),
        )

    return generate_period_report(
        load_sales(session, business_id, period_start, period_end, employee_id),
        load_payments(session, business_id, period_start, period_end, employee_id),
        load_refunds(session, business_id, period_start, period_end, employee_id),
        load_drawers(session, business_id, period_start, period_end),
        employee_names=employee_names(session, business_id),
    )
