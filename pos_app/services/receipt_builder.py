"""
Receipt document builder.

Turns a normalized sale or refund view plus the business display settings
into a standalone printable HTML page. Each ``ReceiptKind`` has its own
renderer; standard, reprint and email receipts share the financial
summary builder. Nothing here prints, emails or touches the database.
"""
import enum
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from markupsafe import escape

from pos_app.services.cash_rounding import (
    cash_rounding_adjustment, has_visible_adjustment, is_cash_method, round_to_cash_nickel,
)
from pos_app.services.tax_allocation import TaxBreakdown, TaxLine, resolve_tax_breakdown
from pos_app.utils.formatters import (
    to_decimal, to_int, money, points, datetime_display, ZERO,
)

logger = logging.getLogger(__name__)


class ReceiptKind(str, enum.Enum):
    """Receipt variants."""
    STANDARD = 'standard'
    GIFT = 'gift'
    KITCHEN = 'kitchen'
    REPRINT = 'reprint'
    EMAIL = 'email'

    @classmethod
    def parse(cls, value) -> 'ReceiptKind':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or '').strip().lower())
        except ValueError:
            return cls.STANDARD


class LoyaltyMode(str, enum.Enum):
    POINTS = 'points'
    CREDIT = 'credit'


# Loyalty points are stored as dollars; one dollar is shown as 1,000 points
POINTS_PER_DOLLAR = Decimal('1000')


@dataclass(frozen=True)
class BusinessDisplaySettings:
    """Business identity printed on receipts."""
    business_name: str = 'Your Business Name'
    address: str = '123 Main St'
    city: str = 'Your City'
    province: str = 'ON'
    postal_code: str = 'N1A 1A1'
    phone: str = '(555) 123-4567'
    email: str = 'hello@yourbusiness.com'
    tax_number: str = 'HST#123456789'
    timezone: str = 'America/Toronto'
    loyalty_mode: LoyaltyMode = LoyaltyMode.CREDIT
    earn_rate_percentage: Decimal = Decimal('3')
    return_days: int = 30

    @classmethod
    def from_row(cls, row: Optional[dict], defaults: Optional['BusinessDisplaySettings'] = None) -> 'BusinessDisplaySettings':
        """Overlay non-empty row values on the defaults."""
        base = defaults or cls()
        if not row:
            return base
        overrides = {}
        for name in ('business_name', 'address', 'city', 'province', 'postal_code',
                     'phone', 'email', 'tax_number', 'timezone'):
            if row.get(name):
                overrides[name] = str(row[name])
        if row.get('loyalty_mode'):
            mode = str(row['loyalty_mode']).lower()
            overrides['loyalty_mode'] = LoyaltyMode.POINTS if mode == 'points' else LoyaltyMode.CREDIT
        if to_decimal(row.get('earn_rate_percentage')) > 0:
            overrides['earn_rate_percentage'] = to_decimal(row['earn_rate_percentage'])
        if to_int(row.get('return_days')) > 0:
            overrides['return_days'] = to_int(row['return_days'])
        return replace(base, **overrides)

    @classmethod
    def from_config(cls, config) -> 'BusinessDisplaySettings':
        """Defaults taken from the Flask config mapping."""
        return cls.from_row({
            'business_name': config.get('BUSINESS_NAME'),
            'address': config.get('BUSINESS_ADDRESS'),
            'city': config.get('BUSINESS_CITY'),
            'province': config.get('BUSINESS_PROVINCE'),
            'postal_code': config.get('BUSINESS_POSTAL_CODE'),
            'phone': config.get('BUSINESS_PHONE'),
            'email': config.get('BUSINESS_EMAIL'),
            'tax_number': config.get('BUSINESS_TAX_NUMBER'),
            'timezone': config.get('REPORT_TIMEZONE'),
        })


@dataclass(frozen=True)
class ReceiptItem:
    name: str
    quantity: int
    unit_price: Decimal = ZERO
    total_price: Decimal = ZERO
    sku: Optional[str] = None
    modifiers: Tuple[Tuple[str, Decimal], ...] = ()
    rebates: Tuple[Tuple[str, Decimal], ...] = ()
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> 'ReceiptItem':
        quantity = to_int(row.get('quantity'))
        unit_price = to_decimal(row.get('unit_price', row.get('price')))
        if row.get('total_price') not in (None, ''):
            total = to_decimal(row.get('total_price'))
        else:
            total = unit_price * quantity
        modifiers = []
        for mod in row.get('modifiers') or ():
            if isinstance(mod, str):
                modifiers.append((mod, ZERO))
            else:
                modifiers.append((str(mod.get('name') or ''), to_decimal(mod.get('price'))))
        rebates = tuple(
            (str(r.get('name') or 'Rebate'), to_decimal(r.get('amount')))
            for r in (row.get('rebate_details') or ())
        )
        return cls(
            name=str(row.get('name') or 'Item'),
            quantity=quantity,
            unit_price=unit_price,
            total_price=total,
            sku=row.get('sku'),
            modifiers=tuple(modifiers),
            rebates=rebates,
            notes=row.get('notes'),
        )


@dataclass(frozen=True)
class ReceiptPayment:
    method: str
    amount: Decimal
    custom_method_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.custom_method_name or self.method.replace('_', ' ').title()

    @property
    def is_cash(self) -> bool:
        return is_cash_method(self.method)


@dataclass(frozen=True)
class ReceiptCustomer:
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    balance: Decimal = ZERO


@dataclass(frozen=True)
class RefundDetails:
    reason: Optional[str] = None
    refund_method: Optional[str] = None
    original_sale_number: Optional[str] = None
    refund_type: Optional[str] = None


@dataclass(frozen=True)
class ReceiptView:
    """Normalized sale or refund, ready to render."""
    sale_number: str = 'Unknown'
    created_at: Optional[object] = None
    items: Tuple[ReceiptItem, ...] = ()
    subtotal: Decimal = ZERO
    final_total: Decimal = ZERO
    tax_amount: Decimal = ZERO
    payments: Tuple[ReceiptPayment, ...] = ()
    tip_amount: Decimal = ZERO
    change_given: Decimal = ZERO
    discount_amount: Decimal = ZERO
    loyalty_redemption: Decimal = ZERO
    breakdown: TaxBreakdown = field(default_factory=TaxBreakdown)
    customer: Optional[ReceiptCustomer] = None
    refund: Optional[RefundDetails] = None

    @property
    def is_refund(self) -> bool:
        return self.refund is not None

    @property
    def item_count(self) -> int:
        return sum(abs(item.quantity) for item in self.items)

    @classmethod
    def from_row(cls, row: dict) -> 'ReceiptView':
        """
        Normalize a sale row (with ``items`` and ``payments`` lists).

        Every money field is optional and defaults to 0. The tax/rebate
        breakdown is resolved once here.
        """
        customer = None
        loyalty = row.get('loyalty_customer')
        if loyalty:
            customer = ReceiptCustomer(
                name=str(loyalty.get('customer_name') or 'Customer'),
                email=loyalty.get('customer_email'),
                phone=loyalty.get('customer_phone'),
                balance=to_decimal(loyalty.get('balance')),
            )

        if row.get('tax_amount') not in (None, ''):
            tax_amount = to_decimal(row.get('tax_amount'))
        elif row.get('final_tax_amount') not in (None, ''):
            tax_amount = to_decimal(row.get('final_tax_amount'))
        else:
            tax_amount = to_decimal(row.get('tax'))

        final_total = row.get('final_total')
        if final_total in (None, ''):
            final_total = row.get('total')

        return cls(
            sale_number=str(row.get('sale_number') or 'Unknown'),
            created_at=row.get('created_at'),
            items=tuple(ReceiptItem.from_row(i) for i in row.get('items') or ()),
            subtotal=to_decimal(row.get('subtotal')),
            final_total=to_decimal(final_total),
            tax_amount=tax_amount,
            payments=tuple(
                ReceiptPayment(
                    method=str(p.get('payment_method') or p.get('method') or 'other'),
                    amount=to_decimal(p.get('amount')),
                    custom_method_name=p.get('custom_method_name'),
                )
                for p in row.get('payments') or ()
            ),
            tip_amount=to_decimal(row.get('tip_amount')),
            change_given=to_decimal(row.get('change_given')),
            discount_amount=to_decimal(row.get('discount_amount')),
            loyalty_redemption=to_decimal(row.get('loyalty_redemption')),
            breakdown=resolve_tax_breakdown(row),
            customer=customer,
        )


@dataclass(frozen=True)
class ReceiptOptions:
    reprint_reason: Optional[str] = None
    cash_round_total: bool = False
    printed_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'ReceiptOptions':
        data = data or {}
        return cls(
            reprint_reason=data.get('reprint_reason') or None,
            cash_round_total=bool(data.get('cash_round_total')),
            printed_at=data.get('printed_at'),
        )


# ===== REFUND VIEWS =====

def build_refund_receipt_view(sale_row: dict, breakdown, refund_method: str,
                              reason: Optional[str] = None, refund_type: Optional[str] = None,
                              created_at=None) -> ReceiptView:
    """
    Receipt view for a refund of an existing sale.

    Quantities and amounts are negative; the view is numbered
    ``REFUND-<sale number>``.
    """
    original_number = str(sale_row.get('sale_number') or sale_row.get('id') or 'Unknown')
    items = tuple(
        ReceiptItem(
            name=line.item.name,
            quantity=-line.refund_quantity,
            unit_price=line.item.unit_price,
            total_price=-line.refund_subtotal,
            sku=line.item.sku,
        )
        for line in breakdown.lines
    )
    refunded = TaxBreakdown(
        taxes=tuple(TaxLine(name=k, amount=-v) for k, v in sorted(breakdown.aggregated_taxes.items())),
        rebates=tuple(TaxLine(name=k, amount=-v) for k, v in sorted(breakdown.aggregated_rebates.items())),
    )
    return ReceiptView(
        sale_number=f"REFUND-{original_number}",
        created_at=created_at or datetime.now(),
        items=items,
        subtotal=-breakdown.subtotal,
        final_total=-breakdown.total,
        tax_amount=-breakdown.tax,
        payments=(ReceiptPayment(method=refund_method or 'other', amount=-breakdown.total),),
        breakdown=refunded,
        refund=RefundDetails(
            reason=reason,
            refund_method=refund_method,
            original_sale_number=original_number,
            refund_type=refund_type,
        ),
    )


def build_manual_refund_receipt_view(refund_id, amount, refund_method: str,
                                     reason: Optional[str] = None, customer: Optional[ReceiptCustomer] = None,
                                     created_at=None) -> ReceiptView:
    """Receipt view for a refund that has no originating sale."""
    value = to_decimal(amount)
    suffix = str(refund_id)[-8:].upper()
    return ReceiptView(
        sale_number=f"MANUAL-REFUND-{suffix}",
        created_at=created_at or datetime.now(),
        items=(ReceiptItem(name='Manual Refund', quantity=-1, unit_price=value, total_price=-value),),
        subtotal=-value,
        final_total=-value,
        payments=(ReceiptPayment(method=refund_method or 'other', amount=-value),),
        customer=customer,
        refund=RefundDetails(reason=reason, refund_method=refund_method, refund_type='manual'),
    )


# ===== RENDERING =====

RECEIPT_STYLES = """
    body { font-family: 'Courier New', monospace; font-size: 12px; color: #000; margin: 0; padding: 10px; }
    .receipt { max-width: 350px; margin: 0 auto; }
    .receipt.kitchen { max-width: 400px; font-size: 14px; }
    .business-header { text-align: center; margin-bottom: 10px; }
    .business-name { font-size: 16px; font-weight: bold; }
    .business-info { font-size: 11px; }
    .receipt-title { text-align: center; font-weight: bold; margin: 10px 0; }
    .banner { text-align: center; font-weight: bold; border: 2px dashed #000; padding: 4px; margin: 8px 0; }
    .section-header { font-weight: bold; text-align: center; margin: 12px 0 8px 0; padding: 4px 0;
                      border-top: 1px solid #000; border-bottom: 1px solid #000; }
    .receipt-item { margin-bottom: 8px; }
    .item-line, .total-line, .tax-line, .rebate-line, .payment-line,
    .cash-rounding-line, .change-line { display: flex; justify-content: space-between; margin: 2px 0; }
    .item-line { font-weight: bold; }
    .item-details { font-size: 10px; color: #666; }
    .item-modifier, .item-rebate, .item-note { font-size: 10px; margin-left: 15px; }
    .item-rebate, .rebate-line, .loyalty-line, .change-line { color: #008000; }
    .discount-line { color: #d00; }
    .financial-section { margin: 12px 0; border-top: 1px solid #000; padding-top: 8px; }
    .tax-section, .rebate-section { margin: 8px 0; padding: 4px; border: 1px dashed #ccc; font-size: 10px; }
    .tax-total-line { font-weight: bold; border-top: 1px dashed #000; }
    .final-total-line { font-weight: bold; font-size: 14px; border-top: 2px solid #000;
                        border-bottom: 2px solid #000; padding: 4px 0; margin: 8px 0; }
    .cash-rounding-line { font-size: 10px; font-style: italic; color: #666; margin-left: 15px; }
    .loyalty-section { margin: 12px 0; padding: 8px; border: 1px solid #008080; }
    .customer-detail, .loyalty-earned, .loyalty-balance { font-size: 10px; margin: 2px 0; }
    .refund-section { margin: 12px 0; padding: 8px; border: 2px solid #d00; }
    .receipt-footer { text-align: center; margin-top: 16px; border-top: 2px solid #000; padding-top: 8px; }
    .thank-you { font-weight: bold; }
    .return-policy, .qr-section { font-size: 10px; margin: 4px 0; }
"""

EMAIL_STYLES = """
    .email-wrapper { max-width: 600px; margin: 0 auto; background: #fff; }
    .email-banner { background: #1f2937; color: #fff; text-align: center; padding: 16px; }
    .email-banner h1 { margin: 0; font-size: 20px; }
    .email-body { padding: 16px; }
"""


def _document(title: str, body: str, extra_styles: str = '') -> str:
    return (
        "<!DOCTYPE html>\n"
        "<html>\n<head>\n<meta charset=\"UTF-8\">\n"
        f"<title>{escape(title)}</title>\n"
        f"<style>{RECEIPT_STYLES}{extra_styles}</style>\n"
        "</head>\n<body>\n"
        f"{body}\n"
        "</body>\n</html>\n"
    )


def _line(css_class: str, label, value) -> str:
    return f'<div class="{css_class}"><span>{escape(label)}</span><span>{escape(value)}</span></div>'


def _business_header(settings: BusinessDisplaySettings, with_tax_number: bool = True) -> str:
    parts = [
        '<div class="business-header">',
        f'<div class="business-name">{escape(settings.business_name)}</div>',
        f'<div class="business-info">{escape(settings.address)}</div>',
        f'<div class="business-info">{escape(settings.city)}, {escape(settings.province)} {escape(settings.postal_code)}</div>',
        f'<div class="business-info">{escape(settings.phone)}</div>',
        f'<div class="business-info">{escape(settings.email)}</div>',
    ]
    if with_tax_number and settings.tax_number:
        parts.append(f'<div class="business-info">{escape(settings.tax_number)}</div>')
    parts.append('</div>')
    return ''.join(parts)


def _loyalty_amount(amount: Decimal, settings: BusinessDisplaySettings, unit: str = 'pts') -> str:
    if settings.loyalty_mode is LoyaltyMode.POINTS:
        return f"{points(amount * POINTS_PER_DOLLAR)} {unit}"
    return money(amount)


def _standard_items(view: ReceiptView) -> str:
    parts = []
    for item in view.items:
        detail = f"{money(item.unit_price)} × {item.quantity}"
        if item.sku:
            detail += f" ({item.sku})"
        parts.append('<div class="receipt-item">')
        parts.append(_line('item-line', item.name, money(item.total_price)))
        parts.append(f'<div class="item-details">{escape(detail)}</div>')
        for name, price in item.modifiers:
            label = f"+ {name}" + (f" {money(price)}" if price else '')
            parts.append(f'<div class="item-modifier">{escape(label)}</div>')
        for name, amount in item.rebates:
            parts.append(f'<div class="item-rebate">{escape(name)}: -{escape(money(abs(amount)))}</div>')
        parts.append('</div>')
    return ''.join(parts)


def _tax_line_label(line: TaxLine) -> str:
    if line.rate is None:
        return line.name
    rate = line.rate * 100 if abs(line.rate) <= 1 else line.rate
    return f"{line.name} ({rate.normalize():f}%)"


def _financial_summary(view: ReceiptView, options: ReceiptOptions) -> str:
    """Subtotal through TOTAL, shared by every priced receipt."""
    rows = [_line('total-line subtotal-line', 'Subtotal', money(view.subtotal))]

    if view.discount_amount > 0:
        rows.append(_line('total-line discount-line', 'Discount', f"-{money(view.discount_amount)}"))
    if view.loyalty_redemption > 0:
        rows.append(_line('total-line loyalty-line', 'Loyalty Credit', f"-{money(view.loyalty_redemption)}"))

    breakdown = view.breakdown
    if breakdown.taxes:
        rows.append('<div class="tax-section"><div>Taxes Applied</div>')
        rows.extend(_line('tax-line', _tax_line_label(t), money(t.amount)) for t in breakdown.taxes)
        rows.append('</div>')
    if breakdown.rebates:
        rows.append('<div class="rebate-section"><div>Rebates Applied</div>')
        rows.extend(
            _line('rebate-line', _tax_line_label(r), f"-{money(abs(r.amount))}") for r in breakdown.rebates
        )
        rows.append('</div>')

    rows.append(_line('total-line tax-total-line', 'Total Tax', money(view.tax_amount)))

    if view.tip_amount > 0:
        rows.append(_line('total-line', 'Tip', money(view.tip_amount)))

    total = round_to_cash_nickel(view.final_total) if options.cash_round_total else view.final_total
    rows.append(_line('total-line final-total-line', 'TOTAL', money(total)))

    return f'<div class="financial-section">{"".join(rows)}</div>'


def _payment_section(view: ReceiptView, settings: BusinessDisplaySettings) -> str:
    rows = []
    for payment in view.payments:
        if payment.is_cash:
            rounded = round_to_cash_nickel(payment.amount)
            rows.append(_line('payment-line', payment.label, money(rounded)))
            if has_visible_adjustment(payment.amount):
                adjustment = cash_rounding_adjustment(payment.amount)
                sign = '+' if adjustment > 0 else '-'
                rows.append(_line('cash-rounding-line', 'Cash Rounding Adjustment', f"{sign}{money(abs(adjustment))}"))
        else:
            rows.append(_line('payment-line', payment.label, money(payment.amount)))

    if view.loyalty_redemption > 0:
        label = 'Loyalty Points' if settings.loyalty_mode is LoyaltyMode.POINTS else 'Loyalty Credit'
        rows.append(_line('payment-line', label, f"-{_loyalty_amount(view.loyalty_redemption, settings)}"))

    if view.change_given > 0:
        rows.append(_line('change-line', 'Change Given', money(round_to_cash_nickel(view.change_given))))

    if not rows:
        return ''
    heading = 'Refunded To' if view.is_refund else 'Payment'
    return f'<div class="payment-section"><div class="section-header">{heading}</div>{"".join(rows)}</div>'


def _loyalty_section(view: ReceiptView, settings: BusinessDisplaySettings) -> str:
    customer = view.customer
    if customer is None:
        return ''
    earned = view.subtotal * settings.earn_rate_percentage / 100
    parts = [
        '<div class="loyalty-section">',
        f'<div class="section-header">Customer: {escape(customer.name)}</div>',
    ]
    if customer.email:
        parts.append(f'<div class="customer-detail">{escape(customer.email)}</div>')
    if customer.phone:
        parts.append(f'<div class="customer-detail">{escape(customer.phone)}</div>')
    if settings.loyalty_mode is LoyaltyMode.POINTS:
        parts.append(f'<div class="loyalty-earned">Points Earned: {points(earned * POINTS_PER_DOLLAR)}</div>')
        parts.append(f'<div class="loyalty-balance">Balance: {_loyalty_amount(customer.balance, settings, "points")}</div>')
    else:
        parts.append(f'<div class="loyalty-earned">Earned: {money(earned)}</div>')
        parts.append(f'<div class="loyalty-balance">Balance: {money(customer.balance)}</div>')
    parts.append('</div>')
    return ''.join(parts)


def _refund_section(view: ReceiptView) -> str:
    details = view.refund
    if details is None:
        return ''
    parts = ['<div class="refund-section"><div class="section-header">REFUND</div>']
    if details.original_sale_number:
        parts.append(_line('total-line', 'Original Sale', f"#{details.original_sale_number}"))
    if details.refund_type:
        parts.append(_line('total-line', 'Refund Type', details.refund_type.title()))
    if details.refund_method:
        parts.append(_line('total-line', 'Refund Method', details.refund_method.replace('_', ' ').title()))
    if details.reason:
        parts.append(f'<div class="customer-detail">Reason: {escape(details.reason)}</div>')
    parts.append('</div>')
    return ''.join(parts)


def _standard_footer(view: ReceiptView, settings: BusinessDisplaySettings) -> str:
    return (
        '<div class="receipt-footer">'
        '<div class="thank-you">Thank you for your business!</div>'
        f'<div class="return-policy">Returns accepted within {settings.return_days} days with receipt.</div>'
        f'<div class="qr-section">[QR Code: {escape(view.sale_number)}]</div>'
        '</div>'
    )


def _receipt_body(view: ReceiptView, settings: BusinessDisplaySettings,
                  options: ReceiptOptions, banner: str = '') -> str:
    title = 'REFUND RECEIPT' if view.is_refund else 'SALES RECEIPT'
    return ''.join([
        '<div class="receipt">',
        _business_header(settings),
        banner,
        f'<div class="receipt-title">{title} - #{escape(view.sale_number)}</div>',
        f'<div class="item-details">{escape(datetime_display(view.created_at, settings.timezone))}</div>',
        '<div class="section-header">Items</div>',
        _standard_items(view),
        _financial_summary(view, options),
        _payment_section(view, settings),
        _refund_section(view),
        _loyalty_section(view, settings),
        _standard_footer(view, settings),
        '</div>',
    ])


def render_standard(view: ReceiptView, settings: BusinessDisplaySettings, options: ReceiptOptions) -> str:
    return _document(f"Receipt - {view.sale_number}", _receipt_body(view, settings, options))


def render_reprint(view: ReceiptView, settings: BusinessDisplaySettings, options: ReceiptOptions) -> str:
    banner = '<div class="banner">*** REPRINT ***</div>'
    if options.reprint_reason:
        banner += f'<div class="customer-detail">Reason: {escape(options.reprint_reason)}</div>'
    return _document(f"REPRINT - Receipt - {view.sale_number}", _receipt_body(view, settings, options, banner))


def render_email(view: ReceiptView, settings: BusinessDisplaySettings, options: ReceiptOptions) -> str:
    body = (
        '<div class="email-wrapper">'
        '<div class="email-banner">'
        f'<h1>{escape(settings.business_name)}</h1>'
        '<div>Digital Receipt</div>'
        '</div>'
        '<div class="email-body">'
        '<p>Thank you for your purchase!</p>'
        f'{_receipt_body(view, settings, options)}'
        '</div>'
        '</div>'
    )
    return _document(f"Receipt - {view.sale_number}", body, EMAIL_STYLES)


def render_gift(view: ReceiptView, settings: BusinessDisplaySettings, options: ReceiptOptions) -> str:
    """Names and quantities only: no prices, totals or tax."""
    items = []
    for item in view.items:
        items.append('<div class="receipt-item">')
        items.append(f'<div class="item-line"><span>{escape(item.name)}</span></div>')
        items.append(f'<div class="item-details">Quantity: {abs(item.quantity)}</div>')
        if item.sku:
            items.append(f'<div class="item-details">SKU: {escape(item.sku)}</div>')
        for name, _price in item.modifiers:
            items.append(f'<div class="item-modifier">+ {escape(name)}</div>')
        items.append('</div>')

    body = ''.join([
        '<div class="receipt">',
        _business_header(settings, with_tax_number=False),
        '<div class="receipt-title">GIFT RECEIPT</div>',
        f'<div class="item-details">#{escape(view.sale_number)}</div>',
        f'<div class="item-details">{escape(datetime_display(view.created_at, settings.timezone))}</div>',
        '<div class="section-header">Items</div>',
        ''.join(items),
        '<div class="receipt-footer">',
        '<div class="thank-you">This gift receipt can be used for returns or exchanges.</div>',
        f'<div class="return-policy">Returns accepted within {settings.return_days} days with this receipt.</div>',
        f'<div class="return-policy">Questions? Contact us at {escape(settings.phone)}</div>',
        '</div>',
        '</div>',
    ])
    return _document(f"Gift Receipt - #{view.sale_number}", body)


def render_kitchen(view: ReceiptView, settings: BusinessDisplaySettings, options: ReceiptOptions) -> str:
    """Preparation ticket: quantities, modifiers and notes."""
    items = []
    for item in view.items:
        items.append('<div class="receipt-item">')
        items.append(f'<div class="item-line"><span>{abs(item.quantity)}× {escape(item.name)}</span></div>')
        for name, _price in item.modifiers:
            items.append(f'<div class="item-modifier">+ {escape(name)}</div>')
        if item.notes:
            items.append(f'<div class="item-note">NOTE: {escape(item.notes)}</div>')
        items.append('</div>')

    printed_at = options.printed_at or datetime.now()
    customer = view.customer.name if view.customer else None
    body = ''.join([
        '<div class="receipt kitchen">',
        '<div class="receipt-title">KITCHEN ORDER</div>',
        f'<div class="item-line"><span>Order #{escape(view.sale_number)}</span></div>',
        f'<div class="item-details">{escape(datetime_display(view.created_at, settings.timezone))}</div>',
        f'<div class="item-details">Customer: {escape(customer)}</div>' if customer else '',
        '<div class="section-header">Items</div>',
        ''.join(items),
        '<div class="receipt-footer">',
        f'<div>Items: {view.item_count}</div>',
        f'<div class="return-policy">Printed: {escape(printed_at.strftime("%Y-%m-%d %H:%M"))}</div>',
        '</div>',
        '</div>',
    ])
    return _document(f"Kitchen Receipt - {view.sale_number}", body)


RENDERERS = {
    ReceiptKind.STANDARD: render_standard,
    ReceiptKind.GIFT: render_gift,
    ReceiptKind.KITCHEN: render_kitchen,
    ReceiptKind.REPRINT: render_reprint,
    ReceiptKind.EMAIL: render_email,
}


def generate_receipt_html(view: ReceiptView, kind=ReceiptKind.STANDARD,
                          settings: Optional[BusinessDisplaySettings] = None,
                          options: Optional[ReceiptOptions] = None) -> str:
    """
    Render a receipt as a standalone HTML document.

    Args:
        view: Normalized sale or refund
        kind: ReceiptKind (or its string value)
        settings: Business display settings; defaults apply when None
        options: Reprint reason, cash-rounded total, print time

    Returns:
        Complete HTML page as a string
    """
    receipt_kind = ReceiptKind.parse(kind)
    renderer = RENDERERS[receipt_kind]
    logger.debug(f"Rendering {receipt_kind.value} receipt for {view.sale_number}")
    return renderer(view, settings or BusinessDisplaySettings(), options or ReceiptOptions())


def generate_email_receipt_html(view: ReceiptView, settings: Optional[BusinessDisplaySettings] = None,
                                options: Optional[ReceiptOptions] = None) -> str:
    """Shortcut for the email-wrapped receipt."""
    return generate_receipt_html(view, ReceiptKind.EMAIL, settings, options)
