"""
Refund computation for full and partial refunds of a completed sale.

Everything here is pure: the same sale lines and the same requests always
produce the same breakdown. Persistence, authorization and side effects are
handled by ``refund_service``.
"""
import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pos_app.exceptions import RefundValidationError
from pos_app.services.tax_allocation import (
    SaleLineItem, TransactionTaxContext, allocate_item_tax, merge_amount_maps,
)
from pos_app.utils.formatters import to_int, quantize_money, ZERO

DEFAULT_TAX_NAME = 'Tax'


class ClampPolicy(str, enum.Enum):
    """What to do with a refund quantity outside [0, original quantity]."""
    CLAMP = 'clamp'
    REJECT = 'reject'

    @classmethod
    def from_config(cls, value) -> 'ClampPolicy':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or cls.CLAMP.value).strip().lower())
        except ValueError:
            return cls.CLAMP


class RefundType(str, enum.Enum):
    """Display label for a refund."""
    FULL = 'full'
    PARTIAL = 'partial'


@dataclass(frozen=True)
class RefundLineRequest:
    """Operator's request for one sale line."""
    sale_item_id: Union[int, str]
    refund_quantity: int
    restock: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> 'RefundLineRequest':
        return cls(
            sale_item_id=data.get('sale_item_id'),
            refund_quantity=to_int(data.get('refund_quantity')),
            restock=bool(data.get('restock', True)),
        )


@dataclass(frozen=True)
class RefundLine:
    """Computed refund for one sale line (quantity > 0 only)."""
    item: SaleLineItem
    refund_quantity: int
    restock: bool
    refund_subtotal: Decimal
    refund_tax: Decimal
    tax_breakdown: Dict[str, Decimal]
    rebate_breakdown: Dict[str, Decimal]

    @property
    def refund_amount(self) -> Decimal:
        return self.refund_subtotal + self.refund_tax


@dataclass(frozen=True)
class RefundBreakdown:
    """Totals of a refund, recomputed whenever the requests change."""
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    aggregated_taxes: Dict[str, Decimal] = field(default_factory=dict)
    aggregated_rebates: Dict[str, Decimal] = field(default_factory=dict)
    lines: Tuple[RefundLine, ...] = ()

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax

    def to_dict(self) -> dict:
        """JSON-friendly view, amounts rounded to cents."""
        return {
            'subtotal': str(quantize_money(self.subtotal)),
            'tax': str(quantize_money(self.tax)),
            'total': str(quantize_money(self.total)),
            'aggregated_taxes': {k: str(quantize_money(v)) for k, v in sorted(self.aggregated_taxes.items())},
            'aggregated_rebates': {k: str(quantize_money(v)) for k, v in sorted(self.aggregated_rebates.items())},
            'lines': [
                {
                    'sale_item_id': line.item.id,
                    'name': line.item.name,
                    'refund_quantity': line.refund_quantity,
                    'restock': line.restock,
                    'refund_subtotal': str(quantize_money(line.refund_subtotal)),
                    'refund_tax': str(quantize_money(line.refund_tax)),
                    'refund_amount': str(quantize_money(line.refund_amount)),
                }
                for line in self.lines
            ],
        }


def _effective_quantity(request: RefundLineRequest, item: SaleLineItem, policy: ClampPolicy) -> int:
    requested = to_int(request.refund_quantity)
    if 0 <= requested <= item.quantity:
        return requested
    if policy is ClampPolicy.REJECT:
        raise RefundValidationError(
            f"Refund quantity {requested} for '{item.name}' must be between 0 and {item.quantity}",
            field='refund_quantity',
        )
    return min(max(requested, 0), item.quantity)


def _latest_per_item(line_requests: Iterable[RefundLineRequest]) -> List[RefundLineRequest]:
    """One request per sale line; a later request for the same line replaces the earlier one."""
    latest = {}
    for request in line_requests:
        latest[request.sale_item_id] = request
    return list(latest.values())


def compute_refund_breakdown(line_requests: Iterable[RefundLineRequest],
                             original_items: Sequence[SaleLineItem],
                             tax_context: TransactionTaxContext,
                             clamp_policy: ClampPolicy = ClampPolicy.CLAMP) -> RefundBreakdown:
    """
    Compute the refund for a set of line requests.

    Args:
        line_requests: One request per sale line being refunded
        original_items: All lines of the original sale
        tax_context: Sale subtotal and tax
        clamp_policy: Handling of out-of-range quantities

    Returns:
        RefundBreakdown with per-line results and aggregated maps.

    Raises:
        RefundValidationError: out-of-range quantity under ClampPolicy.REJECT
    """
    items_by_id = {item.id: item for item in original_items}
    lines: List[RefundLine] = []

    for request in _latest_per_item(line_requests):
        item = items_by_id.get(request.sale_item_id)
        if item is None or item.quantity <= 0:
            continue

        quantity = _effective_quantity(request, item, clamp_policy)
        if quantity == 0:
            continue

        ratio = Decimal(quantity) / Decimal(item.quantity)
        item_tax = allocate_item_tax(item, original_items, tax_context.subtotal, tax_context.tax)
        refund_tax = item_tax * ratio

        lines.append(RefundLine(
            item=item,
            refund_quantity=quantity,
            restock=request.restock,
            refund_subtotal=item.total_price * ratio,
            refund_tax=refund_tax,
            tax_breakdown={DEFAULT_TAX_NAME: refund_tax},
            rebate_breakdown={},
        ))

    # Stable display order regardless of request order
    lines.sort(key=lambda line: str(line.item.id))

    return RefundBreakdown(
        subtotal=sum((line.refund_subtotal for line in lines), ZERO),
        tax=sum((line.refund_tax for line in lines), ZERO),
        aggregated_taxes=merge_amount_maps([line.tax_breakdown for line in lines]),
        aggregated_rebates=merge_amount_maps([line.rebate_breakdown for line in lines]),
        lines=tuple(lines),
    )


def determine_refund_type(line_requests: Iterable[RefundLineRequest],
                          original_items: Sequence[SaleLineItem],
                          clamp_policy: ClampPolicy = ClampPolicy.CLAMP) -> RefundType:
    """Full when every unit of every line is refunded, partial otherwise."""
    items_by_id = {item.id: item for item in original_items}
    refunded = 0
    for request in _latest_per_item(line_requests):
        item = items_by_id.get(request.sale_item_id)
        if item is not None:
            refunded += _effective_quantity(request, item, clamp_policy)
    original = sum(item.quantity for item in original_items)
    return RefundType.FULL if refunded == original else RefundType.PARTIAL


def full_refund_requests(original_items: Sequence[SaleLineItem], restock: bool = True) -> List[RefundLineRequest]:
    """Requests refunding every line in full (refund screen starting state)."""
    return [
        RefundLineRequest(sale_item_id=item.id, refund_quantity=item.quantity, restock=restock)
        for item in original_items
    ]


def build_refund_item_records(breakdown: RefundBreakdown) -> List[dict]:
    """Persistable item rows for every refunded line."""
    return [
        {
            'original_sale_item_id': line.item.id,
            'inventory_id': line.item.inventory_id,
            'quantity_refunded': line.refund_quantity,
            'unit_price': quantize_money(line.item.unit_price),
            'refund_amount': quantize_money(line.refund_amount),
            'restock': line.restock,
        }
        for line in breakdown.lines
        if line.refund_quantity > 0
    ]


def validate_refund_submission(reason: Optional[str], total) -> None:
    """
    Checks performed before a refund is persisted.

    Raises:
        RefundValidationError: empty reason or non-positive total
    """
    if not (reason or '').strip():
        raise RefundValidationError("A refund reason is required", field='reason')
    if quantize_money(total) <= 0:
        raise RefundValidationError("Refund total must be greater than zero", field='total')
