"""
Tax allocation across the line items of a transaction.

Sale tax is stored once per transaction. Refunds need each item's share of
it, so the transaction tax is spread over the items in proportion to their
line totals. No rounding happens here; callers round only what they display.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple, Union

from pos_app.utils.formatters import to_decimal, to_int, ZERO


@dataclass(frozen=True)
class Modifier:
    """Add-on priced on top of an item (extra shot, side, ...)."""
    name: str
    price: Decimal = ZERO

    @classmethod
    def from_row(cls, row) -> 'Modifier':
        if isinstance(row, str):
            return cls(name=row)
        return cls(name=str(row.get('name') or ''), price=to_decimal(row.get('price')))


@dataclass(frozen=True)
class SaleLineItem:
    """
    One line of a completed sale.

    ``total_price`` is authoritative as recorded at checkout; it is never
    re-derived from unit price and quantity.
    """
    id: Union[int, str]
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    modifiers: Tuple[Modifier, ...] = ()
    tax_rate: Decimal = ZERO
    tax_exempt: bool = False
    category_name: Optional[str] = None
    sku: Optional[str] = None
    inventory_id: Optional[int] = None
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> 'SaleLineItem':
        """Build from a persistence row, defaulting absent numbers to 0."""
        quantity = max(to_int(row.get('quantity')), 0)
        unit_price = to_decimal(row.get('unit_price'))
        total_price = row.get('total_price')
        return cls(
            id=row.get('id'),
            name=str(row.get('name') or ''),
            quantity=quantity,
            unit_price=unit_price,
            total_price=to_decimal(total_price),
            modifiers=tuple(Modifier.from_row(m) for m in (row.get('modifiers') or ())),
            tax_rate=to_decimal(row.get('tax_rate')),
            tax_exempt=bool(row.get('tax_exempt')),
            category_name=row.get('category_name'),
            sku=row.get('sku'),
            inventory_id=row.get('inventory_id'),
            notes=row.get('notes'),
        )


@dataclass(frozen=True)
class TransactionTaxContext:
    """Sale-level subtotal and total tax collected."""
    subtotal: Decimal
    tax: Decimal

    @classmethod
    def from_row(cls, row: dict) -> 'TransactionTaxContext':
        return cls(subtotal=to_decimal(row.get('subtotal')), tax=to_decimal(row.get('tax')))


def _items_subtotal(items: Sequence[SaleLineItem]) -> Decimal:
    return sum((to_decimal(i.total_price) for i in items), ZERO)


def allocate_item_tax(item: SaleLineItem, all_items: Sequence[SaleLineItem],
                      transaction_subtotal, transaction_tax) -> Decimal:
    """
    Share of the transaction tax carried by one item.

    Args:
        item: The item whose share is wanted
        all_items: Every item of the transaction (item included)
        transaction_subtotal: Sale subtotal, used only when the items
            carry no totals of their own
        transaction_tax: Total tax collected on the sale

    Returns:
        The full tax for single-item transactions, otherwise
        ``tax * item.total_price / subtotal``; 0 when the subtotal is 0.
    """
    tax = to_decimal(transaction_tax)
    if len(all_items) == 1:
        return tax

    subtotal = _items_subtotal(all_items)
    if subtotal == 0:
        subtotal = to_decimal(transaction_subtotal)
    if subtotal == 0:
        return ZERO

    return tax * to_decimal(item.total_price) / subtotal


def item_tax_shares(items: Sequence[SaleLineItem], context: TransactionTaxContext) -> Dict:
    """Allocated tax for every item of a transaction, keyed by item id."""
    return {
        item.id: allocate_item_tax(item, items, context.subtotal, context.tax)
        for item in items
    }


# ===== TAX BREAKDOWN SOURCES =====

@dataclass(frozen=True)
class TaxLine:
    """A named tax or rebate amount, with its rate when known."""
    name: str
    amount: Decimal
    rate: Optional[Decimal] = None


@dataclass(frozen=True)
class TaxBreakdown:
    """Canonical tax/rebate breakdown consumed by receipts."""
    taxes: Tuple[TaxLine, ...] = ()
    rebates: Tuple[TaxLine, ...] = ()

    @property
    def total_tax(self) -> Decimal:
        return sum((t.amount for t in self.taxes), ZERO)

    @property
    def total_rebates(self) -> Decimal:
        return sum((r.amount for r in self.rebates), ZERO)

    def is_empty(self) -> bool:
        return not self.taxes and not self.rebates


@dataclass(frozen=True)
class ExplicitBreakdown:
    """Itemized entries recorded at checkout: ``{type, name, amount, rate}``."""
    entries: Tuple[dict, ...]

    def resolve(self) -> TaxBreakdown:
        taxes, rebates = [], []
        for entry in self.entries:
            rate = entry.get('rate')
            line = TaxLine(
                name=str(entry.get('name') or 'Tax'),
                amount=to_decimal(entry.get('amount')),
                rate=to_decimal(rate) if rate not in (None, '') else None,
            )
            if str(entry.get('type') or 'tax').lower() == 'rebate':
                rebates.append(line)
            else:
                taxes.append(line)
        return TaxBreakdown(taxes=tuple(taxes), rebates=tuple(rebates))


@dataclass(frozen=True)
class AggregatedBreakdown:
    """Name-to-amount maps summed across items."""
    taxes: Dict[str, Decimal] = field(default_factory=dict)
    rebates: Dict[str, Decimal] = field(default_factory=dict)

    def resolve(self) -> TaxBreakdown:
        return TaxBreakdown(
            taxes=tuple(TaxLine(name=str(k), amount=to_decimal(v)) for k, v in sorted(self.taxes.items())),
            rebates=tuple(TaxLine(name=str(k), amount=to_decimal(v)) for k, v in sorted(self.rebates.items())),
        )


TaxBreakdownSource = Union[ExplicitBreakdown, AggregatedBreakdown]


def breakdown_source_from_row(row: dict) -> TaxBreakdownSource:
    """
    Pick the breakdown source a sale row carries.

    An explicit itemized list wins when present and non-empty; otherwise the
    aggregated maps are used (possibly empty).
    """
    explicit = row.get('tax_breakdown') or row.get('taxBreakdown')
    if explicit:
        return ExplicitBreakdown(entries=tuple(explicit))
    return AggregatedBreakdown(
        taxes=dict(row.get('aggregated_taxes') or {}),
        rebates=dict(row.get('aggregated_rebates') or {}),
    )


def resolve_tax_breakdown(row: dict) -> TaxBreakdown:
    """Resolve a row's tax/rebate representation into one canonical form."""
    return breakdown_source_from_row(row).resolve()


def merge_amount_maps(maps: List[Dict[str, Decimal]]) -> Dict[str, Decimal]:
    """Sum name-keyed amount maps; result is independent of input order."""
    merged: Dict[str, Decimal] = {}
    for amounts in maps:
        for name, amount in (amounts or {}).items():
            merged[name] = merged.get(name, ZERO) + to_decimal(amount)
    return merged
