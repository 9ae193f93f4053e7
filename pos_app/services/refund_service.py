"""
Refund service with transactional logic.
Validates, persists and audits refunds computed by ``refund_calculator``.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pos_app.context import PosContext
from pos_app.exceptions import (
    PosError, BusinessLogicError, NotFoundError, RefundValidationError,
    DuplicateSubmissionError, UnauthorizedError,
)
from pos_app.models import Employee, InventoryItem, Refund, RefundItem, Sale, AuditAction
from pos_app.services import audit_service
from pos_app.services.receipt_builder import (
    ReceiptCustomer, build_refund_receipt_view, build_manual_refund_receipt_view,
)
from pos_app.services.refund_calculator import (
    ClampPolicy, RefundLineRequest, build_refund_item_records, full_refund_requests,
    compute_refund_breakdown, determine_refund_type, validate_refund_submission,
)
from pos_app.services.tax_allocation import SaleLineItem, TransactionTaxContext
from pos_app.utils.formatters import quantize_money, to_decimal

logger = logging.getLogger(__name__)

REFUND_METHODS = ('cash', 'card', 'debit', 'credit', 'gift_card', 'store_credit', 'original_payment')
CUSTOM_REFUND_METHOD = 'custom'
METHOD_NAME_MAX_LENGTH = 30


def preview_refund(session, context: PosContext, sale_id: int, line_requests: Optional[List[RefundLineRequest]],
                   clamp_policy: ClampPolicy = ClampPolicy.CLAMP) -> Dict:
    """
    Compute a refund without persisting anything.

    Returns:
        Dict with the breakdown, refund type and the sale lines considered
    """
    sale = _get_sale(session, context, sale_id)
    items = _sale_line_items(sale)
    if line_requests is None:
        line_requests = full_refund_requests(items)
    breakdown = compute_refund_breakdown(line_requests, items, _tax_context(sale), clamp_policy)
    return {
        'sale_id': sale.id,
        'sale_number': sale.sale_number,
        'refund_type': determine_refund_type(line_requests, items, clamp_policy).value,
        'breakdown': breakdown,
    }


def process_refund(
    session,
    context: PosContext,
    sale_id: int,
    line_requests: Optional[List[RefundLineRequest]],
    reason: str,
    refund_method: str,
    manager_pin: str,
    idempotency_key: Optional[str] = None,
    clamp_policy: ClampPolicy = ClampPolicy.CLAMP,
    custom_refund_method: Optional[str] = None,
) -> Dict:
    """
    Refund (part of) a sale in a single transaction.

    Args:
        session: Database session
        context: Business and cashier submitting the refund
        sale_id: Sale being refunded
        line_requests: Quantity and restock flag per sale line
        reason: Operator's reason (required)
        refund_method: Tender the money goes back on, or ``custom``
        manager_pin: PIN of the authorizing manager
        idempotency_key: Optional key rejecting duplicate submissions
        clamp_policy: Handling of out-of-range quantities
        custom_refund_method: Tender name stored when refund_method is ``custom``

    Returns:
        Dict with refund_id, refund_type, breakdown and receipt_view

    Raises:
        NotFoundError: Sale not found for this business
        RefundValidationError: Empty reason, zero total, bad quantity
        UnauthorizedError: Manager PIN not accepted
        DuplicateSubmissionError: Key already used
    """
    _require_context(context)
    _check_idempotency(session, idempotency_key)
    method = _normalize_refund_method(refund_method, custom_refund_method)

    sale = _get_sale(session, context, sale_id)
    items = _sale_line_items(sale)
    if line_requests is None:
        line_requests = full_refund_requests(items)
    breakdown = compute_refund_breakdown(line_requests, items, _tax_context(sale), clamp_policy)
    refund_type = determine_refund_type(line_requests, items, clamp_policy)

    validate_refund_submission(reason, breakdown.total)
    manager = verify_manager_pin(session, context.business_id, manager_pin)

    try:
        refund = Refund(
            business_id=context.business_id,
            original_sale_id=sale.id,
            refunded_by=context.actor_id,
            refund_method=method,
            refund_type=refund_type.value,
            total_refund_amount=quantize_money(breakdown.total),
            reason=reason.strip(),
            manager_override=True,
            manager_id=manager.id,
            idempotency_key=idempotency_key,
            created_at=datetime.now(),
        )
        session.add(refund)
        session.flush()

        records = build_refund_item_records(breakdown)
        for record in records:
            session.add(RefundItem(refund_id=refund.id, **record))
        session.flush()

        restocked = _restock_items(session, context, records)

        audit_service.log_action(
            session, context, AuditAction.REFUND_PROCESSED,
            audit_context='refund',
            resource_id=refund.id,
            details={
                'sale_id': sale.id,
                'refund_type': refund_type.value,
                'total': quantize_money(breakdown.total),
                'items_refunded': len(records),
                'items_restocked': restocked,
                'manager_id': manager.id,
            },
        )

        session.commit()
        logger.info(f"Refund {refund.id} ({refund_type.value}) of {refund.total_refund_amount} "
                    f"processed for sale {sale.id} by user {context.actor_id}")

    except IntegrityError as e:
        session.rollback()
        _raise_if_duplicate(session, idempotency_key, e)
        logger.exception(f"Refund for sale {sale_id} failed")
        raise PosError(f"Error processing refund: {e}") from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception(f"Refund for sale {sale_id} failed")
        raise PosError(f"Error processing refund: {e}") from e

    receipt_view = build_refund_receipt_view(
        _sale_summary(sale), breakdown, method,
        reason=refund.reason, refund_type=refund_type.value, created_at=refund.created_at,
    )
    return {
        'refund_id': refund.id,
        'refund_type': refund_type.value,
        'breakdown': breakdown,
        'receipt_view': receipt_view,
    }


def process_manual_refund(
    session,
    context: PosContext,
    amount,
    reason: str,
    refund_method: str,
    manager_pin: str,
    customer: Optional[dict] = None,
    idempotency_key: Optional[str] = None,
    custom_refund_method: Optional[str] = None,
) -> Dict:
    """
    Refund money that is not tied to a recorded sale.

    The refund row is stored with no ``original_sale_id``.

    Returns:
        Dict with refund_id, amount and receipt_view
    """
    _require_context(context)
    _check_idempotency(session, idempotency_key)
    method = _normalize_refund_method(refund_method, custom_refund_method)
    value = quantize_money(amount)

    validate_refund_submission(reason, value)
    manager = verify_manager_pin(session, context.business_id, manager_pin)
    customer = customer or {}

    try:
        refund = Refund(
            business_id=context.business_id,
            original_sale_id=None,
            refunded_by=context.actor_id,
            refund_method=method,
            refund_type='manual',
            total_refund_amount=value,
            reason=reason.strip(),
            manager_override=True,
            manager_id=manager.id,
            customer_name=customer.get('name'),
            customer_email=customer.get('email'),
            customer_phone=customer.get('phone'),
            idempotency_key=idempotency_key,
            created_at=datetime.now(),
        )
        session.add(refund)
        session.flush()

        audit_service.log_action(
            session, context, AuditAction.MANUAL_REFUND_PROCESSED,
            audit_context='refund',
            resource_id=refund.id,
            details={'amount': value, 'refund_method': method, 'manager_id': manager.id},
        )

        session.commit()
        logger.info(f"Manual refund {refund.id} of {value} processed by user {context.actor_id}")

    except IntegrityError as e:
        session.rollback()
        _raise_if_duplicate(session, idempotency_key, e)
        logger.exception("Manual refund failed")
        raise PosError(f"Error processing manual refund: {e}") from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Manual refund failed")
        raise PosError(f"Error processing manual refund: {e}") from e

    receipt_customer = None
    if customer.get('name'):
        receipt_customer = ReceiptCustomer(
            name=customer['name'], email=customer.get('email'), phone=customer.get('phone'),
        )
    receipt_view = build_manual_refund_receipt_view(
        refund.id, value, method, reason=refund.reason, customer=receipt_customer,
        created_at=refund.created_at,
    )
    return {'refund_id': refund.id, 'amount': value, 'receipt_view': receipt_view}


def verify_manager_pin(session, business_id: int, pin) -> Employee:
    """
    Find the active manager whose PIN matches.

    Raises:
        RefundValidationError: PIN missing
        UnauthorizedError: no manager of this business has that PIN
    """
    if not pin or not str(pin).strip():
        raise RefundValidationError("Manager PIN is required", field='manager_pin')

    employees = session.query(Employee).filter(Employee.business_id == business_id).all()
    for employee in employees:
        if employee.can_authorize_refunds and employee.check_pin(str(pin).strip()):
            return employee

    logger.warning(f"Rejected manager PIN for business {business_id}")
    raise UnauthorizedError("Invalid manager PIN")


# ===== PRIVATE HELPERS =====

def _require_context(context: PosContext) -> None:
    if context is None or not context.is_complete:
        raise UnauthorizedError("Business and user are required to process refunds")


def _find_by_idempotency_key(session, idempotency_key: Optional[str]) -> Optional[Refund]:
    if not idempotency_key:
        return None
    return session.query(Refund).filter_by(idempotency_key=idempotency_key).first()


def _check_idempotency(session, idempotency_key: Optional[str]) -> None:
    existing = _find_by_idempotency_key(session, idempotency_key)
    if existing:
        raise DuplicateSubmissionError(idempotency_key, refund_id=existing.id)


def _raise_if_duplicate(session, idempotency_key: Optional[str], error: IntegrityError) -> None:
    """Turn a unique-key collision from a concurrent submission into a 409."""
    existing = _find_by_idempotency_key(session, idempotency_key)
    if existing:
        logger.warning(f"Concurrent refund submission for key {idempotency_key}")
        raise DuplicateSubmissionError(idempotency_key, refund_id=existing.id) from error


def _normalize_refund_method(method, custom_method=None) -> str:
    normalized = str(method or '').strip().lower()
    if normalized == CUSTOM_REFUND_METHOD:
        name = str(custom_method or '').strip()
        if not name:
            raise RefundValidationError("Custom refund method name is required", field='custom_refund_method')
        if len(name) > METHOD_NAME_MAX_LENGTH:
            raise RefundValidationError("Custom refund method name is too long", field='custom_refund_method')
        return name
    if normalized not in REFUND_METHODS:
        raise RefundValidationError(f"Invalid refund method: {method}", field='refund_method')
    return normalized


def _get_sale(session, context: PosContext, sale_id: int) -> Sale:
    sale = session.query(Sale).filter_by(id=sale_id, business_id=context.business_id).first()
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    if not sale.items:
        raise BusinessLogicError(f"Sale {sale.sale_number} has no items to refund")
    return sale


def _sale_line_items(sale: Sale) -> List[SaleLineItem]:
    return [SaleLineItem.from_row(item.to_row()) for item in sale.items]


def _tax_context(sale: Sale) -> TransactionTaxContext:
    return TransactionTaxContext(subtotal=to_decimal(sale.subtotal), tax=to_decimal(sale.tax))


def _sale_summary(sale: Sale) -> Dict:
    return {'id': sale.id, 'sale_number': sale.sale_number}


def _restock_items(session, context: PosContext, records: List[Dict]) -> int:
    """Return restocked units to inventory; failures are logged, not raised."""
    restocked = 0
    for record in records:
        if not record['restock'] or not record['inventory_id']:
            continue
        inventory = session.query(InventoryItem).filter_by(
            id=record['inventory_id'], business_id=context.business_id
        ).first()
        if inventory is None:
            logger.warning(f"Inventory {record['inventory_id']} not found; restock skipped")
            continue
        inventory.quantity = (inventory.quantity or 0) + record['quantity_refunded']
        restocked += record['quantity_refunded']
    return restocked
