"""Refunds blueprint - preview and submit sale and manual refunds."""
from typing import List, Optional
from flask import Blueprint, request, jsonify, current_app
from pos_app.database import get_session
from pos_app.exceptions import BusinessLogicError
from pos_app.middleware import current_context, require_actor, require_business
from pos_app.services import refund_service
from pos_app.services.receipt_builder import BusinessDisplaySettings, generate_receipt_html
from pos_app.services.refund_calculator import ClampPolicy, RefundLineRequest
from pos_app.services.report_data_service import get_business_settings_row

refunds_bp = Blueprint('refunds', __name__, url_prefix='/refunds')


def _parse_lines(payload: dict) -> Optional[List[RefundLineRequest]]:
    """Line requests from the JSON body; None means refund everything."""
    lines = payload.get('lines')
    if lines is None:
        return None
    if not isinstance(lines, list):
        raise BusinessLogicError('lines must be a list')
    return [RefundLineRequest.from_dict(line) for line in lines if isinstance(line, dict)]


def _sale_id(payload: dict) -> int:
    try:
        return int(payload.get('sale_id'))
    except (TypeError, ValueError):
        raise BusinessLogicError('sale_id is required')


def _clamp_policy() -> ClampPolicy:
    return ClampPolicy.from_config(current_app.config.get('REFUND_CLAMP_POLICY'))


def _settings(db_session, business_id: int) -> BusinessDisplaySettings:
    defaults = BusinessDisplaySettings.from_config(current_app.config)
    return BusinessDisplaySettings.from_row(get_business_settings_row(db_session, business_id), defaults)


@refunds_bp.route('/preview', methods=['POST'])
@require_business
def preview():
    """Compute a refund breakdown without saving it."""
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    result = refund_service.preview_refund(
        db_session, current_context(), _sale_id(payload), _parse_lines(payload), _clamp_policy()
    )
    return jsonify({
        'status': 'ok',
        'sale_id': result['sale_id'],
        'sale_number': result['sale_number'],
        'refund_type': result['refund_type'],
        'breakdown': result['breakdown'].to_dict(),
    })


@refunds_bp.route('', methods=['POST'])
@require_actor
def submit():
    """Validate, persist and audit a sale refund; returns the refund receipt."""
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    context = current_context()

    result = refund_service.process_refund(
        db_session,
        context,
        _sale_id(payload),
        _parse_lines(payload),
        reason=payload.get('reason'),
        refund_method=payload.get('refund_method'),
        custom_refund_method=payload.get('custom_refund_method'),
        manager_pin=payload.get('manager_pin'),
        idempotency_key=payload.get('idempotency_key') or request.headers.get('Idempotency-Key'),
        clamp_policy=_clamp_policy(),
    )
    receipt_html = generate_receipt_html(result['receipt_view'], 'standard', _settings(db_session, context.business_id))

    return jsonify({
        'status': 'ok',
        'refund_id': result['refund_id'],
        'refund_type': result['refund_type'],
        'breakdown': result['breakdown'].to_dict(),
        'receipt_html': receipt_html,
    }), 201


@refunds_bp.route('/manual', methods=['POST'])
@require_actor
def submit_manual():
    """Refund an amount with no originating sale."""
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    context = current_context()

    result = refund_service.process_manual_refund(
        db_session,
        context,
        payload.get('amount'),
        reason=payload.get('reason'),
        refund_method=payload.get('refund_method'),
        custom_refund_method=payload.get('custom_refund_method'),
        manager_pin=payload.get('manager_pin'),
        customer={
            'name': payload.get('customer_name'),
            'email': payload.get('customer_email'),
            'phone': payload.get('customer_phone'),
        },
        idempotency_key=payload.get('idempotency_key') or request.headers.get('Idempotency-Key'),
    )
    receipt_html = generate_receipt_html(result['receipt_view'], 'standard', _settings(db_session, context.business_id))

    return jsonify({
        'status': 'ok',
        'refund_id': result['refund_id'],
        'amount': str(result['amount']),
        'receipt_html': receipt_html,
    }), 201
