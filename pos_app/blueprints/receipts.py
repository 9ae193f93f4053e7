"""Receipts blueprint - render and email sale receipts."""
from flask import Blueprint, request, jsonify, current_app, Response
from pos_app.database import get_session
from pos_app.exceptions import BusinessLogicError
from pos_app.middleware import current_context, require_business
from pos_app.models import AuditAction
from pos_app.services import audit_service
from pos_app.services.email_service import send_receipt_email
from pos_app.services.receipt_builder import (
    BusinessDisplaySettings, ReceiptKind, ReceiptOptions, ReceiptView,
    generate_receipt_html, generate_email_receipt_html,
)
from pos_app.services.report_data_service import load_sale_for_receipt, get_business_settings_row

receipts_bp = Blueprint('receipts', __name__, url_prefix='/receipts')


def _settings(db_session, business_id: int) -> BusinessDisplaySettings:
    defaults = BusinessDisplaySettings.from_config(current_app.config)
    return BusinessDisplaySettings.from_row(get_business_settings_row(db_session, business_id), defaults)


@receipts_bp.route('/<int:sale_id>')
@require_business
def show_receipt(sale_id: int) -> Response:
    """Render a receipt; ?kind=standard|gift|kitchen|reprint|email."""
    db_session = get_session()
    context = current_context()
    kind = ReceiptKind.parse(request.args.get('kind', 'standard'))
    options = ReceiptOptions(
        reprint_reason=request.args.get('reason') or None,
        cash_round_total=request.args.get('cash_round') == '1',
    )

    view = ReceiptView.from_row(load_sale_for_receipt(db_session, context.business_id, sale_id))
    html = generate_receipt_html(view, kind, _settings(db_session, context.business_id), options)

    if kind is ReceiptKind.REPRINT:
        audit_service.log_action(
            db_session, context, AuditAction.RECEIPT_REPRINTED,
            audit_context='receipt', resource_id=sale_id,
            details={'reason': options.reprint_reason},
        )
        db_session.commit()

    return Response(html, mimetype='text/html')


@receipts_bp.route('/<int:sale_id>/email', methods=['POST'])
@require_business
def email_receipt(sale_id: int):
    """Email the digital receipt to a customer."""
    payload = request.get_json(silent=True) or {}
    to_email = (payload.get('to') or '').strip()
    if not to_email or '@' not in to_email:
        raise BusinessLogicError('A valid recipient email is required')

    db_session = get_session()
    context = current_context()
    settings = _settings(db_session, context.business_id)
    view = ReceiptView.from_row(load_sale_for_receipt(db_session, context.business_id, sale_id))

    html = generate_email_receipt_html(view, settings)
    sent = send_receipt_email(to_email, f"Your receipt from {settings.business_name} - #{view.sale_number}", html)

    if sent:
        audit_service.log_action(
            db_session, context, AuditAction.RECEIPT_EMAILED,
            audit_context='receipt', resource_id=sale_id, details={'to': to_email},
        )
        db_session.commit()
        return jsonify({'status': 'ok', 'message': f'Receipt sent to {to_email}'})

    return jsonify({'status': 'error', 'message': 'Receipt email could not be sent'}), 502
