"""
Integration tests for refund preview, submission and manual refunds.
"""

import pytest
from decimal import Decimal

from pos_app.context import PosContext
from pos_app.exceptions import UnauthorizedError, RefundValidationError, DuplicateSubmissionError
from pos_app.models import Employee, Refund, RefundItem, InventoryItem, AuditLog, AuditAction
from pos_app.services import refund_service
from pos_app.services.refund_calculator import RefundLineRequest


def _widget(sale):
    return next(item for item in sale.items if item.name == 'Widget')


class TestRefundPreview:
    """Tests for POST /refunds/preview."""

    def test_full_refund_preview(self, client, headers, sale, session):
        """Omitting lines previews a full refund and saves nothing."""
        response = client.post('/refunds/preview', json={'sale_id': sale.id}, headers=headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['refund_type'] == 'full'
        assert data['breakdown']['total'] == '45.20'
        assert session.query(Refund).count() == 0

    def test_partial_preview(self, client, headers, sale):
        payload = {'sale_id': sale.id, 'lines': [{'sale_item_id': _widget(sale).id, 'refund_quantity': 1}]}

        response = client.post('/refunds/preview', json=payload, headers=headers)

        data = response.get_json()
        assert data['refund_type'] == 'partial'
        assert data['breakdown']['subtotal'] == '15.00'
        assert data['breakdown']['tax'] == '1.95'
        assert data['breakdown']['total'] == '16.95'

    def test_missing_business_header(self, client, sale):
        response = client.post('/refunds/preview', json={'sale_id': sale.id})
        assert response.status_code == 400

    def test_other_business_cannot_see_sale(self, client, sale, other_business):
        response = client.post('/refunds/preview', json={'sale_id': sale.id},
                               headers={'X-Business-Id': str(other_business.id)})
        assert response.status_code == 404


class TestRefundSubmission:
    """Tests for POST /refunds."""

    def _payload(self, sale, **overrides):
        payload = {
            'sale_id': sale.id,
            'lines': [{'sale_item_id': _widget(sale).id, 'refund_quantity': 1, 'restock': True}],
            'reason': 'Damaged in box',
            'refund_method': 'cash',
            'manager_pin': '1234',
        }
        payload.update(overrides)
        return payload

    def test_partial_refund_persisted(self, client, headers, sale, manager, cashier, inventory, session):
        """A refund is stored with its items, restocks inventory and is audited."""
        response = client.post('/refunds', json=self._payload(sale), headers=headers)

        assert response.status_code == 201
        data = response.get_json()
        assert data['refund_type'] == 'partial'
        assert data['breakdown']['total'] == '16.95'
        assert 'REFUND-S-1001' in data['receipt_html']
        assert 'Refunded To' in data['receipt_html']

        session.expire_all()

        refund = session.query(Refund).filter_by(id=data['refund_id']).one()
        assert refund.original_sale_id == sale.id
        assert refund.total_refund_amount == Decimal('16.95')
        assert refund.refunded_by == cashier.id
        assert refund.manager_id == manager.id
        assert refund.manager_override is True
        assert refund.reason == 'Damaged in box'

        items = session.query(RefundItem).filter_by(refund_id=refund.id).all()
        assert len(items) == 1
        assert items[0].quantity_refunded == 1
        assert items[0].refund_amount == Decimal('16.95')

        widget_stock = session.query(InventoryItem).filter_by(id=inventory['widget'].id).one()
        assert widget_stock.quantity == 6

        audit = session.query(AuditLog).filter_by(action=AuditAction.REFUND_PROCESSED).one()
        assert audit.resource_id == refund.id
        assert audit.user_id == cashier.id

    def test_no_restock_leaves_inventory(self, client, headers, sale, manager, inventory, session):
        payload = self._payload(sale, lines=[{'sale_item_id': _widget(sale).id, 'refund_quantity': 2,
                                              'restock': False}])

        response = client.post('/refunds', json=payload, headers=headers)

        assert response.status_code == 201
        session.expire_all()
        widget_stock = session.query(InventoryItem).filter_by(id=inventory['widget'].id).one()
        assert widget_stock.quantity == 5

    def test_full_refund_when_lines_omitted(self, client, headers, sale, manager, session):
        response = client.post('/refunds', json=self._payload(sale, lines=None), headers=headers)

        assert response.status_code == 201
        assert response.get_json()['refund_type'] == 'full'
        assert session.query(RefundItem).count() == 2

    def test_invalid_pin_rejected(self, client, headers, sale, manager, session):
        response = client.post('/refunds', json=self._payload(sale, manager_pin='9999'), headers=headers)

        assert response.status_code == 403
        assert session.query(Refund).count() == 0

    def test_cashier_pin_is_not_manager_pin(self, client, headers, sale, manager, cashier, session):
        cashier_row = session.get(type(cashier), cashier.id)
        cashier_row.set_pin('5555')
        session.commit()

        response = client.post('/refunds', json=self._payload(sale, manager_pin='5555'), headers=headers)

        assert response.status_code == 403

    def test_missing_reason_rejected(self, client, headers, sale, manager, session):
        response = client.post('/refunds', json=self._payload(sale, reason='  '), headers=headers)

        assert response.status_code == 400
        assert response.get_json()['field'] == 'reason'
        assert session.query(Refund).count() == 0

    def test_nothing_to_refund_rejected(self, client, headers, sale, manager):
        payload = self._payload(sale, lines=[{'sale_item_id': _widget(sale).id, 'refund_quantity': 0}])

        response = client.post('/refunds', json=payload, headers=headers)

        assert response.status_code == 400
        assert response.get_json()['field'] == 'total'

    def test_invalid_refund_method(self, client, headers, sale, manager):
        response = client.post('/refunds', json=self._payload(sale, refund_method='bitcoin'), headers=headers)

        assert response.status_code == 400
        assert response.get_json()['field'] == 'refund_method'

    def test_custom_refund_method_stored(self, client, headers, sale, manager, session):
        payload = self._payload(sale, refund_method='custom', custom_refund_method='E-Transfer')

        response = client.post('/refunds', json=payload, headers=headers)

        assert response.status_code == 201
        refund = session.query(Refund).filter_by(id=response.get_json()['refund_id']).one()
        assert refund.refund_method == 'E-Transfer'

    def test_custom_refund_method_requires_name(self, client, headers, sale, manager, session):
        response = client.post('/refunds', json=self._payload(sale, refund_method='custom'), headers=headers)

        assert response.status_code == 400
        assert response.get_json()['field'] == 'custom_refund_method'
        assert session.query(Refund).count() == 0

    def test_duplicate_idempotency_key(self, client, headers, sale, manager, session):
        payload = self._payload(sale, idempotency_key='refund-abc-1')

        first = client.post('/refunds', json=payload, headers=headers)
        second = client.post('/refunds', json=payload, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.get_json()['refund_id'] == first.get_json()['refund_id']
        assert session.query(Refund).count() == 1

    def test_actor_header_required(self, client, business, sale, manager):
        response = client.post('/refunds', json=self._payload(sale),
                               headers={'X-Business-Id': str(business.id)})
        assert response.status_code == 400


class TestManualRefund:
    """Tests for refunds without an originating sale."""

    def test_manual_refund_has_no_sale(self, client, headers, manager, session):
        payload = {
            'amount': '25.00',
            'reason': 'Goodwill gesture',
            'refund_method': 'store_credit',
            'manager_pin': '1234',
            'customer_name': 'Pat Customer',
            'customer_email': 'pat@example.com',
        }

        response = client.post('/refunds/manual', json=payload, headers=headers)

        assert response.status_code == 201
        data = response.get_json()
        assert data['amount'] == '25.00'
        assert 'MANUAL-REFUND-' in data['receipt_html']
        assert 'Pat Customer' in data['receipt_html']

        refund = session.query(Refund).filter_by(id=data['refund_id']).one()
        assert refund.original_sale_id is None
        assert refund.is_manual
        assert refund.refund_type == 'manual'
        assert refund.customer_email == 'pat@example.com'
        assert session.query(AuditLog).filter_by(action=AuditAction.MANUAL_REFUND_PROCESSED).count() == 1

    def test_manual_refund_requires_positive_amount(self, client, headers, manager):
        payload = {'amount': '0', 'reason': 'x', 'refund_method': 'cash', 'manager_pin': '1234'}

        response = client.post('/refunds/manual', json=payload, headers=headers)

        assert response.status_code == 400


class TestRefundService:
    """Service-level checks without the HTTP layer."""

    def test_process_refund_directly(self, session, business, cashier, manager, sale):
        context = PosContext(business_id=business.id, actor_id=cashier.id)

        result = refund_service.process_refund(
            session, context, sale.id,
            [RefundLineRequest(sale_item_id=_widget(sale).id, refund_quantity=1)],
            reason='Wrong size', refund_method='card', manager_pin='1234',
        )

        assert result['breakdown'].total == Decimal('16.95')
        assert result['receipt_view'].sale_number == 'REFUND-S-1001'

    def test_verify_manager_pin(self, session, business, manager):
        assert refund_service.verify_manager_pin(session, business.id, '1234').id == manager.id
        with pytest.raises(UnauthorizedError):
            refund_service.verify_manager_pin(session, business.id, '0000')
        with pytest.raises(RefundValidationError):
            refund_service.verify_manager_pin(session, business.id, '')

    def test_inactive_manager_cannot_authorize(self, session, business, manager):
        manager_row = session.get(type(manager), manager.id)
        manager_row.active = False
        session.commit()

        with pytest.raises(UnauthorizedError):
            refund_service.verify_manager_pin(session, business.id, '1234')

    def test_duplicate_key_raises(self, session, business, cashier, manager, sale):
        context = PosContext(business_id=business.id, actor_id=cashier.id)
        kwargs = dict(reason='Wrong size', refund_method='card', manager_pin='1234', idempotency_key='k-1')

        refund_service.process_refund(session, context, sale.id, None, **kwargs)

        with pytest.raises(DuplicateSubmissionError):
            refund_service.process_refund(session, context, sale.id, None, **kwargs)

    def test_key_collision_after_precheck_is_duplicate(self, session, business, cashier, manager, sale,
                                                       monkeypatch):
        """A second submission racing past the key lookup still gets a 409, not a 500."""
        context = PosContext(business_id=business.id, actor_id=cashier.id)
        kwargs = dict(reason='Wrong size', refund_method='card', manager_pin='1234', idempotency_key='k-2')
        first = refund_service.process_refund(session, context, sale.id, None, **kwargs)

        monkeypatch.setattr(refund_service, '_check_idempotency', lambda session, key: None)

        with pytest.raises(DuplicateSubmissionError) as exc_info:
            refund_service.process_refund(session, context, sale.id, None, **kwargs)

        assert exc_info.value.status_code == 409
        assert exc_info.value.refund_id == first['refund_id']
        assert session.query(Refund).count() == 1

    def test_manual_key_collision_after_precheck_is_duplicate(self, session, business, cashier, manager,
                                                              monkeypatch):
        context = PosContext(business_id=business.id, actor_id=cashier.id)
        kwargs = dict(reason='Goodwill', refund_method='cash', manager_pin='1234', idempotency_key='m-1')
        first = refund_service.process_manual_refund(session, context, '5.00', **kwargs)

        monkeypatch.setattr(refund_service, '_check_idempotency', lambda session, key: None)

        with pytest.raises(DuplicateSubmissionError) as exc_info:
            refund_service.process_manual_refund(session, context, '5.00', **kwargs)

        assert exc_info.value.refund_id == first['refund_id']

    def test_custom_method_on_manual_refund(self, session, business, cashier, manager):
        context = PosContext(business_id=business.id, actor_id=cashier.id)

        result = refund_service.process_manual_refund(
            session, context, '12.00', reason='Price match', refund_method='Custom',
            manager_pin='1234', custom_refund_method='  Interac e-Transfer ',
        )

        refund = session.query(Refund).filter_by(id=result['refund_id']).one()
        assert refund.refund_method == 'Interac e-Transfer'

    def test_unknown_method_without_custom_rejected(self, session, business, cashier, manager):
        context = PosContext(business_id=business.id, actor_id=cashier.id)

        with pytest.raises(RefundValidationError) as exc_info:
            refund_service.process_manual_refund(session, context, '12.00', reason='x',
                                                 refund_method='E-Transfer', manager_pin='1234')

        assert exc_info.value.field == 'refund_method'

    def test_can_authorize_refunds(self):
        assert Employee(role='manager', active=True).can_authorize_refunds is True
        assert Employee(role='owner', active=True).can_authorize_refunds is True
        assert Employee(role='employee', active=True).can_authorize_refunds is False
        assert not Employee(role='manager', active=False).can_authorize_refunds

    def test_missing_context_unauthorized(self, session, sale):
        with pytest.raises(UnauthorizedError):
            refund_service.process_refund(session, PosContext(), sale.id, None,
                                          reason='x', refund_method='cash', manager_pin='1234')
