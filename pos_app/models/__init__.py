"""Models package - exports all SQLAlchemy models."""
from pos_app.models.business import Business
from pos_app.models.employee import Employee
from pos_app.models.inventory import InventoryItem
from pos_app.models.sale import Sale
from pos_app.models.sale_item import SaleItem
from pos_app.models.sale_payment import SalePayment
from pos_app.models.refund import Refund, RefundItem
from pos_app.models.drawer import Drawer
from pos_app.models.audit_log import AuditLog, AuditAction

__all__ = [
    'Business', 'Employee', 'InventoryItem',
    'Sale', 'SaleItem', 'SalePayment',
    'Refund', 'RefundItem', 'Drawer',
    'AuditLog', 'AuditAction',
]
