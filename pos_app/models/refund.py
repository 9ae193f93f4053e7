"""Refund models."""
from sqlalchemy import Column, BigInteger, String, Integer, Numeric, Boolean, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pos_app.database import Base
from pos_app.models.business import PK_TYPE


class Refund(Base):
    """
    Refund issued against a sale, or a manual refund with no sale.

    Created once on submission and never updated afterwards.
    """

    __tablename__ = 'pos_refunds'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    business_id = Column(BigInteger, ForeignKey('pos_business.id'), nullable=False, index=True)
    original_sale_id = Column(BigInteger, ForeignKey('pos_sales.id'), nullable=True, index=True)  # NULL = manual refund
    refunded_by = Column(BigInteger, ForeignKey('pos_employees.id'), nullable=True, index=True)

    refund_method = Column(String(30), nullable=False)
    refund_type = Column(String(20), nullable=False, default='partial')  # full, partial, manual
    total_refund_amount = Column(Numeric(10, 2), nullable=False)
    reason = Column(Text, nullable=False)

    manager_override = Column(Boolean, nullable=False, default=False)
    manager_id = Column(BigInteger, ForeignKey('pos_employees.id'), nullable=True)

    # Manual refunds only
    customer_name = Column(String(200))
    customer_email = Column(String(200))
    customer_phone = Column(String(50))

    # Idempotency key to prevent duplicate refunds on double-submit
    idempotency_key = Column(String(64), unique=True, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    # Relationships
    original_sale = relationship('Sale', back_populates='refunds')
    items = relationship('RefundItem', back_populates='refund', cascade='all, delete-orphan',
                         order_by='RefundItem.id')

    @property
    def is_manual(self) -> bool:
        return self.original_sale_id is None

    def __repr__(self):
        return f"<Refund(id={self.id}, sale_id={self.original_sale_id}, amount={self.total_refund_amount})>"


class RefundItem(Base):
    """Refunded quantity of one sale line."""

    __tablename__ = 'pos_refund_items'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    refund_id = Column(BigInteger, ForeignKey('pos_refunds.id', ondelete='CASCADE'), nullable=False, index=True)
    original_sale_item_id = Column(BigInteger, ForeignKey('pos_sale_items.id'), nullable=False)
    inventory_id = Column(BigInteger, ForeignKey('pos_inventory.id'), nullable=True)
    quantity_refunded = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    refund_amount = Column(Numeric(10, 2), nullable=False)
    restock = Column(Boolean, nullable=False, default=True)

    # Relationships
    refund = relationship('Refund', back_populates='items')

    def __repr__(self):
        return f"<RefundItem(id={self.id}, sale_item_id={self.original_sale_item_id}, qty={self.quantity_refunded})>"
