"""Sale model."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pos_app.database import Base
from pos_app.models.business import PK_TYPE


class Sale(Base):
    """Completed POS sale (read-only after checkout)."""

    __tablename__ = 'pos_sales'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    business_id = Column(BigInteger, ForeignKey('pos_business.id'), nullable=False, index=True)
    sale_number = Column(String(40), nullable=False)
    user_id = Column(BigInteger, ForeignKey('pos_employees.id'), nullable=True, index=True)

    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    loyalty_discount = Column(Numeric(10, 2), nullable=False, default=0)
    tip_amount = Column(Numeric(10, 2), nullable=False, default=0)
    change_given = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)

    # Name -> amount maps (amounts stored as strings), plus optional itemized list
    aggregated_taxes = Column(JSON, nullable=True)
    aggregated_rebates = Column(JSON, nullable=True)
    tax_breakdown = Column(JSON, nullable=True)

    customer_name = Column(String(200))
    customer_email = Column(String(200))
    customer_phone = Column(String(50))
    loyalty_balance = Column(Numeric(10, 2))

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    # Relationships
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan',
                         order_by='SaleItem.id')
    payments = relationship('SalePayment', back_populates='sale', cascade='all, delete-orphan',
                            order_by='SalePayment.id')
    refunds = relationship('Refund', back_populates='original_sale')

    def __repr__(self):
        return f"<Sale(id={self.id}, number={self.sale_number}, total={self.total})>"
