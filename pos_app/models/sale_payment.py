"""Sale Payment model for mixed payment methods."""
from sqlalchemy import Column, BigInteger, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from pos_app.database import Base
from pos_app.models.business import PK_TYPE


class SalePayment(Base):
    """
    Sale Payment - Individual tender line of a sale.

    A sale can be split across several methods (cash + card, gift card...).
    """

    __tablename__ = 'pos_payments'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('pos_sales.id', ondelete='CASCADE'), nullable=False, index=True)

    payment_method = Column(String(30), nullable=False)  # cash, card, debit, gift_card, custom
    custom_method_name = Column(String(100))
    amount = Column(Numeric(10, 2), nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='payments')

    def __repr__(self):
        return f"<SalePayment(id={self.id}, sale_id={self.sale_id}, method={self.payment_method}, amount={self.amount})>"
