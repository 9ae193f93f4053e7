"""Sale Item model."""
from sqlalchemy import Column, BigInteger, String, Integer, Numeric, Boolean, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from pos_app.database import Base
from pos_app.models.business import PK_TYPE


class SaleItem(Base):
    """Sale line as recorded at checkout."""

    __tablename__ = 'pos_sale_items'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('pos_sales.id', ondelete='CASCADE'), nullable=False, index=True)
    inventory_id = Column(BigInteger, ForeignKey('pos_inventory.id'), nullable=True)

    name = Column(String(200), nullable=False)
    sku = Column(String(64))
    category_name = Column(String(100))
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    tax_rate = Column(Numeric(6, 4), nullable=False, default=0)  # fraction, 0.13 = 13%
    tax_exempt = Column(Boolean, nullable=False, default=False)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    modifiers = Column(JSON, nullable=True)  # [{"name": ..., "price": "0.50"}]
    notes = Column(Text)

    # Relationships
    sale = relationship('Sale', back_populates='items')

    def to_row(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'sku': self.sku,
            'category_name': self.category_name,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'total_price': self.total_price,
            'tax_rate': self.tax_rate,
            'tax_exempt': self.tax_exempt,
            'tax_amount': self.tax_amount,
            'modifiers': self.modifiers or [],
            'notes': self.notes,
            'inventory_id': self.inventory_id,
        }

    def __repr__(self):
        return f"<SaleItem(id={self.id}, name='{self.name}', quantity={self.quantity})>"
