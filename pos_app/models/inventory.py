"""Inventory model."""
from sqlalchemy import Column, BigInteger, String, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func
from pos_app.database import Base
from pos_app.models.business import PK_TYPE


class InventoryItem(Base):
    """Stock on hand for a sellable product."""

    __tablename__ = 'pos_inventory'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    business_id = Column(BigInteger, ForeignKey('pos_business.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    sku = Column(String(64), index=True)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<InventoryItem(id={self.id}, sku={self.sku}, quantity={self.quantity})>"
