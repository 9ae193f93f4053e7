"""Cash drawer session model."""
from sqlalchemy import Column, BigInteger, String, Numeric, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from pos_app.database import Base
from pos_app.models.business import PK_TYPE


class Drawer(Base):
    """A cash drawer from opening count to closing count."""

    __tablename__ = 'pos_drawers'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    business_id = Column(BigInteger, ForeignKey('pos_business.id'), nullable=False, index=True)
    terminal_id = Column(String(50))
    opened_by = Column(BigInteger, ForeignKey('pos_employees.id'), nullable=True)
    closed_by = Column(BigInteger, ForeignKey('pos_employees.id'), nullable=True)

    starting_cash = Column(Numeric(10, 2), nullable=False, default=0)
    expected_cash = Column(Numeric(10, 2), nullable=True)
    actual_cash = Column(Numeric(10, 2), nullable=True)
    variance = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=False, default='open')  # open, closed
    notes = Column(Text)

    opened_at = Column(DateTime(timezone=True), nullable=False, index=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    opener = relationship('Employee', foreign_keys=[opened_by])
    closer = relationship('Employee', foreign_keys=[closed_by])

    def __repr__(self):
        return f"<Drawer(id={self.id}, terminal={self.terminal_id}, status={self.status})>"
