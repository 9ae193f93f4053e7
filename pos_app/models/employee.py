"""Employee model - cashiers and managers who act on the POS."""
from sqlalchemy import Column, BigInteger, String, Boolean, ForeignKey
from werkzeug.security import generate_password_hash, check_password_hash
from pos_app.database import Base
from pos_app.models.business import PK_TYPE


class Employee(Base):
    """Employee of a business. Managers authorize refunds with a PIN."""

    __tablename__ = 'pos_employees'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    business_id = Column(BigInteger, ForeignKey('pos_business.id'), nullable=False, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(200))
    role = Column(String(20), nullable=False, default='employee')  # employee, manager, owner
    pin_hash = Column(String(255))
    active = Column(Boolean, nullable=False, default=True)

    @property
    def can_authorize_refunds(self) -> bool:
        return self.active and self.role in ('manager', 'owner')

    def set_pin(self, pin):
        """Store a hashed manager PIN."""
        self.pin_hash = generate_password_hash(str(pin), method='scrypt')

    def check_pin(self, pin) -> bool:
        if not self.pin_hash or not pin:
            return False
        return check_password_hash(self.pin_hash, str(pin))

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or 'Unknown'

    def __repr__(self):
        return f"<Employee(id={self.id}, name='{self.full_name}', role={self.role})>"
