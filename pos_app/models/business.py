"""Business model."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime
from sqlalchemy.sql import func
from pos_app.database import Base

# SQLite only autoincrements INTEGER primary keys
PK_TYPE = BigInteger().with_variant(Integer, 'sqlite')


class Business(Base):
    """Business (tienda) with the details printed on receipts."""

    __tablename__ = 'pos_business'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    business_name = Column(String(200), nullable=False)
    address = Column(String(200))
    city = Column(String(100))
    province = Column(String(50))
    postal_code = Column(String(20))
    phone = Column(String(50))
    email = Column(String(200))
    tax_number = Column(String(50))
    timezone = Column(String(64), nullable=False, default='America/Toronto')

    # Loyalty program display: 'points' or 'credit'
    loyalty_mode = Column(String(20), nullable=False, default='credit')
    earn_rate_percentage = Column(Numeric(5, 2), nullable=False, default=3)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def to_settings_row(self) -> dict:
        return {
            'business_name': self.business_name,
            'address': self.address,
            'city': self.city,
            'province': self.province,
            'postal_code': self.postal_code,
            'phone': self.phone,
            'email': self.email,
            'tax_number': self.tax_number,
            'timezone': self.timezone,
            'loyalty_mode': self.loyalty_mode,
            'earn_rate_percentage': self.earn_rate_percentage,
        }

    def __repr__(self):
        return f"<Business(id={self.id}, name='{self.business_name}')>"
