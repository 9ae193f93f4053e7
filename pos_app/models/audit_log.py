"""
Audit Log model for tracking refund and receipt actions.
"""
from sqlalchemy import Column, BigInteger, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from datetime import datetime
import enum

from pos_app.database import Base
from pos_app.models.business import PK_TYPE


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    # Refunds
    REFUND_PROCESSED = "refund_processed"
    MANUAL_REFUND_PROCESSED = "manual_refund_processed"
    REFUND_RESTOCKED = "refund_restocked"
    REFUND_REJECTED = "refund_rejected"

    # Receipts
    RECEIPT_REPRINTED = "receipt_reprinted"
    RECEIPT_EMAILED = "receipt_emailed"

    # Reports
    REPORT_EXPORTED = "report_exported"


class AuditLog(Base):
    """
    Audit log for tracking user actions.
    Scoped by business_id.
    """
    __tablename__ = 'pos_audit_logs'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    business_id = Column(BigInteger, ForeignKey('pos_business.id'), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey('pos_employees.id'), nullable=True)
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    context = Column(String(50))  # e.g. 'refund', 'receipt', 'report'
    resource_id = Column(BigInteger)  # ID of the affected resource
    details = Column(Text)  # JSON with additional details
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action.value} by user {self.user_id} at {self.created_at}>"
