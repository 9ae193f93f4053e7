"""
Audit logging service for refund, receipt and report actions.

Audit writes are fire-and-forget: a failure is logged and never interrupts
the action being audited.
"""
from datetime import datetime
import json
import logging

from pos_app.context import PosContext
from pos_app.models.audit_log import AuditLog, AuditAction

logger = logging.getLogger(__name__)


def log_action(
    session,
    context: PosContext,
    action: AuditAction,
    audit_context: str = None,
    resource_id: int = None,
    details: dict = None
) -> bool:
    """
    Log an auditable action to the database.

    Args:
        session: Database session
        context: Business and actor performing the action
        action: AuditAction enum value
        audit_context: Area of the app (e.g., 'refund', 'receipt')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)

    Returns:
        True if the entry was added to the session, False otherwise
    """
    try:
        if context is None or context.business_id is None:
            logger.warning(f"Cannot log action {action}: missing business_id")
            return False

        details_json = None
        if details:
            try:
                details_json = json.dumps(details, default=str)
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to serialize audit details: {e}")
                details_json = str(details)

        audit_entry = AuditLog(
            business_id=context.business_id,
            user_id=context.actor_id,
            action=action,
            context=audit_context,
            resource_id=resource_id,
            details=details_json,
            created_at=datetime.utcnow()
        )

        session.add(audit_entry)
        # Note: Caller is responsible for committing the session

        logger.info(f"Audit log created: {action.value} by user {context.actor_id} on {audit_context} {resource_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to create audit log: {e}")
        # Don't raise exception - audit failures should not break business logic
        return False
