"""
Audit logging service for tracking critical backoffice actions.
"""
from atelier.models.audit_log import AuditLog, AuditAction
from atelier.utils.timeutils import utcnow
from flask import request, g, has_request_context
import json
import logging

logger = logging.getLogger(__name__)


def log_action(
    session,
    action: AuditAction,
    resource_type: str = None,
    resource_id: int = None,
    details: dict = None,
    user_id: int = None
):
    """
    Log an auditable action to the database.

    Args:
        session: Database session
        action: AuditAction enum value
        resource_type: Type of resource affected (e.g., 'order', 'site_config')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)
        user_id: Acting user; defaults to the request identity
    """
    try:
        ip_address = None
        user_agent = None
        if has_request_context():
            if user_id is None and g.get('user'):
                user_id = g.user.id
            ip_address = request.remote_addr
            user_agent = request.headers.get('User-Agent', '')[:255]

        details_json = None
        if details:
            try:
                details_json = json.dumps(details, default=str)
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to serialize audit details: {e}")
                details_json = str(details)

        session.add(AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details_json,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=utcnow()
        ))
        # Note: Caller is responsible for committing the session

        logger.info(f"Audit log created: {action.value} by user {user_id} on {resource_type} {resource_id}")

    except Exception as e:
        # Audit failures should not break business logic
        logger.error(f"Failed to create audit log: {e}")
