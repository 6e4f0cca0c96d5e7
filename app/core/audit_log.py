"""
Audit logging for admin actions

Every catalog mutation made from the admin console is recorded on the
"audit" logger as a structured entry: who did what, to which record, from
where, and whether it succeeded.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Any

from app.core.config import settings

audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)

# Action categories
ACTION_PRODUCT_CREATE = "product.create"
ACTION_PRODUCT_UPDATE = "product.update"
ACTION_PRODUCT_DELETE = "product.delete"
ACTION_CATEGORY_CREATE = "category.create"

SENSITIVE_DETAIL_KEYS = ("password", "secret", "token", "key", "credential")


def log_admin_action(
    action: str,
    admin_id: Optional[str],
    resource_type: str,
    resource_id: Optional[Any] = None,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
    success: bool = True,
) -> dict:
    """
    Log an administrative action.

    Args:
        action: Action identifier (e.g., "product.create")
        admin_id: Identity provider subject of the admin
        resource_type: Type of resource affected (e.g., "product")
        resource_id: ID of the affected resource (if applicable)
        details: Additional context about the action
        ip_address: IP address of the request
        success: Whether the action succeeded

    Returns:
        The structured entry that was logged.
    """
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "admin_id": admin_id,
        "resource_type": resource_type,
        "resource_id": str(resource_id) if resource_id is not None else None,
        "success": success,
        "ip_address": ip_address,
        "environment": settings.ENVIRONMENT,
    }

    if details:
        log_entry["details"] = {
            k: v for k, v in details.items()
            if k.lower() not in SENSITIVE_DETAIL_KEYS
        }

    if success:
        audit_logger.info(
            f"AUDIT: {action} by {admin_id} on {resource_type}/{resource_id}",
            extra={"audit": log_entry}
        )
    else:
        audit_logger.warning(
            f"AUDIT FAILED: {action} by {admin_id} on {resource_type}/{resource_id}",
            extra={"audit": log_entry}
        )

    return log_entry
