"""Tenant-scoped audit trail"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from .models import AuditLog

logger = logging.getLogger(__name__)


def log_audit_event(
    db: Session,
    *,
    tenant_id: Optional[str],
    action: str,
    resource: str,
    resource_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """
    Stage an audit row in the caller's transaction.

    The caller commits; an audit entry never outlives the change it describes.
    """
    entry = AuditLog(
        tenant_id=tenant_id,
        actor_id=actor_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        details=metadata or {},
    )
    db.add(entry)
    logger.info(f"AUDIT_EVENT: {action} {resource}/{resource_id} tenant={tenant_id}")
    return entry
