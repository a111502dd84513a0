"""
Audit logging service
"""
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from fieldservice.models.audit_log import AuditLog
from fieldservice.utils.datetime_utils import now_utc
from fieldservice.utils.json_serializer import sanitize_for_json


def log_audit(
    db: Session,
    actor_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> AuditLog:
    """
    Create an audit log entry

    Args:
        db: Database session
        actor_id: ID of the user performing the action
        action: Action type (e.g., "WORK_ORDER_STATUS", "CLOCK_OUT", "ROLE_DELETE")
        entity_type: Type of entity (e.g., "work_orders", "roles")
        entity_id: ID of the affected entity (optional)
        tenant_id: Tenant the action was performed in (None for platform scope)
        meta: Additional metadata as dictionary (optional)
        commit: Commit immediately; pass False to join the caller's transaction

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        tenant_id=tenant_id,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        created_at=now_utc(),
    )
    db.add(audit_log)
    if commit:
        db.commit()
        db.refresh(audit_log)
    return audit_log
