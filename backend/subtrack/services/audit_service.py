"""Service for recording audit log entries."""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from subtrack.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    user_id: str,
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Add an audit entry to the current session.
    The caller commits, so the entry lands together with the change it describes.
    """
    entry = AuditLog(
        id=str(uuid.uuid4()),
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=json.dumps(details, default=str) if details else None,
    )
    db.add(entry)

    logger.info(
        f"Audit log created: user={user_id}, action={action}, "
        f"entity_type={entity_type}, entity_id={entity_id}"
    )
    return entry


def get_audit_logs(db: Session, user_id: str, limit: int = 50) -> List[AuditLog]:
    """Get the most recent audit entries for a user."""
    return db.query(AuditLog).filter(
        AuditLog.user_id == user_id
    ).order_by(AuditLog.timestamp.desc()).limit(limit).all()
