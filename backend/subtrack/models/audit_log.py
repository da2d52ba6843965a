"""
Audit log database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Index
from subtrack.database import Base


class AuditLog(Base):
    """Record of a user-visible change to engine-owned state."""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=True)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_audit_logs_user_time", "user_id", "timestamp"),
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
    )
