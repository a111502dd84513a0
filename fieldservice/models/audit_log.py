"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from fieldservice.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=True, index=True)
    actor_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    action = Column(String, nullable=False)  # e.g. "WORK_ORDER_STATUS", "CLOCK_IN", "ROLE_DELETE"
    entity_type = Column(String, nullable=False)  # e.g. "work_orders", "roles", "time_entries"
    entity_id = Column(String(64), nullable=True)
    meta_json = Column(JSON, nullable=True)
    # Set explicitly; server_default differs between SQLite and PostgreSQL
    created_at = Column(DateTime(timezone=True), nullable=False)
