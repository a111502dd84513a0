"""
Work order model
"""
import enum

from sqlalchemy import Column, String, Text, Float, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fieldservice.db.base import Base, new_id


class WorkOrderStatus(str, enum.Enum):
    NEW = "new"
    SCHEDULED = "scheduled"
    TRAVELING = "traveling"
    IN_PROGRESS = "in-progress"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    INVOICED = "invoiced"
    CANCELLED = "cancelled"


class WorkOrderPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class WorkOrder(Base):
    __tablename__ = "work_orders"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    work_order_number = Column(String, nullable=True)
    customer_id = Column(String(36), nullable=False)
    location_id = Column(String(36), nullable=False)
    equipment_id = Column(String(36), nullable=True)
    assigned_technician_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=WorkOrderStatus.NEW.value, index=True)
    priority = Column(String(20), nullable=False, default=WorkOrderPriority.MEDIUM.value)
    summary = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    estimated_duration_hours = Column(Float, nullable=True)

    scheduled_at = Column(DateTime(timezone=True), nullable=True, index=True)
    travel_started_at = Column(DateTime(timezone=True), nullable=True)
    travel_ended_at = Column(DateTime(timezone=True), nullable=True)
    on_site_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    related_invoice_id = Column(String(36), nullable=True)

    # [{"id", "content", "author_id", "type": public|internal, "timestamp"}]
    notes = Column(JSON, nullable=False, default=list)

    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    updated_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    technician = relationship("User", foreign_keys=[assigned_technician_id])

    @property
    def status_enum(self) -> WorkOrderStatus:
        return WorkOrderStatus(self.status)
