"""
Time entry model (immutable record of a closed clock-in interval)
"""
import enum

from sqlalchemy import Column, String, Text, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fieldservice.db.base import Base, new_id


class TimeEntryType(str, enum.Enum):
    REGULAR = "regular"
    OVERTIME = "overtime"
    TRAVEL = "travel"
    SHOP_TIME = "shop-time"
    OTHER = "other"


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    work_order_id = Column(String(36), ForeignKey("work_orders.id"), nullable=True, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    duration_hours = Column(Float, nullable=False)
    entry_type = Column(String(20), nullable=False, default=TimeEntryType.REGULAR.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    user = relationship("User")
    work_order = relationship("WorkOrder")
