"""
User model

A user with a null tenant_id is a platform administrator. The user's running
clock-in is embedded as the ``active_timer`` JSON document:
``{"work_order_id": str, "started_at": iso8601}`` or NULL.
"""
import enum

from sqlalchemy import Column, String, DateTime, Float, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fieldservice.db.base import Base, new_id


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INVITED = "invited"
    SUSPENDED = "suspended"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=True)
    password_hash = Column(String, nullable=True)
    status = Column(String(20), default=UserStatus.ACTIVE.value, nullable=False)
    active_timer = Column(JSON, nullable=True)
    pay_rate_hourly = Column(Float, nullable=True)
    overtime_threshold_hours = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    tenant = relationship("Tenant", backref="users")
    role_assignments = relationship("UserRoleAssignment", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_platform_admin(self) -> bool:
        return self.tenant_id is None
