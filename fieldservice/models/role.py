"""
Role and role assignment models

``Role.permissions`` maps a module slug to either ``true`` (full access) or an
object of boolean action flags. Roles with a null tenant_id are platform
roles; platform roles flagged ``is_template`` are cloned into tenants.
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fieldservice.db.base import Base, new_id


class Role(Base):
    __tablename__ = "roles"

    id = Column(String(64), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    permissions = Column(JSON, nullable=False, default=dict)
    is_template = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    assignments = relationship("UserRoleAssignment", back_populates="role")


class UserRoleAssignment(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    role_id = Column(String(64), ForeignKey("roles.id"), nullable=False, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    user = relationship("User", back_populates="role_assignments")
    role = relationship("Role", back_populates="assignments")
