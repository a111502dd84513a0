"""
Tenant (company) model
"""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func

from fieldservice.db.base import Base, new_id


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
