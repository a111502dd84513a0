"""
Role schemas

A permission map is ``{module_slug: true | {flag: bool, ...}}``.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, ConfigDict

PermissionMap = Dict[str, Union[bool, Dict[str, Any]]]


class RoleCreate(BaseModel):
    """Schema for creating a role"""

    name: str = Field(..., min_length=1, description="Role name (e.g. Technician, Dispatcher)")
    description: Optional[str] = Field(default=None, description="Free-text description")
    permissions: PermissionMap = Field(default_factory=dict, description="Per-module permissions")
    is_template: bool = Field(
        default=False,
        description="Platform scope only: mark the role as a template tenants can clone",
    )


class RoleUpdate(BaseModel):
    """Schema for updating a role"""

    name: Optional[str] = Field(default=None, min_length=1, description="Updated role name")
    description: Optional[str] = Field(default=None, description="Updated description")
    permissions: Optional[PermissionMap] = Field(default=None, description="Replacement permission map")


class RoleOut(BaseModel):
    """Role output schema"""

    id: str
    tenant_id: Optional[str]
    name: str
    description: Optional[str]
    permissions: PermissionMap
    is_template: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleAssignmentRequest(BaseModel):
    role_id: str = Field(..., description="Role to give the user")


class RoleAssignmentOut(BaseModel):
    id: str
    user_id: str
    role_id: str
    tenant_id: Optional[str]

    model_config = ConfigDict(from_attributes=True)
