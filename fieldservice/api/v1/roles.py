"""
Role endpoints

Roles live in the caller's tenant. Platform admins work on platform roles and
templates, or on a tenant's roles by passing ``?tenant_id=``.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from fieldservice.core.deps import get_db, require_permission
from fieldservice.core.errors import ValidationError
from fieldservice.schemas.role import RoleCreate, RoleUpdate, RoleOut
from fieldservice.services.authorization_service import AuthorizationResult
from fieldservice.services.role_service import (
    clone_template,
    create_role,
    delete_role,
    get_role,
    list_roles,
    update_role,
)

router = APIRouter()


@router.post("", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
def create_role_endpoint(
    role_data: RoleCreate,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("roles:create")),
):
    return create_role(db, role_data, auth.tenant_id, auth.user_id)


@router.get("", response_model=List[RoleOut])
def list_roles_endpoint(
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("roles:view")),
):
    return list_roles(db, auth.tenant_id)


@router.get("/templates", response_model=List[RoleOut])
def list_templates_endpoint(
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("platform-templates:view")),
):
    """Platform role templates a tenant can clone."""
    return list_roles(db, None, templates_only=True)


@router.get("/{role_id}", response_model=RoleOut)
def get_role_endpoint(
    role_id: str,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("roles:view")),
):
    return get_role(db, role_id, auth.tenant_id)


@router.patch("/{role_id}", response_model=RoleOut)
def update_role_endpoint(
    role_id: str,
    role_data: RoleUpdate,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("roles:edit")),
):
    return update_role(db, role_id, role_data, auth.tenant_id, auth.user_id)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role_endpoint(
    role_id: str,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("roles:delete")),
):
    """Delete a role; 409 while any user still holds it."""
    delete_role(db, role_id, auth.tenant_id, auth.user_id)


@router.post("/{template_id}/clone", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
def clone_template_endpoint(
    template_id: str,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("roles:create")),
):
    """Copy a platform template into the caller's (or the named) tenant."""
    if auth.tenant_id is None:
        raise ValidationError("tenant_id is required to clone a template")
    return clone_template(db, template_id, auth.tenant_id, auth.user_id)
