"""
Role service - role definitions, platform templates and user-role assignments
"""
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from fieldservice.core.errors import NotFound, RoleInUse, ValidationError
from fieldservice.models.role import Role, UserRoleAssignment
from fieldservice.models.user import User
from fieldservice.schemas.role import RoleCreate, RoleUpdate
from fieldservice.services.audit_service import log_audit
from fieldservice.services.permission_service import aggregate_permissions, validate_permission_map

logger = logging.getLogger(__name__)


def _tenant_filter(column, tenant_id: Optional[str]):
    return column.is_(None) if tenant_id is None else column == tenant_id


def _ensure_unique_name(db: Session, tenant_id: Optional[str], name: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(Role).filter(
        _tenant_filter(Role.tenant_id, tenant_id),
        func.lower(Role.name) == func.lower(name),
    )
    if exclude_id is not None:
        query = query.filter(Role.id != exclude_id)
    if query.first():
        raise ValidationError(f"Role with name '{name}' already exists")


def create_role(
    db: Session,
    role_data: RoleCreate,
    tenant_id: Optional[str],
    actor_id: str,
) -> Role:
    """
    Create a role in a tenant (or a platform role / template when tenant_id is None).

    Name is treated as case-insensitive unique within the tenant.
    """
    _ensure_unique_name(db, tenant_id, role_data.name)
    role = Role(
        tenant_id=tenant_id,
        name=role_data.name,
        description=role_data.description,
        permissions=validate_permission_map(role_data.permissions),
        is_template=role_data.is_template if tenant_id is None else False,
    )
    db.add(role)
    db.commit()
    db.refresh(role)

    log_audit(
        db=db,
        actor_id=actor_id,
        action="ROLE_CREATE",
        entity_type="roles",
        entity_id=role.id,
        tenant_id=tenant_id,
        meta={"name": role.name, "modules": sorted(role.permissions)},
    )
    return role


def list_roles(db: Session, tenant_id: Optional[str], templates_only: bool = False) -> List[Role]:
    """List roles of a tenant; with tenant_id None, platform roles (optionally only templates)."""
    query = db.query(Role).filter(_tenant_filter(Role.tenant_id, tenant_id))
    if templates_only:
        query = query.filter(Role.is_template.is_(True))
    return query.order_by(Role.name.asc()).all()


def get_role(db: Session, role_id: str, tenant_id: Optional[str]) -> Role:
    """
    Get a role owned by tenant_id.

    A role in another tenant is reported exactly like a missing one.
    """
    role = db.query(Role).filter(Role.id == role_id).first()
    if role is None or role.tenant_id != tenant_id:
        raise NotFound("Role not found or access denied")
    return role


def update_role(
    db: Session,
    role_id: str,
    role_data: RoleUpdate,
    tenant_id: Optional[str],
    actor_id: str,
) -> Role:
    role = get_role(db, role_id, tenant_id)
    update_dict = role_data.model_dump(exclude_unset=True)

    if update_dict.get("name") is not None:
        _ensure_unique_name(db, tenant_id, update_dict["name"], exclude_id=role.id)
        role.name = update_dict["name"]
    if "description" in update_dict:
        role.description = update_dict["description"]
    if update_dict.get("permissions") is not None:
        role.permissions = validate_permission_map(update_dict["permissions"])

    db.commit()
    db.refresh(role)

    log_audit(
        db=db,
        actor_id=actor_id,
        action="ROLE_UPDATE",
        entity_type="roles",
        entity_id=role.id,
        tenant_id=tenant_id,
        meta=update_dict,
    )
    return role


def delete_role(db: Session, role_id: str, tenant_id: Optional[str], actor_id: str) -> None:
    """Delete a role; refused while any user still holds it."""
    role = get_role(db, role_id, tenant_id)
    in_use = (
        db.query(func.count(UserRoleAssignment.id))
        .filter(UserRoleAssignment.role_id == role.id)
        .scalar()
    )
    if in_use:
        logger.warning("Refused to delete role %s: %s assignment(s) reference it", role.id, in_use)
        raise RoleInUse(
            f'Cannot delete role "{role.name}" as it is currently assigned to {in_use} user(s).'
        )

    db.delete(role)
    db.commit()

    log_audit(
        db=db,
        actor_id=actor_id,
        action="ROLE_DELETE",
        entity_type="roles",
        entity_id=role_id,
        tenant_id=tenant_id,
        meta={"name": role.name},
    )


def clone_template(db: Session, template_id: str, tenant_id: str, actor_id: str) -> Role:
    """Copy a platform role template into a tenant as an ordinary tenant role."""
    template = db.query(Role).filter(Role.id == template_id, Role.is_template.is_(True)).first()
    if template is None or template.tenant_id is not None:
        raise NotFound("Role template not found")

    _ensure_unique_name(db, tenant_id, template.name)
    role = Role(
        tenant_id=tenant_id,
        name=template.name,
        description=template.description,
        permissions=dict(template.permissions or {}),
        is_template=False,
    )
    db.add(role)
    db.commit()
    db.refresh(role)

    log_audit(
        db=db,
        actor_id=actor_id,
        action="ROLE_CLONE_TEMPLATE",
        entity_type="roles",
        entity_id=role.id,
        tenant_id=tenant_id,
        meta={"template_id": template_id},
    )
    return role


def assign_role(db: Session, user_id: str, role_id: str, tenant_id: Optional[str], actor_id: str) -> UserRoleAssignment:
    """Give a user a role; user and role must both belong to tenant_id. Re-assigning is a no-op."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.tenant_id != tenant_id:
        raise NotFound("User not found or access denied")
    role = get_role(db, role_id, tenant_id)

    existing = (
        db.query(UserRoleAssignment)
        .filter(UserRoleAssignment.user_id == user.id, UserRoleAssignment.role_id == role.id)
        .first()
    )
    if existing:
        return existing

    assignment = UserRoleAssignment(user_id=user.id, role_id=role.id, tenant_id=tenant_id)
    db.add(assignment)
    db.commit()
    db.refresh(assignment)

    log_audit(
        db=db,
        actor_id=actor_id,
        action="ROLE_ASSIGN",
        entity_type="user_roles",
        entity_id=assignment.id,
        tenant_id=tenant_id,
        meta={"user_id": user.id, "role_id": role.id},
    )
    return assignment


def revoke_role(db: Session, user_id: str, role_id: str, tenant_id: Optional[str], actor_id: str) -> None:
    assignment = (
        db.query(UserRoleAssignment)
        .filter(
            UserRoleAssignment.user_id == user_id,
            UserRoleAssignment.role_id == role_id,
            _tenant_filter(UserRoleAssignment.tenant_id, tenant_id),
        )
        .first()
    )
    if assignment is None:
        raise NotFound("Role assignment not found or access denied")

    db.delete(assignment)
    db.commit()

    log_audit(
        db=db,
        actor_id=actor_id,
        action="ROLE_REVOKE",
        entity_type="user_roles",
        entity_id=assignment.id,
        tenant_id=tenant_id,
        meta={"user_id": user_id, "role_id": role_id},
    )


def get_roles_for_user(db: Session, user_id: str, tenant_id: Optional[str]) -> List[Role]:
    """Roles the user holds in the given tenant context (None = platform context)."""
    return (
        db.query(Role)
        .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.id)
        .filter(
            UserRoleAssignment.user_id == user_id,
            _tenant_filter(UserRoleAssignment.tenant_id, tenant_id),
        )
        .all()
    )


def build_profile(db: Session, user: User) -> dict:
    """Profile payload for the client: identity, role names and aggregated permissions."""
    roles = get_roles_for_user(db, user.id, user.tenant_id)
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "tenant_id": user.tenant_id,
        "status": user.status,
        "role_names": sorted(role.name for role in roles),
        "permissions": aggregate_permissions(roles),
        "active_timer": user.active_timer,
    }
