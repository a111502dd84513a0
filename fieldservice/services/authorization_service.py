"""
Authorization gate: the single decision point for every privileged operation.

``authorize`` verifies the caller's identity token, resolves the caller's home
tenant, enforces tenant isolation and then checks one ``module:action``
permission against the permissions aggregated from all of the caller's roles.
Platform administrators (home tenant None) may act in any tenant they name.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple, Type

from sqlalchemy.orm import Session

from fieldservice.core.constants import ANY_AUTHENTICATED, PLATFORM_OWNER_ROLE_ID
from fieldservice.core.errors import Forbidden, NotFound, Unauthenticated, ValidationError
from fieldservice.core.security import decode_token
from fieldservice.models.user import User, UserStatus
from fieldservice.services.permission_service import (
    EffectivePermissions,
    aggregate_permissions,
    full_access,
    has_permission,
)
from fieldservice.services.role_service import get_roles_for_user

logger = logging.getLogger(__name__)

_MISSING = object()

# Why an allowed request was allowed; denials raise instead
REASON_AUTHENTICATED = "authenticated"
REASON_PLATFORM_OWNER = "platform-owner"
REASON_GRANTED = "granted"


@dataclass
class AuthorizationResult:
    allowed: bool
    user_id: str
    tenant_id: Optional[str]
    home_tenant_id: Optional[str]
    permissions: EffectivePermissions = field(default_factory=dict)
    reason: Optional[str] = None
    user: Optional[User] = field(default=None, repr=False)

    @property
    def is_platform_admin(self) -> bool:
        return self.home_tenant_id is None


def parse_permission(required_permission: str) -> Tuple[str, str]:
    """Split ``module:action``; a bare ``module`` means ``module:can_access``."""
    module_slug, _, action = required_permission.partition(":")
    action = action or "can_access"
    if not module_slug or ":" in action:
        raise ValidationError(f"Malformed permission '{required_permission}'")
    return module_slug, action


def _resolve_user(db: Session, token: Optional[str]) -> Tuple[User, object]:
    if not token:
        raise Unauthenticated("Authorization header is missing or invalid.")
    try:
        payload = decode_token(token)
    except ValueError:
        raise Unauthenticated("Invalid authentication token.")

    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Invalid authentication token.")

    user = db.query(User).filter(User.id == str(user_id)).first()
    if user is None:
        raise Unauthenticated("User not found")
    return user, payload.get("tenant_id", _MISSING)


def authorize(
    db: Session,
    token: Optional[str],
    required_permission: str,
    target_tenant_id: Optional[str] = None,
) -> AuthorizationResult:
    """
    Decide whether the caller may perform ``required_permission``.

    Args:
        db: Database session
        token: Bearer identity token (None when the header was absent)
        required_permission: ``module:action`` or ``*`` for any authenticated user
        target_tenant_id: Tenant owning the data being touched, when the caller names one

    Returns:
        AuthorizationResult with ``allowed=True`` and the effective tenant

    Raises:
        Unauthenticated: missing, invalid or expired token, or unknown user
        Forbidden: inactive user, tenant mismatch, no roles, or missing permission
        ValidationError: malformed permission string
    """
    user, tenant_claim = _resolve_user(db, token)
    home_tenant_id = user.tenant_id

    if user.status != UserStatus.ACTIVE.value:
        logger.warning("Denied: user %s is %s", user.id, user.status)
        raise Forbidden("Inactive user")

    if tenant_claim is not _MISSING and tenant_claim != home_tenant_id:
        logger.warning("Denied: token tenant claim for user %s does not match the user record", user.id)
        raise Unauthenticated("Invalid authentication token.")

    is_platform_admin = home_tenant_id is None
    if target_tenant_id is not None and not is_platform_admin and target_tenant_id != home_tenant_id:
        logger.warning(
            "Forbidden: user %s from tenant %s tried to access tenant %s",
            user.id, home_tenant_id, target_tenant_id,
        )
        raise Forbidden()

    effective_tenant_id = target_tenant_id if (is_platform_admin and target_tenant_id is not None) else home_tenant_id

    if required_permission == ANY_AUTHENTICATED:
        return AuthorizationResult(
            allowed=True,
            user_id=user.id,
            tenant_id=effective_tenant_id,
            home_tenant_id=home_tenant_id,
            reason=REASON_AUTHENTICATED,
            user=user,
        )

    module_slug, action = parse_permission(required_permission)

    roles = get_roles_for_user(db, user.id, home_tenant_id)
    if not roles:
        logger.warning("Denied: user %s has no roles in their tenant context", user.id)
        raise Forbidden("User has no assigned roles.")

    if is_platform_admin and any(role.id == PLATFORM_OWNER_ROLE_ID for role in roles):
        effective = aggregate_permissions(roles)
        effective[module_slug] = full_access()
        allowed = True
        reason = REASON_PLATFORM_OWNER
    else:
        effective = aggregate_permissions(roles)
        allowed = has_permission(effective, module_slug, action)
        reason = f"{REASON_GRANTED} {module_slug}:{action}"

    if not allowed:
        logger.warning(
            "Denied: user %s (roles: %s) for [%s]",
            user.id, ", ".join(role.name for role in roles), required_permission,
        )
        raise Forbidden(f"Forbidden: Missing required permission ({required_permission})")

    return AuthorizationResult(
        allowed=True,
        user_id=user.id,
        tenant_id=effective_tenant_id,
        home_tenant_id=home_tenant_id,
        permissions=effective,
        reason=reason,
        user=user,
    )


def get_tenant_scoped(db: Session, model: Type, entity_id: str, tenant_id: Optional[str]):
    """
    Load ``model`` by id inside a tenant.

    Absent rows and rows of another tenant raise the same NotFound so callers
    cannot probe which ids exist elsewhere. A None tenant (platform admin
    without a target tenant) sees nothing.
    """
    entity = db.query(model).filter(model.id == entity_id).first()
    if entity is None or tenant_id is None or entity.tenant_id != tenant_id:
        raise NotFound(f"{model.__name__} not found or access denied")
    return entity
