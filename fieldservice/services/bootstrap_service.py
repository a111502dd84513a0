"""
First-start bootstrap: the platform-owner role and one platform administrator.
"""
import logging

from sqlalchemy.orm import Session

from fieldservice.core.config import settings
from fieldservice.core.constants import PLATFORM_OWNER_ROLE_ID
from fieldservice.core.security import hash_password
from fieldservice.models.role import Role, UserRoleAssignment
from fieldservice.models.user import User, UserStatus

logger = logging.getLogger(__name__)


def ensure_platform_owner_role(db: Session) -> Role:
    role = db.query(Role).filter(Role.id == PLATFORM_OWNER_ROLE_ID).first()
    if role is None:
        role = Role(
            id=PLATFORM_OWNER_ROLE_ID,
            tenant_id=None,
            name="Platform Owner",
            description="Unrestricted access to every module in every tenant",
            permissions={},
            is_template=False,
        )
        db.add(role)
        db.flush()
        logger.info("Created platform-owner role")
    return role


def bootstrap_platform_admin(db: Session) -> bool:
    """
    Create the platform-owner role and an initial platform admin if no
    platform admin holds it yet.

    Returns:
        True when an admin was created
    """
    role = ensure_platform_owner_role(db)
    owner_exists = (
        db.query(UserRoleAssignment)
        .join(User, User.id == UserRoleAssignment.user_id)
        .filter(UserRoleAssignment.role_id == role.id, User.tenant_id.is_(None))
        .first()
    )
    if owner_exists:
        db.commit()
        logger.info("Platform admin already exists, skipping initial bootstrap")
        return False

    admin = db.query(User).filter(User.email == settings.INITIAL_ADMIN_EMAIL).first()
    if admin is None:
        admin = User(
            tenant_id=None,
            email=settings.INITIAL_ADMIN_EMAIL,
            full_name="Platform Administrator",
            password_hash=hash_password(settings.INITIAL_ADMIN_PASSWORD),
            status=UserStatus.ACTIVE.value,
        )
        db.add(admin)
        db.flush()
    elif admin.tenant_id is not None:
        db.rollback()
        logger.error("INITIAL_ADMIN_EMAIL %s belongs to a tenant user; not promoting it", admin.email)
        return False

    db.add(UserRoleAssignment(user_id=admin.id, role_id=role.id, tenant_id=None))
    db.commit()

    logger.info("Initial platform admin created: %s", admin.email)
    logger.info("Password: [set via INITIAL_ADMIN_PASSWORD environment variable]")
    return True
