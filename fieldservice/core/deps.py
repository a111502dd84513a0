"""
Dependencies and guards for FastAPI endpoints
"""
from typing import Generator, Optional

from fastapi import Depends, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from fieldservice.db.session import SessionLocal
from fieldservice.services.authorization_service import AuthorizationResult, authorize


# auto_error=False: a missing header is reported by authorize() as 401 in the error envelope
security = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    return credentials.credentials if credentials else None


def require_permission(required_permission: str):
    """
    Dependency factory for permission-based access control

    The optional ``tenant_id`` query parameter names the tenant being acted on;
    only platform admins may name a tenant other than their own.

    Usage:
        @router.get("/work-orders")
        def list_orders(auth: AuthorizationResult = Depends(require_permission("work_orders:can_view"))):
            ...
    """
    def permission_checker(
        tenant_id: Optional[str] = Query(default=None, description="Target tenant (platform admins only)"),
        token: Optional[str] = Depends(get_bearer_token),
        db: Session = Depends(get_db),
    ) -> AuthorizationResult:
        return authorize(db, token, required_permission, target_tenant_id=tenant_id)

    return permission_checker
