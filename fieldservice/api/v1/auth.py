"""
Authentication endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from fieldservice.core.deps import get_db
from fieldservice.core.errors import Forbidden, Unauthenticated
from fieldservice.core.security import verify_password, create_access_token
from fieldservice.models.user import User, UserStatus
from fieldservice.schemas.auth import LoginRequest, TokenResponse

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token

    The token carries the user id (``sub``) and home tenant (``tenant_id``,
    null for platform admins).
    """
    user = db.query(User).filter(func.lower(User.email) == login_data.email.strip().lower()).first()

    if not user or not user.password_hash or not verify_password(login_data.password, user.password_hash):
        raise Unauthenticated("Invalid email or password")

    if user.status != UserStatus.ACTIVE.value:
        raise Forbidden("Account is not active")

    # JWT 'sub' claim must be a string
    access_token = create_access_token(data={"sub": str(user.id), "tenant_id": user.tenant_id})
    return TokenResponse(access_token=access_token)
