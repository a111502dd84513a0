"""
Security utilities: password hashing and identity tokens
"""
import logging
from datetime import timedelta
from typing import Dict, Optional

import bcrypt
from jose import JWTError, jwt

from fieldservice.core.config import settings
from fieldservice.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

# Bcrypt only looks at the first 72 bytes of a secret
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt"""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash; malformed hashes never verify"""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def create_access_token(data: Dict, expires_minutes: Optional[int] = None) -> str:
    """
    Create a signed identity token.

    Callers put the user id in ``sub`` and the home tenant in ``tenant_id``
    (None for platform administrators).
    """
    to_encode = data.copy()

    if expires_minutes is None:
        expires_minutes = settings.JWT_EXPIRE_MINUTES

    to_encode.update({"exp": now_utc() + timedelta(minutes=expires_minutes)})

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token: str) -> Dict:
    """Decode and verify an identity token; raises ValueError when invalid or expired"""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise ValueError("Invalid token")
