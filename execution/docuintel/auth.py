"""
JWT Session Authentication

Verifies HS256 bearer tokens and hands the engine a validated caller
identity. Token issuance belongs to the surrounding application;
create_access_token exists for development and tests.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional
from datetime import datetime, timezone, timedelta

import jwt

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


@dataclass
class Identity:
    """An authenticated caller."""
    user_id: str
    email: str = ""
    role: str = "user"
    permissions: list[str] = field(default_factory=list)

    def has_permission(self, permission: str) -> bool:
        return self.role == "admin" or permission in self.permissions


def _get_jwt_secret(secret: Optional[str] = None) -> str:
    val = secret or os.getenv("JWT_SECRET", "")
    if not val:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate a random secret string and set it in .env or as an environment variable."
        )
    return val


def create_access_token(
    identity: Identity,
    secret: Optional[str] = None,
    expiry_hours: int = 24,
) -> str:
    """
    Create a signed access token for an identity.

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": identity.user_id,
        "email": identity.email,
        "role": identity.role,
        "permissions": identity.permissions,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(hours=expiry_hours),
    }
    return jwt.encode(payload, _get_jwt_secret(secret), algorithm=JWT_ALGORITHM)


def authenticate(credential: Optional[str], secret: Optional[str] = None) -> Optional[Identity]:
    """
    Verify an access token and extract the caller identity.

    Args:
        credential: Raw JWT (without the "Bearer " prefix)
        secret: Signing secret; defaults to JWT_SECRET

    Returns:
        Identity if valid; None if missing, invalid, expired or not an access token
    """
    if not credential:
        return None

    try:
        payload = jwt.decode(credential, _get_jwt_secret(secret), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("JWT expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"JWT invalid: {e}")
        return None

    if payload.get("type") != "access":
        logger.debug("JWT is not an access token")
        return None

    return Identity(
        user_id=payload["sub"],
        email=payload.get("email", ""),
        role=payload.get("role", "user"),
        permissions=list(payload.get("permissions", [])),
    )


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an 'Authorization: Bearer <token>' header value."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None
