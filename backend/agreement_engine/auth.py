"""
Agreement Engine - Authentication Utilities
Organization link tokens (JWT) and the internal API key check
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt

from .config import Settings
from .dependencies import get_settings

ORG_TOKEN_EXPIRE_HOURS = 72
ORG_CLAIM = "startupId"


def create_org_token(organization_id: str, settings: Settings, expires_hours: int = ORG_TOKEN_EXPIRE_HOURS) -> str:
    """Create a JWT link token carrying the organization id."""
    expire = datetime.now(timezone.utc) + timedelta(hours=expires_hours)
    to_encode = {ORG_CLAIM: organization_id, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_org_token(token: str, settings: Settings) -> Optional[dict]:
    """Decode and validate an organization link token (signature and expiry)."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_organization_id(org_token: str, settings: Settings = Depends(get_settings)) -> str:
    """
    Dependency resolving the {org_token} path parameter to an organization id.
    Invalid or expired tokens are rejected with 401.
    """
    payload = decode_org_token(org_token, settings)
    organization_id = payload.get(ORG_CLAIM) if payload else None
    if not organization_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired link",
        )
    return str(organization_id)


async def verify_internal_key(
    x_auth_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Dependency for internal endpoints: X-Auth-Token must equal the configured key."""
    expected = settings.internal_api_key
    if not expected or not x_auth_token or not secrets.compare_digest(x_auth_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorised",
        )
