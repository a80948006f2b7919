"""JWT access token handling.

Tokens are issued by the identity provider (or the operator CLI) and carry
the caller's user ID, display name and role.
"""
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from dataclasses import dataclass

from pokernight.config import config
from pokernight.auth.roles import Role


@dataclass
class TokenPayload:
    """Decoded token payload."""
    user_id: str
    name: str
    role: Role
    exp: datetime
    iat: datetime


class TokenError(Exception):
    """Token validation error."""
    pass


def create_access_token(
    user_id: str,
    name: str,
    role: Role,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create an access token.
    
    Args:
        user_id: Unique user identifier.
        name: User's display name.
        role: User's role (player/admin).
        expires_minutes: Lifetime, defaults to the configured expiry.
        
    Returns:
        Encoded JWT access token.
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes if expires_minutes is not None else config.jwt_access_expiry_minutes
    payload = {
        "sub": user_id,
        "name": name,
        "role": role.value,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def verify_token(token: str) -> TokenPayload:
    """Verify and decode an access token.
    
    Args:
        token: The JWT token to verify.
        
    Returns:
        Decoded token payload.
        
    Raises:
        TokenError: If token is invalid, expired, or not an access token.
    """
    try:
        payload = jwt.decode(
            token, 
            config.jwt_secret, 
            algorithms=[config.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    
    if payload.get("type") != "access":
        raise TokenError(f"Expected access token, got {payload.get('type')}")
    
    try:
        role = Role(payload["role"])
        user_id = payload["sub"]
    except (KeyError, ValueError) as e:
        raise TokenError(f"Invalid token claims: {e}")
    
    return TokenPayload(
        user_id=user_id,
        name=payload.get("name", ""),
        role=role,
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
    )
