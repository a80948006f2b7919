"""Bearer token authentication for the HTTP API."""
from dataclasses import dataclass

from fastapi import Header, HTTPException

from pokernight.auth.jwt_handler import verify_token, TokenError
from pokernight.auth.roles import Role
from pokernight.state.redis_client import redis_client
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AuthenticatedUser:
    """Authenticated caller context."""
    user_id: str
    name: str
    role: Role
    token: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class AuthMiddleware:
    """Verifies access tokens and tracks revocations in Redis."""
    
    def _revoked_key(self, token: str) -> str:
        return f"revoked:{token[:32]}"
    
    async def authenticate(self, token: str) -> AuthenticatedUser:
        """Authenticate a request using its JWT.
        
        Args:
            token: JWT access token from the client.
            
        Returns:
            Authenticated user context.
            
        Raises:
            TokenError: If authentication fails.
        """
        payload = verify_token(token)
        
        if await redis_client.exists(self._revoked_key(token)):
            raise TokenError("Token has been revoked")
        
        logger.debug(f"User {payload.name} authenticated")
        
        return AuthenticatedUser(
            user_id=payload.user_id,
            name=payload.name,
            role=payload.role,
            token=token,
        )
    
    async def revoke_token(self, token: str) -> None:
        """Revoke a token until it would have expired anyway.
        
        Args:
            token: Token to revoke.
        """
        try:
            payload = verify_token(token)
        except TokenError:
            # Already unusable
            return
        ttl = int((payload.exp - payload.iat).total_seconds())
        await redis_client.set(self._revoked_key(token), "1", ex=ttl)
        logger.info(f"Token revoked for user {payload.name}")


auth_middleware = AuthMiddleware()


async def get_current_user(authorization: str = Header(None)) -> AuthenticatedUser:
    """FastAPI dependency resolving the caller from the Authorization header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing authorization header")
    
    token = authorization.split(" ", 1)[1]
    try:
        return await auth_middleware.authenticate(token)
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
