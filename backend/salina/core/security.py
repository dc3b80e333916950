"""
Security Module - Authentication, principal and tenant resolution
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from salina.core.config import settings
from salina.core.database import get_db
from salina.core.tenancy import TenantScope

logger = logging.getLogger(__name__)

# API key secrets are stored as bcrypt hashes
secret_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

bearer_scheme = HTTPBearer(auto_error=False)


def verify_secret(plain_secret: str, hashed_secret: str) -> bool:
    return secret_context.verify(plain_secret, hashed_secret)


def get_secret_hash(secret: str) -> str:
    return secret_context.hash(secret)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": now, "iss": settings.TOKEN_ISSUER})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            issuer=settings.TOKEN_ISSUER,
        )
    except JWTError:
        return None


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: a user or an API key, always bound to one tenant"""
    tenant_id: int
    role: str
    user_id: Optional[int] = None
    email: Optional[str] = None
    key_id: Optional[str] = None

    @property
    def is_api_key(self) -> bool:
        return self.key_id is not None


@dataclass
class RequestContext:
    principal: Principal
    scope: TenantScope

    @property
    def db(self) -> Session:
        return self.scope.session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> Principal:
    """
    Dependency to resolve the caller from a JWT.
    Supports both Authorization header and cookies.
    """
    from salina.services.user_service import UserService

    token = credentials.credentials if credentials else None
    if not token:
        token = request.cookies.get("access_token")
    if not token:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    tenant_id = payload.get("tenant_id")
    if tenant_id is None:
        raise _unauthorized("Invalid token payload")

    user_service = UserService(db)

    key_id = payload.get("kid")
    if key_id:
        api_key = user_service.get_api_key(key_id)
        if api_key is None or api_key.revoked_at is not None or api_key.tenant_id != tenant_id:
            raise _unauthorized("API key revoked or unknown")
        return Principal(tenant_id=api_key.tenant_id, role=api_key.role, key_id=key_id)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token payload")

    user = user_service.get_by_id(user_id)
    if user is None or user.tenant_id != tenant_id:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled"
        )

    return Principal(tenant_id=user.tenant_id, role=user.role, user_id=user.id, email=user.email)


async def get_request_context(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> RequestContext:
    """Resolve the tenant scope every report service runs under"""
    return RequestContext(principal=principal, scope=TenantScope.resolve(db, principal))


class PermissionChecker:
    """Dependency that authorizes a report action and yields the request context.

    Runs as a sub-dependency of the route, so a denied role is rejected before
    the route's query or body parameters are validated.
    """

    def __init__(self, action):
        self.action = action

    def __call__(self, ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        from salina.services.permission_service import PermissionService

        PermissionService.require(ctx.principal, self.action)
        return ctx
