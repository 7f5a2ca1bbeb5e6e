"""JWT token creation, password hashing, and access-control dependencies."""

import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.user import User, UserRole

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer()

ALGORITHM = "HS256"
SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{}|;':\",./<>?`~"


# ── Password helpers ─────────────────────────────────────────


def validate_password_strength(password: str) -> str | None:
    """Return an error message if the password is too weak, or None if it passes."""
    if len(password) < 8:
        return "Password must be at least 8 characters"
    if len(password) > 128:
        return "Password must not exceed 128 characters"
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one digit"
    if not any(c in SPECIAL_CHARACTERS for c in password):
        return "Password must contain at least one special character"
    return None


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# ── Token helpers ────────────────────────────────────────────


def _generate_jti() -> str:
    return uuid.uuid4().hex


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
    jti: Optional[str] = None,
) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({
        "exp": expire,
        "type": "access",
        "jti": jti or _generate_jti(),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and return the JWT payload. Raises JWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])


# ── API key helpers ──────────────────────────────────────────


def generate_api_key(org_code: str) -> str:
    """``fiq_{orgcode}_{random}``."""
    code = "".join(ch for ch in org_code.lower() if ch.isalnum())
    return f"{settings.api_key_prefix}_{code}_{secrets.token_hex(16)}"


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def is_api_key(token: str) -> bool:
    return token.startswith(settings.api_key_prefix + "_")


# ── User dependencies ───────────────────────────────────────


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the JWT and return the user behind a live, unexpired session."""
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        user_id_raw = payload.get("sub")
        token_jti = payload.get("jti")
        if user_id_raw is None or payload.get("type") != "access" or not token_jti:
            raise credentials_exception
        user_id = int(user_id_raw)
    except (JWTError, ValueError, TypeError):
        raise credentials_exception

    from app.models.session import UserSession

    now = datetime.now(timezone.utc)
    # Heartbeat the session in one statement; zero rows means revoked or expired.
    update_result = await db.execute(
        update(UserSession)
        .where(
            UserSession.token_jti == token_jti,
            UserSession.is_active.is_(True),
            UserSession.expires_at > now,
        )
        .values(last_activity_at=now)
    )
    if update_result.rowcount == 0:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )
    return user


def require_roles(*roles: UserRole):
    """Dependency factory that checks the user has one of the given roles."""
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user
    return role_checker


def require_module(*modules: str):
    """Dependency factory that checks the user's access matrix grants one of ``modules``."""
    async def module_checker(current_user: User = Depends(get_current_user)) -> User:
        from app.services.access_matrix import has_module

        if not any(has_module(current_user, m) for m in modules):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user
    return module_checker


# ── API key principal ───────────────────────────────────────


@dataclass
class ApiClient:
    """Caller authenticated by an organization API key."""
    api_key_id: int
    organization_id: int


async def get_api_client(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> ApiClient:
    """Resolve a ``Bearer fiq_...`` key to its organization."""
    from app.models.api_key import ApiKey

    token = credentials.credentials
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API key",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not is_api_key(token):
        raise invalid

    result = await db.execute(
        select(ApiKey).where(ApiKey.key_hash == hash_api_key(token), ApiKey.is_active.is_(True))
    )
    key = result.scalar_one_or_none()
    if key is None:
        raise invalid

    key.last_used_at = datetime.now(timezone.utc)
    request.state.organization_id = key.organization_id
    request.state.api_key_id = key.id
    return ApiClient(api_key_id=key.id, organization_id=key.organization_id)
