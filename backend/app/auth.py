"""Authentication for the gigmarket backend.

Users are issued by an external identity provider. Requests carry a JWT
bearer token whose ``sub`` claim is the user id and whose ``role`` claim
is ``student`` or ``employer``.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Literal

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings, get_settings

Role = Literal["student", "employer"]
ROLES = ("student", "employer")

security = HTTPBearer(auto_error=False)


def create_access_token(
    settings: Settings,
    user_id: str,
    role: Role = "student",
    expires_delta: timedelta | None = None,
    is_admin: bool = False,
) -> str:
    """Create a JWT access token for a user."""
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {
        "sub": user_id,
        "role": role,
        "exp": expire,
        "iat": now,
        "type": "access",
    }
    if is_admin:
        to_encode["admin"] = True
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthContext:
    """The authenticated user behind a request."""

    def __init__(self, user_id: str, role: str, is_admin: bool = False):
        self.user_id = user_id
        self.role = role
        self.is_admin = is_admin

    @property
    def is_student(self) -> bool:
        return self.role == "student"

    @property
    def is_employer(self) -> bool:
        return self.role == "employer"


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthContext:
    """Resolve the bearer token into an AuthContext."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide an Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials, settings)
    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    is_admin = bool(payload.get("admin")) or user_id in settings.admin_user_ids
    return AuthContext(user_id=user_id, role=role, is_admin=is_admin)


CurrentUser = Annotated[AuthContext, Depends(get_current_user)]


def require_employer(user: CurrentUser) -> AuthContext:
    if not user.is_employer:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employer account required",
        )
    return user


def require_student(user: CurrentUser) -> AuthContext:
    if not user.is_student:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student account required",
        )
    return user


def require_admin(user: CurrentUser) -> AuthContext:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


EmployerUser = Annotated[AuthContext, Depends(require_employer)]
StudentUser = Annotated[AuthContext, Depends(require_student)]
AdminUser = Annotated[AuthContext, Depends(require_admin)]
