"""JWT authentication and role gates."""
from typing import Optional
from datetime import datetime, timedelta, timezone
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.config.security import get_jwt_secret, get_jwt_algorithm, get_jwt_access_token_expire_minutes
from app.models.database import User, UserRole
from app.utils.errors import ForbiddenError, UnauthorizedError
from app.utils.logger import get_logger

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token. ``sub`` must be the user id."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=get_jwt_access_token_expire_minutes())

    # JWT exp claim must be numeric
    to_encode.update({"exp": int(expire.timestamp())})
    if "sub" in to_encode:
        to_encode["sub"] = str(to_encode["sub"])
    return jwt.encode(to_encode, get_jwt_secret(), algorithm=get_jwt_algorithm())


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Load the active user named by the bearer token."""
    credentials_exception = UnauthorizedError("Could not validate credentials")
    if credentials is None:
        raise UnauthorizedError("Authentication required")

    try:
        payload = jwt.decode(credentials.credentials, get_jwt_secret(), algorithms=[get_jwt_algorithm()])
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise credentials_exception
    return user


def require_roles(*roles: UserRole):
    """
    Dependency factory gating a route to the given roles.

    Usage:
        user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER))
    """
    allowed = frozenset(roles)

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            logger.warning("Role not permitted", user_id=user.id, role=user.role.value)
            raise ForbiddenError(
                f"Role {user.role.value} may not perform this action",
            )
        return user

    return dependency
