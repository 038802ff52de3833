from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.models import AdminUser, User, get_db
from app.services.errors import VerificationRequired

security = HTTPBearer(auto_error=False)


def _decode_subject(token: str, expected_type: str) -> int | None:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        sub = payload.get("sub")
        if sub is None:
            return None
        if payload.get("type", "access") != expected_type:
            return None
        return int(sub) if not isinstance(sub, int) else sub
    except (JWTError, ValueError):
        return None


def get_current_user_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User | None:
    if not credentials:
        return None
    user_id = _decode_subject(credentials.credentials, "access")
    if user_id is None:
        return None
    return db.query(User).filter(User.id == user_id).first()


def get_current_user(
    user: Annotated[User | None, Depends(get_current_user_optional)],
) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_verified_user(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Gate for writes that require the verification badge."""
    if not user.is_verified:
        raise VerificationRequired()
    return user


def get_current_admin(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> AdminUser:
    token = request.cookies.get(settings.ADMIN_COOKIE_NAME)
    if not token and credentials:
        token = credentials.credentials
    admin_id = _decode_subject(token, "admin") if token else None
    admin = None
    if admin_id is not None:
        admin = db.query(AdminUser).filter(AdminUser.id == admin_id).first()
    if admin is None or not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin authentication required",
        )
    return admin
