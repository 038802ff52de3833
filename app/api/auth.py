import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from jose import jwt
from passlib.context import CryptContext
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.dependencies import get_current_user
from app.models import User, get_db
from app.schemas.users import LoginRequest, ProfileData, RegisterRequest, TokenResponse, UserResponse

router = APIRouter()
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
logger = logging.getLogger(__name__)

_profile_adapter = TypeAdapter(ProfileData)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _encode_token(subject: int, token_type: str, expire_minutes: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    to_encode = {"sub": str(subject), "exp": expire, "type": token_type}
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: int) -> str:
    return _encode_token(user_id, "access", settings.JWT_EXPIRE_MINUTES)


def create_admin_token(admin_id: int) -> str:
    return _encode_token(admin_id, "admin", settings.ADMIN_TOKEN_EXPIRE_MINUTES)


def user_to_response(user: User) -> UserResponse:
    profile = None
    if user.profile_data:
        try:
            profile = _profile_adapter.validate_python({**user.profile_data, "user_type": user.user_type})
        except ValidationError:
            logger.warning("Stored profile for user id=%s does not match type %s", user.id, user.user_type)
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        user_type=user.user_type,
        profile=profile,
        is_verified=user.is_verified,
        created_at=user.created_at.isoformat() if user.created_at else None,
    )


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an individual, company, or NGO account",
)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """Create an account. The profile shape is selected by ``profile.user_type``."""
    if db.query(User).filter(User.email == body.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = User(
        email=body.email,
        name=body.name,
        hashed_password=get_password_hash(body.password),
        user_type=body.profile.user_type,
        profile_data=body.profile.model_dump(mode="json", exclude={"user_type"}),
        phone=body.phone,
        is_verified=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered %s user id=%s", user.user_type, user.id)
    return user_to_response(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and get an access token",
)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
):
    user = db.query(User).filter(User.email == body.email).first()
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    return TokenResponse(
        access_token=create_access_token(user.id),
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
    )


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current authenticated user profile",
)
def me(
    current_user: Annotated[User, Depends(get_current_user)],
):
    return user_to_response(current_user)
