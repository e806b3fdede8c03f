"""Authentication routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status
from sqlalchemy import select

from tableorder.core.config import settings
from tableorder.core.errors import DuplicateUserError
from tableorder.core.rate_limit import limiter
from tableorder.core.rbac import CurrentUser
from tableorder.core.security import (
    ACCESS_TOKEN_MAX_AGE,
    COOKIE_ACCESS_NAME,
    blacklist_token,
    create_access_token,
    get_password_hash,
    verify_password,
)
from tableorder.db.session import DbSession
from tableorder.models.user import AppRole, RoleAssignment, User
from tableorder.schemas.auth import LoginRequest, RegisterRequest, Token, UserResponse

logger = logging.getLogger("auth")

router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
def login(request: Request, response: Response, login_request: LoginRequest, db: DbSession):
    """Authenticate a user and return a JWT. The token is also set as an HttpOnly cookie."""
    client_ip = _client_ip(request)
    email = login_request.email.lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    if not user or not verify_password(login_request.password, user.password_hash):
        logger.warning(f"Failed login attempt for email: {email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        logger.warning(f"Login attempt for inactive user: {email} (ID: {user.id}) from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    logger.info(f"Successful login: {user.email} (ID: {user.id}) from IP: {client_ip}")
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    response.set_cookie(
        COOKIE_ACCESS_NAME,
        token,
        max_age=ACCESS_TOKEN_MAX_AGE,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
    )
    return Token(access_token=token)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, user_create: RegisterRequest, db: DbSession):
    """Create a customer account.

    The very first account on an empty database becomes the universal admin,
    so a fresh install can be bootstrapped without shell access.
    """
    email = user_create.email.lower()
    if db.execute(select(User).where(User.email == email)).scalar_one_or_none():
        raise DuplicateUserError(f"A user with email {email} already exists")

    first_user = db.execute(select(User.id).limit(1)).first() is None
    user = User(
        email=email,
        password_hash=get_password_hash(user_create.password),
        full_name=user_create.full_name,
        phone=user_create.phone,
        is_active=True,
    )
    db.add(user)
    if first_user:
        db.flush()
        db.add(RoleAssignment(user_id=user.id, role=AppRole.ADMIN, tenant_id=None))
    db.commit()
    db.refresh(user)
    if first_user:
        logger.info(f"Bootstrap universal admin registered: {user.email} (ID: {user.id})")
    else:
        logger.info(f"Customer registered: {user.email} (ID: {user.id}) from IP: {_client_ip(request)}")
    return user


@router.get("/me", response_model=UserResponse)
@limiter.limit("60/minute")
def get_current_user_info(request: Request, current_user: CurrentUser, db: DbSession):
    """Current user with role rows; the frontend picks its dashboards from these."""
    user = db.get(User, current_user.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post("/logout")
@limiter.limit("30/minute")
def logout(request: Request, response: Response, current_user: CurrentUser):
    """Invalidate the current JWT and clear the session cookie."""
    auth_header = request.headers.get("Authorization", "")
    token = auth_header.split(" ", 1)[1] if auth_header.startswith("Bearer ") else None
    token = token or request.cookies.get(COOKIE_ACCESS_NAME)
    if token:
        blacklist_token(token)
    response.delete_cookie(COOKIE_ACCESS_NAME)
    logger.info(f"User logged out: {current_user.email} (ID: {current_user.user_id})")
    return {"message": "Logged out successfully"}
