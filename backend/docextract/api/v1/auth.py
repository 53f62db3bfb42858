"""
Auth API Router
/api/auth

  POST /signup   create a `user` account                      201 | 400 | 409
  POST /login    verify credentials, set the session cookie   200 | 401
  POST /logout   clear the session cookie                     200
  GET  /me       the principal behind the current session     200 | 401

The session cookie carries the same HS256 token a script would send as a
Bearer header (see docextract.auth.session).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from docextract.auth.dependencies import CurrentPrincipal, DBSession
from docextract.auth.session import Principal, Role, parse_role, issue_session_token
from docextract.core.config import settings
from docextract.core.exceptions import EmailAlreadyRegisteredError, InvalidCredentialsError
from docextract.models.extractions import User
from docextract.schemas.auth import Credentials, LoginRequest, LoginResponse, UserOut
from docextract.schemas.extractions import ErrorResponse, MessageResponse
from docextract.services.audit import write_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/signup",
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Email already registered"}},
)
async def signup(body: Credentials, db: DBSession) -> UserOut:
    existing = await db.scalar(select(User.id).where(User.email == body.email))
    if existing is not None:
        raise EmailAlreadyRegisteredError(field="email")

    user = User(email=body.email, role=Role.USER.value)
    user.set_password(body.password)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise EmailAlreadyRegisteredError(field="email")

    await write_audit_log(db, user_id=user.id, action="user.signup", resource=f"user:{user.id}")
    logger.info("User registered | id=%s email=%s", user.id, user.email)
    return UserOut.model_validate(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
)
async def login(body: LoginRequest, response: Response, db: DBSession) -> LoginResponse:
    user = await db.scalar(select(User).where(User.email == body.email))
    if user is None or not user.check_password(body.password):
        logger.info("Login failed | email=%s", body.email)
        raise InvalidCredentialsError()

    principal = Principal(id=user.id, email=user.email, role=parse_role(user.role))
    response.set_cookie(
        key=settings.session_cookie_name,
        value=issue_session_token(principal),
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    logger.info("Login | user=%s role=%s", user.id, user.role)
    return LoginResponse(message="Login successful", user=UserOut.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    response.delete_cookie(settings.session_cookie_name)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserOut)
async def me(user: CurrentPrincipal) -> UserOut:
    return UserOut(id=user.id, email=user.email, role=user.role.value)
