"""Authentication endpoints."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import AuthIdentity, get_current_identity, get_current_user, get_db
from core import hash_password, needs_rehash
from db.errors import is_unique_violation
from models import Profile, User
from services.auth import (
    consume_password_reset_token,
    consume_verification_code,
    create_account,
    end_user_sessions,
    find_user_by_email,
    get_ban,
    get_profile,
    get_user,
    issue_password_reset_token,
    issue_verification_code,
    normalize_email,
    normalize_username,
    registration_conflict_exists,
    resolve_login_user,
    start_session,
    username_format_error,
)
from services.authorization import effective_role, is_admin, is_owner
from services.email import (
    password_reset_email,
    send_best_effort,
    verification_email,
    welcome_email,
)
from services.oauth import callback_redirect_url, complete_discord_login, get_discord_client

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128
REGISTRATION_CONFLICT_DETAIL = "Username or email already exists"
FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


def _check_password(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(value) > MAX_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_LENGTH} characters")
    return value


class RegisterRequest(BaseModel):
    username: str
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def _validate_username(cls, value: str) -> str:
        normalized = value.strip()
        error = username_format_error(normalized)
        if error is not None:
            raise ValueError(error)
        return normalized

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        return _check_password(value)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    uid: int
    role: str
    is_admin: bool
    is_verified: bool


class RegisterResponse(BaseModel):
    message: str
    user: UserResponse


class LoginRequest(BaseModel):
    # One field carries either the username or the email.
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_LENGTH)


class SessionResponse(BaseModel):
    message: str
    token: str
    user: UserResponse


class VerifyRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=16)


class EmailRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)
    password: str

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        return _check_password(value)


class MessageResponse(BaseModel):
    message: str


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    display_name: str | None = None
    bio: str | None = None
    location: str | None = None
    background_image: str | None = None
    background_video: str | None = None
    background_audio: str | None = None
    custom_cursor: str | None = None
    background_effect: str
    username_effect: str
    view_count: int


class MeUser(UserResponse):
    is_owner: bool
    discord_id: str | None = None
    discord_username: str | None = None
    discord_avatar: str | None = None
    created_at: datetime | None = None
    profile: ProfileResponse | None = None


class MeResponse(BaseModel):
    user: MeUser


class CheckOwnerResponse(BaseModel):
    is_owner: bool


def _require_id(user: User) -> int:
    if user.id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User record is missing an identifier",
        )
    return user.id


def _user_fields(user: User) -> dict[str, Any]:
    return {
        "id": _require_id(user),
        "username": user.username,
        "email": user.email,
        "uid": user.uid,
        "role": effective_role(user).value,
        "is_admin": is_admin(user),
        "is_verified": user.is_verified,
    }


def user_response(user: User) -> UserResponse:
    return UserResponse(**_user_fields(user))


def _me_response(user: User, profile: Profile | None) -> MeResponse:
    return MeResponse(
        user=MeUser(
            **_user_fields(user),
            is_owner=is_owner(user),
            discord_id=user.discord_id,
            discord_username=user.discord_username,
            discord_avatar=user.discord_avatar,
            created_at=user.created_at,
            profile=ProfileResponse.model_validate(profile) if profile is not None else None,
        )
    )


def _raise_user_not_found() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=RegisterResponse)
async def register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    username = normalize_username(payload.username)
    email = normalize_email(str(payload.email))
    if await registration_conflict_exists(session, username=username, normalized_email=email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=REGISTRATION_CONFLICT_DETAIL,
        )

    try:
        user = await create_account(
            session,
            username=username,
            email=email,
            password_hash=hash_password(payload.password),
        )
        code = await issue_verification_code(session, _require_id(user))
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=REGISTRATION_CONFLICT_DETAIL,
            ) from exc
        raise

    await send_best_effort(verification_email(user.email, code.code, user.username))
    return RegisterResponse(
        message="Registration successful. Please check your email for verification code.",
        user=user_response(user),
    )


@router.post("/verify", response_model=SessionResponse)
async def verify_email(
    payload: VerifyRequest,
    session: AsyncSession = Depends(get_db),
) -> SessionResponse:
    user = await find_user_by_email(session, payload.email)
    if user is None:
        _raise_user_not_found()

    if not await consume_verification_code(session, _require_id(user), payload.code):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification code",
        )

    user.is_verified = True
    session.add(user)
    token = await start_session(session, user)
    await session.commit()

    await send_best_effort(welcome_email(user.email, user.username, user.uid))
    return SessionResponse(
        message="Email verified successfully",
        token=token,
        user=user_response(user),
    )


@router.post("/resend-code", response_model=MessageResponse)
async def resend_code(
    payload: EmailRequest,
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    user = await find_user_by_email(session, payload.email)
    if user is None:
        _raise_user_not_found()
    if user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already verified",
        )

    code = await issue_verification_code(session, _require_id(user), replace_existing=True)
    await session.commit()

    await send_best_effort(verification_email(user.email, code.code, user.username))
    return MessageResponse(message="Verification code sent")


@router.post("/login", response_model=SessionResponse)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db),
) -> SessionResponse:
    user = await resolve_login_user(
        session,
        identifier=payload.username,
        password=payload.password,
    )
    if user is None or user.id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    ban = await get_ban(session, user.id)
    if ban is not None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "Account is banned", "reason": ban.reason},
        )

    if not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "Email not verified",
                "needs_verification": True,
                "email": user.email,
            },
        )

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(payload.password)
        session.add(user)

    token = await start_session(session, user)
    await session.commit()
    return SessionResponse(message="Login successful", token=token, user=user_response(user))


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: EmailRequest,
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    user = await find_user_by_email(session, payload.email)
    if user is not None and user.id is not None:
        raw_token = await issue_password_reset_token(session, user.id)
        await session.commit()
        await send_best_effort(password_reset_email(user.email, raw_token, user.username))
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    user_id = await consume_password_reset_token(session, payload.token)
    user = await get_user(session, user_id) if user_id is not None else None
    if user is None:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token",
        )

    user.password_hash = hash_password(payload.password)
    session.add(user)
    await session.commit()
    logger.info("Password reset completed for user %s", user.id)
    return MessageResponse(
        message="Password reset successfully. You can now login with your new password."
    )


@router.get("/me", response_model=MeResponse)
async def read_me(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> MeResponse:
    profile = await get_profile(session, _require_id(current_user))
    return _me_response(current_user, profile)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    identity: AuthIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await end_user_sessions(session, identity.user_id)
    await session.commit()
    return MessageResponse(message="Logged out successfully")


@router.get("/check-owner", response_model=CheckOwnerResponse)
async def check_owner(current_user: User = Depends(get_current_user)) -> CheckOwnerResponse:
    return CheckOwnerResponse(is_owner=is_owner(current_user))


@router.get("/discord")
async def discord_login() -> RedirectResponse:
    return RedirectResponse(
        get_discord_client().authorize_url(),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/discord/callback")
async def discord_callback(
    code: str | None = Query(default=None),
    session: AsyncSession = Depends(get_db),
) -> RedirectResponse:
    result = await complete_discord_login(session, get_discord_client(), code)
    if result.error is not None:
        logger.warning("Discord sign-in failed: %s", result.error.value)
    else:
        logger.info("Discord sign-in succeeded (%s)", result.outcome.value if result.outcome else "")
    return RedirectResponse(callback_redirect_url(result), status_code=status.HTTP_302_FOUND)
