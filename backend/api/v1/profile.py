"""Profile endpoints for the signed-in user."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, require_verified
from models import Profile, User
from services.auth import get_profile
from .auth import ProfileResponse

router = APIRouter(tags=["profile"])

MAX_DISPLAY_NAME_LENGTH = 50
MAX_PROFILE_BIO_LENGTH = 500
MAX_LOCATION_LENGTH = 100


class ProfileUpdateRequest(BaseModel):
    display_name: str | None = Field(default=None, max_length=MAX_DISPLAY_NAME_LENGTH)
    bio: str | None = Field(default=None, max_length=MAX_PROFILE_BIO_LENGTH)
    location: str | None = Field(default=None, max_length=MAX_LOCATION_LENGTH)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    payload: ProfileUpdateRequest,
    current_user: User = Depends(require_verified),
    session: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid fields to update",
        )

    user_id = current_user.id
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User record is missing an identifier",
        )
    profile = await get_profile(session, user_id)
    if profile is None:
        profile = Profile(user_id=user_id)
    for field_name, value in changes.items():
        setattr(profile, field_name, value.strip() if isinstance(value, str) else value)
    session.add(profile)
    await session.commit()
    await session.refresh(profile)
    return ProfileResponse.model_validate(profile)
