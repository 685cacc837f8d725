"""
Gemelo Users Router
Lets the caller read and maintain their own digital-twin profile.

Endpoints (mounted under /api/users):
    GET    /me            caller's profile
    PATCH  /me            merge demographics/preferences, change language
    PATCH  /me/profile    same as PATCH /me (older client route)

Every endpoint is scoped to the X-User-Id caller, so there is no way to
address another user's profile.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from services.storage import JsonFileStore, UserProfile, get_store

from .survey import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


class ProfileUpdate(BaseModel):
    """Partial profile. Omitted sections are left untouched."""

    model_config = ConfigDict(extra="forbid")

    demographics: Optional[Dict[str, Any]] = None
    preferences: Optional[Dict[str, Any]] = None
    language: Optional[str] = None


@router.get("/me")
async def get_me(user: UserProfile = Depends(get_current_user)):
    return user.to_dict()


@router.patch("/me")
@router.patch("/me/profile")
async def update_me(
    body: ProfileUpdate,
    user: UserProfile = Depends(get_current_user),
    store: JsonFileStore = Depends(get_store),
):
    # ValidationError / NotFoundError propagate to the app-level handler
    updated = store.update_profile(
        user.id,
        demographics=body.demographics,
        preferences=body.preferences,
        language=body.language,
    )
    changed = [name for name, value in body.model_dump().items() if value is not None]
    logger.info(f"User {user.id} updated profile ({', '.join(changed) or 'no changes'})")
    return updated.to_dict()
