import logging
from typing import Optional

from fastapi import APIRouter, Depends

from scrapline.api.dependencies import get_user_repository
from scrapline.exceptions import AuthorizationError, NotFoundError
from scrapline.identity import current_user
from scrapline.models import User
from scrapline.repository import UserRepository
from scrapline.schemas.request import UserProfileUpdate
from scrapline.schemas.response import UserProfile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserProfile)
def get_profile(
    user: Optional[str] = Depends(current_user),
    users: UserRepository = Depends(get_user_repository),
):
    if user is None:
        raise AuthorizationError("Sign in to see your profile")
    profile = users.get(user)
    if profile is None:
        raise NotFoundError(f"No profile for user {user}")
    return UserProfile(**profile.model_dump())


@router.put("/me", response_model=UserProfile)
def upsert_profile(
    profile_data: UserProfileUpdate,
    user: Optional[str] = Depends(current_user),
    users: UserRepository = Depends(get_user_repository),
):
    """Contact details shown to the other party of a pickup."""
    logger.info(f"PUT /users/me - User: {user}")
    if user is None:
        raise AuthorizationError("Sign in to edit your profile")
    profile = users.upsert(User(user_id=user, **profile_data.model_dump()))
    return UserProfile(**profile.model_dump())
