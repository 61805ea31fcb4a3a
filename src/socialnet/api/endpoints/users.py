"""Profile, directory and contact endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from socialnet.api.dependencies import CurrentUserDep, SessionDep
from socialnet.schemas.post import PostResponse
from socialnet.schemas.user import (
    ExploreEntry,
    ExploreRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    UserResponse,
    UserSummary,
)
from socialnet.services import posts, users

router = APIRouter(tags=["users"])


@router.get("/user/current", response_model=UserResponse)
async def current_user(current_user: CurrentUserDep) -> UserResponse:
    """Return the caller's own profile."""
    return UserResponse.model_validate(current_user)


@router.put("/user/profile", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdateRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UserResponse:
    """Update avatar, about-me and account privacy."""
    user = users.update_profile(db, current_user, payload)
    return UserResponse.model_validate(user)


@router.get("/user/{user_id}", response_model=ProfileResponse)
async def get_profile(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> ProfileResponse:
    """Return another user's profile as the caller may see it."""
    target = users.require_user(db, user_id)
    return users.profile_view(db, current_user.id, target)


@router.get("/user/{user_id}/posts", response_model=list[PostResponse])
async def get_user_posts(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> list[PostResponse]:
    """Posts by ``user_id`` that the caller may see."""
    return posts.posts_by_author(db, current_user.id, user_id)


@router.post("/explore", response_model=list[ExploreEntry])
async def explore(payload: ExploreRequest, current_user: CurrentUserDep, db: SessionDep) -> list[ExploreEntry]:
    """Directory of every other user, filtered by username prefix."""
    return users.explore(db, current_user.id, payload.search)


@router.get("/contact/{user_id}", response_model=list[UserSummary])
async def contacts(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> list[UserSummary]:
    """Users connected to the caller by an accepted follow in either direction."""
    return [UserSummary.model_validate(u) for u in users.contacts_for(db, current_user.id, user_id)]
