"""Post endpoints; every read goes through the visibility resolver."""

from __future__ import annotations

from fastapi import APIRouter

from socialnet.api.dependencies import CurrentUserDep, SessionDep
from socialnet.models import Post, User
from socialnet.schemas.post import PostCreate, PostDetailResponse, PostResponse
from socialnet.services import posts

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", response_model=PostResponse)
async def create_post(payload: PostCreate, current_user: CurrentUserDep, db: SessionDep) -> PostResponse:
    """Create a post."""
    post = posts.create_post(
        db,
        current_user.id,
        title=payload.title,
        content=payload.content,
        media=payload.media,
        privacy=payload.privacy,
        selected_users=payload.selected_users,
        group_id=payload.group_id,
    )
    return posts.to_post_response(post, current_user)


@router.get("", response_model=list[PostResponse])
async def list_posts(current_user: CurrentUserDep, db: SessionDep) -> list[PostResponse]:
    """Feed of non-group posts visible to the caller, newest first."""
    return posts.feed(db, current_user.id)


@router.get("/mine", response_model=list[PostResponse])
async def my_posts(current_user: CurrentUserDep, db: SessionDep) -> list[PostResponse]:
    """The caller's own timeline posts."""
    return posts.posts_by_author(db, current_user.id, current_user.id)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> PostResponse:
    """A single post."""
    post: Post = posts.get_visible_post(db, post_id, current_user.id)
    return posts.to_post_response(post, db.get(User, post.user_id))


@router.get("/{post_id}/details", response_model=PostDetailResponse)
async def get_post_details(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> PostDetailResponse:
    """A post together with its comments."""
    post = posts.get_visible_post(db, post_id, current_user.id)
    return PostDetailResponse(
        post=posts.to_post_response(post, db.get(User, post.user_id)),
        comments=posts.list_comments(db, post_id, current_user.id),
    )
