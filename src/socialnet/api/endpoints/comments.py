"""Comment endpoints; comments inherit their post's visibility."""

from __future__ import annotations

from fastapi import APIRouter

from socialnet.api.dependencies import CurrentUserDep, SessionDep
from socialnet.schemas.post import CommentCreate, CommentResponse
from socialnet.services import posts

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("", response_model=CommentResponse)
async def create_comment(payload: CommentCreate, current_user: CurrentUserDep, db: SessionDep) -> CommentResponse:
    """Comment on a post the caller can see."""
    comment = posts.create_comment(db, payload.post_id, current_user.id, payload.content, payload.media)
    return posts.to_comment_response(comment, current_user)


@router.get("/{post_id}", response_model=list[CommentResponse])
async def list_comments(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> list[CommentResponse]:
    """Comments of a post the caller can see."""
    return posts.list_comments(db, post_id, current_user.id)
