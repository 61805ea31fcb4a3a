"""Post and comment operations, filtered through the visibility resolver."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from socialnet.core.errors import InvalidInputError, NotFoundError
from socialnet.models import Comment, Post, PostPrivateView, User
from socialnet.models.post import PRIVACY_LEVELS, PRIVACY_PRIVATE, PRIVACY_PUBLIC
from socialnet.schemas.post import CommentResponse, PostResponse
from socialnet.services import groups, visibility

logger = logging.getLogger(__name__)

__all__ = [
    "create_post",
    "get_visible_post",
    "feed",
    "posts_by_author",
    "group_feed",
    "create_comment",
    "list_comments",
    "to_post_response",
    "to_comment_response",
]


def to_post_response(post: Post, author: User) -> PostResponse:
    """Convert a post and its author into the API schema."""
    return PostResponse(
        id=post.id,
        title=post.title,
        content=post.content,
        media=post.media,
        privacy=post.privacy,
        group_id=post.group_id,
        author=author.id,
        author_name=author.username,
        author_avatar=author.avatar,
        created_at=post.created_at,
    )


def to_comment_response(comment: Comment, author: User) -> CommentResponse:
    """Convert a comment and its author into the API schema."""
    return CommentResponse(
        id=comment.id,
        post_id=comment.post_id,
        content=comment.content,
        media=comment.media,
        author=author.id,
        author_name=author.username,
        author_avatar=author.avatar,
        created_at=comment.created_at,
    )


def create_post(
    db: Session,
    author_id: int,
    *,
    title: str,
    content: str,
    media: str | None = None,
    privacy: int = PRIVACY_PUBLIC,
    selected_users: list[int] | None = None,
    group_id: int | None = None,
) -> Post:
    """Create a post.

    Private posts store their allow-list; group posts require accepted
    membership and ignore the privacy level.
    """
    if privacy not in PRIVACY_LEVELS:
        raise InvalidInputError("Invalid privacy level")
    if group_id is not None:
        groups.require_role(db, group_id, author_id)
        privacy = PRIVACY_PUBLIC

    post = Post(
        user_id=author_id,
        title=title,
        content=content,
        media=media,
        privacy=privacy,
        group_id=group_id,
    )
    db.add(post)
    db.flush()

    if privacy == PRIVACY_PRIVATE and group_id is None:
        viewers = {uid for uid in (selected_users or []) if uid != author_id}
        if viewers:
            known = {uid for (uid,) in db.query(User.id).filter(User.id.in_(viewers)).all()}
            missing = viewers - known
            if missing:
                db.rollback()
                raise InvalidInputError(f"Unknown selected users: {sorted(missing)}")
            db.add_all(PostPrivateView(post_id=post.id, user_id=uid) for uid in sorted(viewers))
    db.commit()
    db.refresh(post)
    logger.info("Post %s created by user %s (privacy=%s)", post.id, author_id, privacy)
    return post


def get_visible_post(db: Session, post_id: int, viewer_id: int) -> Post:
    """Return a post the viewer may see.

    Raises:
        NotFoundError: If the post does not exist.
        ForbiddenError: If the viewer may not see it.
    """
    post = db.get(Post, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    visibility.ensure_can_view(db, viewer_id, post)
    return post


def _with_authors(db: Session, query) -> list[PostResponse]:
    rows = (
        query.join(User, User.id == Post.user_id)
        .add_entity(User)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .all()
    )
    return [to_post_response(post, author) for post, author in rows]


def feed(db: Session, viewer_id: int) -> list[PostResponse]:
    """Main feed: every non-group post the viewer may see, newest first."""
    return _with_authors(db, visibility.visible_posts(db, viewer_id))


def posts_by_author(db: Session, viewer_id: int, author_id: int) -> list[PostResponse]:
    """An author's non-group posts the viewer may see."""
    if db.get(User, author_id) is None:
        raise NotFoundError("User not found")
    query = visibility.visible_posts(db, viewer_id).filter(Post.user_id == author_id)
    return _with_authors(db, query)


def group_feed(db: Session, group_id: int, viewer_id: int) -> list[PostResponse]:
    """Posts of a group; accepted members only."""
    groups.require_role(db, group_id, viewer_id)
    return _with_authors(db, db.query(Post).filter(Post.group_id == group_id))


def create_comment(
    db: Session, post_id: int, author_id: int, content: str, media: str | None = None
) -> Comment:
    """Comment on a post the author may see."""
    get_visible_post(db, post_id, author_id)
    comment = Comment(post_id=post_id, user_id=author_id, content=content, media=media)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


def create_group_comment(
    db: Session, group_id: int, post_id: int, author_id: int, content: str, media: str | None = None
) -> Comment:
    """Comment on a post that belongs to ``group_id``; accepted members only."""
    groups.require_role(db, group_id, author_id)
    post = db.get(Post, post_id)
    if post is None or post.group_id != group_id:
        raise NotFoundError("Post not found in this group")
    return create_comment(db, post_id, author_id, content, media)


def list_comments(db: Session, post_id: int, viewer_id: int) -> list[CommentResponse]:
    """Comments of a visible post, oldest first."""
    get_visible_post(db, post_id, viewer_id)
    rows = (
        db.query(Comment, User)
        .join(User, User.id == Comment.user_id)
        .filter(Comment.post_id == post_id)
        .order_by(Comment.created_at, Comment.id)
        .all()
    )
    return [to_comment_response(comment, author) for comment, author in rows]
