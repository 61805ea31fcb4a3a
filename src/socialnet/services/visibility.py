"""Visibility resolver: the single decision function for reading posts."""

from __future__ import annotations

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from socialnet.core.errors import ForbiddenError
from socialnet.models import Follower, Post, PostPrivateView
from socialnet.models.follow import FOLLOW_ACCEPTED
from socialnet.models.post import PRIVACY_FOLLOWERS, PRIVACY_PRIVATE, PRIVACY_PUBLIC
from socialnet.services import follow_graph, groups

__all__ = ["can_view", "ensure_can_view", "visible_posts"]


def _granted(db: Session, viewer_id: int, post_id: int) -> bool:
    return (
        db.query(PostPrivateView.post_id)
        .filter(PostPrivateView.post_id == post_id, PostPrivateView.user_id == viewer_id)
        .first()
        is not None
    )


def can_view(db: Session, viewer_id: int, post: Post) -> bool:
    """Decide whether ``viewer_id`` may see ``post``.

    Authors always see their own posts. Group posts are visible to accepted
    members of the group only. Otherwise public posts are visible to
    everyone, followers-only posts to accepted followers of the author, and
    private posts to the users on the post's allow-list.
    """
    if post.user_id == viewer_id:
        return True
    if post.group_id is not None:
        return groups.is_accepted_member(db, post.group_id, viewer_id)
    if post.privacy == PRIVACY_PUBLIC:
        return True
    if post.privacy == PRIVACY_FOLLOWERS:
        return follow_graph.is_following(db, viewer_id, post.user_id)
    if post.privacy == PRIVACY_PRIVATE:
        return _granted(db, viewer_id, post.id)
    return False


def ensure_can_view(db: Session, viewer_id: int, post: Post) -> None:
    """Raise ForbiddenError unless ``viewer_id`` may see ``post``."""
    if not can_view(db, viewer_id, post):
        raise ForbiddenError("You do not have permission to view this post")


def visible_posts(db: Session, viewer_id: int) -> Query:
    """Query of non-group posts visible to ``viewer_id``.

    Expresses the same rules as ``can_view`` in SQL so feeds can be filtered
    and paginated in the database.
    """
    followed = db.query(Follower.followed_id).filter(
        Follower.follower_id == viewer_id, Follower.status == FOLLOW_ACCEPTED
    )
    granted = db.query(PostPrivateView.post_id).filter(PostPrivateView.user_id == viewer_id)
    return db.query(Post).filter(
        Post.group_id.is_(None),
        or_(
            Post.user_id == viewer_id,
            Post.privacy == PRIVACY_PUBLIC,
            and_(Post.privacy == PRIVACY_FOLLOWERS, Post.user_id.in_(followed)),
            and_(Post.privacy == PRIVACY_PRIVATE, Post.id.in_(granted)),
        ),
    )
