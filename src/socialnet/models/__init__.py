# src/socialnet/models/__init__.py
"""SQLAlchemy models for the social network."""

from .chat import Chat, ChatMessage, ChatParticipant
from .follow import Follower
from .group import Group, GroupEvent, GroupEventRSVP, GroupInvitation, GroupMember
from .notification import Notification
from .post import Comment, Post, PostPrivateView
from .user import User

__all__ = [
    "Chat", "ChatMessage", "ChatParticipant",
    "Follower",
    "Group", "GroupEvent", "GroupEventRSVP", "GroupInvitation", "GroupMember",
    "Notification",
    "Comment", "Post", "PostPrivateView",
    "User",
]
