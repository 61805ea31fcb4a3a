"""API endpoint modules."""

from .auth import router as auth_router
from .chat import router as chat_router
from .comments import router as comments_router
from .follow import router as follow_router
from .groups import router as groups_router
from .notifications import router as notifications_router
from .posts import router as posts_router
from .realtime import router as realtime_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "users_router",
    "follow_router",
    "posts_router",
    "comments_router",
    "groups_router",
    "chat_router",
    "notifications_router",
    "realtime_router",
]
