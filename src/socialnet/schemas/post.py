"""Post and comment schemas."""

import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PostCreate(BaseModel):
    """Create a timeline or group post."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    media: str | None = None
    privacy: int = Field(1, description="1 public, 2 followers only, 3 private")
    selected_users: list[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("selected_users", "selectedUsers"),
        description="Explicit viewers for private posts",
    )
    group_id: int | None = None


class GroupPostCreate(BaseModel):
    """Create a post inside a group; visibility is group membership."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    media: str | None = None


class PostResponse(BaseModel):
    """Post with author details."""

    id: int
    title: str
    content: str
    media: str | None = None
    privacy: int
    group_id: int | None = None
    author: int
    author_name: str
    author_avatar: str | None = None
    created_at: datetime.datetime


class CommentCreate(BaseModel):
    """Comment on a visible post."""

    model_config = ConfigDict(str_strip_whitespace=True)

    post_id: int
    content: str = Field(..., min_length=1)
    media: str | None = None


class GroupCommentCreate(BaseModel):
    """Comment on a post of a group; the post is named by the path."""

    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(..., min_length=1)
    media: str | None = None


class CommentResponse(BaseModel):
    """Comment with author details."""

    id: int
    post_id: int
    content: str
    media: str | None = None
    author: int
    author_name: str
    author_avatar: str | None = None
    created_at: datetime.datetime


class PostDetailResponse(BaseModel):
    """Post plus its comments, oldest first."""

    post: PostResponse
    comments: list[CommentResponse]
