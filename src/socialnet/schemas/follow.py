"""Follow graph schemas."""

import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class FollowRequest(BaseModel):
    """Ask to follow ``followed_id``; the follower is always the caller."""

    follower_id: int | None = Field(None, description="Must match the caller when supplied")
    followed_id: int = Field(..., description="User to follow")


class UnfollowRequest(BaseModel):
    """Remove the caller's edge toward ``followed_id``."""

    followed_id: int


class HandleFollowRequest(BaseModel):
    """Accept or reject a pending request addressed to the caller."""

    request_id: int = Field(..., validation_alias=AliasChoices("request_id", "id"))
    status: str = Field(..., min_length=1, description="accept or reject, any case")


class FollowStatusRequest(BaseModel):
    """Query the caller's edge toward ``user_id``."""

    user_id: int


class FollowResponse(BaseModel):
    """Result of a follow request."""

    message: str
    status: str
    id: int


class FollowStatusResponse(BaseModel):
    """Status of an edge; ``none`` when no edge exists."""

    status: str
    request_id: int | None = None


class FollowEdgeResponse(BaseModel):
    """Follow edge as stored."""

    id: int
    follower_id: int
    followed_id: int
    status: str
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class FollowRequestEntry(BaseModel):
    """Pending incoming request with the requesting user's details."""

    id: int
    follower_id: int
    username: str
    first_name: str
    last_name: str
    avatar: str | None = None
    created_at: datetime.datetime
