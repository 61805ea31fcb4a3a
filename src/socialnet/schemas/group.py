"""Group, membership, invitation and event schemas."""

import datetime

from pydantic import BaseModel, ConfigDict, Field


class GroupCreate(BaseModel):
    """Create a group; the caller becomes its creator."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""


class GroupUpdate(BaseModel):
    """Change a group's title and/or description."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None


class GroupResponse(BaseModel):
    """Group with the caller's relationship to it."""

    id: int
    title: str
    description: str
    creator_id: int
    creator_username: str
    chat_id: int | None = None
    member_count: int = 0
    role: str | None = Field(None, description="Caller's role when a member")
    membership_status: str | None = Field(None, description="pending or accepted")
    created_at: datetime.datetime


class MemberResponse(BaseModel):
    """Group member with profile details."""

    user_id: int
    username: str
    first_name: str
    last_name: str
    avatar: str | None = None
    role: str
    status: str
    joined_at: datetime.datetime


class RoleResponse(BaseModel):
    """Caller's role in a group; None when not a member."""

    group_id: int
    role: str | None
    status: str | None


class RoleUpdate(BaseModel):
    """New role for a member."""

    role: str = Field(..., min_length=1, description="admin or member")


class InviteRequest(BaseModel):
    """Invite a user by id or username."""

    user_id: int | None = None
    username: str | None = None


class InvitationResponse(BaseModel):
    """Invitation as stored."""

    id: int
    group_id: int
    inviter_id: int
    invitee_id: int
    status: str
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class InvitationStatusResponse(BaseModel):
    """Caller's standing in a group."""

    is_member: bool
    role: str | None = None
    membership_status: str | None = None
    invitation_id: int | None = None
    invitation_status: str | None = None


class JoinRequestEntry(BaseModel):
    """Pending join request."""

    user_id: int
    username: str
    first_name: str
    last_name: str
    avatar: str | None = None
    requested_at: datetime.datetime


class EventCreate(BaseModel):
    """Schedule a group event."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    event_date: datetime.datetime


class EventResponse(BaseModel):
    """Event with RSVP counts and the caller's own response."""

    id: int
    group_id: int
    creator_id: int
    title: str
    description: str
    event_date: datetime.datetime
    created_at: datetime.datetime
    going: int = 0
    not_going: int = 0
    my_response: str | None = None


class RSVPRequest(BaseModel):
    """RSVP to an event."""

    status: str = Field(..., min_length=1, description="going or not_going")
