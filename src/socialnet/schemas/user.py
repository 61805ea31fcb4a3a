"""User and authentication schemas."""

import datetime

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Payload for creating an account."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=1, max_length=50, description="Unique handle")
    email: str = Field(..., min_length=1, max_length=255, description="Unique e-mail address")
    password: str = Field(..., min_length=1, description="Plain-text password, hashed on arrival")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: datetime.date = Field(..., description="ISO date, e.g. 1815-12-10")
    avatar: str | None = Field(None, description="Avatar reference (path or URL)")
    about_me: str | None = Field(None, description="Free-form profile text")
    is_private: bool = Field(False, description="Private accounts approve followers")


class LoginRequest(BaseModel):
    """Login with a username or e-mail and a password."""

    model_config = ConfigDict(str_strip_whitespace=True)

    identifier: str | None = Field(None, description="Username or e-mail")
    username: str | None = None
    email: str | None = None
    password: str = Field(..., min_length=1)

    @property
    def login_name(self) -> str | None:
        """Return the first identifier the client supplied."""
        return self.identifier or self.username or self.email


class AuthResponse(BaseModel):
    """Returned after register/login alongside the session cookie."""

    id: int
    username: str


class UserResponse(BaseModel):
    """Full profile of a user, without the password hash.

    Personal fields are None when the caller may not see them.
    """

    id: int
    username: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: datetime.date | None = None
    avatar: str | None = None
    about_me: str | None = None
    is_private: bool
    created_at: datetime.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    """Compact user representation used in lists."""

    id: int
    username: str
    first_name: str
    last_name: str
    avatar: str | None = None
    is_private: bool = False

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(BaseModel):
    """Profile page payload."""

    user: UserResponse
    can_view: bool = Field(..., description="Whether personal fields and posts are visible")
    follow_status: str = Field(..., description="Caller's follow status toward this user")
    followers: list[UserSummary] = Field(default_factory=list)
    following: list[UserSummary] = Field(default_factory=list)
    follow_requests: list[UserSummary] = Field(
        default_factory=list,
        description="Pending incoming requests; only populated for the owner",
    )


class ProfileUpdateRequest(BaseModel):
    """Fields a user may change on their own profile."""

    avatar: str | None = Field(None, description="New avatar reference")
    about_me: str | None = Field(None, description="New profile text")
    is_private: bool | None = Field(None, description="Switch account privacy")


class ExploreRequest(BaseModel):
    """Directory search; an empty search lists everyone."""

    search: str = Field("", description="Case-insensitive username prefix")


class ExploreEntry(UserSummary):
    """Directory row with the caller's follow status toward the user."""

    follow_status: str = "none"
