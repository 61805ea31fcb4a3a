"""Group endpoints: lifecycle, membership, invitations, join requests, posts and events."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from socialnet.api.dependencies import CurrentUserDep, HubDep, SessionDep
from socialnet.models.group import MEMBER_ACCEPTED
from socialnet.schemas.group import (
    EventCreate,
    EventResponse,
    GroupCreate,
    GroupResponse,
    GroupUpdate,
    InvitationResponse,
    InvitationStatusResponse,
    InviteRequest,
    JoinRequestEntry,
    MemberResponse,
    RoleResponse,
    RoleUpdate,
    RSVPRequest,
)
from socialnet.schemas.post import CommentResponse, GroupCommentCreate, GroupPostCreate, PostResponse
from socialnet.services import groups, posts, users

router = APIRouter(prefix="/groups", tags=["groups"])


def _group_response(listing: groups.GroupListing) -> GroupResponse:
    group = listing.group
    membership = listing.membership
    return GroupResponse(
        id=group.id,
        title=group.title,
        description=group.description,
        creator_id=group.creator_id,
        creator_username=listing.creator_username,
        chat_id=group.chat_id,
        member_count=listing.member_count,
        role=membership.role if membership and membership.status == MEMBER_ACCEPTED else None,
        membership_status=membership.status if membership else None,
        created_at=group.created_at,
    )


def _event_response(summary: groups.EventSummary) -> EventResponse:
    event = summary.event
    return EventResponse(
        id=event.id,
        group_id=event.group_id,
        creator_id=event.creator_id,
        title=event.title,
        description=event.description,
        event_date=event.event_date,
        created_at=event.created_at,
        going=summary.going,
        not_going=summary.not_going,
        my_response=summary.my_response,
    )


@router.get("", response_model=list[GroupResponse])
async def list_groups(current_user: CurrentUserDep, db: SessionDep) -> list[GroupResponse]:
    """All groups with the caller's role in each."""
    return [_group_response(listing) for listing in groups.list_groups(db, current_user.id)]


@router.post("", response_model=GroupResponse)
async def create_group(payload: GroupCreate, current_user: CurrentUserDep, db: SessionDep) -> GroupResponse:
    """Create a group; the caller becomes its creator."""
    group = groups.create_group(db, current_user.id, payload.title, payload.description)
    return _group_response(groups.read_group(db, group.id, current_user.id))


# Registered before "/{group_id}" routes so "events" is not parsed as a group id.
@router.post("/events/{event_id}/respond", response_model=EventResponse)
async def respond_to_event(
    event_id: int,
    payload: RSVPRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> EventResponse:
    """RSVP to an event; live members receive the updated tallies."""
    summary = await groups.respond_to_event(db, event_id, current_user.id, payload.status, hub=hub)
    return _event_response(summary)


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> GroupResponse:
    """A single group."""
    return _group_response(groups.read_group(db, group_id, current_user.id))


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: int,
    payload: GroupUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> GroupResponse:
    """Change title/description (admin or creator)."""
    groups.update_group(
        db, group_id, current_user.id, title=payload.title, description=payload.description
    )
    return _group_response(groups.read_group(db, group_id, current_user.id))


@router.delete("/{group_id}")
async def delete_group(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> dict[str, str]:
    """Delete a group and everything in it (creator only)."""
    groups.delete_group(db, group_id, current_user.id)
    return {"message": "Group deleted successfully"}


@router.get("/{group_id}/members", response_model=list[MemberResponse])
async def list_members(group_id: int, _current_user: CurrentUserDep, db: SessionDep) -> list[MemberResponse]:
    """Accepted members of a group."""
    return [
        MemberResponse(
            user_id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            avatar=user.avatar,
            role=membership.role,
            status=membership.status,
            joined_at=membership.created_at,
        )
        for membership, user in groups.list_members(db, group_id)
    ]


@router.get("/{group_id}/role", response_model=RoleResponse)
async def get_role(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> RoleResponse:
    """The caller's role in a group."""
    groups.get_group(db, group_id)
    membership = groups.get_membership(db, group_id, current_user.id)
    return RoleResponse(
        group_id=group_id,
        role=membership.role if membership and membership.status == MEMBER_ACCEPTED else None,
        status=membership.status if membership else None,
    )


@router.put("/{group_id}/members/{member_id}/role", response_model=RoleResponse)
async def update_member_role(
    group_id: int,
    member_id: int,
    payload: RoleUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> RoleResponse:
    """Promote or demote a member (creator only)."""
    membership = await groups.update_member_role(
        db, group_id, current_user.id, member_id, payload.role, hub=hub
    )
    return RoleResponse(group_id=group_id, role=membership.role, status=membership.status)


@router.delete("/{group_id}/members/{member_id}")
async def remove_member(
    group_id: int,
    member_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> dict[str, str]:
    """Remove a member from the group."""
    await groups.remove_member(db, group_id, current_user.id, member_id, hub=hub)
    return {"message": "Member removed successfully"}


@router.post("/{group_id}/leave")
async def leave_group(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> dict[str, str]:
    """Leave a group."""
    groups.leave_group(db, group_id, current_user.id)
    return {"message": "Left group successfully"}


@router.post("/{group_id}/invitations", response_model=InvitationResponse)
async def invite(
    group_id: int,
    payload: InviteRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> InvitationResponse:
    """Invite a user by id or username."""
    invitee_id = payload.user_id
    if invitee_id is None:
        if not payload.username:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing required field: user_id",
            )
        invitee = users.get_by_username(db, payload.username)
        if invitee is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        invitee_id = invitee.id
    invitation = await groups.invite(db, group_id, current_user.id, invitee_id, hub=hub)
    return InvitationResponse.model_validate(invitation)


@router.get("/{group_id}/invitation/status", response_model=InvitationStatusResponse)
async def invitation_status(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> InvitationStatusResponse:
    """The caller's membership and pending invitation in a group."""
    return InvitationStatusResponse(**groups.invitation_status(db, group_id, current_user.id))


@router.post("/{group_id}/invitations/{invitation_id}/{action}", response_model=InvitationResponse)
async def handle_invitation(
    group_id: int,
    invitation_id: int,
    action: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> InvitationResponse:
    """Accept or reject an invitation."""
    invitation = await groups.handle_invitation(
        db, group_id, invitation_id, current_user.id, action, hub=hub
    )
    return InvitationResponse.model_validate(invitation)


@router.post("/{group_id}/join")
async def request_join(
    group_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> dict[str, str]:
    """Ask to join a group."""
    membership = await groups.request_join(db, group_id, current_user.id, hub=hub)
    return {"message": "Join request sent", "status": membership.status}


@router.get("/{group_id}/requests", response_model=list[JoinRequestEntry])
async def list_join_requests(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> list[JoinRequestEntry]:
    """Pending join requests (admin or creator)."""
    return [
        JoinRequestEntry(
            user_id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            avatar=user.avatar,
            requested_at=membership.created_at,
        )
        for membership, user in groups.list_join_requests(db, group_id, current_user.id)
    ]


@router.post("/{group_id}/requests/{user_id}/{action}")
async def handle_join_request(
    group_id: int,
    user_id: int,
    action: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> dict[str, str]:
    """Accept or reject a join request (admin or creator)."""
    result = await groups.handle_join_request(db, group_id, current_user.id, user_id, action, hub=hub)
    return {"message": f"Join request {result}", "status": result}


@router.get("/{group_id}/posts", response_model=list[PostResponse])
async def list_group_posts(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> list[PostResponse]:
    """Group feed (members only)."""
    return posts.group_feed(db, group_id, current_user.id)


@router.post("/{group_id}/posts", response_model=PostResponse)
async def create_group_post(
    group_id: int,
    payload: GroupPostCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PostResponse:
    """Post into a group (members only)."""
    post = posts.create_post(
        db,
        current_user.id,
        title=payload.title,
        content=payload.content,
        media=payload.media,
        group_id=group_id,
    )
    return posts.to_post_response(post, current_user)


@router.post("/{group_id}/posts/{post_id}/comments", response_model=CommentResponse)
async def create_group_post_comment(
    group_id: int,
    post_id: int,
    payload: GroupCommentCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommentResponse:
    """Comment on a group post (members only)."""
    comment = posts.create_group_comment(db, group_id, post_id, current_user.id, payload.content, payload.media)
    return posts.to_comment_response(comment, current_user)


@router.get("/{group_id}/events", response_model=list[EventResponse])
async def list_events(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> list[EventResponse]:
    """Events of a group (members only)."""
    return [_event_response(summary) for summary in groups.list_events(db, group_id, current_user.id)]


@router.post("/{group_id}/events", response_model=EventResponse)
async def create_event(
    group_id: int,
    payload: EventCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> EventResponse:
    """Schedule a group event (members only)."""
    summary = await groups.create_event(
        db,
        group_id,
        current_user.id,
        payload.title,
        payload.description,
        payload.event_date,
        hub=hub,
    )
    return _event_response(summary)
