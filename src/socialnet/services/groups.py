"""Group authority: ownership, roles, invitations, join requests and events.

Roles rank creator > admin > member. The creator is fixed for the lifetime
of the group; admins manage plain members, join requests and invitations.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from socialnet.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from socialnet.models import (
    Chat,
    ChatMessage,
    ChatParticipant,
    Comment,
    Group,
    GroupEvent,
    GroupEventRSVP,
    GroupInvitation,
    GroupMember,
    Notification,
    Post,
    PostPrivateView,
    User,
)
from socialnet.models.chat import CHAT_GROUP
from socialnet.models.group import (
    INVITATION_ACCEPTED,
    INVITATION_PENDING,
    INVITATION_REJECTED,
    MEMBER_ACCEPTED,
    MEMBER_PENDING,
    ROLE_ADMIN,
    ROLE_CREATOR,
    ROLE_MEMBER,
    ROLE_RANK,
    RSVP_GOING,
    RSVP_NOT_GOING,
)
from socialnet.schemas.realtime import WsEnvelope
from socialnet.services import notifications
from socialnet.services.hub import RealtimeHub, get_hub

logger = logging.getLogger(__name__)

ACTION_ACCEPT = "accept"
ACTION_REJECT = "reject"
JOIN_REJECTED = "rejected"

_RSVP_ALIASES = {
    "going": RSVP_GOING,
    "not_going": RSVP_NOT_GOING,
    "not-going": RSVP_NOT_GOING,
    "notgoing": RSVP_NOT_GOING,
}


@dataclass
class GroupListing:
    """A group together with its creator and the caller's membership."""

    group: Group
    creator_username: str
    member_count: int
    membership: GroupMember | None


@dataclass
class EventSummary:
    """An event with its RSVP tallies."""

    event: GroupEvent
    going: int
    not_going: int
    my_response: str | None


def _normalize_action(action: str) -> str:
    normalized = (action or "").strip().lower()
    if normalized not in (ACTION_ACCEPT, ACTION_REJECT):
        raise InvalidInputError("Invalid action; expected accept or reject")
    return normalized


# --- lookups -----------------------------------------------------------------


def get_group(db: Session, group_id: int) -> Group:
    """Return a group or raise NotFoundError."""
    group = db.get(Group, group_id)
    if group is None:
        raise NotFoundError("Group not found")
    return group


def get_membership(db: Session, group_id: int, user_id: int) -> GroupMember | None:
    """Return the membership row (pending or accepted) for the pair."""
    return (
        db.query(GroupMember)
        .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
        .first()
    )


def role_of(db: Session, group_id: int, user_id: int) -> str | None:
    """Return the user's role when they are an accepted member."""
    membership = get_membership(db, group_id, user_id)
    if membership is None or membership.status != MEMBER_ACCEPTED:
        return None
    return membership.role


def is_accepted_member(db: Session, group_id: int, user_id: int) -> bool:
    """Return True if the user is an accepted member of the group."""
    return role_of(db, group_id, user_id) is not None


def accepted_member_ids(db: Session, group_id: int) -> list[int]:
    """Return ids of the group's accepted members."""
    rows = (
        db.query(GroupMember.user_id)
        .filter(GroupMember.group_id == group_id, GroupMember.status == MEMBER_ACCEPTED)
        .all()
    )
    return [user_id for (user_id,) in rows]


def _admin_ids(db: Session, group_id: int) -> list[int]:
    rows = (
        db.query(GroupMember.user_id)
        .filter(
            GroupMember.group_id == group_id,
            GroupMember.status == MEMBER_ACCEPTED,
            GroupMember.role.in_((ROLE_CREATOR, ROLE_ADMIN)),
        )
        .all()
    )
    return [user_id for (user_id,) in rows]


def require_role(db: Session, group_id: int, user_id: int, minimum: str = ROLE_MEMBER) -> str:
    """Return the caller's role, raising ForbiddenError when below ``minimum``."""
    get_group(db, group_id)
    role = role_of(db, group_id, user_id)
    if role is None:
        raise ForbiddenError("You are not a member of this group")
    if ROLE_RANK[role] < ROLE_RANK[minimum]:
        raise ForbiddenError("You do not have permission to perform this action")
    return role


# --- group lifecycle ---------------------------------------------------------


def create_group(db: Session, creator_id: int, title: str, description: str = "") -> Group:
    """Create a group, its group chat and the creator's membership."""
    group = Group(creator_id=creator_id, title=title, description=description or "")
    db.add(group)
    db.flush()

    chat = Chat(type=CHAT_GROUP, group_id=group.id)
    db.add(chat)
    db.flush()
    group.chat_id = chat.id

    db.add(
        GroupMember(
            group_id=group.id,
            user_id=creator_id,
            role=ROLE_CREATOR,
            status=MEMBER_ACCEPTED,
        )
    )
    db.commit()
    db.refresh(group)
    logger.info("Group %s created by user %s", group.id, creator_id)
    return group


def _listing(db: Session, group: Group, user_id: int) -> GroupListing:
    creator = db.get(User, group.creator_id)
    count = (
        db.query(func.count(GroupMember.id))
        .filter(GroupMember.group_id == group.id, GroupMember.status == MEMBER_ACCEPTED)
        .scalar()
    )
    return GroupListing(
        group=group,
        creator_username=creator.username if creator else "",
        member_count=count or 0,
        membership=get_membership(db, group.id, user_id),
    )


def list_groups(db: Session, user_id: int) -> list[GroupListing]:
    """Return every group with the caller's membership, newest first."""
    groups = db.query(Group).order_by(Group.created_at.desc(), Group.id.desc()).all()
    return [_listing(db, group, user_id) for group in groups]


def read_group(db: Session, group_id: int, user_id: int) -> GroupListing:
    """Return one group with the caller's membership."""
    return _listing(db, get_group(db, group_id), user_id)


def update_group(
    db: Session,
    group_id: int,
    user_id: int,
    *,
    title: str | None = None,
    description: str | None = None,
) -> Group:
    """Change title/description; admin or creator only."""
    require_role(db, group_id, user_id, ROLE_ADMIN)
    group = get_group(db, group_id)
    if title is not None:
        group.title = title
    if description is not None:
        group.description = description
    db.commit()
    db.refresh(group)
    return group


def delete_group(db: Session, group_id: int, user_id: int) -> None:
    """Delete a group and everything that hangs off it; creator only."""
    group = get_group(db, group_id)
    if group.creator_id != user_id:
        raise ForbiddenError("Only the group creator can delete the group")

    event_ids = db.query(GroupEvent.id).filter(GroupEvent.group_id == group_id)
    post_ids = db.query(Post.id).filter(Post.group_id == group_id)
    chat_ids = db.query(Chat.id).filter(Chat.group_id == group_id)

    db.query(GroupEventRSVP).filter(GroupEventRSVP.event_id.in_(event_ids)).delete(synchronize_session=False)
    db.query(GroupEvent).filter(GroupEvent.group_id == group_id).delete(synchronize_session=False)
    db.query(Comment).filter(Comment.post_id.in_(post_ids)).delete(synchronize_session=False)
    db.query(PostPrivateView).filter(PostPrivateView.post_id.in_(post_ids)).delete(synchronize_session=False)
    db.query(Post).filter(Post.group_id == group_id).delete(synchronize_session=False)
    db.query(ChatMessage).filter(ChatMessage.chat_id.in_(chat_ids)).delete(synchronize_session=False)
    db.query(ChatParticipant).filter(ChatParticipant.chat_id.in_(chat_ids)).delete(synchronize_session=False)
    db.query(Chat).filter(Chat.group_id == group_id).delete(synchronize_session=False)
    db.query(GroupInvitation).filter(GroupInvitation.group_id == group_id).delete(synchronize_session=False)
    db.query(GroupMember).filter(GroupMember.group_id == group_id).delete(synchronize_session=False)
    db.query(Notification).filter(Notification.group_id == group_id).delete(synchronize_session=False)
    db.delete(group)
    db.commit()
    logger.info("Group %s deleted by user %s", group_id, user_id)


# --- membership --------------------------------------------------------------


def list_members(db: Session, group_id: int) -> list[tuple[GroupMember, User]]:
    """Accepted members with their user rows, creator first."""
    get_group(db, group_id)
    rows = (
        db.query(GroupMember, User)
        .join(User, User.id == GroupMember.user_id)
        .filter(GroupMember.group_id == group_id, GroupMember.status == MEMBER_ACCEPTED)
        .all()
    )
    return sorted(rows, key=lambda row: (-ROLE_RANK[row[0].role], row[1].username))


async def update_member_role(
    db: Session,
    group_id: int,
    actor_id: int,
    member_id: int,
    role: str,
    *,
    hub: RealtimeHub | None = None,
) -> GroupMember:
    """Promote a member to admin or demote an admin; creator only."""
    new_role = (role or "").strip().lower()
    if new_role not in (ROLE_ADMIN, ROLE_MEMBER):
        raise InvalidInputError("Invalid role; expected admin or member")
    group = get_group(db, group_id)
    if group.creator_id != actor_id:
        raise ForbiddenError("Only the group creator can change roles")
    membership = get_membership(db, group_id, member_id)
    if membership is None or membership.status != MEMBER_ACCEPTED:
        raise NotFoundError("Member not found")
    if membership.role == ROLE_CREATOR:
        raise ForbiddenError("The creator's role cannot be changed")
    if membership.role == new_role:
        return membership

    membership.role = new_role
    db.commit()
    db.refresh(membership)
    await notifications.emit(
        db,
        member_id,
        "group_role_updated",
        f"Your role in {group.title} is now {new_role}",
        from_user_id=actor_id,
        group_id=group_id,
        hub=hub,
    )
    return membership


async def remove_member(
    db: Session,
    group_id: int,
    actor_id: int,
    member_id: int,
    *,
    hub: RealtimeHub | None = None,
) -> None:
    """Remove a member from the group.

    The creator may remove anyone but themself; admins may remove plain
    members; a member removing themself leaves the group.
    """
    group = get_group(db, group_id)
    if actor_id == member_id:
        leave_group(db, group_id, actor_id)
        return
    actor_role = require_role(db, group_id, actor_id, ROLE_ADMIN)
    membership = get_membership(db, group_id, member_id)
    if membership is None or membership.status != MEMBER_ACCEPTED:
        raise NotFoundError("Member not found")
    if membership.role == ROLE_CREATOR:
        raise ForbiddenError("The group creator cannot be removed")
    if actor_role == ROLE_ADMIN and membership.role != ROLE_MEMBER:
        raise ForbiddenError("Admins can only remove regular members")

    db.delete(membership)
    db.commit()
    await notifications.emit(
        db,
        member_id,
        "group_member_removed",
        f"You were removed from {group.title}",
        from_user_id=actor_id,
        group_id=group_id,
        hub=hub,
    )


def leave_group(db: Session, group_id: int, user_id: int) -> None:
    """Leave a group; the creator cannot leave."""
    get_group(db, group_id)
    membership = get_membership(db, group_id, user_id)
    if membership is None or membership.status != MEMBER_ACCEPTED:
        raise NotFoundError("You are not a member of this group")
    if membership.role == ROLE_CREATOR:
        raise ForbiddenError("The group creator cannot leave; delete the group instead")
    db.delete(membership)
    db.commit()


# --- invitations -------------------------------------------------------------


def _pending_invitation(db: Session, group_id: int, invitee_id: int) -> GroupInvitation | None:
    return (
        db.query(GroupInvitation)
        .filter(
            GroupInvitation.group_id == group_id,
            GroupInvitation.invitee_id == invitee_id,
            GroupInvitation.status == INVITATION_PENDING,
        )
        .first()
    )


async def invite(
    db: Session,
    group_id: int,
    inviter_id: int,
    invitee_id: int,
    *,
    hub: RealtimeHub | None = None,
) -> GroupInvitation:
    """Invite a user; the inviter must be an accepted member.

    Raises:
        ForbiddenError: If the inviter is not a member.
        NotFoundError: If the invitee does not exist.
        ConflictError: If the invitee is already a member, has a pending
            join request, or has a pending invitation.
    """
    group = get_group(db, group_id)
    require_role(db, group_id, inviter_id, ROLE_MEMBER)
    if invitee_id == inviter_id:
        raise InvalidInputError("You cannot invite yourself")
    invitee = db.get(User, invitee_id)
    if invitee is None:
        raise NotFoundError("User not found")

    membership = get_membership(db, group_id, invitee_id)
    if membership is not None:
        if membership.status == MEMBER_ACCEPTED:
            raise ConflictError("User is already a member of this group")
        raise ConflictError("User has already requested to join this group")
    if _pending_invitation(db, group_id, invitee_id) is not None:
        raise ConflictError("User has already been invited to this group")

    invitation = GroupInvitation(
        group_id=group_id,
        inviter_id=inviter_id,
        invitee_id=invitee_id,
        status=INVITATION_PENDING,
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)

    inviter = db.get(User, inviter_id)
    await notifications.emit(
        db,
        invitee_id,
        "group_invitation",
        f"{inviter.username} invited you to join {group.title}",
        from_user_id=inviter_id,
        group_id=group_id,
        invitation_id=invitation.id,
        hub=hub,
    )
    return invitation


async def handle_invitation(
    db: Session,
    group_id: int,
    invitation_id: int,
    actor_id: int,
    action: str,
    *,
    hub: RealtimeHub | None = None,
) -> GroupInvitation:
    """Accept or reject an invitation.

    The invitee may accept or reject; an admin may reject (revoke). Acting on
    an invitation that is no longer pending raises ConflictError.
    """
    action = _normalize_action(action)
    group = get_group(db, group_id)
    invitation = db.get(GroupInvitation, invitation_id)
    if invitation is None or invitation.group_id != group_id:
        raise NotFoundError("Invitation not found")

    is_invitee = invitation.invitee_id == actor_id
    if not is_invitee:
        role = role_of(db, group_id, actor_id)
        if action != ACTION_REJECT or role is None or ROLE_RANK[role] < ROLE_RANK[ROLE_ADMIN]:
            raise ForbiddenError("You cannot act on this invitation")

    new_status = INVITATION_ACCEPTED if action == ACTION_ACCEPT else INVITATION_REJECTED
    updated = (
        db.query(GroupInvitation)
        .filter(GroupInvitation.id == invitation_id, GroupInvitation.status == INVITATION_PENDING)
        .update({GroupInvitation.status: new_status}, synchronize_session=False)
    )
    if not updated:
        db.rollback()
        raise ConflictError("Invitation has already been processed")

    if new_status == INVITATION_ACCEPTED:
        membership = get_membership(db, group_id, invitation.invitee_id)
        if membership is None:
            db.add(
                GroupMember(
                    group_id=group_id,
                    user_id=invitation.invitee_id,
                    role=ROLE_MEMBER,
                    status=MEMBER_ACCEPTED,
                )
            )
        else:
            membership.status = MEMBER_ACCEPTED

    db.query(Notification).filter(
        Notification.invitation_id == invitation_id,
        Notification.to_user_id == invitation.invitee_id,
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    db.refresh(invitation)

    invitee = db.get(User, invitation.invitee_id)
    if is_invitee:
        verb = "accepted" if new_status == INVITATION_ACCEPTED else "declined"
        await notifications.emit(
            db,
            invitation.inviter_id,
            "invitation_response",
            f"{invitee.username} {verb} your invitation to join {group.title}",
            from_user_id=actor_id,
            group_id=group_id,
            invitation_id=invitation_id,
            hub=hub,
        )
    else:
        await notifications.emit(
            db,
            invitation.invitee_id,
            "invitation_response",
            f"Your invitation to join {group.title} was withdrawn",
            from_user_id=actor_id,
            group_id=group_id,
            invitation_id=invitation_id,
            hub=hub,
        )
    return invitation


def invitation_status(db: Session, group_id: int, user_id: int) -> dict[str, object]:
    """Describe the caller's standing in a group."""
    get_group(db, group_id)
    membership = get_membership(db, group_id, user_id)
    invitation = _pending_invitation(db, group_id, user_id)
    return {
        "is_member": membership is not None and membership.status == MEMBER_ACCEPTED,
        "role": membership.role if membership else None,
        "membership_status": membership.status if membership else None,
        "invitation_id": invitation.id if invitation else None,
        "invitation_status": invitation.status if invitation else None,
    }


# --- join requests -----------------------------------------------------------


async def request_join(
    db: Session, group_id: int, user_id: int, *, hub: RealtimeHub | None = None
) -> GroupMember:
    """Open a join request; notifies the creator and admins."""
    group = get_group(db, group_id)
    membership = get_membership(db, group_id, user_id)
    if membership is not None:
        if membership.status == MEMBER_ACCEPTED:
            raise ConflictError("You are already a member of this group")
        raise ConflictError("Join request already pending")
    if _pending_invitation(db, group_id, user_id) is not None:
        raise ConflictError("You already have a pending invitation to this group")

    membership = GroupMember(
        group_id=group_id,
        user_id=user_id,
        role=ROLE_MEMBER,
        status=MEMBER_PENDING,
    )
    db.add(membership)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Join request already pending") from exc
    db.refresh(membership)

    requester = db.get(User, user_id)
    await notifications.emit_many(
        db,
        _admin_ids(db, group_id),
        "group_join_request",
        f"{requester.username} wants to join {group.title}",
        from_user_id=user_id,
        group_id=group_id,
        hub=hub,
    )
    return membership


def list_join_requests(db: Session, group_id: int, actor_id: int) -> list[tuple[GroupMember, User]]:
    """Pending join requests; admin or creator only."""
    require_role(db, group_id, actor_id, ROLE_ADMIN)
    return (
        db.query(GroupMember, User)
        .join(User, User.id == GroupMember.user_id)
        .filter(GroupMember.group_id == group_id, GroupMember.status == MEMBER_PENDING)
        .order_by(GroupMember.created_at, GroupMember.id)
        .all()
    )


async def handle_join_request(
    db: Session,
    group_id: int,
    actor_id: int,
    user_id: int,
    action: str,
    *,
    hub: RealtimeHub | None = None,
) -> str:
    """Accept or reject a pending join request; admin or creator only.

    Rejection removes the request so the user may ask again later.

    Returns:
        The resulting status: ``accepted`` or ``rejected``.
    """
    action = _normalize_action(action)
    group = get_group(db, group_id)
    require_role(db, group_id, actor_id, ROLE_ADMIN)
    membership = get_membership(db, group_id, user_id)
    if membership is None:
        raise NotFoundError("Join request not found")
    if membership.status != MEMBER_PENDING:
        raise ConflictError("Join request has already been processed")

    if action == ACTION_ACCEPT:
        membership.status = MEMBER_ACCEPTED
        result = MEMBER_ACCEPTED
        content = f"Your request to join {group.title} was accepted"
    else:
        db.delete(membership)
        result = JOIN_REJECTED
        content = f"Your request to join {group.title} was rejected"
    db.commit()

    await notifications.emit(
        db,
        user_id,
        "join_request_response",
        content,
        from_user_id=actor_id,
        group_id=group_id,
        hub=hub,
    )
    return result


# --- events ------------------------------------------------------------------


def _tally(db: Session, event_id: int) -> tuple[int, int]:
    rows = (
        db.query(GroupEventRSVP.response, func.count(GroupEventRSVP.id))
        .filter(GroupEventRSVP.event_id == event_id)
        .group_by(GroupEventRSVP.response)
        .all()
    )
    counts = dict(rows)
    return counts.get(RSVP_GOING, 0), counts.get(RSVP_NOT_GOING, 0)


def _summary(db: Session, event: GroupEvent, user_id: int) -> EventSummary:
    going, not_going = _tally(db, event.id)
    mine = (
        db.query(GroupEventRSVP.response)
        .filter(GroupEventRSVP.event_id == event.id, GroupEventRSVP.user_id == user_id)
        .scalar()
    )
    return EventSummary(event=event, going=going, not_going=not_going, my_response=mine)


async def create_event(
    db: Session,
    group_id: int,
    user_id: int,
    title: str,
    description: str,
    event_date: datetime.datetime,
    *,
    hub: RealtimeHub | None = None,
) -> EventSummary:
    """Schedule an event; members only. Other members are notified."""
    group = get_group(db, group_id)
    require_role(db, group_id, user_id, ROLE_MEMBER)
    event = GroupEvent(
        group_id=group_id,
        creator_id=user_id,
        title=title,
        description=description or "",
        event_date=event_date,
    )
    db.add(event)
    db.commit()
    db.refresh(event)

    others = [member for member in accepted_member_ids(db, group_id) if member != user_id]
    await notifications.emit_many(
        db,
        others,
        "group_event",
        f"New event in {group.title}: {title}",
        from_user_id=user_id,
        group_id=group_id,
        hub=hub,
    )
    return _summary(db, event, user_id)


def list_events(db: Session, group_id: int, user_id: int) -> list[EventSummary]:
    """Events of a group, soonest first; members only."""
    require_role(db, group_id, user_id, ROLE_MEMBER)
    events = (
        db.query(GroupEvent)
        .filter(GroupEvent.group_id == group_id)
        .order_by(GroupEvent.event_date, GroupEvent.id)
        .all()
    )
    return [_summary(db, event, user_id) for event in events]


async def respond_to_event(
    db: Session,
    event_id: int,
    user_id: int,
    response: str,
    *,
    hub: RealtimeHub | None = None,
) -> EventSummary:
    """Record (or change) the caller's RSVP and publish updated tallies."""
    normalized = _RSVP_ALIASES.get((response or "").strip().lower())
    if normalized is None:
        raise InvalidInputError("Invalid response; expected going or not_going")
    event = db.get(GroupEvent, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    require_role(db, event.group_id, user_id, ROLE_MEMBER)

    rsvp = (
        db.query(GroupEventRSVP)
        .filter(GroupEventRSVP.event_id == event_id, GroupEventRSVP.user_id == user_id)
        .first()
    )
    if rsvp is None:
        db.add(GroupEventRSVP(event_id=event_id, user_id=user_id, response=normalized))
    else:
        rsvp.response = normalized
    db.commit()

    summary = _summary(db, event, user_id)
    envelope = WsEnvelope(
        type="event_rsvp",
        data={
            "eventId": event_id,
            "userId": user_id,
            "status": normalized,
            "going": summary.going,
            "notGoing": summary.not_going,
        },
        group_id=event.group_id,
    )
    await (hub or get_hub()).send_to_users(accepted_member_ids(db, event.group_id), envelope)
    return summary
