import datetime

import pytest

from socialnet.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from socialnet.models import Chat, GroupInvitation, GroupMember, Notification
from socialnet.models.chat import CHAT_GROUP
from socialnet.models.group import (
    INVITATION_ACCEPTED,
    INVITATION_REJECTED,
    MEMBER_ACCEPTED,
    MEMBER_PENDING,
    ROLE_ADMIN,
    ROLE_CREATOR,
    ROLE_MEMBER,
    RSVP_GOING,
    RSVP_NOT_GOING,
)
from socialnet.services import groups


@pytest.fixture()
def group(db_session, alice):
    return groups.create_group(db_session, alice.id, "Chess Club", "Weekly games")


async def _add_member(db_session, hub, group, user, inviter):
    invitation = await groups.invite(db_session, group.id, inviter.id, user.id, hub=hub)
    await groups.handle_invitation(db_session, group.id, invitation.id, user.id, "accept", hub=hub)


def _types(db_session, user_id):
    return [
        n.type
        for n in db_session.query(Notification)
        .filter(Notification.to_user_id == user_id)
        .order_by(Notification.id)
        .all()
    ]


class TestLifecycle:
    """Creating, listing, updating and deleting groups."""

    def test_create_group_makes_creator_and_chat(self, db_session, alice, group):
        assert groups.role_of(db_session, group.id, alice.id) == ROLE_CREATOR
        chat = db_session.get(Chat, group.chat_id)
        assert chat.type == CHAT_GROUP
        assert chat.group_id == group.id

        listing = groups.read_group(db_session, group.id, alice.id)
        assert listing.member_count == 1
        assert listing.creator_username == "alice"

    def test_update_requires_admin(self, db_session, alice, bob, group):
        updated = groups.update_group(db_session, group.id, alice.id, title="Go Club")
        assert updated.title == "Go Club"
        with pytest.raises(ForbiddenError):
            groups.update_group(db_session, group.id, bob.id, title="Mine now")

    @pytest.mark.asyncio
    async def test_delete_is_creator_only_and_cascades(self, db_session, hub, alice, bob, group):
        await _add_member(db_session, hub, group, bob, alice)
        with pytest.raises(ForbiddenError):
            groups.delete_group(db_session, group.id, bob.id)

        groups.delete_group(db_session, group.id, alice.id)

        with pytest.raises(NotFoundError):
            groups.get_group(db_session, group.id)
        assert db_session.query(GroupMember).count() == 0
        assert db_session.query(GroupInvitation).count() == 0
        assert db_session.query(Chat).count() == 0


class TestInvitations:
    """Invite, accept, reject and revoke."""

    @pytest.mark.asyncio
    async def test_accept_invitation_makes_member(self, db_session, hub, alice, bob, group):
        invitation = await groups.invite(db_session, group.id, alice.id, bob.id, hub=hub)
        assert _types(db_session, bob.id) == ["group_invitation"]

        result = await groups.handle_invitation(db_session, group.id, invitation.id, bob.id, "Accept", hub=hub)

        assert result.status == INVITATION_ACCEPTED
        assert groups.role_of(db_session, group.id, bob.id) == ROLE_MEMBER
        assert _types(db_session, alice.id) == ["invitation_response"]
        invite_read = (
            db_session.query(Notification.is_read)
            .filter(Notification.invitation_id == invitation.id, Notification.to_user_id == bob.id)
            .scalar()
        )
        assert invite_read is True

    @pytest.mark.asyncio
    async def test_second_response_conflicts(self, db_session, hub, alice, bob, group):
        invitation = await groups.invite(db_session, group.id, alice.id, bob.id, hub=hub)
        await groups.handle_invitation(db_session, group.id, invitation.id, bob.id, "reject", hub=hub)

        with pytest.raises(ConflictError):
            await groups.handle_invitation(db_session, group.id, invitation.id, bob.id, "accept", hub=hub)
        assert not groups.is_accepted_member(db_session, group.id, bob.id)

    @pytest.mark.asyncio
    async def test_admin_may_revoke_but_not_accept(self, db_session, hub, alice, bob, carol, group):
        invitation = await groups.invite(db_session, group.id, alice.id, carol.id, hub=hub)
        with pytest.raises(ForbiddenError):
            await groups.handle_invitation(db_session, group.id, invitation.id, alice.id, "accept", hub=hub)

        revoked = await groups.handle_invitation(db_session, group.id, invitation.id, alice.id, "reject", hub=hub)

        assert revoked.status == INVITATION_REJECTED
        assert "invitation_response" in _types(db_session, carol.id)

    @pytest.mark.asyncio
    async def test_duplicate_invitations_conflict(self, db_session, hub, alice, bob, group):
        await groups.invite(db_session, group.id, alice.id, bob.id, hub=hub)
        with pytest.raises(ConflictError):
            await groups.invite(db_session, group.id, alice.id, bob.id, hub=hub)

    @pytest.mark.asyncio
    async def test_cannot_invite_existing_member(self, db_session, hub, alice, bob, group):
        await _add_member(db_session, hub, group, bob, alice)
        with pytest.raises(ConflictError):
            await groups.invite(db_session, group.id, alice.id, bob.id, hub=hub)

    @pytest.mark.asyncio
    async def test_outsider_cannot_invite(self, db_session, hub, bob, carol, group):
        with pytest.raises(ForbiddenError):
            await groups.invite(db_session, group.id, bob.id, carol.id, hub=hub)

    @pytest.mark.asyncio
    async def test_invalid_action(self, db_session, hub, alice, bob, group):
        invitation = await groups.invite(db_session, group.id, alice.id, bob.id, hub=hub)
        with pytest.raises(InvalidInputError):
            await groups.handle_invitation(db_session, group.id, invitation.id, bob.id, "maybe", hub=hub)


class TestJoinRequests:
    """Requests to join and their resolution by admins."""

    @pytest.mark.asyncio
    async def test_join_request_notifies_admins(self, db_session, hub, alice, bob, group):
        membership = await groups.request_join(db_session, group.id, bob.id, hub=hub)

        assert membership.status == MEMBER_PENDING
        assert _types(db_session, alice.id) == ["group_join_request"]
        assert [user.username for _, user in groups.list_join_requests(db_session, group.id, alice.id)] == ["bob"]
        with pytest.raises(ConflictError):
            await groups.request_join(db_session, group.id, bob.id, hub=hub)

    @pytest.mark.asyncio
    async def test_accept_join_request(self, db_session, hub, alice, bob, group):
        await groups.request_join(db_session, group.id, bob.id, hub=hub)

        result = await groups.handle_join_request(db_session, group.id, alice.id, bob.id, "accept", hub=hub)

        assert result == MEMBER_ACCEPTED
        assert groups.is_accepted_member(db_session, group.id, bob.id)
        assert _types(db_session, bob.id) == ["join_request_response"]
        with pytest.raises(ConflictError):
            await groups.handle_join_request(db_session, group.id, alice.id, bob.id, "reject", hub=hub)

    @pytest.mark.asyncio
    async def test_reject_allows_asking_again(self, db_session, hub, alice, bob, group):
        await groups.request_join(db_session, group.id, bob.id, hub=hub)

        result = await groups.handle_join_request(db_session, group.id, alice.id, bob.id, "reject", hub=hub)

        assert result == groups.JOIN_REJECTED
        assert groups.get_membership(db_session, group.id, bob.id) is None
        with pytest.raises(NotFoundError):
            await groups.handle_join_request(db_session, group.id, alice.id, bob.id, "accept", hub=hub)
        await groups.request_join(db_session, group.id, bob.id, hub=hub)

    @pytest.mark.asyncio
    async def test_pending_invitation_blocks_join_request(self, db_session, hub, alice, bob, group):
        await groups.invite(db_session, group.id, alice.id, bob.id, hub=hub)

        with pytest.raises(ConflictError, match="pending invitation"):
            await groups.request_join(db_session, group.id, bob.id, hub=hub)
        assert groups.get_membership(db_session, group.id, bob.id) is None

    @pytest.mark.asyncio
    async def test_plain_member_cannot_resolve(self, db_session, hub, alice, bob, carol, group):
        await _add_member(db_session, hub, group, bob, alice)
        await groups.request_join(db_session, group.id, carol.id, hub=hub)

        with pytest.raises(ForbiddenError):
            await groups.handle_join_request(db_session, group.id, bob.id, carol.id, "accept", hub=hub)


class TestRoles:
    """Role changes, removal and leaving."""

    @pytest.mark.asyncio
    async def test_creator_promotes_and_admin_removes_member(self, db_session, hub, alice, bob, carol, group):
        await _add_member(db_session, hub, group, bob, alice)
        await _add_member(db_session, hub, group, carol, alice)

        promoted = await groups.update_member_role(db_session, group.id, alice.id, bob.id, "ADMIN", hub=hub)
        assert promoted.role == ROLE_ADMIN
        assert "group_role_updated" in _types(db_session, bob.id)

        await groups.remove_member(db_session, group.id, bob.id, carol.id, hub=hub)
        assert not groups.is_accepted_member(db_session, group.id, carol.id)
        assert "group_member_removed" in _types(db_session, carol.id)

    @pytest.mark.asyncio
    async def test_admin_cannot_remove_creator_or_admin(self, db_session, hub, alice, bob, carol, group):
        await _add_member(db_session, hub, group, bob, alice)
        await _add_member(db_session, hub, group, carol, alice)
        await groups.update_member_role(db_session, group.id, alice.id, bob.id, "admin", hub=hub)
        await groups.update_member_role(db_session, group.id, alice.id, carol.id, "admin", hub=hub)

        with pytest.raises(ForbiddenError):
            await groups.remove_member(db_session, group.id, bob.id, alice.id, hub=hub)
        with pytest.raises(ForbiddenError):
            await groups.remove_member(db_session, group.id, bob.id, carol.id, hub=hub)

    @pytest.mark.asyncio
    async def test_only_creator_changes_roles(self, db_session, hub, alice, bob, carol, group):
        await _add_member(db_session, hub, group, bob, alice)
        with pytest.raises(ForbiddenError):
            await groups.update_member_role(db_session, group.id, bob.id, bob.id, "admin", hub=hub)
        with pytest.raises(InvalidInputError):
            await groups.update_member_role(db_session, group.id, alice.id, bob.id, "creator", hub=hub)

    @pytest.mark.asyncio
    async def test_leave(self, db_session, hub, alice, bob, group):
        await _add_member(db_session, hub, group, bob, alice)
        groups.leave_group(db_session, group.id, bob.id)

        assert not groups.is_accepted_member(db_session, group.id, bob.id)
        with pytest.raises(ForbiddenError):
            groups.leave_group(db_session, group.id, alice.id)


class TestEvents:
    """Events and RSVPs."""

    @pytest.mark.asyncio
    async def test_create_event_notifies_other_members(self, db_session, hub, alice, bob, group):
        await _add_member(db_session, hub, group, bob, alice)
        when = datetime.datetime(2030, 5, 1, 18, 0)

        summary = await groups.create_event(db_session, group.id, alice.id, "Blitz night", "", when, hub=hub)

        assert summary.going == summary.not_going == 0
        assert "group_event" in _types(db_session, bob.id)
        assert "group_event" not in _types(db_session, alice.id)

    @pytest.mark.asyncio
    async def test_rsvp_upserts(self, db_session, hub, alice, bob, group):
        await _add_member(db_session, hub, group, bob, alice)
        summary = await groups.create_event(
            db_session, group.id, alice.id, "Blitz night", "", datetime.datetime(2030, 5, 1), hub=hub
        )
        event_id = summary.event.id

        first = await groups.respond_to_event(db_session, event_id, bob.id, "going", hub=hub)
        assert (first.going, first.not_going, first.my_response) == (1, 0, RSVP_GOING)

        changed = await groups.respond_to_event(db_session, event_id, bob.id, "not-going", hub=hub)
        assert (changed.going, changed.not_going, changed.my_response) == (0, 1, RSVP_NOT_GOING)

        with pytest.raises(InvalidInputError):
            await groups.respond_to_event(db_session, event_id, bob.id, "maybe", hub=hub)

    @pytest.mark.asyncio
    async def test_outsider_cannot_rsvp(self, db_session, hub, alice, carol, group):
        summary = await groups.create_event(
            db_session, group.id, alice.id, "Blitz night", "", datetime.datetime(2030, 5, 1), hub=hub
        )
        with pytest.raises(ForbiddenError):
            await groups.respond_to_event(db_session, summary.event.id, carol.id, "going", hub=hub)
