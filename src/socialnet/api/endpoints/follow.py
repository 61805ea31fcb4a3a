"""Follow graph endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from socialnet.api.dependencies import CurrentUserDep, HubDep, SessionDep
from socialnet.models.follow import FOLLOW_PENDING
from socialnet.schemas.follow import (
    FollowEdgeResponse,
    FollowRequest,
    FollowRequestEntry,
    FollowResponse,
    FollowStatusRequest,
    FollowStatusResponse,
    HandleFollowRequest,
    UnfollowRequest,
)
from socialnet.schemas.user import UserSummary
from socialnet.services import follow_graph, users

router = APIRouter(tags=["follow"])


@router.post("/follow", response_model=FollowResponse)
async def follow(
    payload: FollowRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> FollowResponse:
    """Follow a user; private accounts receive a pending request."""
    if payload.follower_id is not None and payload.follower_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only follow on your own behalf",
        )
    edge = await follow_graph.request(db, current_user.id, payload.followed_id, hub=hub)
    message = "Request sent" if edge.status == FOLLOW_PENDING else "Followed successfully"
    return FollowResponse(message=message, status=edge.status, id=edge.id)


@router.post("/unfollow")
async def unfollow(payload: UnfollowRequest, current_user: CurrentUserDep, db: SessionDep) -> dict[str, str]:
    """Remove the caller's edge toward a user, whatever its status."""
    follow_graph.unfollow(db, current_user.id, payload.followed_id)
    return {"message": "Unfollowed successfully"}


@router.patch("/follow/handle-request", response_model=FollowEdgeResponse)
async def handle_request(
    payload: HandleFollowRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> FollowEdgeResponse:
    """Accept or reject a pending request addressed to the caller."""
    edge = await follow_graph.respond(db, payload.request_id, payload.status, current_user.id, hub=hub)
    return FollowEdgeResponse.model_validate(edge)


@router.post("/user/follow-status", response_model=FollowStatusResponse)
async def follow_status(
    payload: FollowStatusRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> FollowStatusResponse:
    """Status of the caller's edge toward ``user_id``."""
    edge_status, edge_id = follow_graph.status(db, current_user.id, payload.user_id)
    return FollowStatusResponse(status=edge_status, request_id=edge_id)


@router.get("/follow/requests", response_model=list[FollowRequestEntry])
async def pending_requests(current_user: CurrentUserDep, db: SessionDep) -> list[FollowRequestEntry]:
    """Pending follow requests addressed to the caller."""
    return [
        FollowRequestEntry(
            id=edge.id,
            follower_id=requester.id,
            username=requester.username,
            first_name=requester.first_name,
            last_name=requester.last_name,
            avatar=requester.avatar,
            created_at=edge.created_at,
        )
        for edge, requester in follow_graph.pending_requests(db, current_user.id)
    ]


@router.get("/follower/{user_id}", response_model=list[UserSummary])
async def followers(user_id: int, _current_user: CurrentUserDep, db: SessionDep) -> list[UserSummary]:
    """Accepted followers of a user."""
    users.require_user(db, user_id)
    return [UserSummary.model_validate(u) for u in follow_graph.followers_of(db, user_id)]


@router.get("/following/{user_id}", response_model=list[UserSummary])
async def following(user_id: int, _current_user: CurrentUserDep, db: SessionDep) -> list[UserSummary]:
    """Users a user follows with an accepted edge."""
    users.require_user(db, user_id)
    return [UserSummary.model_validate(u) for u in follow_graph.following_of(db, user_id)]
