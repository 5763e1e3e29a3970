"""
HTTP and WebSocket routes for profiles, friends and study schedules.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from functools import partial

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool

from portal.auth import TokenVerifier, resolve_user
from portal.dependencies import (
    get_current_user,
    get_friends_service,
    get_schedule_service,
    get_token_verifier,
)
from portal.errors import AuthenticationError, failure_notice
from portal.friends import FriendsService, UserProfile
from portal.routes import notice
from portal.schedules import ScheduleService, StudySession
from portal.schemas import (
    AcceptFriendResponse,
    ActionResponse,
    FriendRequestActionResponse,
    FriendRequestCreate,
    FriendRequestResponse,
    FriendResponse,
    ProfileRequest,
    ProfileResponse,
    ScheduleRequest,
    ScheduleResponse,
    StudySessionPayload,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _sessions_payload(sessions: list[StudySession]) -> list[StudySessionPayload]:
    return [StudySessionPayload.model_validate(asdict(s)) for s in sessions]


# Profiles


@router.get("/users/me", response_model=ProfileResponse)
def get_me(user: UserProfile = Depends(get_current_user)):
    return ProfileResponse.model_validate(asdict(user))


@router.put("/users/me", response_model=ProfileResponse)
def update_me(
    payload: ProfileRequest,
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
):
    profile = friends.save_profile(
        UserProfile(
            uid=user.uid,
            email=payload.email,
            display_name=payload.display_name,
            username=payload.username,
        )
    )
    return ProfileResponse.model_validate(asdict(profile))


@router.get("/users/search", response_model=list[ProfileResponse])
def search_users(
    q: str = Query(""),
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
):
    with failure_notice("search_failed"):
        results = friends.search_users(user.uid, q)
    return [ProfileResponse.model_validate(asdict(p)) for p in results]


# Friends and requests


@router.get("/friends", response_model=list[FriendResponse])
def list_friends(
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
):
    return [FriendResponse.model_validate(asdict(f)) for f in friends.get_friends(user.uid)]


@router.get("/friends/requests", response_model=list[FriendRequestResponse])
def list_incoming_requests(
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
):
    return [
        FriendRequestResponse.model_validate(asdict(r))
        for r in friends.get_incoming_requests(user.uid)
    ]


@router.get("/friends/requests/sent", response_model=list[FriendRequestResponse])
def list_sent_requests(
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
):
    return [
        FriendRequestResponse.model_validate(asdict(r))
        for r in friends.get_sent_requests(user.uid)
    ]


@router.post(
    "/friends/requests", response_model=FriendRequestActionResponse, status_code=201
)
def send_friend_request(
    payload: FriendRequestCreate,
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
):
    with failure_notice("send_failed"):
        request = friends.send_friend_request(user, payload.to_user_id)
    return FriendRequestActionResponse(
        request=FriendRequestResponse.model_validate(asdict(request)),
        notice=notice("request_sent", email=request.to_user_email),
    )


@router.post(
    "/friends/requests/{request_id}/accept", response_model=AcceptFriendResponse
)
def accept_friend_request(
    request_id: str,
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
):
    with failure_notice("accept_failed"):
        friend = friends.accept_friend_request(user, request_id)
    return AcceptFriendResponse(
        friend=FriendResponse.model_validate(asdict(friend)),
        notice=notice("request_accepted", name=friend.user_name),
    )


@router.post(
    "/friends/requests/{request_id}/decline",
    response_model=FriendRequestActionResponse,
)
def decline_friend_request(
    request_id: str,
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
):
    with failure_notice("decline_failed"):
        request = friends.decline_friend_request(user, request_id)
    return FriendRequestActionResponse(
        request=FriendRequestResponse.model_validate(asdict(request)),
        notice=notice("request_declined"),
    )


@router.delete("/friends/{friendship_id}", response_model=ActionResponse)
def remove_friend(
    friendship_id: str,
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
):
    friends.remove_friend(user.uid, friendship_id)
    return ActionResponse(notice=notice("friend_removed"))


# Study schedules


@router.get("/schedule", response_model=ScheduleResponse)
def get_schedule(
    user: UserProfile = Depends(get_current_user),
    schedules: ScheduleService = Depends(get_schedule_service),
):
    return ScheduleResponse(sessions=_sessions_payload(schedules.get_schedule(user.uid)))


@router.put("/schedule", response_model=ScheduleResponse)
def save_schedule(
    payload: ScheduleRequest,
    user: UserProfile = Depends(get_current_user),
    schedules: ScheduleService = Depends(get_schedule_service),
):
    sessions = [
        StudySession.from_dict(item.model_dump(by_alias=True)) for item in payload.sessions
    ]
    saved = schedules.save_schedule(user.uid, sessions)
    return ScheduleResponse(
        sessions=_sessions_payload(saved), notice=notice("schedule_saved")
    )


@router.get("/friends/{friend_uid}/schedule", response_model=ScheduleResponse)
def get_friend_schedule(
    friend_uid: str,
    user: UserProfile = Depends(get_current_user),
    schedules: ScheduleService = Depends(get_schedule_service),
):
    sessions = schedules.get_friend_schedule(user.uid, friend_uid)
    return ScheduleResponse(sessions=_sessions_payload(sessions))


@router.post("/friends/{friend_uid}/schedule/copy", response_model=ScheduleResponse)
def copy_friend_schedule(
    friend_uid: str,
    user: UserProfile = Depends(get_current_user),
    friends: FriendsService = Depends(get_friends_service),
    schedules: ScheduleService = Depends(get_schedule_service),
):
    with failure_notice("copy_failed"):
        copied = schedules.copy_friend_schedule(user.uid, friend_uid)
    friend = next((f for f in friends.get_friends(user.uid) if f.user_id == friend_uid), None)
    return ScheduleResponse(
        sessions=_sessions_payload(copied),
        notice=notice("schedule_copied", name=friend.user_name if friend else friend_uid),
    )


# Real-time feed


@router.websocket("/ws/friends")
async def friends_feed(
    websocket: WebSocket,
    token: str = Query(""),
    verifier: TokenVerifier = Depends(get_token_verifier),
    friends: FriendsService = Depends(get_friends_service),
):
    """
    Push the caller's friends, incoming and sent requests.

    Each message is ``{"type": "friends" | "requests" | "sent", "items": [...]}``
    carrying the full current list; one of each is sent on connect.
    """
    try:
        user = await run_in_threadpool(resolve_user, verifier, friends, token)
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()

    loop = asyncio.get_running_loop()
    outbox: asyncio.Queue = asyncio.Queue()

    def publish(kind: str, model, items) -> None:
        payload = {
            "type": kind,
            "items": [
                model.model_validate(asdict(item)).model_dump(mode="json", by_alias=True)
                for item in items
            ],
        }
        loop.call_soon_threadsafe(outbox.put_nowait, payload)

    feeds = [
        (friends.subscribe_friends, "friends", FriendResponse),
        (friends.subscribe_incoming_requests, "requests", FriendRequestResponse),
        (friends.subscribe_sent_requests, "sent", FriendRequestResponse),
    ]

    async def pump() -> None:
        while True:
            await websocket.send_json(await outbox.get())

    unsubscribes = []
    sender = asyncio.create_task(pump())
    try:
        for subscribe, kind, model in feeds:
            # Initial snapshots are read from the document store.
            unsubscribes.append(
                await run_in_threadpool(subscribe, user.uid, partial(publish, kind, model))
            )
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Friends feed closed for %s", user.uid)
    finally:
        for unsubscribe in unsubscribes:
            unsubscribe()
        await stop_task(sender)


async def stop_task(task: asyncio.Task) -> None:
    """Cancel ``task`` and collect its outcome, logging a failure it ended with."""
    task.cancel()
    (outcome,) = await asyncio.gather(task, return_exceptions=True)
    if isinstance(outcome, Exception):
        logger.warning("Background task failed: %r", outcome)
