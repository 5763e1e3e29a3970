"""
Friends and friend requests.

A request starts ``pending`` and is either ``accepted`` by its recipient,
which creates exactly one friendship document shared by both users, or
``declined``, which creates nothing. Either participant may later remove the
friendship. All state lives in the document store, so listeners subscribed
through ``subscribe_*`` see every transition.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from portal.constants import (
    FRIEND_REQUESTS_COLLECTION,
    FRIENDSHIPS_COLLECTION,
    STATUS_ACCEPTED,
    STATUS_DECLINED,
    STATUS_PENDING,
    USERS_COLLECTION,
)
from portal.docstore import Document, DocumentStore, Unsubscribe, where
from portal.errors import (
    ConflictError,
    InvalidRequestStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserProfile:
    uid: str
    email: str
    display_name: str = ""
    username: str = ""

    @property
    def name(self) -> str:
        return self.display_name or self.email

    def as_document(self) -> dict:
        return {
            "email": self.email,
            "displayName": self.display_name,
            "username": self.username,
        }

    @classmethod
    def from_document(cls, uid: str, data: dict) -> "UserProfile":
        return cls(
            uid=uid,
            email=data.get("email") or "",
            display_name=data.get("displayName") or "",
            username=data.get("username") or "",
        )


@dataclass
class FriendRequest:
    id: str
    from_user_id: str
    from_user_email: str
    from_user_name: str
    to_user_id: str
    to_user_email: str
    status: str
    created_at: datetime

    @classmethod
    def from_document(cls, doc: Document) -> "FriendRequest":
        data = doc.data
        return cls(
            id=doc.id,
            from_user_id=data["fromUserId"],
            from_user_email=data.get("fromUserEmail") or "",
            from_user_name=data.get("fromUserName") or "",
            to_user_id=data["toUserId"],
            to_user_email=data.get("toUserEmail") or "",
            status=data.get("status", STATUS_PENDING),
            created_at=data.get("createdAt") or _now(),
        )


@dataclass
class Friend:
    """One user's view of a friendship: the other participant."""

    id: str
    user_id: str
    user_email: str
    user_name: str
    friends_since: datetime


def friend_view(doc: Document, uid: str) -> Friend:
    data = doc.data
    other = next((p for p in data.get("participants", []) if p != uid), uid)
    return Friend(
        id=doc.id,
        user_id=other,
        user_email=(data.get("friendEmails") or {}).get(other, ""),
        user_name=(data.get("friendNames") or {}).get(other, ""),
        friends_since=data.get("createdAt") or _now(),
    )


class FriendsService:
    # Serializes the pending check and the transition within this process.
    _transition_lock = threading.RLock()

    def __init__(self, docs: DocumentStore):
        self.docs = docs

    # Profiles
    def get_profile(self, uid: str) -> Optional[UserProfile]:
        data = self.docs.get(USERS_COLLECTION, uid)
        return UserProfile.from_document(uid, data) if data is not None else None

    def save_profile(self, profile: UserProfile) -> UserProfile:
        self.docs.set(USERS_COLLECTION, profile.uid, profile.as_document())
        return profile

    def search_users(self, current_uid: str, term: str) -> list[UserProfile]:
        """Case-insensitive substring search on email or username, excluding the caller."""
        needle = term.strip().lower()
        if not needle:
            return []
        results = []
        for doc in self.docs.query(USERS_COLLECTION):
            if doc.id == current_uid:
                continue
            profile = UserProfile.from_document(doc.id, doc.data)
            if needle in profile.email.lower() or needle in profile.username.lower():
                results.append(profile)
        return results

    # Listings
    def _friend_filters(self, uid: str):
        return [where("participants", "array-contains", uid)]

    def _incoming_filters(self, uid: str):
        return [where("toUserId", "==", uid), where("status", "==", STATUS_PENDING)]

    def _sent_filters(self, uid: str):
        return [where("fromUserId", "==", uid), where("status", "==", STATUS_PENDING)]

    def get_friends(self, uid: str) -> list[Friend]:
        docs = self.docs.query(FRIENDSHIPS_COLLECTION, *self._friend_filters(uid))
        return [friend_view(doc, uid) for doc in docs]

    def get_incoming_requests(self, uid: str) -> list[FriendRequest]:
        docs = self.docs.query(FRIEND_REQUESTS_COLLECTION, *self._incoming_filters(uid))
        return [FriendRequest.from_document(doc) for doc in docs]

    def get_sent_requests(self, uid: str) -> list[FriendRequest]:
        docs = self.docs.query(FRIEND_REQUESTS_COLLECTION, *self._sent_filters(uid))
        return [FriendRequest.from_document(doc) for doc in docs]

    def get_request(self, request_id: str) -> FriendRequest:
        data = self.docs.get(FRIEND_REQUESTS_COLLECTION, request_id)
        if data is None:
            raise NotFoundError(
                f"Friend request {request_id} not found", key="request_not_found"
            )
        return FriendRequest.from_document(Document(id=request_id, data=data))

    def is_already_friend(self, uid: str, other_uid: str) -> bool:
        return any(friend.user_id == other_uid for friend in self.get_friends(uid))

    def has_pending_request(self, uid: str, other_uid: str) -> bool:
        """True when ``uid`` already sent ``other_uid`` a request that is still pending."""
        return any(r.to_user_id == other_uid for r in self.get_sent_requests(uid))

    # Transitions
    def send_friend_request(self, from_user: UserProfile, to_uid: str) -> FriendRequest:
        if to_uid == from_user.uid:
            raise ValidationError("Cannot send a friend request to yourself", key="self_request")
        to_user = self.get_profile(to_uid)
        if to_user is None:
            raise NotFoundError(f"User {to_uid} not found", key="user_not_found")
        with self._transition_lock:
            if self.is_already_friend(from_user.uid, to_uid):
                raise ConflictError("Already friends", key="already_friends")
            if self.has_pending_request(from_user.uid, to_uid) or self.has_pending_request(
                to_uid, from_user.uid
            ):
                raise ConflictError("A request is already pending", key="request_pending")
            data = {
                "fromUserId": from_user.uid,
                "fromUserEmail": from_user.email,
                "fromUserName": from_user.name,
                "toUserId": to_user.uid,
                "toUserEmail": to_user.email,
                "status": STATUS_PENDING,
                "createdAt": _now(),
            }
            request_id = self.docs.add(FRIEND_REQUESTS_COLLECTION, data)
        logger.info("Friend request %s: %s -> %s", request_id, from_user.uid, to_uid)
        return FriendRequest.from_document(Document(id=request_id, data=data))

    def _pending_for_recipient(self, user: UserProfile, request_id: str) -> FriendRequest:
        request = self.get_request(request_id)
        if request.to_user_id != user.uid:
            raise PermissionDeniedError(
                f"User {user.uid} is not the recipient of request {request_id}"
            )
        if request.status != STATUS_PENDING:
            raise InvalidRequestStateError(
                f"Friend request {request_id} is already {request.status}"
            )
        return request

    def accept_friend_request(self, user: UserProfile, request_id: str) -> Friend:
        with self._transition_lock:
            request = self._pending_for_recipient(user, request_id)
            self.docs.update(
                FRIEND_REQUESTS_COLLECTION, request_id, {"status": STATUS_ACCEPTED}
            )
            data = {
                "participants": [user.uid, request.from_user_id],
                "friendEmails": {
                    user.uid: user.email,
                    request.from_user_id: request.from_user_email,
                },
                "friendNames": {
                    user.uid: user.name,
                    request.from_user_id: request.from_user_name,
                },
                "createdAt": _now(),
            }
            friendship_id = self.docs.add(FRIENDSHIPS_COLLECTION, data)
        logger.info(
            "Friend request %s accepted; friendship %s", request_id, friendship_id
        )
        return friend_view(Document(id=friendship_id, data=data), user.uid)

    def decline_friend_request(self, user: UserProfile, request_id: str) -> FriendRequest:
        with self._transition_lock:
            request = self._pending_for_recipient(user, request_id)
            self.docs.update(
                FRIEND_REQUESTS_COLLECTION, request_id, {"status": STATUS_DECLINED}
            )
        request.status = STATUS_DECLINED
        logger.info("Friend request %s declined", request_id)
        return request

    def remove_friend(self, uid: str, friendship_id: str) -> None:
        data = self.docs.get(FRIENDSHIPS_COLLECTION, friendship_id)
        if data is None:
            raise NotFoundError(f"Friendship {friendship_id} not found")
        if uid not in data.get("participants", []):
            raise PermissionDeniedError(
                f"User {uid} is not part of friendship {friendship_id}"
            )
        self.docs.delete(FRIENDSHIPS_COLLECTION, friendship_id)
        logger.info("Friendship %s removed by %s", friendship_id, uid)

    # Subscriptions
    def subscribe_friends(
        self, uid: str, callback: Callable[[list[Friend]], None]
    ) -> Unsubscribe:
        return self.docs.watch(
            FRIENDSHIPS_COLLECTION,
            self._friend_filters(uid),
            lambda docs: callback([friend_view(doc, uid) for doc in docs]),
        )

    def subscribe_incoming_requests(
        self, uid: str, callback: Callable[[list[FriendRequest]], None]
    ) -> Unsubscribe:
        return self.docs.watch(
            FRIEND_REQUESTS_COLLECTION,
            self._incoming_filters(uid),
            lambda docs: callback([FriendRequest.from_document(doc) for doc in docs]),
        )

    def subscribe_sent_requests(
        self, uid: str, callback: Callable[[list[FriendRequest]], None]
    ) -> Unsubscribe:
        return self.docs.watch(
            FRIEND_REQUESTS_COLLECTION,
            self._sent_filters(uid),
            lambda docs: callback([FriendRequest.from_document(doc) for doc in docs]),
        )
