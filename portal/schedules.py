"""
Study schedules, stored one document per user, and copying a friend's schedule.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Optional

from portal.constants import STUDY_SCHEDULES_COLLECTION
from portal.docstore import DocumentStore
from portal.errors import EmptyScheduleError, PermissionDeniedError
from portal.friends import FriendsService
from portal.json_utils import convert_keys

logger = logging.getLogger(__name__)


@dataclass
class StudySession:
    id: str
    subject: str
    day: str
    start_time: str
    end_time: str
    notes: Optional[str] = None

    def as_dict(self) -> dict:
        return convert_keys(asdict(self), "snake_to_camel")

    @classmethod
    def from_dict(cls, data: dict) -> "StudySession":
        data = convert_keys(data, "camel_to_snake")
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            subject=data.get("subject", ""),
            day=data.get("day", ""),
            start_time=data.get("start_time", ""),
            end_time=data.get("end_time", ""),
            notes=data.get("notes"),
        )


class ScheduleService:
    def __init__(self, docs: DocumentStore, friends: FriendsService):
        self.docs = docs
        self.friends = friends

    def get_schedule(self, uid: str) -> list[StudySession]:
        data = self.docs.get(STUDY_SCHEDULES_COLLECTION, uid) or {}
        return [StudySession.from_dict(item) for item in data.get("sessions") or []]

    def save_schedule(self, uid: str, sessions: list[StudySession]) -> list[StudySession]:
        self.docs.set(
            STUDY_SCHEDULES_COLLECTION,
            uid,
            {"sessions": [session.as_dict() for session in sessions]},
        )
        return sessions

    def get_friend_schedule(self, uid: str, friend_uid: str) -> list[StudySession]:
        if not self.friends.is_already_friend(uid, friend_uid):
            raise PermissionDeniedError(
                f"{friend_uid} is not a friend of {uid}", key="not_friends"
            )
        return self.get_schedule(friend_uid)

    def copy_friend_schedule(self, uid: str, friend_uid: str) -> list[StudySession]:
        """Replace the caller's schedule with a copy of the friend's sessions."""
        sessions = self.get_friend_schedule(uid, friend_uid)
        if not sessions:
            raise EmptyScheduleError(f"{friend_uid} has no study schedule")
        copied = [
            StudySession(
                id=uuid.uuid4().hex,
                subject=s.subject,
                day=s.day,
                start_time=s.start_time,
                end_time=s.end_time,
                notes=s.notes,
            )
            for s in sessions
        ]
        logger.info("Copied %d sessions from %s to %s", len(copied), friend_uid, uid)
        return self.save_schedule(uid, copied)
