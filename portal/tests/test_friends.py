import unittest

from portal.constants import FRIEND_REQUESTS_COLLECTION, FRIENDSHIPS_COLLECTION
from portal.docstore import InMemoryDocumentStore
from portal.errors import (
    ConflictError,
    EmptyScheduleError,
    InvalidRequestStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from portal.friends import FriendsService, UserProfile
from portal.schedules import ScheduleService, StudySession

ALICE = UserProfile(uid="alice", email="alice@example.com", display_name="Alice", username="alice_k")
BOB = UserProfile(uid="bob", email="bob@example.com", display_name="Bob", username="bobby")
CAROL = UserProfile(uid="carol", email="carol@uni.edu", username="caro")


class FriendsServiceTests(unittest.TestCase):
    def setUp(self):
        self.docs = InMemoryDocumentStore()
        self.friends = FriendsService(self.docs)
        for profile in (ALICE, BOB, CAROL):
            self.friends.save_profile(profile)

    def _friendship_count(self):
        return len(self.docs.query(FRIENDSHIPS_COLLECTION))

    def _befriend(self, sender, recipient):
        request = self.friends.send_friend_request(sender, recipient.uid)
        return self.friends.accept_friend_request(recipient, request.id)

    def test_profiles(self):
        self.assertEqual(self.friends.get_profile("alice"), ALICE)
        self.assertIsNone(self.friends.get_profile("dave"))
        self.assertEqual(CAROL.name, "carol@uni.edu")

    def test_search_users(self):
        self.assertEqual(self.friends.search_users("alice", "   "), [])
        self.assertEqual(self.friends.search_users("alice", "BOBBY"), [BOB])
        self.assertEqual(self.friends.search_users("alice", "uni.edu"), [CAROL])
        found = self.friends.search_users("alice", "example.com")
        self.assertEqual([p.uid for p in found], ["bob"])

    def test_send_creates_pending_request(self):
        request = self.friends.send_friend_request(ALICE, "bob")

        self.assertEqual(request.status, "pending")
        self.assertEqual(request.from_user_name, "Alice")
        self.assertEqual(request.to_user_email, "bob@example.com")
        self.assertEqual([r.id for r in self.friends.get_incoming_requests("bob")], [request.id])
        self.assertEqual([r.id for r in self.friends.get_sent_requests("alice")], [request.id])
        self.assertTrue(self.friends.has_pending_request("alice", "bob"))
        self.assertFalse(self.friends.has_pending_request("bob", "alice"))

    def test_send_guards(self):
        with self.assertRaises(ValidationError) as ctx:
            self.friends.send_friend_request(ALICE, "alice")
        self.assertEqual(ctx.exception.key, "self_request")

        with self.assertRaises(NotFoundError) as ctx:
            self.friends.send_friend_request(ALICE, "dave")
        self.assertEqual(ctx.exception.key, "user_not_found")

        self.friends.send_friend_request(ALICE, "bob")
        for sender, recipient in ((ALICE, "bob"), (BOB, "alice")):
            with self.assertRaises(ConflictError) as ctx:
                self.friends.send_friend_request(sender, recipient)
            self.assertEqual(ctx.exception.key, "request_pending")

    def test_cannot_request_existing_friend(self):
        self._befriend(ALICE, BOB)
        with self.assertRaises(ConflictError) as ctx:
            self.friends.send_friend_request(BOB, "alice")
        self.assertEqual(ctx.exception.key, "already_friends")

    def test_accept_creates_exactly_one_friendship(self):
        request = self.friends.send_friend_request(ALICE, "bob")
        friend = self.friends.accept_friend_request(BOB, request.id)

        self.assertEqual(friend.user_id, "alice")
        self.assertEqual(friend.user_name, "Alice")
        self.assertEqual(self._friendship_count(), 1)
        self.assertEqual(self.docs.get(FRIEND_REQUESTS_COLLECTION, request.id)["status"], "accepted")
        self.assertEqual(self.friends.get_incoming_requests("bob"), [])
        self.assertEqual(self.friends.get_sent_requests("alice"), [])

        self.assertEqual([f.user_id for f in self.friends.get_friends("alice")], ["bob"])
        self.assertEqual([f.user_email for f in self.friends.get_friends("alice")], ["bob@example.com"])
        self.assertEqual([f.user_id for f in self.friends.get_friends("bob")], ["alice"])
        self.assertTrue(self.friends.is_already_friend("alice", "bob"))

        with self.assertRaises(InvalidRequestStateError):
            self.friends.accept_friend_request(BOB, request.id)
        self.assertEqual(self._friendship_count(), 1)

    def test_decline_creates_no_friendship(self):
        request = self.friends.send_friend_request(ALICE, "bob")
        declined = self.friends.decline_friend_request(BOB, request.id)

        self.assertEqual(declined.status, "declined")
        self.assertEqual(self._friendship_count(), 0)
        self.assertEqual(self.friends.get_incoming_requests("bob"), [])
        with self.assertRaises(InvalidRequestStateError):
            self.friends.accept_friend_request(BOB, request.id)
        # a declined request does not block a new one
        self.friends.send_friend_request(ALICE, "bob")

    def test_only_recipient_can_answer(self):
        request = self.friends.send_friend_request(ALICE, "bob")
        for user in (ALICE, CAROL):
            with self.assertRaises(PermissionDeniedError):
                self.friends.accept_friend_request(user, request.id)
            with self.assertRaises(PermissionDeniedError):
                self.friends.decline_friend_request(user, request.id)
        self.assertEqual(self.friends.get_request(request.id).status, "pending")

    def test_unknown_request(self):
        with self.assertRaises(NotFoundError) as ctx:
            self.friends.accept_friend_request(BOB, "missing")
        self.assertEqual(ctx.exception.key, "request_not_found")

    def test_remove_friend(self):
        friendship = self._befriend(ALICE, BOB)

        with self.assertRaises(PermissionDeniedError):
            self.friends.remove_friend("carol", friendship.id)
        self.friends.remove_friend("bob", friendship.id)

        self.assertEqual(self.friends.get_friends("alice"), [])
        self.assertEqual(self.friends.get_friends("bob"), [])
        with self.assertRaises(NotFoundError):
            self.friends.remove_friend("alice", friendship.id)
        self.friends.send_friend_request(ALICE, "bob")

    def test_subscriptions_follow_transitions(self):
        incoming, sent, friends = [], [], []
        unsubscribes = [
            self.friends.subscribe_incoming_requests("bob", incoming.append),
            self.friends.subscribe_sent_requests("alice", sent.append),
            self.friends.subscribe_friends("alice", friends.append),
        ]
        self.assertEqual((incoming, sent, friends), ([[]], [[]], [[]]))

        request = self.friends.send_friend_request(ALICE, "bob")
        self.assertEqual([r.id for r in incoming[-1]], [request.id])
        self.assertEqual([r.id for r in sent[-1]], [request.id])

        self.friends.accept_friend_request(BOB, request.id)
        self.assertEqual(incoming[-1], [])
        self.assertEqual(sent[-1], [])
        self.assertEqual([f.user_id for f in friends[-1]], ["bob"])

        for unsubscribe in unsubscribes:
            unsubscribe()
        self.assertEqual(len(self.docs.watches), 0)


class ScheduleServiceTests(unittest.TestCase):
    def setUp(self):
        self.docs = InMemoryDocumentStore()
        self.friends = FriendsService(self.docs)
        self.schedules = ScheduleService(self.docs, self.friends)
        for profile in (ALICE, BOB, CAROL):
            self.friends.save_profile(profile)
        request = self.friends.send_friend_request(ALICE, "bob")
        self.friends.accept_friend_request(BOB, request.id)

    def _sessions(self):
        return [
            StudySession(id="s1", subject="math", day="sunday", start_time="10:00", end_time="12:00"),
            StudySession(
                id="s2", subject="physics", day="monday", start_time="14:00", end_time="15:30", notes="ch. 3"
            ),
        ]

    def test_save_and_get(self):
        self.assertEqual(self.schedules.get_schedule("alice"), [])
        self.schedules.save_schedule("alice", self._sessions())
        self.assertEqual(self.schedules.get_schedule("alice"), self._sessions())

    def test_session_from_camel_case_dict(self):
        session = StudySession.from_dict(
            {"subject": "math", "day": "sunday", "startTime": "09:00", "endTime": "10:00"}
        )
        self.assertEqual(session.start_time, "09:00")
        self.assertTrue(session.id)
        self.assertEqual(session.as_dict()["endTime"], "10:00")

    def test_friend_schedule_requires_friendship(self):
        self.schedules.save_schedule("bob", self._sessions())
        self.assertEqual(self.schedules.get_friend_schedule("alice", "bob"), self._sessions())
        with self.assertRaises(PermissionDeniedError) as ctx:
            self.schedules.get_friend_schedule("carol", "bob")
        self.assertEqual(ctx.exception.key, "not_friends")

    def test_copy_replaces_schedule_with_fresh_ids(self):
        self.schedules.save_schedule("bob", self._sessions())
        self.schedules.save_schedule(
            "alice",
            [StudySession(id="old", subject="arabic", day="friday", start_time="8:00", end_time="9:00")],
        )

        copied = self.schedules.copy_friend_schedule("alice", "bob")

        self.assertEqual([s.subject for s in copied], ["math", "physics"])
        self.assertEqual(copied[1].notes, "ch. 3")
        self.assertFalse({s.id for s in copied} & {"s1", "s2"})
        self.assertEqual(self.schedules.get_schedule("alice"), copied)
        self.assertEqual(self.schedules.get_schedule("bob"), self._sessions())

    def test_copy_empty_schedule(self):
        with self.assertRaises(EmptyScheduleError):
            self.schedules.copy_friend_schedule("alice", "bob")


if __name__ == "__main__":
    unittest.main()
