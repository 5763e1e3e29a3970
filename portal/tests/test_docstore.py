import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from google.api_core import exceptions as google_exceptions

from portal.docstore import (
    Document,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    SqlDocumentStore,
    where,
)
from portal.errors import DocumentNotFound, ValidationError


class DocumentStoreContract:
    """Behaviour shared by every document store with in-process watches."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()

    def test_add_get_update_delete(self):
        created_at = datetime(2025, 1, 5, 12, 30, tzinfo=timezone.utc)
        doc_id = self.store.add("friendRequests", {"status": "pending", "createdAt": created_at})

        self.assertEqual(
            self.store.get("friendRequests", doc_id),
            {"status": "pending", "createdAt": created_at},
        )
        self.store.update("friendRequests", doc_id, {"status": "accepted"})
        self.assertEqual(self.store.get("friendRequests", doc_id)["status"], "accepted")
        self.assertEqual(self.store.get("friendRequests", doc_id)["createdAt"], created_at)

        self.store.delete("friendRequests", doc_id)
        self.assertIsNone(self.store.get("friendRequests", doc_id))
        self.store.delete("friendRequests", doc_id)

    def test_set_replaces_document(self):
        self.store.set("users", "u1", {"email": "a@example.com", "username": "a"})
        self.store.set("users", "u1", {"email": "b@example.com"})
        self.assertEqual(self.store.get("users", "u1"), {"email": "b@example.com"})

    def test_update_missing_document_raises(self):
        with self.assertRaises(DocumentNotFound):
            self.store.update("friendRequests", "missing", {"status": "accepted"})

    def test_query_filters(self):
        self.store.set("friendRequests", "r1", {"toUserId": "u1", "status": "pending"})
        self.store.set("friendRequests", "r2", {"toUserId": "u1", "status": "declined"})
        self.store.set("friendRequests", "r3", {"toUserId": "u2", "status": "pending"})
        self.store.set("friendships", "f1", {"participants": ["u1", "u2"]})
        self.store.set("friendships", "f2", {"participants": ["u2", "u3"]})

        pending = self.store.query(
            "friendRequests", where("toUserId", "==", "u1"), where("status", "==", "pending")
        )
        self.assertEqual([d.id for d in pending], ["r1"])
        self.assertEqual(len(self.store.query("friendRequests")), 3)

        friendships = self.store.query("friendships", where("participants", "array-contains", "u1"))
        self.assertEqual([d.id for d in friendships], ["f1"])
        self.assertEqual(self.store.query("empty"), [])

    def test_watch_delivers_initial_snapshot_and_changes(self):
        snapshots = []
        unsubscribe = self.store.watch(
            "friendRequests",
            [where("toUserId", "==", "u1"), where("status", "==", "pending")],
            lambda docs: snapshots.append(sorted(d.id for d in docs)),
        )
        self.assertEqual(snapshots, [[]])

        self.store.set("friendRequests", "r1", {"toUserId": "u1", "status": "pending"})
        self.assertEqual(snapshots[-1], ["r1"])

        # writes that leave the result unchanged are not delivered
        self.store.set("friendRequests", "r2", {"toUserId": "u2", "status": "pending"})
        self.store.set("users", "u1", {"email": "a@example.com"})
        self.assertEqual(len(snapshots), 2)

        self.store.update("friendRequests", "r1", {"status": "accepted"})
        self.assertEqual(snapshots[-1], [])
        self.assertEqual(len(snapshots), 3)

        unsubscribe()
        self.store.set("friendRequests", "r3", {"toUserId": "u1", "status": "pending"})
        self.assertEqual(len(snapshots), 3)

    def test_failing_listener_does_not_break_writes(self):
        def explode(docs):
            if docs:
                raise RuntimeError("listener bug")

        self.store.watch("friendships", [], explode)
        self.store.set("friendships", "f1", {"participants": ["u1", "u2"]})
        self.assertIsNotNone(self.store.get("friendships", "f1"))

    def test_unsupported_operator(self):
        with self.assertRaises(ValidationError):
            where("status", "!=", "pending")


class InMemoryDocumentStoreTests(DocumentStoreContract, unittest.TestCase):
    def make_store(self):
        return InMemoryDocumentStore()

    def test_stored_data_is_copied(self):
        data = {"participants": ["u1"]}
        self.store.set("friendships", "f1", data)
        data["participants"].append("u2")
        fetched = self.store.get("friendships", "f1")
        fetched["participants"].append("u3")
        self.assertEqual(self.store.get("friendships", "f1"), {"participants": ["u1"]})


class SqlDocumentStoreTests(DocumentStoreContract, unittest.TestCase):
    def make_store(self):
        return SqlDocumentStore("sqlite+pysqlite:///:memory:")

    def test_requires_database_url(self):
        with self.assertRaises(ValueError):
            SqlDocumentStore("")


class FirestoreDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.collection = self.client.collection.return_value
        self.store = FirestoreDocumentStore(self.client)

    def _snapshot(self, doc_id, data):
        snapshot = MagicMock()
        snapshot.id = doc_id
        snapshot.to_dict.return_value = data
        return snapshot

    def test_add_returns_new_id(self):
        ref = MagicMock()
        ref.id = "r1"
        self.collection.add.return_value = (None, ref)
        self.assertEqual(self.store.add("friendRequests", {"status": "pending"}), "r1")
        self.client.collection.assert_called_with("friendRequests")

    def test_get_missing_document(self):
        self.collection.document.return_value.get.return_value.exists = False
        self.assertIsNone(self.store.get("users", "nobody"))

    def test_query_chains_field_filters(self):
        chained = self.collection.where.return_value.where.return_value
        chained.stream.return_value = [self._snapshot("r1", {"status": "pending"})]

        docs = self.store.query(
            "friendRequests", where("toUserId", "==", "u1"), where("status", "==", "pending")
        )

        self.assertEqual(docs, [Document("r1", {"status": "pending"})])
        first_filter = self.collection.where.call_args.kwargs["filter"]
        self.assertEqual(first_filter.field_path, "toUserId")
        self.assertEqual(first_filter.op_string, "==")
        self.assertEqual(first_filter.value, "u1")

    def test_update_missing_document(self):
        self.collection.document.return_value.update.side_effect = google_exceptions.NotFound("gone")
        with self.assertRaises(DocumentNotFound):
            self.store.update("friendRequests", "r1", {"status": "accepted"})

    def test_watch_forwards_snapshots_and_unsubscribes(self):
        received = []
        handle = self.collection.where.return_value.on_snapshot.return_value

        unsubscribe = self.store.watch(
            "friendships", [where("participants", "array-contains", "u1")], received.append
        )
        on_snapshot = self.collection.where.return_value.on_snapshot.call_args.args[0]
        on_snapshot([self._snapshot("f1", {"participants": ["u1", "u2"]})], [], None)

        self.assertEqual(received, [[Document("f1", {"participants": ["u1", "u2"]})]])
        self.assertIs(unsubscribe, handle.unsubscribe)


if __name__ == "__main__":
    unittest.main()
