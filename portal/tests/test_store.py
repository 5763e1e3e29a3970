import json
import os
import tempfile
import unittest
from unittest.mock import patch

from portal.errors import NotFoundError, StoreWriteError
from portal.store import InMemoryPortalStore, JsonFilePortalStore, QuizQuestion


def _questions():
    return [
        QuizQuestion(question="2 + 2?", options=["3", "4"], correct_answer=1),
        QuizQuestion(question="Capital of Egypt?", options=["Cairo", "Giza"], correct_answer=0),
    ]


class JsonFilePortalStoreTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = os.path.join(self._tmp.name, "data")
        self.store = JsonFilePortalStore(self.data_dir, "admin", "secret")

    def tearDown(self):
        self._tmp.cleanup()

    def _reopen(self) -> JsonFilePortalStore:
        return JsonFilePortalStore(self.data_dir, "admin", "secret")

    def test_creates_data_directory(self):
        self.assertTrue(os.path.isdir(self.data_dir))

    def test_file_roundtrip_survives_restart(self):
        created = self.store.create_file(
            title="Lecture 1",
            subject="math",
            semester="first",
            file_name="lecture-1.pdf",
            file_path="https://example.test/media/student-portal/1-lecture-1.pdf",
        )
        self.assertEqual(created.id, 1)

        reopened = self._reopen()
        fetched = reopened.get_file(created.id)
        self.assertEqual(fetched, created)
        self.assertEqual(reopened.get_files_by_subject("math"), [created])
        self.assertEqual(reopened.get_files_by_semester("second"), [])

    def test_counters_continue_after_restart(self):
        self.store.create_exam_week(title="Midterms", start_date="2025-03-01", end_date="2025-03-07")
        self.store.create_exam_week(title="Finals", start_date="2025-06-01", end_date="2025-06-10")

        with open(os.path.join(self.data_dir, "counters.json"), encoding="utf-8") as f:
            self.assertEqual(json.load(f)["examWeekId"], 3)

        week = self._reopen().create_exam_week(
            title="Makeups", start_date="2025-07-01", end_date="2025-07-03"
        )
        self.assertEqual(week.id, 3)

    def test_unreadable_counters_start_fresh(self):
        with open(os.path.join(self.data_dir, "counters.json"), "w", encoding="utf-8") as f:
            f.write("{not json")
        store = self._reopen()
        self.assertEqual(store.counters["fileId"], 1)

    def test_lost_counters_never_reuse_stored_ids(self):
        for n in range(3):
            self.store.create_file(
                title=f"Lecture {n}",
                subject="math",
                semester="first",
                file_name="l.pdf",
                file_path=f"https://example.test/media/student-portal/{n}.pdf",
            )
        self.store.create_quiz(title="Q", subject="math", creator="Sara", questions=_questions())
        os.remove(os.path.join(self.data_dir, "counters.json"))

        with self.assertLogs("portal.store", "WARNING"):
            store = self._reopen()
        created = store.create_file(
            title="Lecture 4",
            subject="math",
            semester="first",
            file_name="l.pdf",
            file_path="https://example.test/media/student-portal/4.pdf",
        )
        self.assertEqual(created.id, 4)
        self.assertEqual([f.title for f in store.get_files() if f.id == 1], ["Lecture 0"])
        self.assertEqual(store.counters["quizId"], 2)

    def test_corrupt_counters_resume_after_stored_ids(self):
        self.store.create_exam_week(title="Midterms", start_date="2025-03-01", end_date="2025-03-07")
        self.store.create_exam_week(title="Finals", start_date="2025-06-01", end_date="2025-06-10")
        with open(os.path.join(self.data_dir, "counters.json"), "w", encoding="utf-8") as f:
            f.write("{not json")

        week = self._reopen().create_exam_week(
            title="Makeups", start_date="2025-07-01", end_date="2025-07-03"
        )
        self.assertEqual(week.id, 3)

    def test_corrupt_data_file_reads_as_empty(self):
        with open(os.path.join(self.data_dir, "files.json"), "w", encoding="utf-8") as f:
            f.write("[{broken")
        self.assertEqual(self.store.get_files(), [])

    def test_records_are_stored_camel_case(self):
        week = self.store.create_exam_week(title="Midterms", start_date="2025-03-01", end_date="2025-03-07")
        self.store.create_exam(week_id=week.id, subject="physics", date="2025-03-02", start_time="09:00")
        with open(os.path.join(self.data_dir, "exams.json"), encoding="utf-8") as f:
            rows = json.load(f)
        self.assertEqual(rows[0]["weekId"], week.id)
        self.assertEqual(rows[0]["startTime"], "09:00")

    def test_reads_records_written_by_javascript(self):
        legacy = [
            {
                "id": 7,
                "title": "Old notes",
                "subject": "biology",
                "semester": "second",
                "fileName": "old.pdf",
                "filePath": "https://res.example.com/raw/upload/student-portal/old.pdf",
                "uploadedAt": "2024-11-02T10:15:00.000Z",
                "legacyField": True,
            }
        ]
        with open(os.path.join(self.data_dir, "files.json"), "w", encoding="utf-8") as f:
            json.dump(legacy, f)
        record = self.store.get_file(7)
        self.assertIsNotNone(record)
        self.assertEqual(record.uploaded_at.year, 2024)
        self.assertEqual(record.uploaded_at.utcoffset().total_seconds(), 0)

    def test_delete_week_cascades_to_its_exams(self):
        week = self.store.create_exam_week(title="Midterms", start_date="2025-03-01", end_date="2025-03-07")
        other = self.store.create_exam_week(title="Finals", start_date="2025-06-01", end_date="2025-06-10")
        self.store.create_exam(week_id=week.id, subject="math", date="2025-03-02")
        self.store.create_exam(week_id=week.id, subject="physics", date="2025-03-03")
        kept = self.store.create_exam(week_id=other.id, subject="arabic", date="2025-06-02")

        self.assertTrue(self.store.delete_exam_week(week.id))
        self.assertIsNone(self.store.get_exam_week(week.id))
        self.assertEqual(self.store.get_exams(), [kept])
        self.assertFalse(self.store.delete_exam_week(week.id))

    def test_create_exam_requires_existing_week(self):
        with self.assertRaises(NotFoundError):
            self.store.create_exam(week_id=99, subject="math", date="2025-03-02")

    def test_delete_quiz_cascades_to_attempts(self):
        quiz = self.store.create_quiz(title="Q1", subject="math", creator="sara", questions=_questions())
        other = self.store.create_quiz(title="Q2", subject="math", creator="sara", questions=_questions())
        self.store.create_quiz_attempt(quiz_id=quiz.id, student_name="omar", score=1, total_questions=2, answers=[1, 1])
        kept = self.store.create_quiz_attempt(
            quiz_id=other.id, student_name="omar", score=2, total_questions=2, answers=[1, 0]
        )

        self.assertTrue(self.store.delete_quiz(quiz.id))
        self.assertEqual(self.store.get_quiz_attempts(quiz.id), [])
        self.assertEqual(self.store.get_all_quiz_attempts(), [kept])
        self.assertFalse(self.store.delete_quiz(quiz.id))

    def test_quiz_codes_are_unique_and_looked_up_case_insensitively(self):
        first = self.store.create_quiz(title="Q1", subject="math", creator="sara", questions=_questions())
        second = self.store.create_quiz(title="Q2", subject="math", creator="sara", questions=_questions())
        self.assertEqual(len(first.code), 8)
        self.assertEqual(first.code, first.code.upper())
        self.assertNotEqual(first.code, second.code)
        self.assertEqual(self.store.get_quiz_by_code(first.code.lower()), first)
        self.assertEqual(self._reopen().get_quiz(first.id).questions, _questions())

    def test_delete_missing_records_returns_false(self):
        self.assertFalse(self.store.delete_file(1))
        self.assertFalse(self.store.delete_exam(1))

    def test_write_failure_raises_and_cleans_up(self):
        with patch("portal.store.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(StoreWriteError):
                self.store.create_quiz(title="Q1", subject="math", creator="sara", questions=_questions())
        leftovers = [name for name in os.listdir(self.data_dir) if name.endswith(".tmp")]
        self.assertEqual(leftovers, [])

    def test_validate_admin(self):
        self.assertTrue(self.store.validate_admin("admin", "secret"))
        self.assertFalse(self.store.validate_admin("admin", "wrong"))
        self.assertFalse(self.store.validate_admin("root", "secret"))


class InMemoryPortalStoreTests(unittest.TestCase):
    def test_reset_clears_records_and_counters(self):
        store = InMemoryPortalStore()
        store.create_file(title="t", subject="math", semester="first", file_name="a.pdf", file_path="u")
        store.reset()
        self.assertEqual(store.get_files(), [])
        record = store.create_file(title="t", subject="math", semester="first", file_name="a.pdf", file_path="u")
        self.assertEqual(record.id, 1)

    def test_returned_records_are_copies(self):
        store = InMemoryPortalStore()
        quiz = store.create_quiz(title="Q1", subject="math", creator="sara", questions=_questions())
        quiz.questions.clear()
        self.assertEqual(len(store.get_quiz(quiz.id).questions), 2)


if __name__ == "__main__":
    unittest.main()
