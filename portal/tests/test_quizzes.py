import unittest

from portal.errors import ValidationError
from portal.quizzes import grade
from portal.store import QuizQuestion, QuizRecord


class GradeTests(unittest.TestCase):
    def setUp(self):
        self.quiz = QuizRecord(
            id=1,
            code="ABCD1234",
            title="Algebra basics",
            subject="math",
            creator="Sara",
            questions=[
                QuizQuestion(question="2 + 2?", options=["3", "4", "5"], correct_answer=1),
                QuizQuestion(question="3 * 3?", options=["6", "9"], correct_answer=1),
            ],
        )

    def test_skipped_questions_score_nothing(self):
        self.assertEqual(grade(self.quiz, [1, 1]), 2)
        self.assertEqual(grade(self.quiz, [None, 1]), 1)
        self.assertEqual(grade(self.quiz, [0, None]), 0)

    def test_negative_answer_is_rejected(self):
        # -1 is how skipped answers are stored, never a valid submission
        with self.assertRaises(ValidationError):
            grade(self.quiz, [-1, 1])

    def test_answer_count_must_match(self):
        with self.assertRaises(ValidationError) as ctx:
            grade(self.quiz, [1])
        self.assertEqual(ctx.exception.key, "answers_mismatch")


if __name__ == "__main__":
    unittest.main()
