"""
Quiz authoring and grading on top of the record store.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from portal.errors import NotFoundError, ValidationError
from portal.store import PortalStore, QuizAttemptRecord, QuizQuestion, QuizRecord

logger = logging.getLogger(__name__)


def validate_questions(questions: Sequence[QuizQuestion]) -> None:
    if not questions:
        raise ValidationError("A quiz needs at least one question")
    for index, question in enumerate(questions, start=1):
        if not question.question.strip():
            raise ValidationError(f"Question {index} has no text")
        if len(question.options) < 2:
            raise ValidationError(f"Question {index} needs at least two options")
        if not 0 <= question.correct_answer < len(question.options):
            raise ValidationError(f"Question {index} has no valid correct answer")


def grade(quiz: QuizRecord, answers: Sequence[Optional[int]]) -> int:
    """Number of answers matching the correct option. ``None`` marks a skipped question."""
    if len(answers) != len(quiz.questions):
        raise ValidationError(
            f"Expected {len(quiz.questions)} answers, got {len(answers)}",
            key="answers_mismatch",
        )
    if any(answer is not None and answer < 0 for answer in answers):
        raise ValidationError("Answers must be option indexes or null")
    return sum(
        1
        for question, answer in zip(quiz.questions, answers)
        if answer is not None and answer == question.correct_answer
    )


class QuizService:
    def __init__(self, store: PortalStore):
        self.store = store

    def create_quiz(
        self,
        *,
        title: str,
        subject: str,
        creator: str,
        questions: list[QuizQuestion],
        description: Optional[str] = None,
    ) -> QuizRecord:
        validate_questions(questions)
        return self.store.create_quiz(
            title=title,
            subject=subject,
            creator=creator,
            questions=questions,
            description=description,
        )

    def get_by_code(self, code: str) -> QuizRecord:
        quiz = self.store.get_quiz_by_code(code)
        if quiz is None:
            raise NotFoundError(f"No quiz with code {code}", key="quiz_not_found")
        return quiz

    def submit_attempt(
        self, quiz_id: int, student_name: str, answers: list[Optional[int]]
    ) -> QuizAttemptRecord:
        quiz = self.store.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError(f"Quiz {quiz_id} not found", key="quiz_not_found")
        score = grade(quiz, answers)
        attempt = self.store.create_quiz_attempt(
            quiz_id=quiz_id,
            student_name=student_name,
            score=score,
            total_questions=len(quiz.questions),
            answers=[-1 if a is None else a for a in answers],
        )
        logger.info(
            "Attempt %s on quiz %s scored %d/%d",
            attempt.id,
            quiz_id,
            score,
            attempt.total_questions,
        )
        return attempt
