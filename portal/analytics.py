"""
Dashboard counters computed from the record store.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from portal.store import PortalStore


@dataclass
class PortalSummary:
    total_files: int = 0
    files_by_subject: dict[str, int] = field(default_factory=dict)
    files_by_semester: dict[str, int] = field(default_factory=dict)
    exam_weeks: int = 0
    exams: int = 0
    quizzes: int = 0
    quiz_attempts: int = 0
    average_score_percent: Optional[float] = None


def summarize(store: PortalStore) -> PortalSummary:
    files = store.get_files()
    attempts = store.get_all_quiz_attempts()
    percents = [
        100.0 * a.score / a.total_questions for a in attempts if a.total_questions
    ]
    return PortalSummary(
        total_files=len(files),
        files_by_subject=dict(Counter(f.subject for f in files)),
        files_by_semester=dict(Counter(f.semester for f in files)),
        exam_weeks=len(store.get_exam_weeks()),
        exams=len(store.get_exams()),
        quizzes=len(store.get_quizzes()),
        quiz_attempts=len(attempts),
        average_score_percent=(
            round(sum(percents) / len(percents), 2) if percents else None
        ),
    )
