"""
Record store for files, exam schedules, quizzes and quiz attempts.

Records are kept as flat JSON arrays, one file per entity, next to a
``counters.json`` holding the next integer id of each entity. An in-memory
implementation with the same behaviour backs development and tests.
"""

from __future__ import annotations

import hmac
import json
import logging
import os
import tempfile
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol, TypeVar

from dacite import Config, from_dict

from portal.constants import (
    COUNTERS_FILE,
    EXAM_WEEKS_FILE,
    EXAMS_FILE,
    FILES_FILE,
    QUIZ_ATTEMPTS_FILE,
    QUIZ_CODE_LENGTH,
    QUIZZES_FILE,
)
from portal.errors import NotFoundError, StoreWriteError
from portal.json_utils import convert_keys, encode_datetimes

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    # JavaScript writes a trailing "Z" which fromisoformat rejects before 3.11.
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


_DACITE_CONFIG = Config(type_hooks={datetime: _parse_datetime})


def _to_json(record) -> dict:
    return convert_keys(encode_datetimes(asdict(record)), "snake_to_camel")


def _from_json(cls: type[T], data: dict) -> T:
    return from_dict(cls, convert_keys(data, "camel_to_snake"), config=_DACITE_CONFIG)


@dataclass
class FileRecord:
    id: int
    title: str
    subject: str
    semester: str
    file_name: str
    file_path: str
    uploaded_at: datetime = field(default_factory=_now)

    def as_dict(self) -> dict:
        return _to_json(self)


@dataclass
class ExamWeekRecord:
    id: int
    title: str
    start_date: str
    end_date: str
    semester: Optional[str] = None
    created_at: datetime = field(default_factory=_now)

    def as_dict(self) -> dict:
        return _to_json(self)


@dataclass
class ExamRecord:
    id: int
    week_id: int
    subject: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    def as_dict(self) -> dict:
        return _to_json(self)


@dataclass
class QuizQuestion:
    question: str
    options: list[str]
    correct_answer: int


@dataclass
class QuizRecord:
    id: int
    code: str
    title: str
    subject: str
    creator: str
    questions: list[QuizQuestion]
    description: Optional[str] = None
    created_at: datetime = field(default_factory=_now)

    def as_dict(self) -> dict:
        return _to_json(self)


@dataclass
class QuizAttemptRecord:
    id: int
    quiz_id: int
    student_name: str
    score: int
    total_questions: int
    answers: list[int] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)

    def as_dict(self) -> dict:
        return _to_json(self)


class PortalStore(Protocol):
    """Interface for the portal's record storage."""

    def validate_admin(self, username: str, password: str) -> bool:
        ...

    def get_files(self) -> list[FileRecord]:
        ...

    def get_files_by_subject(self, subject: str) -> list[FileRecord]:
        ...

    def get_files_by_semester(self, semester: str) -> list[FileRecord]:
        ...

    def get_file(self, file_id: int) -> Optional[FileRecord]:
        ...

    def create_file(
        self,
        *,
        title: str,
        subject: str,
        semester: str,
        file_name: str,
        file_path: str,
    ) -> FileRecord:
        ...

    def delete_file(self, file_id: int) -> bool:
        ...

    def get_exam_weeks(self) -> list[ExamWeekRecord]:
        ...

    def get_exam_week(self, week_id: int) -> Optional[ExamWeekRecord]:
        ...

    def create_exam_week(
        self,
        *,
        title: str,
        start_date: str,
        end_date: str,
        semester: Optional[str] = None,
    ) -> ExamWeekRecord:
        ...

    def delete_exam_week(self, week_id: int) -> bool:
        ...

    def get_exams(self) -> list[ExamRecord]:
        ...

    def get_exams_by_week(self, week_id: int) -> list[ExamRecord]:
        ...

    def create_exam(
        self,
        *,
        week_id: int,
        subject: str,
        date: str,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ExamRecord:
        ...

    def delete_exam(self, exam_id: int) -> bool:
        ...

    def get_quizzes(self) -> list[QuizRecord]:
        ...

    def get_quiz_by_code(self, code: str) -> Optional[QuizRecord]:
        ...

    def get_quiz(self, quiz_id: int) -> Optional[QuizRecord]:
        ...

    def create_quiz(
        self,
        *,
        title: str,
        subject: str,
        creator: str,
        questions: list[QuizQuestion],
        description: Optional[str] = None,
    ) -> QuizRecord:
        ...

    def delete_quiz(self, quiz_id: int) -> bool:
        ...

    def get_quiz_attempts(self, quiz_id: int) -> list[QuizAttemptRecord]:
        ...

    def get_all_quiz_attempts(self) -> list[QuizAttemptRecord]:
        ...

    def create_quiz_attempt(
        self,
        *,
        quiz_id: int,
        student_name: str,
        score: int,
        total_questions: int,
        answers: list[int],
    ) -> QuizAttemptRecord:
        ...


_COUNTER_FILES = {
    "fileId": FILES_FILE,
    "examWeekId": EXAM_WEEKS_FILE,
    "examId": EXAMS_FILE,
    "quizId": QUIZZES_FILE,
    "quizAttemptId": QUIZ_ATTEMPTS_FILE,
}
_COUNTER_KEYS = tuple(_COUNTER_FILES)


class _ListBackedStore:
    """
    Shared CRUD logic over named lists of JSON records.

    Subclasses decide where the lists and the id counters live.
    """

    def __init__(self, admin_username: str, admin_password: str):
        self._admin_username = admin_username
        self._admin_password = admin_password
        self._lock = threading.RLock()
        self.counters: Dict[str, int] = {key: 1 for key in _COUNTER_KEYS}

    def _read(self, name: str) -> list[dict]:
        raise NotImplementedError

    def _write(self, name: str, rows: list[dict]) -> None:
        raise NotImplementedError

    def _save_counters(self) -> None:
        raise NotImplementedError

    def _next_id(self, counter: str) -> int:
        value = self.counters[counter]
        self.counters[counter] = value + 1
        return value

    def _load(self, name: str, cls: type[T]) -> list[T]:
        return [_from_json(cls, row) for row in self._read(name)]

    def _append(self, name: str, record) -> None:
        rows = self._read(name)
        rows.append(record.as_dict())
        self._write(name, rows)
        self._save_counters()

    def _remove_where(self, name: str, predicate: Callable[[dict], bool]) -> int:
        rows = self._read(name)
        kept = [row for row in rows if not predicate(row)]
        removed = len(rows) - len(kept)
        if removed:
            self._write(name, kept)
        return removed

    # Auth
    def validate_admin(self, username: str, password: str) -> bool:
        user_ok = hmac.compare_digest(
            username.encode("utf-8"), self._admin_username.encode("utf-8")
        )
        password_ok = hmac.compare_digest(
            password.encode("utf-8"), self._admin_password.encode("utf-8")
        )
        return user_ok and password_ok

    # Files
    def get_files(self) -> list[FileRecord]:
        return self._load(FILES_FILE, FileRecord)

    def get_files_by_subject(self, subject: str) -> list[FileRecord]:
        return [f for f in self.get_files() if f.subject == subject]

    def get_files_by_semester(self, semester: str) -> list[FileRecord]:
        return [f for f in self.get_files() if f.semester == semester]

    def get_file(self, file_id: int) -> Optional[FileRecord]:
        return next((f for f in self.get_files() if f.id == file_id), None)

    def create_file(
        self,
        *,
        title: str,
        subject: str,
        semester: str,
        file_name: str,
        file_path: str,
    ) -> FileRecord:
        with self._lock:
            record = FileRecord(
                id=self._next_id("fileId"),
                title=title,
                subject=subject,
                semester=semester,
                file_name=file_name,
                file_path=file_path,
            )
            self._append(FILES_FILE, record)
        logger.info("Saved file %s (%s)", record.id, record.file_name)
        return record

    def delete_file(self, file_id: int) -> bool:
        with self._lock:
            return bool(self._remove_where(FILES_FILE, lambda r: r["id"] == file_id))

    # Exam weeks
    def get_exam_weeks(self) -> list[ExamWeekRecord]:
        return self._load(EXAM_WEEKS_FILE, ExamWeekRecord)

    def get_exam_week(self, week_id: int) -> Optional[ExamWeekRecord]:
        return next((w for w in self.get_exam_weeks() if w.id == week_id), None)

    def create_exam_week(
        self,
        *,
        title: str,
        start_date: str,
        end_date: str,
        semester: Optional[str] = None,
    ) -> ExamWeekRecord:
        with self._lock:
            record = ExamWeekRecord(
                id=self._next_id("examWeekId"),
                title=title,
                start_date=start_date,
                end_date=end_date,
                semester=semester,
            )
            self._append(EXAM_WEEKS_FILE, record)
        return record

    def delete_exam_week(self, week_id: int) -> bool:
        with self._lock:
            if self.get_exam_week(week_id) is None:
                return False
            dropped = self._remove_where(EXAMS_FILE, lambda r: r["weekId"] == week_id)
            self._remove_where(EXAM_WEEKS_FILE, lambda r: r["id"] == week_id)
        logger.info("Deleted exam week %s with %d exams", week_id, dropped)
        return True

    # Exams
    def get_exams(self) -> list[ExamRecord]:
        return self._load(EXAMS_FILE, ExamRecord)

    def get_exams_by_week(self, week_id: int) -> list[ExamRecord]:
        return [e for e in self.get_exams() if e.week_id == week_id]

    def create_exam(
        self,
        *,
        week_id: int,
        subject: str,
        date: str,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ExamRecord:
        with self._lock:
            if self.get_exam_week(week_id) is None:
                raise NotFoundError(f"Exam week {week_id} not found", key="week_not_found")
            record = ExamRecord(
                id=self._next_id("examId"),
                week_id=week_id,
                subject=subject,
                date=date,
                start_time=start_time,
                end_time=end_time,
                location=location,
                notes=notes,
            )
            self._append(EXAMS_FILE, record)
        return record

    def delete_exam(self, exam_id: int) -> bool:
        with self._lock:
            return bool(self._remove_where(EXAMS_FILE, lambda r: r["id"] == exam_id))

    # Quizzes
    def get_quizzes(self) -> list[QuizRecord]:
        return self._load(QUIZZES_FILE, QuizRecord)

    def get_quiz_by_code(self, code: str) -> Optional[QuizRecord]:
        wanted = code.strip().upper()
        return next((q for q in self.get_quizzes() if q.code == wanted), None)

    def get_quiz(self, quiz_id: int) -> Optional[QuizRecord]:
        return next((q for q in self.get_quizzes() if q.id == quiz_id), None)

    def _new_quiz_code(self) -> str:
        taken = {q.code for q in self.get_quizzes()}
        while True:
            code = uuid.uuid4().hex[:QUIZ_CODE_LENGTH].upper()
            if code not in taken:
                return code

    def create_quiz(
        self,
        *,
        title: str,
        subject: str,
        creator: str,
        questions: list[QuizQuestion],
        description: Optional[str] = None,
    ) -> QuizRecord:
        with self._lock:
            record = QuizRecord(
                id=self._next_id("quizId"),
                code=self._new_quiz_code(),
                title=title,
                subject=subject,
                creator=creator,
                questions=list(questions),
                description=description or None,
            )
            self._append(QUIZZES_FILE, record)
        logger.info("Created quiz %s with code %s", record.id, record.code)
        return record

    def delete_quiz(self, quiz_id: int) -> bool:
        with self._lock:
            if self.get_quiz(quiz_id) is None:
                return False
            self._remove_where(QUIZ_ATTEMPTS_FILE, lambda r: r["quizId"] == quiz_id)
            self._remove_where(QUIZZES_FILE, lambda r: r["id"] == quiz_id)
        return True

    # Quiz attempts
    def get_all_quiz_attempts(self) -> list[QuizAttemptRecord]:
        return self._load(QUIZ_ATTEMPTS_FILE, QuizAttemptRecord)

    def get_quiz_attempts(self, quiz_id: int) -> list[QuizAttemptRecord]:
        return [a for a in self.get_all_quiz_attempts() if a.quiz_id == quiz_id]

    def create_quiz_attempt(
        self,
        *,
        quiz_id: int,
        student_name: str,
        score: int,
        total_questions: int,
        answers: list[int],
    ) -> QuizAttemptRecord:
        with self._lock:
            if self.get_quiz(quiz_id) is None:
                raise NotFoundError(f"Quiz {quiz_id} not found", key="quiz_not_found")
            record = QuizAttemptRecord(
                id=self._next_id("quizAttemptId"),
                quiz_id=quiz_id,
                student_name=student_name,
                score=score,
                total_questions=total_questions,
                answers=list(answers),
            )
            self._append(QUIZ_ATTEMPTS_FILE, record)
        return record


class InMemoryPortalStore(_ListBackedStore):
    """Simple in-memory record store for development and tests."""

    def __init__(self, admin_username: str = "admin", admin_password: str = "admin"):
        super().__init__(admin_username, admin_password)
        self.tables: Dict[str, list[dict]] = {}

    def _read(self, name: str) -> list[dict]:
        return json.loads(json.dumps(self.tables.get(name, [])))

    def _write(self, name: str, rows: list[dict]) -> None:
        self.tables[name] = json.loads(json.dumps(rows))

    def _save_counters(self) -> None:
        pass

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.tables.clear()
        self.counters = {key: 1 for key in _COUNTER_KEYS}


class JsonFilePortalStore(_ListBackedStore):
    """
    Flat JSON-file implementation.

    Each entity list lives in its own file under ``data_dir``. Writes go through
    a temporary file and an atomic rename; a lock serializes read-modify-write
    cycles within this process only.
    """

    def __init__(self, data_dir: str, admin_username: str, admin_password: str):
        super().__init__(admin_username, admin_password)
        self.data_dir = data_dir
        os.makedirs(self.data_dir, exist_ok=True)
        self._load_counters()
        self._raise_counters_past_stored_ids()

    def _path(self, name: str) -> str:
        return os.path.join(self.data_dir, name)

    def _raise_counters_past_stored_ids(self) -> None:
        """Never hand out an id that is already on disk, even if counters.json was lost."""
        for key, name in _COUNTER_FILES.items():
            ids = [row.get("id") for row in self._read(name)]
            highest = max((i for i in ids if isinstance(i, int)), default=0)
            if self.counters[key] <= highest:
                logger.warning(
                    "Counter %s was %d but %s holds id %d", key, self.counters[key], name, highest
                )
                self.counters[key] = highest + 1

    def _load_counters(self) -> None:
        path = self._path(COUNTERS_FILE)
        if not os.path.exists(path):
            return
        try:
            with open(path, "r", encoding="utf-8") as f:
                stored = json.load(f)
        except (OSError, ValueError):
            logger.warning("Could not load counters, starting fresh")
            return
        for key in _COUNTER_KEYS:
            self.counters[key] = int(stored.get(key) or 1)

    def _save_counters(self) -> None:
        try:
            self._write_json(COUNTERS_FILE, self.counters)
        except OSError:
            logger.exception("Error saving counters")

    def _read(self, name: str) -> list[dict]:
        path = self._path(name)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError):
            logger.exception("Error reading %s", name)
            return []

    def _write(self, name: str, rows: list[dict]) -> None:
        try:
            self._write_json(name, rows, indent=2)
        except OSError as exc:
            logger.error("Error writing %s: %s", name, exc)
            raise StoreWriteError(f"Could not write {name}: {exc}") from exc

    def _write_json(self, name: str, payload, indent: Optional[int] = None) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=indent)
            os.replace(tmp_path, self._path(name))
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
