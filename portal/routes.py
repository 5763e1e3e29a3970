"""
HTTP routes for files, exam schedules, quizzes and analytics.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from portal.analytics import summarize
from portal.config import get_settings
from portal.dependencies import (
    get_file_service,
    get_portal_store,
    get_quiz_service,
    require_admin,
)
from portal.errors import NotFoundError, failure_notice
from portal.files import FileService
from portal.messages import toast
from portal.quizzes import QuizService
from portal.schemas import (
    ActionResponse,
    AdminLoginRequest,
    AdminLoginResponse,
    AnalyticsResponse,
    AttemptRequest,
    AttemptResponse,
    ExamRequest,
    ExamResponse,
    ExamWeekRequest,
    ExamWeekResponse,
    FileResponse,
    FileUploadResponse,
    PublicQuizResponse,
    QuizRequest,
    QuizResponse,
    Toast,
)
from portal.store import FileRecord, PortalStore, QuizQuestion

logger = logging.getLogger(__name__)

router = APIRouter()


def notice(key: str, **params) -> Toast:
    return Toast(**toast(key, get_settings().locale, **params))


def _require_file(files: FileService, file_id: int) -> FileRecord:
    record = files.store.get_file(file_id)
    if record is None:
        raise NotFoundError(f"File {file_id} not found")
    return record


@router.post("/auth/admin", response_model=AdminLoginResponse)
def validate_admin(
    payload: AdminLoginRequest, store: PortalStore = Depends(get_portal_store)
):
    return AdminLoginResponse(
        valid=store.validate_admin(payload.username, payload.password)
    )


# Files


@router.get("/files", response_model=list[FileResponse])
def list_files(
    subject: Optional[str] = Query(None),
    semester: Optional[str] = Query(None),
    files: FileService = Depends(get_file_service),
):
    with failure_notice("load_failed"):
        records = files.list_files(subject=subject, semester=semester)
    return [FileResponse.model_validate(asdict(r)) for r in records]


@router.get("/files/{file_id}", response_model=FileResponse)
def get_file(file_id: int, files: FileService = Depends(get_file_service)):
    return FileResponse.model_validate(asdict(_require_file(files, file_id)))


@router.post("/files", response_model=FileUploadResponse, status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    title: str = Form(...),
    subject: str = Form(...),
    semester: str = Form(...),
    _admin: str = Depends(require_admin),
    files: FileService = Depends(get_file_service),
):
    content = await file.read()
    with failure_notice("upload_failed"):
        record = await run_in_threadpool(
            files.upload,
            title=title,
            subject=subject,
            semester=semester,
            file_name=file.filename or "upload",
            content=content,
            content_type=file.content_type,
        )
    return FileUploadResponse(
        file=FileResponse.model_validate(asdict(record)),
        notice=notice("file_uploaded"),
    )


@router.delete("/files/{file_id}", response_model=ActionResponse)
def delete_file(
    file_id: int,
    _admin: str = Depends(require_admin),
    files: FileService = Depends(get_file_service),
):
    with failure_notice("delete_failed"):
        deleted = files.delete(file_id)
    if not deleted:
        raise NotFoundError(f"File {file_id} not found")
    return ActionResponse(notice=notice("file_deleted"))


@router.get("/files/{file_id}/view")
def view_file(file_id: int, files: FileService = Depends(get_file_service)):
    url = files.view_url(_require_file(files, file_id))
    return RedirectResponse(url, status_code=307)


@router.get("/files/{file_id}/download")
def download_file(file_id: int, files: FileService = Depends(get_file_service)):
    url = files.download_url(_require_file(files, file_id))
    return RedirectResponse(url, status_code=307)


# Exam weeks and exams


@router.get("/exam-weeks", response_model=list[ExamWeekResponse])
def list_exam_weeks(store: PortalStore = Depends(get_portal_store)):
    return [ExamWeekResponse.model_validate(asdict(w)) for w in store.get_exam_weeks()]


@router.get("/exam-weeks/{week_id}", response_model=ExamWeekResponse)
def get_exam_week(week_id: int, store: PortalStore = Depends(get_portal_store)):
    week = store.get_exam_week(week_id)
    if week is None:
        raise NotFoundError(f"Exam week {week_id} not found", key="week_not_found")
    return ExamWeekResponse.model_validate(asdict(week))


@router.post("/exam-weeks", response_model=ExamWeekResponse, status_code=201)
def create_exam_week(
    payload: ExamWeekRequest,
    _admin: str = Depends(require_admin),
    store: PortalStore = Depends(get_portal_store),
):
    week = store.create_exam_week(
        title=payload.title,
        start_date=payload.start_date.isoformat(),
        end_date=payload.end_date.isoformat(),
        semester=payload.semester,
    )
    return ExamWeekResponse.model_validate(asdict(week))


@router.delete("/exam-weeks/{week_id}", response_model=ActionResponse)
def delete_exam_week(
    week_id: int,
    _admin: str = Depends(require_admin),
    store: PortalStore = Depends(get_portal_store),
):
    if not store.delete_exam_week(week_id):
        raise NotFoundError(f"Exam week {week_id} not found", key="week_not_found")
    return ActionResponse()


@router.get("/exam-weeks/{week_id}/exams", response_model=list[ExamResponse])
def list_exams_for_week(week_id: int, store: PortalStore = Depends(get_portal_store)):
    if store.get_exam_week(week_id) is None:
        raise NotFoundError(f"Exam week {week_id} not found", key="week_not_found")
    return [ExamResponse.model_validate(asdict(e)) for e in store.get_exams_by_week(week_id)]


@router.get("/exams", response_model=list[ExamResponse])
def list_exams(
    week_id: Optional[int] = Query(None, alias="weekId"),
    store: PortalStore = Depends(get_portal_store),
):
    exams = store.get_exams_by_week(week_id) if week_id is not None else store.get_exams()
    return [ExamResponse.model_validate(asdict(e)) for e in exams]


@router.post("/exams", response_model=ExamResponse, status_code=201)
def create_exam(
    payload: ExamRequest,
    _admin: str = Depends(require_admin),
    store: PortalStore = Depends(get_portal_store),
):
    exam = store.create_exam(
        week_id=payload.week_id,
        subject=payload.subject,
        date=payload.date.isoformat(),
        start_time=payload.start_time,
        end_time=payload.end_time,
        location=payload.location,
        notes=payload.notes,
    )
    return ExamResponse.model_validate(asdict(exam))


@router.delete("/exams/{exam_id}", response_model=ActionResponse)
def delete_exam(
    exam_id: int,
    _admin: str = Depends(require_admin),
    store: PortalStore = Depends(get_portal_store),
):
    if not store.delete_exam(exam_id):
        raise NotFoundError(f"Exam {exam_id} not found")
    return ActionResponse()


# Quizzes


@router.get("/quizzes", response_model=list[PublicQuizResponse])
def list_quizzes(store: PortalStore = Depends(get_portal_store)):
    return [PublicQuizResponse.model_validate(asdict(q)) for q in store.get_quizzes()]


@router.post("/quizzes", response_model=QuizResponse, status_code=201)
def create_quiz(payload: QuizRequest, quizzes: QuizService = Depends(get_quiz_service)):
    quiz = quizzes.create_quiz(
        title=payload.title,
        subject=payload.subject,
        creator=payload.creator,
        description=payload.description,
        questions=[
            QuizQuestion(
                question=q.question,
                options=list(q.options),
                correct_answer=q.correct_answer,
            )
            for q in payload.questions
        ],
    )
    return QuizResponse.model_validate(asdict(quiz))


@router.get("/quizzes/code/{code}", response_model=PublicQuizResponse)
def get_quiz_by_code(code: str, quizzes: QuizService = Depends(get_quiz_service)):
    """Quiz as shown to students taking it: correct answers are left out."""
    return PublicQuizResponse.model_validate(asdict(quizzes.get_by_code(code)))


@router.get("/quizzes/{quiz_id}", response_model=PublicQuizResponse)
def get_quiz(quiz_id: int, store: PortalStore = Depends(get_portal_store)):
    quiz = store.get_quiz(quiz_id)
    if quiz is None:
        raise NotFoundError(f"Quiz {quiz_id} not found", key="quiz_not_found")
    return PublicQuizResponse.model_validate(asdict(quiz))


@router.get("/quizzes/{quiz_id}/answers", response_model=QuizResponse)
def get_quiz_with_answers(
    quiz_id: int,
    _admin: str = Depends(require_admin),
    store: PortalStore = Depends(get_portal_store),
):
    quiz = store.get_quiz(quiz_id)
    if quiz is None:
        raise NotFoundError(f"Quiz {quiz_id} not found", key="quiz_not_found")
    return QuizResponse.model_validate(asdict(quiz))


@router.delete("/quizzes/{quiz_id}", response_model=ActionResponse)
def delete_quiz(quiz_id: int, store: PortalStore = Depends(get_portal_store)):
    if not store.delete_quiz(quiz_id):
        raise NotFoundError(f"Quiz {quiz_id} not found", key="quiz_not_found")
    return ActionResponse()


@router.get("/quizzes/{quiz_id}/attempts", response_model=list[AttemptResponse])
def list_attempts(quiz_id: int, store: PortalStore = Depends(get_portal_store)):
    if store.get_quiz(quiz_id) is None:
        raise NotFoundError(f"Quiz {quiz_id} not found", key="quiz_not_found")
    return [AttemptResponse.model_validate(asdict(a)) for a in store.get_quiz_attempts(quiz_id)]


@router.post(
    "/quizzes/{quiz_id}/attempts", response_model=AttemptResponse, status_code=201
)
def submit_attempt(
    quiz_id: int,
    payload: AttemptRequest,
    quizzes: QuizService = Depends(get_quiz_service),
):
    attempt = quizzes.submit_attempt(quiz_id, payload.student_name, payload.answers)
    return AttemptResponse.model_validate(asdict(attempt))


@router.get("/analytics", response_model=AnalyticsResponse)
def analytics(store: PortalStore = Depends(get_portal_store)):
    return AnalyticsResponse.model_validate(asdict(summarize(store)))
