"""
Pydantic schemas for the portal API.

The wire format is camelCase JSON; field names stay snake_case in Python.
"""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Toast(BaseModel):
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


class ActionResponse(CamelModel):
    status: Literal["ok"] = "ok"
    notice: Optional[Toast] = None


class AdminLoginRequest(CamelModel):
    username: str
    password: str


class AdminLoginResponse(CamelModel):
    valid: bool


# Files


class FileResponse(CamelModel):
    id: int
    title: str
    subject: str
    semester: str
    file_name: str
    file_path: str
    uploaded_at: dt.datetime


class FileUploadResponse(ActionResponse):
    file: FileResponse


# Exams


class ExamWeekRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    start_date: dt.date
    end_date: dt.date
    semester: Optional[str] = None

    @model_validator(mode="after")
    def _check_range(self) -> "ExamWeekRequest":
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class ExamWeekResponse(CamelModel):
    id: int
    title: str
    start_date: str
    end_date: str
    semester: Optional[str] = None
    created_at: dt.datetime


class ExamRequest(CamelModel):
    week_id: int
    subject: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    start_time: Optional[str] = Field(None, max_length=16)
    end_time: Optional[str] = Field(None, max_length=16)
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)


class ExamResponse(CamelModel):
    id: int
    week_id: int
    subject: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


# Quizzes


class QuestionPayload(CamelModel):
    question: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=2)
    correct_answer: int = Field(..., ge=0)


class PublicQuestion(CamelModel):
    question: str
    options: list[str]


class QuizRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    subject: str = Field(..., min_length=1, max_length=200)
    creator: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    questions: list[QuestionPayload] = Field(..., min_length=1)


class QuizResponse(CamelModel):
    id: int
    code: str
    title: str
    subject: str
    creator: str
    description: Optional[str] = None
    questions: list[QuestionPayload]
    created_at: dt.datetime


class PublicQuizResponse(CamelModel):
    id: int
    code: str
    title: str
    subject: str
    creator: str
    description: Optional[str] = None
    questions: list[PublicQuestion]
    created_at: dt.datetime


class AttemptRequest(CamelModel):
    student_name: str = Field(..., min_length=1, max_length=100)
    answers: list[Optional[Annotated[int, Field(ge=0)]]]


class AttemptResponse(CamelModel):
    id: int
    quiz_id: int
    student_name: str
    score: int
    total_questions: int
    answers: list[int]
    created_at: dt.datetime


class AnalyticsResponse(CamelModel):
    total_files: int
    files_by_subject: dict[str, int]
    files_by_semester: dict[str, int]
    exam_weeks: int
    exams: int
    quizzes: int
    quiz_attempts: int
    average_score_percent: Optional[float] = None


# Users and friends


class ProfileRequest(CamelModel):
    email: str = Field(..., max_length=320)
    display_name: str = Field("", max_length=200)
    username: str = Field("", max_length=100)


class ProfileResponse(CamelModel):
    uid: str
    email: str
    display_name: str = ""
    username: str = ""


class FriendRequestCreate(CamelModel):
    to_user_id: str = Field(..., min_length=1)


class FriendRequestResponse(CamelModel):
    id: str
    from_user_id: str
    from_user_email: str
    from_user_name: str
    to_user_id: str
    to_user_email: str
    status: Literal["pending", "accepted", "declined"]
    created_at: dt.datetime


class FriendResponse(CamelModel):
    id: str
    user_id: str
    user_email: str
    user_name: str
    friends_since: dt.datetime


class FriendRequestActionResponse(ActionResponse):
    request: FriendRequestResponse


class AcceptFriendResponse(ActionResponse):
    friend: FriendResponse


# Study schedules


class StudySessionPayload(CamelModel):
    id: Optional[str] = None
    subject: str = Field(..., min_length=1, max_length=200)
    day: str = Field(..., min_length=1, max_length=32)
    start_time: str = Field(..., max_length=16)
    end_time: str = Field(..., max_length=16)
    notes: Optional[str] = Field(None, max_length=2000)


class ScheduleRequest(CamelModel):
    sessions: list[StudySessionPayload]


class ScheduleResponse(ActionResponse):
    sessions: list[StudySessionPayload]
