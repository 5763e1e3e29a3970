"""
Course file sharing: uploads to the media host plus the record bookkeeping.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from portal.errors import (
    FileUploadError,
    InvalidFileLinkError,
    StoreWriteError,
    ValidationError,
)
from portal.media import MediaClient, MediaHostError, build_media_key
from portal.store import FileRecord, PortalStore

logger = logging.getLogger(__name__)

SIGNED_URL_TTL_SECONDS = 3600


class FileService:
    def __init__(
        self,
        store: PortalStore,
        media: MediaClient,
        *,
        subjects: Sequence[str],
        semesters: Sequence[str],
        media_folder: str = "student-portal",
        max_upload_bytes: Optional[int] = None,
    ):
        self.store = store
        self.media = media
        self.subjects = set(subjects)
        self.semesters = set(semesters)
        self.media_folder = media_folder
        self.max_upload_bytes = max_upload_bytes

    def list_files(
        self, subject: Optional[str] = None, semester: Optional[str] = None
    ) -> list[FileRecord]:
        """List files, newest upload first. A subject filter wins over a semester filter."""
        if subject:
            files = self.store.get_files_by_subject(subject)
        elif semester:
            files = self.store.get_files_by_semester(semester)
        else:
            files = self.store.get_files()
        return sorted(files, key=lambda f: (f.uploaded_at, f.id), reverse=True)

    def _validate(self, title: str, subject: str, semester: str, content: bytes) -> None:
        if not content:
            raise ValidationError("File buffer is empty", key="file_empty")
        if self.max_upload_bytes and len(content) > self.max_upload_bytes:
            raise ValidationError("File is too large", key="file_too_large")
        if not title.strip():
            raise ValidationError("Title is required")
        if subject not in self.subjects:
            raise ValidationError(f"Unknown subject: {subject}", key="invalid_subject")
        if semester not in self.semesters:
            raise ValidationError(f"Unknown semester: {semester}", key="invalid_semester")

    def upload(
        self,
        *,
        title: str,
        subject: str,
        semester: str,
        file_name: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> FileRecord:
        self._validate(title, subject, semester, content)
        key = build_media_key(self.media_folder, file_name)
        logger.info(
            "Starting file upload: name=%s size=%d key=%s", file_name, len(content), key
        )
        try:
            uploaded = self.media.upload(content, key, content_type)
        except MediaHostError as exc:
            logger.error("Media upload error for %s: %s", file_name, exc)
            raise FileUploadError(f"Failed to create file: {exc}") from exc

        try:
            record = self.store.create_file(
                title=title.strip(),
                subject=subject,
                semester=semester,
                file_name=file_name,
                file_path=uploaded.url,
            )
        except StoreWriteError:
            self._destroy_quietly(uploaded.key)
            raise
        logger.info("File saved successfully with URL: %s", record.file_path)
        return record

    def delete(self, file_id: int) -> bool:
        record = self.store.get_file(file_id)
        if record is None:
            return False
        key = self.media.key_from_url(record.file_path) if record.file_path else None
        if key:
            self._destroy_quietly(key)
        return self.store.delete_file(file_id)

    def _destroy_quietly(self, key: str) -> None:
        try:
            self.media.destroy(key)
        except MediaHostError:
            logger.exception("Error deleting %s from the media host", key)

    def _signed_url(self, record: FileRecord, download_name: Optional[str]) -> str:
        if not record.file_path or not record.file_path.strip():
            raise InvalidFileLinkError(f"File {record.id} has no link")
        key = self.media.key_from_url(record.file_path)
        if key is None:
            # Not hosted by us; hand back the stored link unchanged.
            return record.file_path
        return self.media.presign_get(
            key, expires_in=SIGNED_URL_TTL_SECONDS, download_name=download_name
        )

    def view_url(self, record: FileRecord) -> str:
        return self._signed_url(record, download_name=None)

    def download_url(self, record: FileRecord) -> str:
        return self._signed_url(record, download_name=record.file_name)
