"""
Domain errors raised by the services and rendered by the API layer.

Each error carries the HTTP status it maps to and the key of the localized
message shown to the user (see ``portal.messages``).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base class for service-related errors."""

    status_code = 500
    default_key = "generic"

    def __init__(
        self, detail: Optional[str] = None, *, key: Optional[str] = None, **params
    ):
        self.key = key or self.default_key
        self.params = params
        self.detail = detail
        super().__init__(detail or self.key)


class ValidationError(PortalError):
    """Raised when a request carries values the portal does not accept."""

    status_code = 400
    default_key = "invalid_input"


class AuthenticationError(PortalError):
    status_code = 401
    default_key = "unauthorized"


class PermissionDeniedError(PortalError):
    status_code = 403
    default_key = "forbidden"


class NotFoundError(PortalError):
    status_code = 404
    default_key = "not_found"


class ConflictError(PortalError):
    status_code = 409
    default_key = "conflict"


class InvalidRequestStateError(ConflictError):
    """Raised when a friend request is no longer pending."""

    default_key = "request_not_pending"


class EmptyScheduleError(NotFoundError):
    default_key = "schedule_missing"


class InvalidFileLinkError(ValidationError):
    default_key = "invalid_file_link"


class FileUploadError(PortalError):
    """Raised when the media host rejects or fails an upload."""

    status_code = 502
    default_key = "upload_failed"


class StoreWriteError(PortalError):
    """Raised when a record file cannot be written."""

    status_code = 500
    default_key = "store_write_failed"


class DocumentNotFound(NotFoundError):
    """Raised by document stores when updating a document that does not exist."""


@contextmanager
def failure_notice(key: str) -> Iterator[None]:
    """
    Re-raise unexpected errors of an action as a ``PortalError`` carrying ``key``.

    Domain errors pass through untouched so their own message is shown.
    """
    try:
        yield
    except PortalError:
        raise
    except Exception as exc:
        logger.exception("Action failed (%s)", key)
        raise PortalError(str(exc), key=key) from exc
