"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from portal.auth import (
    DevTokenVerifier,
    FirebaseTokenVerifier,
    TokenVerifier,
    bearer_token,
    resolve_user,
)
from portal.config import get_settings
from portal.docstore import (
    DocumentStore,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    SqlDocumentStore,
)
from portal.errors import AuthenticationError
from portal.files import FileService
from portal.firebase import get_firebase_app
from portal.friends import FriendsService, UserProfile
from portal.media import InMemoryMediaClient, MediaClient, S3MediaClient
from portal.quizzes import QuizService
from portal.schedules import ScheduleService
from portal.store import InMemoryPortalStore, JsonFilePortalStore, PortalStore

logger = logging.getLogger(__name__)

_portal_store: PortalStore | None = None
_media_client: MediaClient | None = None
_document_store: DocumentStore | None = None
_firebase_verifier: TokenVerifier | None = None

_basic_auth = HTTPBasic(auto_error=False)


def get_portal_store() -> PortalStore:
    """
    Return a singleton record store so counters stay consistent across requests.
    """
    global _portal_store
    if _portal_store:
        return _portal_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _portal_store = InMemoryPortalStore(
            settings.admin_username, settings.admin_password
        )
    else:
        _portal_store = JsonFilePortalStore(
            settings.data_dir, settings.admin_username, settings.admin_password
        )
    return _portal_store


def get_media_client() -> MediaClient:
    global _media_client
    if _media_client:
        return _media_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.media_bucket:
        _media_client = InMemoryMediaClient()
    else:
        _media_client = S3MediaClient(
            bucket=settings.media_bucket,
            region=settings.media_region or "",
            endpoint=settings.media_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.media_public_base_url,
        )
    return _media_client


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so watches see every write in this process.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _document_store = InMemoryDocumentStore()
    elif settings.firebase_enabled:
        get_firebase_app(settings.firebase_credentials_path, settings.firebase_project_id)
        _document_store = FirestoreDocumentStore()
    elif settings.social_database_url:
        _document_store = SqlDocumentStore(settings.social_database_url)
    else:
        logger.warning("No document database configured; social data stays in memory")
        _document_store = InMemoryDocumentStore()
    return _document_store


def get_file_service(
    store: PortalStore = Depends(get_portal_store),
    media: MediaClient = Depends(get_media_client),
) -> FileService:
    settings = get_settings()
    return FileService(
        store,
        media,
        subjects=settings.subjects,
        semesters=settings.semesters,
        media_folder=settings.media_folder,
        max_upload_bytes=settings.max_upload_bytes,
    )


def get_quiz_service(store: PortalStore = Depends(get_portal_store)) -> QuizService:
    return QuizService(store)


def get_friends_service(
    docs: DocumentStore = Depends(get_document_store),
) -> FriendsService:
    return FriendsService(docs)


def get_schedule_service(
    docs: DocumentStore = Depends(get_document_store),
    friends: FriendsService = Depends(get_friends_service),
) -> ScheduleService:
    return ScheduleService(docs, friends)


def get_token_verifier(
    friends: FriendsService = Depends(get_friends_service),
) -> TokenVerifier:
    global _firebase_verifier
    settings = get_settings()
    if settings.use_in_memory_backends:
        return DevTokenVerifier(friends)
    if not settings.firebase_enabled:
        logger.error("No identity provider configured; rejecting student requests")
        raise AuthenticationError("Token verification is not configured")
    if _firebase_verifier is None:
        app = get_firebase_app(
            settings.firebase_credentials_path, settings.firebase_project_id
        )
        _firebase_verifier = FirebaseTokenVerifier(app)
    return _firebase_verifier


def get_current_user(
    authorization: Optional[str] = Header(None),
    verifier: TokenVerifier = Depends(get_token_verifier),
    friends: FriendsService = Depends(get_friends_service),
) -> UserProfile:
    return resolve_user(verifier, friends, bearer_token(authorization))


def require_admin(
    credentials: Optional[HTTPBasicCredentials] = Depends(_basic_auth),
    store: PortalStore = Depends(get_portal_store),
) -> str:
    if credentials is None or not store.validate_admin(
        credentials.username, credentials.password
    ):
        raise AuthenticationError("Admin credentials required")
    return credentials.username
