"""
Lazily initialised Firebase app shared by Firestore and token verification.
"""

from __future__ import annotations

import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials

logger = logging.getLogger(__name__)


def get_firebase_app(
    credentials_path: Optional[str] = None, project_id: Optional[str] = None
) -> firebase_admin.App:
    """Return the default Firebase app, initialising it on first use."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    cred = credentials.Certificate(credentials_path) if credentials_path else None
    options = {"projectId": project_id} if project_id else None
    logger.info("Initialising Firebase app (project=%s)", project_id or "default")
    return firebase_admin.initialize_app(cred, options)
