"""
Student identity from bearer tokens.

Production deployments verify Firebase ID tokens. In-memory development
mode accepts the user id itself as the token.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from firebase_admin import auth as firebase_auth

from portal.errors import AuthenticationError
from portal.friends import FriendsService, UserProfile

logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    def verify(self, token: str) -> UserProfile:
        ...


class FirebaseTokenVerifier:
    def __init__(self, app=None):
        self.app = app

    def verify(self, token: str) -> UserProfile:
        try:
            claims = firebase_auth.verify_id_token(token, app=self.app)
        except (
            firebase_auth.InvalidIdTokenError,
            firebase_auth.CertificateFetchError,
            firebase_auth.UserDisabledError,
            ValueError,
        ) as exc:
            logger.warning("Rejected ID token: %s", exc)
            raise AuthenticationError("Invalid ID token") from exc
        return UserProfile(
            uid=claims["uid"],
            email=claims.get("email") or "",
            display_name=claims.get("name") or "",
        )


class DevTokenVerifier:
    """Treats the token as the uid and looks the profile up in the users collection."""

    def __init__(self, friends: FriendsService):
        self.friends = friends

    def verify(self, token: str) -> UserProfile:
        uid = token.strip()
        if not uid:
            raise AuthenticationError("Empty token")
        return self.friends.get_profile(uid) or UserProfile(uid=uid, email="")


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Expected a bearer token")
    return token.strip()


def resolve_user(
    verifier: TokenVerifier, friends: FriendsService, token: str
) -> UserProfile:
    """Verify ``token`` and fill in the fields only the stored profile carries."""
    user = verifier.verify(token)
    stored = friends.get_profile(user.uid)
    if stored is None:
        return user
    return UserProfile(
        uid=user.uid,
        email=user.email or stored.email,
        display_name=stored.display_name or user.display_name,
        username=stored.username,
    )
