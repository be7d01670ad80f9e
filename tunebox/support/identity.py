from __future__ import annotations

import logging
from typing import Optional

from flask import current_app, has_request_context
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from tunebox.database.db_manager import User, db
from tunebox.domain.catalog.track_source import SpotifyCredential, TrackSourceAdapter

logger = logging.getLogger(__name__)


def authenticated_user() -> Optional[User]:
    """Return the signed-in user for the current request, if any."""
    if not has_request_context():
        return None
    if not getattr(current_user, "is_authenticated", False):
        return None
    return current_user._get_current_object()


def spotify_credential_for(user: Optional[User]) -> Optional[SpotifyCredential]:
    if user is None or not user.spotify_access_token:
        return None
    return SpotifyCredential(
        access_token=user.spotify_access_token,
        refresh_token=user.spotify_refresh_token,
        expires_at=user.spotify_expires_at,
        product=user.spotify_product,
    )


def store_spotify_credential(user: User, credential: SpotifyCredential) -> None:
    user.spotify_access_token = credential.access_token
    user.spotify_refresh_token = credential.refresh_token
    user.spotify_expires_at = credential.expires_at
    if credential.product:
        user.spotify_product = credential.product


def track_source() -> TrackSourceAdapter:
    return current_app.extensions["track_source"]


def resolve_caller_credential(adapter: Optional[TrackSourceAdapter] = None) -> Optional[SpotifyCredential]:
    """Resolve the caller's Spotify credential, persisting it when it was refreshed.

    Anonymous callers and users without a linked account yield ``None``.
    Failing to persist a refreshed token is logged but does not prevent its use
    for the current request.
    """
    user = authenticated_user()
    credential = spotify_credential_for(user)
    if credential is None:
        return None
    adapter = adapter or track_source()
    usable = adapter.resolve_credential(credential)
    if usable is not None and usable.refreshed:
        try:
            store_spotify_credential(user, usable)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to persist refreshed Spotify token for user %s", user.id)
    return usable


__all__ = [
    "authenticated_user",
    "spotify_credential_for",
    "store_spotify_credential",
    "track_source",
    "resolve_caller_credential",
]
