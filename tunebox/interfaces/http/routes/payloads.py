"""Request payload helpers shared by the collection blueprints."""

from __future__ import annotations

from flask import request

from tunebox.database.db_manager import Song, db, upsert_song
from tunebox.errors import NotFound, ValidationFailure


def json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def require_song_id(payload: dict) -> str:
    # DELETE bodies are often dropped by proxies, so the query string also counts
    raw = payload.get('songId') or payload.get('song_id') or request.args.get('songId')
    song_id = str(raw).strip() if raw is not None else ''
    if not song_id:
        raise ValidationFailure(code='song_id_required')
    return song_id


def resolve_song(payload: dict) -> Song:
    """Find the referenced song, upserting it from an inline snapshot when unknown."""
    song_id = require_song_id(payload)
    song = db.session.get(Song, song_id)
    if song is not None:
        return song

    snapshot = payload.get('song')
    if not isinstance(snapshot, dict):
        raise NotFound(code='song_not_found')
    if str(snapshot.get('id') or '') != song_id:
        raise ValidationFailure(code='song_mismatch')
    try:
        return upsert_song(snapshot)
    except ValueError as exc:
        raise ValidationFailure(code='invalid_song', meta={'message': str(exc).splitlines()[0]}) from exc


__all__ = ['json_body', 'require_song_id', 'resolve_song']
