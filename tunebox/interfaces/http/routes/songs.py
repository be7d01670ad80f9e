"""Song listing backed by Spotify (with fallback) or the local catalogue."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func, or_

from tunebox.database.db_manager import Artist, Song
from tunebox.support.identity import resolve_caller_credential, track_source


songs_bp = Blueprint('songs_bp', __name__, url_prefix='/api/songs')


def _database_songs(search: str) -> list[dict]:
    query = Song.query.outerjoin(Artist, Song.artist_id == Artist.id)
    if search:
        needle = search.lower()
        query = query.filter(
            or_(
                func.lower(Song.title).contains(needle, autoescape=True),
                func.lower(Artist.name).contains(needle, autoescape=True),
            )
        )
    return [song.to_dict() for song in query.order_by(Song.title.asc()).all()]


def _spotify_songs(search: str) -> list[dict]:
    credential = resolve_caller_credential()
    return [song.to_wire() for song in track_source().fetch_songs(credential, search or None)]


@songs_bp.route('', methods=['GET'])
def list_songs():
    search = (request.args.get('search') or '').strip()
    if current_app.config.get('SONGS_SOURCE') == 'database':
        songs = _database_songs(search)
    else:
        songs = _spotify_songs(search)

    current_app.logger.info(
        "Returning %s songs%s", len(songs), f" for search {search!r}" if search else ""
    )
    return jsonify(songs), 200


__all__ = ['songs_bp']
