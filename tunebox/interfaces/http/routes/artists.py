"""Artist listing plus the caller's Spotify library feeds."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from sqlalchemy import func

from tunebox.database.db_manager import Artist
from tunebox.support.identity import resolve_caller_credential, track_source


artist_bp = Blueprint('artist_bp', __name__, url_prefix='/api')


def _search_arg() -> str:
    return (request.args.get('search') or '').strip()


@artist_bp.route('/artists', methods=['GET'])
def list_artists():
    search = _search_arg()
    query = Artist.query
    if search:
        query = query.filter(func.lower(Artist.name).contains(search.lower(), autoescape=True))
    artists = query.order_by(Artist.name.asc()).all()
    return jsonify([artist.to_dict() for artist in artists]), 200


@artist_bp.route('/library/artists', methods=['GET'])
def library_artists():
    artists = track_source().fetch_artists(resolve_caller_credential(), _search_arg() or None)
    return jsonify([artist.model_dump() for artist in artists]), 200


@artist_bp.route('/library/playlists', methods=['GET'])
def library_playlists():
    playlists = track_source().fetch_playlists(resolve_caller_credential(), _search_arg() or None)
    return jsonify([playlist.model_dump() for playlist in playlists]), 200


__all__ = ['artist_bp']
