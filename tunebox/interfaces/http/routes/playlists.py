"""Playlist routes with ownership enforcement.

Playlists that do not exist and playlists owned by someone else both answer
404 so a caller cannot probe for other users' playlist ids.
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError

from tunebox.database.db_manager import Playlist, PlaylistSong, db
from tunebox.errors import NotFound, ValidationFailure

from .payloads import json_body, require_song_id, resolve_song


playlist_bp = Blueprint('playlist_bp', __name__, url_prefix='/api/playlists')


def _owned_playlist(playlist_id: int) -> Playlist:
    playlist = Playlist.query.filter_by(id=playlist_id, user_id=current_user.id).first()
    if playlist is None:
        raise NotFound()
    return playlist


def _find_entry(playlist_id: int, song_id: str) -> PlaylistSong | None:
    return PlaylistSong.query.filter_by(playlist_id=playlist_id, song_id=song_id).first()


def _clean_description(payload: dict) -> str | None:
    return (payload.get('description') or '').strip() or None


@playlist_bp.route('', methods=['GET'])
@login_required
def list_playlists():
    playlists = (
        Playlist.query.filter_by(user_id=current_user.id)
        .order_by(Playlist.created_at.desc(), Playlist.id.desc())
        .all()
    )
    return jsonify([playlist.to_dict() for playlist in playlists]), 200


@playlist_bp.route('', methods=['POST'])
@login_required
def create_playlist():
    payload = json_body()
    name = (payload.get('name') or '').strip()
    if not name:
        raise ValidationFailure(code='name_required')

    playlist = Playlist(name=name, description=_clean_description(payload), user_id=current_user.id)
    db.session.add(playlist)
    db.session.commit()
    current_app.logger.info("User %s created playlist %s", current_user.id, playlist.id)
    return jsonify(playlist.to_dict()), 201


@playlist_bp.route('/<int:playlist_id>', methods=['GET'])
@login_required
def get_playlist(playlist_id: int):
    return jsonify(_owned_playlist(playlist_id).to_dict()), 200


@playlist_bp.route('/<int:playlist_id>', methods=['PUT'])
@login_required
def update_playlist(playlist_id: int):
    playlist = _owned_playlist(playlist_id)
    payload = json_body()
    if 'name' in payload:
        name = (payload.get('name') or '').strip()
        if not name:
            raise ValidationFailure(code='name_required')
        playlist.name = name
    if 'description' in payload:
        playlist.description = _clean_description(payload)
    db.session.commit()
    return jsonify(playlist.to_dict()), 200


@playlist_bp.route('/<int:playlist_id>', methods=['DELETE'])
@login_required
def delete_playlist(playlist_id: int):
    playlist = _owned_playlist(playlist_id)
    db.session.delete(playlist)
    db.session.commit()
    current_app.logger.info("User %s deleted playlist %s", current_user.id, playlist_id)
    return jsonify({'success': True}), 200


@playlist_bp.route('/<int:playlist_id>/songs', methods=['POST'])
@login_required
def add_song(playlist_id: int):
    playlist = _owned_playlist(playlist_id)
    song = resolve_song(json_body())

    entry = _find_entry(playlist.id, song.id)
    if entry is None:
        next_position = max((item.position for item in playlist.entries), default=-1) + 1
        entry = PlaylistSong(playlist=playlist, song=song, position=next_position)
        db.session.add(entry)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            entry = _find_entry(playlist_id, song.id)
            if entry is None:
                raise

    return jsonify(entry.to_dict()), 201


@playlist_bp.route('/<int:playlist_id>/songs', methods=['DELETE'])
@login_required
def remove_song(playlist_id: int):
    playlist = _owned_playlist(playlist_id)
    song_id = require_song_id(json_body())

    entry = _find_entry(playlist.id, song_id)
    if entry is not None:
        playlist.entries.remove(entry)
        for index, item in enumerate(playlist.entries):
            item.position = index
        db.session.commit()
    return jsonify({'success': True}), 200


__all__ = ['playlist_bp']
