"""Favorite songs of the signed-in user."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError

from tunebox.database.db_manager import Favorite, db

from .payloads import json_body, require_song_id, resolve_song


favorite_bp = Blueprint('favorite_bp', __name__, url_prefix='/api/favorites')


def _find_favorite(song_id: str) -> Favorite | None:
    return Favorite.query.filter_by(user_id=current_user.id, song_id=song_id).first()


@favorite_bp.route('', methods=['GET'])
@login_required
def list_favorites():
    favorites = (
        Favorite.query.filter_by(user_id=current_user.id)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
        .all()
    )
    return jsonify([favorite.to_dict() for favorite in favorites]), 200


@favorite_bp.route('', methods=['POST'])
@login_required
def add_favorite():
    payload = json_body()
    song = resolve_song(payload)

    favorite = _find_favorite(song.id)
    if favorite is None:
        favorite = Favorite(user_id=current_user.id, song=song)
        db.session.add(favorite)
        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent add won the unique (user, song) constraint
            db.session.rollback()
            favorite = _find_favorite(song.id)
            if favorite is None:
                raise

    current_app.logger.info("User %s favorited song %s", current_user.id, song.id)
    return jsonify(favorite.to_dict()), 201


@favorite_bp.route('', methods=['DELETE'])
@login_required
def remove_favorite():
    song_id = require_song_id(json_body())
    removed = Favorite.query.filter_by(user_id=current_user.id, song_id=song_id).delete()
    db.session.commit()
    if removed:
        current_app.logger.info("User %s unfavorited song %s", current_user.id, song_id)
    return jsonify({'success': True}), 200


__all__ = ['favorite_bp']
