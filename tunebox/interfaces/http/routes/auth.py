#!/usr/bin/env python
"""Authentication API endpoints: account session plus Spotify account linking."""

from __future__ import annotations

import re
import secrets
from typing import Dict, Tuple

from flask import Blueprint, current_app, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user

from tunebox.database.db_manager import User, db
from tunebox.errors import NotFound, UpstreamFailure, ValidationFailure
from tunebox.support.identity import resolve_caller_credential, store_spotify_credential, track_source


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_STATE_SESSION_KEY = "spotify_oauth_state"


def _validate_credentials(payload: Dict[str, str]) -> Tuple[str, str, Dict[str, str]]:
    email = (payload.get("email") or "").strip().lower()
    password = (payload.get("password") or "").strip()
    errors: Dict[str, str] = {}
    if not email or not _EMAIL_RE.match(email):
        errors["email"] = "Please provide a valid email address."
    if len(password) < 8:
        errors["password"] = "Password must be at least 8 characters long."
    return email, password, errors


@auth_bp.route("/register", methods=["POST"])
def register_user():
    data = request.get_json(silent=True) or {}
    email, password, errors = _validate_credentials(data)
    if errors:
        return jsonify({"errors": errors}), 400

    existing = User.query.filter_by(email=email).first()
    if existing:
        return jsonify({"errors": {"email": "An account with this email already exists."}}), 409

    user = User(email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    login_user(user)
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = (data.get("password") or "").strip()

    if not email or not password:
        return jsonify({"errors": {"form": "Email and password are required."}}), 400

    user = User.query.filter_by(email=email).first()
    if user is None or not user.check_password(password):
        return jsonify({"errors": {"form": "Invalid email or password."}}), 401

    if not user.is_active:
        return jsonify({"errors": {"form": "Account is disabled."}}), 403

    login_user(user)
    return jsonify({"user": user.to_dict()}), 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    if current_user.is_authenticated:
        logout_user()
    return jsonify({"success": True}), 200


@auth_bp.route("/session", methods=["GET"])
def session_info():
    if current_user.is_authenticated:
        return jsonify({"user": current_user.to_dict()}), 200
    return jsonify({"user": None}), 200


@auth_bp.route("/spotify/login", methods=["GET"])
@login_required
def spotify_login():
    state = secrets.token_urlsafe(16)
    session[_STATE_SESSION_KEY] = state
    return jsonify({"authorize_url": track_source().authorize_url(state=state)}), 200


@auth_bp.route("/spotify/callback", methods=["GET"])
@login_required
def spotify_callback():
    if request.args.get("error"):
        raise ValidationFailure(code="spotify_denied", meta={"reason": request.args.get("error")})
    code = (request.args.get("code") or "").strip()
    if not code:
        raise ValidationFailure(code="code_required")
    expected_state = session.pop(_STATE_SESSION_KEY, None)
    if not expected_state or request.args.get("state") != expected_state:
        raise ValidationFailure(code="state_mismatch")

    try:
        credential, profile = track_source().exchange_code(code)
    except UpstreamFailure as exc:
        current_app.logger.warning("Spotify account linking failed: %s", exc)
        return jsonify({"error": "spotify_link_failed"}), 502

    user = current_user._get_current_object()
    store_spotify_credential(user, credential)
    user.spotify_product = credential.product
    user.spotify_user_id = profile.get("id")
    db.session.commit()
    current_app.logger.info("Linked Spotify account for user %s (product=%s)", user.id, credential.product)
    return jsonify({"user": user.to_dict()}), 200


@auth_bp.route("/spotify/token", methods=["GET"])
@login_required
def spotify_token():
    """Hand the player a usable access token for Spotify Connect playback."""
    credential = resolve_caller_credential()
    if credential is None:
        raise NotFound(code="spotify_not_linked")
    return jsonify(
        {
            "access_token": credential.access_token,
            "expires_at": credential.expires_at,
            "premium": credential.is_premium,
        }
    ), 200


__all__ = ["auth_bp"]
