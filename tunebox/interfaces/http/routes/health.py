from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tunebox.database.db_manager import db

health_bp = Blueprint("health_bp", __name__)


def _spotify_configured() -> bool:
    return bool(current_app.config.get("SPOTIFY_CLIENT_ID") and current_app.config.get("SPOTIFY_CLIENT_SECRET"))


@health_bp.route("/healthz")
def healthz():
    status = 200
    checks = {}

    try:
        db.session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as exc:
        db.session.rollback()
        status = 503
        current_app.logger.error("Health check database probe failed: %s", exc)
        checks["database"] = "error"

    # Missing Spotify credentials only degrade to the fallback catalogue
    checks["spotify"] = "configured" if _spotify_configured() else "fallback_only"
    checks["songs_source"] = current_app.config.get("SONGS_SOURCE")

    overall = "ok" if status == 200 else "degraded"
    return jsonify({"status": overall, "checks": checks}), status


@health_bp.route("/readyz")
def readyz():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({"status": "blocked", "database": "error"}), 503
    return jsonify({"status": "ready"}), 200
