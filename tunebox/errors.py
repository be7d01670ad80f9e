"""Error taxonomy shared by the HTTP surface, the catalog adapter and the player."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException


class TuneBoxError(Exception):
    """Base error carrying a stable error code and the HTTP status it maps to."""

    code = "internal_error"
    http_status = 500

    def __init__(self, message: str = "", *, code: Optional[str] = None, meta: Optional[Mapping[str, Any]] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code
        self.meta = dict(meta or {})

    def to_dict(self) -> dict:
        payload = {"error": self.code}
        if self.meta:
            payload.update(self.meta)
        return payload


class Unauthorized(TuneBoxError):
    code = "authentication_required"
    http_status = 401


class NotFound(TuneBoxError):
    """Missing resource, or one the caller does not own."""

    code = "not_found"
    http_status = 404


class ValidationFailure(TuneBoxError):
    code = "invalid_parameters"
    http_status = 400


class UpstreamFailure(TuneBoxError):
    code = "upstream_failure"
    http_status = 500

    def __init__(self, message: str = "", *, status: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status = status


class RateLimited(UpstreamFailure):
    """Transient throttling signal; callers may retry."""

    code = "rate_limited"
    http_status = 429


def register_error_handlers(app) -> None:
    """Render taxonomy errors as JSON and keep store failures opaque."""

    @app.errorhandler(TuneBoxError)
    def _handle_tunebox_error(exc: TuneBoxError):
        if exc.http_status >= 500:
            app.logger.error("Request failed: %s", exc.message)
            return jsonify({"error": exc.code}), exc.http_status
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(SQLAlchemyError)
    def _handle_store_error(exc: SQLAlchemyError):
        from tunebox.database.db_manager import db

        db.session.rollback()
        app.logger.exception("Data store error: %s", exc)
        return jsonify({"error": "internal_error"}), 500

    @app.errorhandler(HTTPException)
    def _handle_http_error(exc: HTTPException):
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"error": code}), exc.code or 500

    @app.errorhandler(Exception)
    def _handle_unexpected_error(exc: Exception):
        app.logger.exception("Unhandled error: %s", exc)
        return jsonify({"error": "internal_error"}), 500


__all__ = [
    "TuneBoxError",
    "Unauthorized",
    "NotFound",
    "ValidationFailure",
    "UpstreamFailure",
    "RateLimited",
    "register_error_handlers",
]
