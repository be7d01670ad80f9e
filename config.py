#!/usr/bin/env python
# config.py
import os
from typing import List

# This assumes config.py is at the root of your project
basedir = os.path.abspath(os.path.dirname(__file__))


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _get_csv_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name)
    source = raw if raw is not None else default
    return [token.strip() for token in source.split(",") if token and token.strip()]


SONGS_SOURCES = ("spotify", "database")


def _get_songs_source() -> str:
    value = (os.getenv("SONGS_SOURCE") or "spotify").strip().lower()
    return value if value in SONGS_SOURCES else "spotify"


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'tunebox-dev-secret'

    # Database (TuneBox)
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'tunebox', 'database', 'instance', 'tunebox.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Seed the fallback catalogue (artists + songs) into an empty database
    SEED_CATALOG = _get_bool('SEED_CATALOG', True)

    # Spotify Web API (user-authorized, so client credentials alone are not enough)
    SPOTIFY_CLIENT_ID = os.environ.get('SPOTIFY_CLIENT_ID')
    SPOTIFY_CLIENT_SECRET = os.environ.get('SPOTIFY_CLIENT_SECRET')
    SPOTIFY_REDIRECT_URI = os.getenv('SPOTIFY_REDIRECT_URI', 'http://127.0.0.1:5000/api/auth/spotify/callback')
    SPOTIFY_SCOPES = os.getenv(
        'SPOTIFY_SCOPES',
        'user-library-read user-top-read playlist-read-private user-read-private '
        'user-read-email streaming user-read-playback-state user-modify-playback-state',
    )

    # Which backend answers GET /api/songs: 'spotify' (adapter + fallback) or 'database'
    SONGS_SOURCE = _get_songs_source()

    # Upstream query behaviour
    UPSTREAM_RESULT_LIMIT = max(1, min(50, _get_int('UPSTREAM_RESULT_LIMIT', 20)))
    UPSTREAM_MAX_RETRIES = max(1, _get_int('UPSTREAM_MAX_RETRIES', 3))
    UPSTREAM_RETRY_BASE_DELAY_SECONDS = max(0.0, _get_float('UPSTREAM_RETRY_BASE_DELAY_SECONDS', 1.0))
    # Refresh the access token when it expires within this many seconds
    TOKEN_EXPIRY_BUFFER_SECONDS = max(0, _get_int('TOKEN_EXPIRY_BUFFER_SECONDS', 300))

    # HTTP surface
    CORS_ALLOWED_ORIGINS = _get_csv_list('CORS_ALLOWED_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000')
    CONTENT_SECURITY_POLICY = os.getenv('CONTENT_SECURITY_POLICY', "default-src 'self'")

    # Player client
    TUNEBOX_API_URL = os.getenv('TUNEBOX_API_URL', 'http://127.0.0.1:5000')
    PLAYER_POLL_INTERVAL_SECONDS = max(0.1, _get_float('PLAYER_POLL_INTERVAL_SECONDS', 0.5))
    PLAYER_DEVICE_NAME = os.getenv('PLAYER_DEVICE_NAME', 'TuneBox Player')

    # Runtime behavior
    DEBUG = _get_bool('DEBUG', False)
    # Control console logging; when disabled, logs go only to file
    ENABLE_CONSOLE_LOGS = _get_bool('ENABLE_CONSOLE_LOGS', False)
