"""Route blueprints exposed via Flask."""

from .auth import auth_bp
from .songs import songs_bp
from .artists import artist_bp
from .favorites import favorite_bp
from .playlists import playlist_bp
from .health import health_bp

__all__ = [
    "auth_bp",
    "songs_bp",
    "artist_bp",
    "favorite_bp",
    "playlist_bp",
    "health_bp",
]
