"""Catalog domain services (Spotify adapter, fallback catalogue)."""

from .fallback import fallback_artists, fallback_playlists, fallback_songs
from .track_source import SpotifyCredential, TrackSourceAdapter, build_oauth

__all__ = [
    "SpotifyCredential",
    "TrackSourceAdapter",
    "build_oauth",
    "fallback_artists",
    "fallback_playlists",
    "fallback_songs",
]
