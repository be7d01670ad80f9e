"""SQLAlchemy persistence layer."""

from .db_manager import Artist, Favorite, Playlist, PlaylistSong, Song, User, db, initialize_database

__all__ = ["Artist", "Favorite", "Playlist", "PlaylistSong", "Song", "User", "db", "initialize_database"]
