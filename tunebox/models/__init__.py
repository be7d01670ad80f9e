"""Wire-level data shapes shared by the API and the player."""

from .dto import Artist, ArtistRef, LibraryPlaylist, Song

__all__ = ["Artist", "ArtistRef", "LibraryPlaylist", "Song"]
