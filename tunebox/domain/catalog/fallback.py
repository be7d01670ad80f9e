"""Deterministic fallback catalogue served when Spotify cannot answer."""

from __future__ import annotations

from typing import List, Optional

from tunebox.models.dto import Artist, LibraryPlaylist, Song

_DEMO_AUDIO_URL = "https://www.learningcontainer.com/wp-content/uploads/2020/02/Kalimba.mp3"

_FALLBACK_ARTISTS = (
    {
        "id": "fallback-artist-1",
        "name": "The Weeknd",
        "image_url": "https://i.scdn.co/image/ab6761610000e5eb8ae7f2aaa9817a704a87ea36",
        "genres": ["pop", "r&b"],
        "popularity": 95,
    },
    {
        "id": "fallback-artist-2",
        "name": "Dua Lipa",
        "image_url": "https://i.scdn.co/image/ab6761610000e5eb2107f7b5a9c1e5e45a8d6b6b",
        "genres": ["pop", "dance"],
        "popularity": 90,
    },
    {
        "id": "fallback-artist-3",
        "name": "Harry Styles",
        "image_url": None,
        "genres": ["pop"],
        "popularity": 88,
    },
    {
        "id": "fallback-artist-4",
        "name": "Ed Sheeran",
        "image_url": None,
        "genres": ["pop", "singer-songwriter"],
        "popularity": 89,
    },
    {
        "id": "fallback-artist-5",
        "name": "Clean Bandit",
        "image_url": None,
        "genres": ["dance pop", "electronic"],
        "popularity": 74,
    },
)

_FALLBACK_SONGS = (
    ("fallback-1", "Blinding Lights", 201, "ab67616d0000b2738863bc11d2aa12b54f5aeb36", 0),
    ("fallback-2", "Levitating", 203, "ab67616d0000b2738b58d20f1b772edebca33a3b", 1),
    ("fallback-3", "Watermelon Sugar", 174, "ab67616d0000b273adaa848e5c4e6b1b0e47cd92", 2),
    ("fallback-4", "Perfect", 263, "ab67616d0000b273ba5db46f4b838ef6027e6f96", 3),
    ("fallback-5", "Rather Be", 228, "ab67616d0000b273d0e83a20e1e3e5a0b3e9b3b3", 4),
)

_FALLBACK_PLAYLISTS = (
    {
        "id": "fallback-playlist-1",
        "name": "Top Hits",
        "description": "The biggest songs of the year",
        "image_url": None,
        "tracks_count": 50,
        "owner": "Spotify",
    },
    {
        "id": "fallback-playlist-2",
        "name": "Chill Vibes",
        "description": "Relaxing music for any time",
        "image_url": None,
        "tracks_count": 30,
        "owner": "Spotify",
    },
)


def fallback_artists(search: Optional[str] = None) -> List[Artist]:
    artists = [Artist(**data) for data in _FALLBACK_ARTISTS]
    return [artist for artist in artists if artist.matches(search or "")]


def fallback_songs(search: Optional[str] = None) -> List[Song]:
    """Return a fresh copy of the fallback songs, filtered when a search is given."""
    songs = []
    for song_id, title, duration, image_hash, artist_index in _FALLBACK_SONGS:
        artist = _FALLBACK_ARTISTS[artist_index]
        songs.append(
            Song(
                id=song_id,
                title=title,
                duration=duration,
                audio_url=_DEMO_AUDIO_URL,
                image_url=f"https://i.scdn.co/image/{image_hash}",
                artists={"id": artist["id"], "name": artist["name"]},
                artist_id=artist["id"],
                hasPreview=True,
            )
        )
    return [song for song in songs if song.matches(search or "")]


def fallback_playlists(search: Optional[str] = None) -> List[LibraryPlaylist]:
    playlists = [LibraryPlaylist(**data) for data in _FALLBACK_PLAYLISTS]
    return [playlist for playlist in playlists if playlist.matches(search or "")]


__all__ = ["fallback_artists", "fallback_songs", "fallback_playlists"]
