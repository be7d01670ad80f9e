#!/usr/bin/env python
"""
Spotify Web API payload -> canonical DTO conversion utilities.

Spotify track, artist and playlist objects arrive as plain dicts from
spotipy; these helpers reshape them into the models the API serves.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .dto import Artist, LibraryPlaylist, Song


def _first_image_url(images: Optional[Iterable[dict]]) -> Optional[str]:
    for image in images or []:
        url = (image or {}).get("url")
        if url:
            return url
    return None


def track_to_song(track: dict) -> Song:
    artists = track.get("artists") or []
    first_artist = artists[0] if artists else {}
    album = track.get("album") or {}
    preview_url = track.get("preview_url") or ""
    artist_id = first_artist.get("id") or ""

    return Song(
        id=track["id"],
        title=track.get("name") or "",
        # Truncate, never round
        duration=max(0, int(track.get("duration_ms") or 0) // 1000),
        audio_url=preview_url,
        image_url=_first_image_url(album.get("images")),
        artists={"id": artist_id, "name": first_artist.get("name") or "Unknown Artist"},
        artist_id=artist_id,
        hasPreview=bool(preview_url),
        spotifyUri=track.get("uri"),
    )


def artist_to_dto(artist: dict) -> Artist:
    return Artist(
        id=artist["id"],
        name=artist.get("name") or "",
        image_url=_first_image_url(artist.get("images")),
        genres=list(artist.get("genres") or []),
        popularity=int(artist.get("popularity") or 0),
    )


def playlist_to_dto(playlist: dict) -> LibraryPlaylist:
    return LibraryPlaylist(
        id=playlist["id"],
        name=playlist.get("name") or "",
        description=playlist.get("description") or "",
        image_url=_first_image_url(playlist.get("images")),
        tracks_count=int((playlist.get("tracks") or {}).get("total") or 0),
        owner=(playlist.get("owner") or {}).get("display_name") or "",
    )


def tracks_to_songs(tracks: Iterable[Optional[dict]]) -> List[Song]:
    # Spotify pads search pages with nulls and local files without ids
    return [track_to_song(track) for track in tracks if track and track.get("id")]


__all__ = [
    "track_to_song",
    "artist_to_dto",
    "playlist_to_dto",
    "tracks_to_songs",
]
