#!/usr/bin/env python
"""
Pydantic DTOs for the canonical catalog shapes served by the API.

Songs coming from the database, from the Spotify Web API, or from the
fallback catalogue are all normalized into these models before they leave
the server, and the player client parses responses back into them.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ArtistRef(BaseModel):
    """Artist embedded in a song."""

    id: str = ""
    name: str = "Unknown Artist"


class Song(BaseModel):
    """Canonical song regardless of upstream origin."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str
    duration: int = Field(default=0, ge=0)
    audio_url: str = ""
    image_url: Optional[str] = None
    artists: ArtistRef = Field(default_factory=ArtistRef)
    artist_id: str = ""
    has_preview: bool = Field(default=False, alias="hasPreview")
    spotify_uri: Optional[str] = Field(default=None, alias="spotifyUri")

    @model_validator(mode="after")
    def _preview_follows_audio(self) -> "Song":
        self.has_preview = bool(self.audio_url)
        if not self.artist_id and self.artists.id:
            self.artist_id = self.artists.id
        return self

    @property
    def artist_name(self) -> str:
        return self.artists.name

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match over title and artist name."""
        lowered = (needle or "").strip().lower()
        if not lowered:
            return True
        return lowered in self.title.lower() or lowered in self.artists.name.lower()

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class Artist(BaseModel):
    """Artist listing entry."""

    id: str
    name: str
    image_url: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    popularity: int = Field(default=0, ge=0)

    def matches(self, needle: str) -> bool:
        lowered = (needle or "").strip().lower()
        return not lowered or lowered in self.name.lower()


class LibraryPlaylist(BaseModel):
    """Summary of a playlist living in the caller's Spotify library."""

    id: str
    name: str
    description: str = ""
    image_url: Optional[str] = None
    tracks_count: int = Field(default=0, ge=0)
    owner: str = ""

    def matches(self, needle: str) -> bool:
        lowered = (needle or "").strip().lower()
        return not lowered or lowered in self.name.lower() or lowered in self.description.lower()


__all__ = ["ArtistRef", "Song", "Artist", "LibraryPlaylist"]
