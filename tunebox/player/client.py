"""HTTP client the player uses to reach the TuneBox collection endpoints."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Set

import requests

from config import Config
from tunebox.errors import NotFound, Unauthorized, UpstreamFailure, ValidationFailure
from tunebox.models.dto import Song

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    400: ValidationFailure,
    401: Unauthorized,
    404: NotFound,
}


class CollectionClient:
    """Thin wrapper over ``requests.Session`` keeping the login cookie."""

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.base_url = (base_url or Config.TUNEBOX_API_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise UpstreamFailure(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            code = None
            try:
                code = (response.json() or {}).get("error")
            except ValueError:
                pass
            error_cls = _STATUS_ERRORS.get(response.status_code)
            if error_cls is not None:
                raise error_cls(f"{method} {path}", code=code)
            raise UpstreamFailure(f"{method} {path} answered {response.status_code}", status=response.status_code)
        if not response.content:
            return None
        return response.json()

    # --- Session -----------------------------------------------------------

    def login(self, email: str, password: str) -> dict:
        return self._request("POST", "/api/auth/login", json={"email": email, "password": password})["user"]

    def logout(self) -> None:
        self._request("POST", "/api/auth/logout")

    def spotify_token(self) -> Optional[dict]:
        """Access token + premium flag for Spotify Connect, or None when not linked."""
        try:
            return self._request("GET", "/api/auth/spotify/token")
        except (NotFound, Unauthorized):
            return None

    # --- Collections -------------------------------------------------------

    def fetch_songs(self, search: Optional[str] = None) -> List[Song]:
        params = {"search": search} if search else None
        return [Song.model_validate(item) for item in self._request("GET", "/api/songs", params=params) or []]

    def fetch_favorite_songs(self) -> List[Song]:
        favorites = self._request("GET", "/api/favorites") or []
        return [Song.model_validate(item["songs"]) for item in favorites if item.get("songs")]

    def fetch_favorite_ids(self) -> Set[str]:
        favorites = self._request("GET", "/api/favorites") or []
        return {str(item["song_id"]) for item in favorites}

    def add_favorite(self, song: Song) -> dict:
        return self._request("POST", "/api/favorites", json={"songId": song.id, "song": song.to_wire()})

    def remove_favorite(self, song_id: str) -> None:
        self._request("DELETE", "/api/favorites", json={"songId": song_id})

    def fetch_playlists(self) -> List[dict]:
        return self._request("GET", "/api/playlists") or []

    def fetch_playlist_songs(self, playlist_id: int) -> List[Song]:
        playlist = self._request("GET", f"/api/playlists/{playlist_id}") or {}
        return [
            Song.model_validate(entry["songs"])
            for entry in playlist.get("playlist_songs") or []
            if entry.get("songs")
        ]

    def create_playlist(self, name: str, description: Optional[str] = None) -> dict:
        return self._request("POST", "/api/playlists", json={"name": name, "description": description})

    def delete_playlist(self, playlist_id: int) -> None:
        self._request("DELETE", f"/api/playlists/{playlist_id}")

    def add_to_playlist(self, playlist_id: int, song: Song) -> dict:
        return self._request(
            "POST", f"/api/playlists/{playlist_id}/songs", json={"songId": song.id, "song": song.to_wire()}
        )

    def remove_from_playlist(self, playlist_id: int, song_id: str) -> None:
        self._request("DELETE", f"/api/playlists/{playlist_id}/songs", json={"songId": song_id})


__all__ = ["CollectionClient"]
