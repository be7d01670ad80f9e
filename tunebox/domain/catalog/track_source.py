"""Spotify-backed catalog adapter with token refresh, backoff and fallback data."""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple, TypeVar

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from config import Config
from tunebox.errors import RateLimited, UpstreamFailure
from tunebox.models.dto import Artist, LibraryPlaylist, Song
from tunebox.models.spotify_mapping import artist_to_dto, playlist_to_dto, tracks_to_songs
from tunebox.observability.metrics import record_fallback, record_upstream_request, record_upstream_retry

from .fallback import fallback_artists, fallback_playlists, fallback_songs

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SpotifyCredential:
    """Token set linked to a TuneBox user."""

    access_token: Optional[str]
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    product: Optional[str] = None
    refreshed: bool = False

    @property
    def is_premium(self) -> bool:
        return (self.product or "").lower() == "premium"

    def is_fresh(self, buffer_seconds: int, now: float) -> bool:
        if not self.access_token or self.expires_at is None:
            return False
        return self.expires_at > now + buffer_seconds


def build_oauth(
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    scope: Optional[str] = None,
) -> SpotifyOAuth:
    """SpotifyOAuth manager that never touches the filesystem cache or a browser."""
    return SpotifyOAuth(
        client_id=client_id or Config.SPOTIFY_CLIENT_ID,
        client_secret=client_secret or Config.SPOTIFY_CLIENT_SECRET,
        redirect_uri=redirect_uri or Config.SPOTIFY_REDIRECT_URI,
        scope=scope or Config.SPOTIFY_SCOPES,
        cache_handler=MemoryCacheHandler(),
        open_browser=False,
    )


def _default_spotify_factory(access_token: str) -> spotipy.Spotify:
    # Rate-limit retries are handled here, so spotipy's own retry loop is disabled
    return spotipy.Spotify(auth=access_token, retries=0, status_retries=0, requests_timeout=10)


class TrackSourceAdapter:
    """Normalizes Spotify library/search results into canonical catalog models.

    Every public ``fetch_*`` method returns a renderable list: missing or
    unrefreshable credentials, exhausted rate-limit retries, upstream errors
    and empty answers all degrade to the fixed fallback catalogue.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        *,
        result_limit: Optional[int] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        expiry_buffer: Optional[int] = None,
        spotify_factory: Optional[Callable[[str], Any]] = None,
        oauth_factory: Optional[Callable[[], Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self._client_id = client_id or Config.SPOTIFY_CLIENT_ID
        self._client_secret = client_secret or Config.SPOTIFY_CLIENT_SECRET
        self._redirect_uri = redirect_uri or Config.SPOTIFY_REDIRECT_URI
        self.result_limit = result_limit or Config.UPSTREAM_RESULT_LIMIT
        self.max_retries = max(1, max_retries or Config.UPSTREAM_MAX_RETRIES)
        self.base_delay = Config.UPSTREAM_RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay
        self.expiry_buffer = Config.TOKEN_EXPIRY_BUFFER_SECONDS if expiry_buffer is None else expiry_buffer
        self._spotify_factory = spotify_factory or _default_spotify_factory
        self._oauth_factory = oauth_factory or (
            lambda: build_oauth(self._client_id, self._client_secret, self._redirect_uri)
        )
        self._sleep = sleep
        self._clock = clock

    # --- Credentials -----------------------------------------------------

    def resolve_credential(self, credential: Optional[SpotifyCredential]) -> Optional[SpotifyCredential]:
        """Return a credential safe to use right now, refreshing it when close to expiry.

        ``None`` means there is nothing usable: no token linked, no refresh
        token, or the refresh exchange failed.
        """
        if credential is None or not credential.access_token:
            return None
        if credential.is_fresh(self.expiry_buffer, self._clock()):
            return credential
        if not credential.refresh_token:
            logger.info("Spotify access token expired and no refresh token is stored.")
            return None
        if not self._client_id or not self._client_secret:
            logger.warning("Spotify client credentials are not configured; cannot refresh access token.")
            return None

        try:
            token_info = self._oauth_factory().refresh_access_token(credential.refresh_token)
        except (SpotifyOauthError, SpotifyException, requests.RequestException) as exc:
            logger.warning("Failed to refresh Spotify access token: %s", exc)
            return None

        access_token = (token_info or {}).get("access_token")
        if not access_token:
            logger.warning("Spotify token refresh returned no access token.")
            return None
        expires_at = token_info.get("expires_at")
        if expires_at is None:
            expires_at = int(self._clock()) + int(token_info.get("expires_in") or 3600)
        logger.debug("Spotify access token refreshed; expires at %s", expires_at)
        return dataclasses.replace(
            credential,
            access_token=access_token,
            refresh_token=token_info.get("refresh_token") or credential.refresh_token,
            expires_at=int(expires_at),
            refreshed=True,
        )

    def authorize_url(self, state: Optional[str] = None) -> str:
        return self._oauth_factory().get_authorize_url(state=state)

    def exchange_code(self, code: str) -> Tuple[SpotifyCredential, dict]:
        """Trade an authorization code for a token set and the account profile."""
        try:
            token_info = self._oauth_factory().get_access_token(code, as_dict=True, check_cache=False)
        except (SpotifyOauthError, requests.RequestException) as exc:
            raise UpstreamFailure(f"authorization code exchange failed: {exc}") from exc
        access_token = (token_info or {}).get("access_token")
        if not access_token:
            raise UpstreamFailure("authorization code exchange returned no access token")

        client = self._spotify_factory(access_token)
        profile = self._call_with_retry("profile", client.current_user) or {}
        credential = SpotifyCredential(
            access_token=access_token,
            refresh_token=token_info.get("refresh_token"),
            expires_at=int(token_info.get("expires_at") or (self._clock() + int(token_info.get("expires_in") or 3600))),
            product=profile.get("product"),
        )
        return credential, profile

    # --- Upstream calls --------------------------------------------------

    def _call_with_retry(self, operation: str, call: Callable[[], T]) -> T:
        delay = self.base_delay
        for attempt in range(1, self.max_retries + 1):
            try:
                result = call()
            except SpotifyException as exc:
                if exc.http_status == 429:
                    if attempt < self.max_retries:
                        record_upstream_retry(operation)
                        logger.warning(
                            "Spotify rate limited during %s; retrying in %.1fs (attempt %s/%s)",
                            operation, delay, attempt, self.max_retries,
                        )
                        self._sleep(delay)
                        delay *= 2
                        continue
                    record_upstream_request(operation, "rate_limited")
                    raise RateLimited(f"{operation}: retries exhausted", status=429) from exc
                record_upstream_request(operation, "error")
                raise UpstreamFailure(f"{operation}: {exc.msg}", status=exc.http_status) from exc
            except requests.RequestException as exc:
                record_upstream_request(operation, "error")
                raise UpstreamFailure(f"{operation}: {exc}") from exc
            record_upstream_request(operation, "ok")
            return result
        # range() is never empty because max_retries >= 1
        raise RateLimited(f"{operation}: retries exhausted", status=429)

    def _fetch(
        self,
        operation: str,
        credential: Optional[SpotifyCredential],
        search: Optional[str],
        query: Callable[[Any, Optional[str]], List[T]],
        fallback: Callable[[Optional[str]], List[T]],
    ) -> List[T]:
        needle = (search or "").strip() or None
        usable = self.resolve_credential(credential)
        if usable is None:
            record_fallback(operation, "no_credential")
            logger.info("No usable Spotify credential for %s; serving fallback catalogue.", operation)
            return fallback(needle)

        client = self._spotify_factory(usable.access_token)
        try:
            items = self._call_with_retry(operation, lambda: query(client, needle))
        except RateLimited:
            record_fallback(operation, "rate_limited")
            logger.warning("Spotify kept rate limiting %s; serving fallback catalogue.", operation)
            return fallback(needle)
        except UpstreamFailure as exc:
            record_fallback(operation, "upstream_error")
            logger.warning("Spotify API error during %s: %s; serving fallback catalogue.", operation, exc)
            return fallback(needle)
        except (KeyError, TypeError, ValueError) as exc:
            record_fallback(operation, "malformed")
            logger.error("Malformed Spotify payload during %s: %s", operation, exc, exc_info=True)
            return fallback(needle)

        if not items:
            record_fallback(operation, "empty")
            logger.info("Spotify returned nothing for %s; serving fallback catalogue.", operation)
            return fallback(needle)
        return items

    # --- Feeds -------------------------------------------------------------

    def fetch_songs(self, credential: Optional[SpotifyCredential], search: Optional[str] = None) -> List[Song]:
        """Search tracks, or list the caller's saved tracks when no search is given."""

        def _query(client, needle):
            if needle:
                result = client.search(q=needle, type="track", limit=self.result_limit)
                return tracks_to_songs(((result or {}).get("tracks") or {}).get("items") or [])
            result = client.current_user_saved_tracks(limit=self.result_limit)
            return tracks_to_songs(item.get("track") for item in (result or {}).get("items") or [] if item)

        return self._fetch("songs", credential, search, _query, fallback_songs)

    def fetch_artists(self, credential: Optional[SpotifyCredential], search: Optional[str] = None) -> List[Artist]:
        """Search artists, or list the caller's top artists."""

        def _query(client, needle):
            if needle:
                result = client.search(q=needle, type="artist", limit=self.result_limit)
                items = ((result or {}).get("artists") or {}).get("items") or []
            else:
                items = (client.current_user_top_artists(limit=self.result_limit) or {}).get("items") or []
            return [artist_to_dto(item) for item in items if item]

        return self._fetch("artists", credential, search, _query, fallback_artists)

    def fetch_playlists(
        self, credential: Optional[SpotifyCredential], search: Optional[str] = None
    ) -> List[LibraryPlaylist]:
        """Search playlists, or list the caller's own playlists."""

        def _query(client, needle):
            if needle:
                result = client.search(q=needle, type="playlist", limit=self.result_limit)
                items = ((result or {}).get("playlists") or {}).get("items") or []
            else:
                items = (client.current_user_playlists(limit=self.result_limit) or {}).get("items") or []
            return [playlist_to_dto(item) for item in items if item]

        return self._fetch("playlists", credential, search, _query, fallback_playlists)


__all__ = ["SpotifyCredential", "TrackSourceAdapter", "build_oauth"]
