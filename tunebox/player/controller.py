"""Queue and transport state for one player view.

``QueueController`` is the single owner of the browsable queue, the active
index and the transport state. Engines and views never keep their own copy
of "the current song"; they subscribe and read it from here.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Iterable, List, Optional, Protocol, Set

from tunebox.errors import TuneBoxError
from tunebox.models.dto import Song

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


class PlayerEvent(str, Enum):
    QUEUE = "queue"          # queue contents replaced
    SONG = "song"            # active song (re)started from zero
    STATE = "state"          # playing/paused/stopped changed
    SEEK = "seek"            # user moved the playhead
    POSITION = "position"    # engine reported progress
    VOLUME = "volume"
    FAVORITES = "favorites"


Listener = Callable[["QueueController", PlayerEvent], None]


class FavoritesGateway(Protocol):
    def add_favorite(self, song: Song) -> dict: ...

    def remove_favorite(self, song_id: str) -> None: ...

    def fetch_favorite_ids(self) -> Set[str]: ...


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class QueueController:
    def __init__(
        self,
        favorites: Optional[FavoritesGateway] = None,
        songs: Optional[Iterable[Song]] = None,
        volume: int = 70,
    ):
        self._lock = threading.RLock()
        self._favorites_gateway = favorites
        self._songs: List[Song] = []
        self._index: Optional[int] = None
        self._state = PlaybackState.STOPPED
        self._elapsed = 0.0
        self._volume = int(_clamp(volume, 0, 100))
        self._favorite_ids: Set[str] = set()
        self._issued_sequence = 0
        self._listeners: List[Listener] = []
        if songs is not None:
            self.replace_queue(list(songs))

    # --- Observation -------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, *events: PlayerEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for event in events:
            for listener in listeners:
                try:
                    listener(self, event)
                except Exception:
                    logger.exception("Player listener failed handling %s", event.value)

    # --- Read side ---------------------------------------------------------

    @property
    def songs(self) -> List[Song]:
        with self._lock:
            return list(self._songs)

    @property
    def index(self) -> Optional[int]:
        return self._index

    @property
    def current_song(self) -> Optional[Song]:
        with self._lock:
            if self._index is None:
                return None
            return self._songs[self._index]

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def volume(self) -> int:
        return self._volume

    @property
    def favorite_ids(self) -> Set[str]:
        with self._lock:
            return set(self._favorite_ids)

    def is_favorite(self, song: Optional[Song] = None) -> bool:
        song = song or self.current_song
        return song is not None and song.id in self._favorite_ids

    # --- Queue -------------------------------------------------------------

    def next_sequence(self) -> int:
        """Issue a number for an outgoing fetch; only the newest one may land."""
        with self._lock:
            self._issued_sequence += 1
            return self._issued_sequence

    def replace_queue(self, songs: Iterable[Song], sequence: Optional[int] = None) -> bool:
        """Swap in a fresh fetch result. Returns False when the result was stale."""
        new_songs = list(songs)
        with self._lock:
            if sequence is not None and sequence < self._issued_sequence:
                logger.debug("Discarding stale queue result %s (latest %s)", sequence, self._issued_sequence)
                return False

            current = self.current_song
            self._songs = new_songs
            events = [PlayerEvent.QUEUE]
            kept = None
            if current is not None:
                kept = next((i for i, song in enumerate(new_songs) if song.id == current.id), None)

            if kept is not None:
                self._index = kept
            elif new_songs:
                self._index = 0
                self._elapsed = 0.0
                if self._state is PlaybackState.PLAYING:
                    # The playing song left the queue; its replacement waits for the user
                    self._state = PlaybackState.PAUSED
                    events.append(PlayerEvent.STATE)
                events.append(PlayerEvent.SONG)
            else:
                self._index = None
                self._elapsed = 0.0
                if self._state is not PlaybackState.STOPPED:
                    self._state = PlaybackState.STOPPED
                    events.append(PlayerEvent.STATE)
                if current is not None:
                    events.append(PlayerEvent.SONG)
        self._notify(*events)
        return True

    # --- Transport ---------------------------------------------------------

    def _start(self, index: int) -> None:
        self._index = index
        self._elapsed = 0.0
        self._state = PlaybackState.PLAYING

    def play(self, song: Song) -> bool:
        with self._lock:
            index = next((i for i, item in enumerate(self._songs) if item.id == song.id), None)
            if index is None:
                logger.debug("Ignoring play request for %s: not in queue", song.id)
                return False
            self._start(index)
        self._notify(PlayerEvent.SONG, PlayerEvent.STATE)
        return True

    def play_index(self, index: int) -> bool:
        with self._lock:
            if not 0 <= index < len(self._songs):
                return False
            song = self._songs[index]
        return self.play(song)

    def toggle_play_pause(self) -> None:
        with self._lock:
            if self.current_song is None:
                return
            if self._state is PlaybackState.PLAYING:
                self._state = PlaybackState.PAUSED
            else:
                self._state = PlaybackState.PLAYING
        self._notify(PlayerEvent.STATE)

    def next(self) -> None:
        with self._lock:
            if not self._songs:
                return
            index = 0 if self._index is None else (self._index + 1) % len(self._songs)
            self._start(index)
        self._notify(PlayerEvent.SONG, PlayerEvent.STATE)

    def previous(self) -> None:
        with self._lock:
            if not self._songs:
                return
            count = len(self._songs)
            index = count - 1 if self._index is None else (self._index - 1) % count
            self._start(index)
        self._notify(PlayerEvent.SONG, PlayerEvent.STATE)

    def seek(self, seconds: float) -> None:
        with self._lock:
            song = self.current_song
            if song is None:
                return
            self._elapsed = _clamp(float(seconds), 0.0, float(song.duration))
        self._notify(PlayerEvent.SEEK)

    def update_position(self, seconds: float) -> None:
        """Record progress reported by the playback engine."""
        with self._lock:
            song = self.current_song
            if song is None:
                return
            self._elapsed = _clamp(float(seconds), 0.0, float(song.duration))
        self._notify(PlayerEvent.POSITION)

    def set_volume(self, volume: float) -> None:
        with self._lock:
            self._volume = int(_clamp(round(volume), 0, 100))
        self._notify(PlayerEvent.VOLUME)

    def stop(self) -> None:
        with self._lock:
            self._state = PlaybackState.STOPPED
            self._elapsed = 0.0
        self._notify(PlayerEvent.STATE)

    # --- Favorites ---------------------------------------------------------

    def load_favorites(self, song_ids: Iterable[str]) -> None:
        with self._lock:
            self._favorite_ids = {str(song_id) for song_id in song_ids}
        self._notify(PlayerEvent.FAVORITES)

    def refresh_favorites(self) -> bool:
        """Reload the authoritative favorite ids; False when the fetch failed."""
        if self._favorites_gateway is None:
            return False
        try:
            ids = self._favorites_gateway.fetch_favorite_ids()
        except TuneBoxError as exc:
            logger.warning("Could not reload favorites: %s", exc)
            return False
        self.load_favorites(ids)
        return True

    def toggle_favorite(self, song: Optional[Song] = None) -> Optional[bool]:
        """Flip the favorite flag optimistically, then confirm with the server.

        On a failed write the local set is rebuilt from the server's answer,
        falling back to the pre-toggle set when that read fails as well.
        Returns the resulting favorite flag, or None with no song to act on.
        """
        with self._lock:
            song = song or self.current_song
            if song is None:
                return None
            before = set(self._favorite_ids)
            adding = song.id not in before
            if adding:
                self._favorite_ids.add(song.id)
            else:
                self._favorite_ids.discard(song.id)
        self._notify(PlayerEvent.FAVORITES)

        if self._favorites_gateway is None:
            return adding
        try:
            if adding:
                self._favorites_gateway.add_favorite(song)
            else:
                self._favorites_gateway.remove_favorite(song.id)
        except TuneBoxError as exc:
            logger.warning("Favorite toggle for %s failed: %s; reconciling with server", song.id, exc)
            if not self.refresh_favorites():
                self.load_favorites(before)
            return self.is_favorite(song)
        return adding


__all__ = ["PlaybackState", "PlayerEvent", "QueueController", "FavoritesGateway"]
