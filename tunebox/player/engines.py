"""Audio engines behind the player and the policy choosing between them.

Two concrete engines exist:

* ``PremiumEngine`` drives a Spotify Connect device through spotipy and
  plays the full track. It needs a premium account, a device and a
  ``spotifyUri`` on the song.
* ``PreviewEngine`` downloads the 30 second preview clip and plays it with
  ``pygame.mixer.music``.

``PlaybackEngine`` listens to a :class:`QueueController` and keeps exactly
one engine loaded for the active song. When an engine fails it degrades to
the next one instead of raising into the UI.
"""

from __future__ import annotations

import io
import logging
import os
import threading
from typing import Callable, Optional

import requests
from spotipy import Spotify, SpotifyException

from tunebox.models.dto import Song
from tunebox.player.controller import PlaybackState, PlayerEvent, QueueController

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame  # noqa: E402

logger = logging.getLogger(__name__)

MODE_PREMIUM = "premium"
MODE_PREVIEW = "preview"
MODE_UNAVAILABLE = "unavailable"

# Engine -> listener notifications
ENGINE_POSITION = "position"
ENGINE_PLAYING = "playing"
ENGINE_PAUSED = "paused"
ENGINE_ENDED = "ended"

StateCallback = Callable[[str, float], None]


class EngineFailure(Exception):
    """Raised by an engine that can no longer play the loaded song."""


class AudioEngine:
    """Capability interface shared by the premium and preview engines."""

    mode = MODE_UNAVAILABLE

    def __init__(self, poll_interval: Optional[float] = None):
        self.on_state_change: Optional[StateCallback] = None
        self.poll_interval = poll_interval
        self._poll_thread: Optional[threading.Thread] = None
        self._stop_poll = threading.Event()

    def load(self, song: Song) -> None:
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def seek(self, seconds: float) -> None:
        raise NotImplementedError

    def set_volume(self, percent: int) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def poll_once(self) -> None:
        """Sample the backend once and emit state changes."""

    def _emit(self, kind: str, position: float = 0.0) -> None:
        if self.on_state_change is not None:
            self.on_state_change(kind, position)

    def _ensure_polling(self) -> None:
        if not self.poll_interval or (self._poll_thread and self._poll_thread.is_alive()):
            return
        self._stop_poll.clear()
        self._poll_thread = threading.Thread(target=self._poll_loop, name=f"{self.mode}-poll", daemon=True)
        self._poll_thread.start()

    def _poll_loop(self) -> None:
        while not self._stop_poll.wait(self.poll_interval):
            try:
                self.poll_once()
            except EngineFailure as exc:
                logger.warning("%s engine poll failed: %s", self.mode, exc)
            except Exception:
                logger.exception("%s engine poll crashed", self.mode)

    def close(self) -> None:
        self._stop_poll.set()
        try:
            self.stop()
        except EngineFailure as exc:
            logger.debug("Ignoring failure while closing %s engine: %s", self.mode, exc)


def _download_preview(url: str, timeout: float = 10.0) -> bytes:
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.content


class PreviewEngine(AudioEngine):
    """Plays preview clips through ``pygame.mixer.music``.

    ``get_pos`` reports milliseconds since the last ``play`` call, so the
    engine tracks the offset it started from and adds it back.
    """

    mode = MODE_PREVIEW

    def __init__(self, mixer=None, fetch: Callable[[str], bytes] = _download_preview, poll_interval: Optional[float] = 0.5):
        super().__init__(poll_interval)
        self._mixer = mixer
        self._fetch = fetch
        self._song: Optional[Song] = None
        self._offset = 0.0
        self._started = False
        self._playing = False
        self._volume = 1.0

    @property
    def mixer(self):
        if self._mixer is None:
            if not pygame.mixer.get_init():
                try:
                    pygame.mixer.init()
                except pygame.error as exc:
                    raise EngineFailure(f"audio device unavailable: {exc}") from exc
            self._mixer = pygame.mixer
        return self._mixer

    def position(self) -> float:
        if not self._started:
            return self._offset
        return self._offset + max(0, self.mixer.music.get_pos()) / 1000.0

    def load(self, song: Song) -> None:
        if not song.audio_url:
            raise EngineFailure(f"song {song.id} has no preview")
        self.stop()
        try:
            data = self._fetch(song.audio_url)
        except requests.RequestException as exc:
            raise EngineFailure(f"preview download failed: {exc}") from exc
        try:
            self.mixer.music.load(io.BytesIO(data))
            self.mixer.music.set_volume(self._volume)
        except pygame.error as exc:
            raise EngineFailure(f"preview could not be decoded: {exc}") from exc
        self._song = song
        self._offset = 0.0
        self._started = False
        self._playing = False
        self._ensure_polling()

    def _start_at(self, seconds: float) -> None:
        try:
            self.mixer.music.play(start=seconds)
        except pygame.error as exc:
            raise EngineFailure(f"preview playback failed: {exc}") from exc
        self._offset = seconds
        self._started = True

    def play(self) -> None:
        if self._song is None:
            return
        if self._started:
            self.mixer.music.unpause()
        else:
            self._start_at(self._offset)
        self._playing = True

    def pause(self) -> None:
        if self._started and self._playing:
            self.mixer.music.pause()
        self._playing = False

    def seek(self, seconds: float) -> None:
        if self._song is None:
            return
        seconds = max(0.0, float(seconds))
        if not self._started:
            self._offset = seconds
            return
        was_playing = self._playing
        self._start_at(seconds)
        if not was_playing:
            self.mixer.music.pause()

    def set_volume(self, percent: int) -> None:
        self._volume = max(0.0, min(1.0, percent / 100.0))
        if self._mixer is not None or pygame.mixer.get_init():
            self.mixer.music.set_volume(self._volume)

    def stop(self) -> None:
        if self._song is not None:
            self.mixer.music.stop()
            unload = getattr(self.mixer.music, "unload", None)
            if unload is not None:
                unload()
        self._song = None
        self._offset = 0.0
        self._started = False
        self._playing = False

    def poll_once(self) -> None:
        if self._song is None or not self._playing:
            return
        if not self.mixer.music.get_busy():
            self._playing = False
            self._started = False
            self._emit(ENGINE_ENDED, float(self._song.duration))
            return
        self._emit(ENGINE_POSITION, self.position())


class PremiumEngine(AudioEngine):
    """Full-track playback on a Spotify Connect device."""

    mode = MODE_PREMIUM

    def __init__(self, spotify: Spotify, device_id: str, poll_interval: Optional[float] = 1.0):
        super().__init__(poll_interval)
        self.spotify = spotify
        self.device_id = device_id
        self._uri: Optional[str] = None
        self._position = 0.0
        self._started = False
        self._playing = False
        self._transferred = False
        self._confirmed = False

    @classmethod
    def connect(cls, access_token: str, device_name: Optional[str] = None, poll_interval: Optional[float] = 1.0,
                spotify_factory: Callable[..., Spotify] = Spotify) -> Optional["PremiumEngine"]:
        """Find a Connect device for the token, or None when none is reachable."""
        spotify = spotify_factory(auth=access_token, retries=0, status_retries=0, requests_timeout=10)
        try:
            devices = (spotify.devices() or {}).get("devices") or []
        except (SpotifyException, requests.RequestException) as exc:
            logger.warning("Could not list Spotify Connect devices: %s", exc)
            return None
        if not devices:
            logger.info("No Spotify Connect device is online; using previews")
            return None
        chosen = None
        if device_name:
            chosen = next((d for d in devices if d.get("name") == device_name), None)
        if chosen is None:
            chosen = next((d for d in devices if d.get("is_active")), devices[0])
        logger.info("Using Spotify Connect device %s", chosen.get("name"))
        return cls(spotify, chosen["id"], poll_interval=poll_interval)

    def _call(self, action: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (SpotifyException, requests.RequestException) as exc:
            raise EngineFailure(f"Spotify {action} failed: {exc}") from exc

    def load(self, song: Song) -> None:
        if not song.spotify_uri:
            raise EngineFailure(f"song {song.id} has no Spotify URI")
        self.stop()
        if not self._transferred:
            self._call("transfer", self.spotify.transfer_playback, self.device_id, force_play=False)
            self._transferred = True
        self._uri = song.spotify_uri
        self._position = 0.0
        self._started = False
        self._playing = False
        self._ensure_polling()

    def play(self) -> None:
        if self._uri is None:
            return
        if self._started:
            self._call("resume", self.spotify.start_playback, device_id=self.device_id)
        else:
            self._call(
                "start",
                self.spotify.start_playback,
                device_id=self.device_id,
                uris=[self._uri],
                position_ms=int(self._position * 1000),
            )
            self._started = True
            self._confirmed = False
        self._playing = True

    def pause(self) -> None:
        if self._started and self._playing:
            self._call("pause", self.spotify.pause_playback, device_id=self.device_id)
        self._playing = False

    def seek(self, seconds: float) -> None:
        self._position = max(0.0, float(seconds))
        if self._started:
            self._call("seek", self.spotify.seek_track, int(self._position * 1000), device_id=self.device_id)

    def set_volume(self, percent: int) -> None:
        self._call("volume", self.spotify.volume, int(max(0, min(100, percent))), device_id=self.device_id)

    def stop(self) -> None:
        if self._started and self._playing:
            try:
                self.spotify.pause_playback(device_id=self.device_id)
            except (SpotifyException, requests.RequestException) as exc:
                logger.debug("Pause on stop failed: %s", exc)
        self._uri = None
        self._position = 0.0
        self._started = False
        self._playing = False
        self._confirmed = False

    def poll_once(self) -> None:
        if self._uri is None or not self._started:
            return
        playback = self._call("state", self.spotify.current_playback)
        if not playback:
            return
        item = playback.get("item") or {}
        position = (playback.get("progress_ms") or 0) / 1000.0
        remote_playing = bool(playback.get("is_playing"))

        if item.get("uri") != self._uri and not self._confirmed:
            # The device has not switched to the new track yet
            return
        if item.get("uri") != self._uri or (
            self._confirmed and self._playing and not remote_playing and position == 0
        ):
            # Single-uri context finished or the device moved on
            self._playing = False
            self._started = False
            self._emit(ENGINE_ENDED, position)
            return
        self._confirmed = True
        self._position = position
        if remote_playing != self._playing:
            self._playing = remote_playing
            self._emit(ENGINE_PLAYING if remote_playing else ENGINE_PAUSED, position)
        self._emit(ENGINE_POSITION, position)


class PlaybackEngine:
    """Keeps the right engine loaded for the controller's active song."""

    def __init__(self, controller: QueueController, preview: Optional[AudioEngine] = None,
                 premium: Optional[AudioEngine] = None, premium_user: bool = False):
        self.controller = controller
        self.preview = preview
        self.premium = premium
        self.premium_user = premium_user
        self.active: Optional[AudioEngine] = None
        self.mode = MODE_UNAVAILABLE
        self._engine_playing = False
        self._lock = threading.RLock()
        for engine in (preview, premium):
            if engine is not None:
                engine.on_state_change = self._make_engine_listener(engine)
        self._unsubscribe = controller.subscribe(self._on_player_event)

    def mode_for(self, song: Optional[Song]) -> str:
        if song is None:
            return MODE_UNAVAILABLE
        if self.premium is not None and self.premium_user and song.spotify_uri:
            return MODE_PREMIUM
        if self.preview is not None and song.audio_url:
            return MODE_PREVIEW
        return MODE_UNAVAILABLE

    def _candidates(self, song: Song):
        mode = self.mode_for(song)
        if mode == MODE_PREMIUM:
            yield self.premium
            if self.preview is not None and song.audio_url:
                yield self.preview
        elif mode == MODE_PREVIEW:
            yield self.preview

    # --- Controller -> engine ---------------------------------------------

    def _on_player_event(self, controller: QueueController, event: PlayerEvent) -> None:
        with self._lock:
            if event is PlayerEvent.SONG:
                self._switch(controller.current_song)
            elif event is PlayerEvent.STATE:
                self._apply_state()
            elif event is PlayerEvent.SEEK:
                self._guard(lambda engine: engine.seek(controller.elapsed))
            elif event is PlayerEvent.VOLUME:
                self._guard(lambda engine: engine.set_volume(controller.volume))

    def _stop_active(self) -> None:
        if self.active is None:
            return
        try:
            self.active.stop()
        except EngineFailure as exc:
            logger.warning("Stopping %s engine failed: %s", self.active.mode, exc)
        self.active = None
        self.mode = MODE_UNAVAILABLE
        self._engine_playing = False

    def _switch(self, song: Optional[Song], skip: Optional[AudioEngine] = None) -> None:
        self._stop_active()
        if song is None:
            return
        for engine in self._candidates(song):
            if engine is skip:
                continue
            try:
                engine.load(song)
                engine.set_volume(self.controller.volume)
                if self.controller.is_playing:
                    engine.play()
            except EngineFailure as exc:
                logger.warning("%s engine cannot play %s: %s", engine.mode, song.id, exc)
                try:
                    engine.stop()
                except EngineFailure as stop_exc:
                    logger.debug("Cleanup of %s engine failed: %s", engine.mode, stop_exc)
                continue
            self.active = engine
            self.mode = engine.mode
            self._engine_playing = self.controller.is_playing
            return
        logger.info("No playable source for %s", song.id)
        if self.controller.is_playing:
            self.controller.toggle_play_pause()

    def _apply_state(self) -> None:
        state = self.controller.state
        if state is PlaybackState.STOPPED:
            self._stop_active()
            return
        if self.active is None:
            # Previously unavailable or stopped; try again for the current song
            if state is PlaybackState.PLAYING:
                self._switch(self.controller.current_song)
            return
        if state is PlaybackState.PLAYING and not self._engine_playing:
            self._engine_playing = True
            self._guard(lambda engine: engine.play())
        elif state is PlaybackState.PAUSED and self._engine_playing:
            self._engine_playing = False
            self._guard(lambda engine: engine.pause())

    def _guard(self, action) -> None:
        engine = self.active
        if engine is None:
            return
        try:
            action(engine)
        except EngineFailure as exc:
            logger.warning("%s engine failed, degrading: %s", engine.mode, exc)
            self._degrade(engine)

    def _degrade(self, failed: AudioEngine) -> None:
        song = self.controller.current_song
        elapsed = self.controller.elapsed
        self._switch(song, skip=failed)
        if self.active is not None and elapsed:
            self._guard(lambda engine: engine.seek(elapsed))

    # --- Engine -> controller ---------------------------------------------

    def _make_engine_listener(self, engine: AudioEngine) -> StateCallback:
        def _listener(kind: str, position: float) -> None:
            if engine is not self.active:
                return
            if kind == ENGINE_POSITION:
                self.controller.update_position(position)
            elif kind == ENGINE_ENDED:
                self.controller.next()
            elif kind == ENGINE_PAUSED and self.controller.is_playing:
                self.controller.toggle_play_pause()
            elif kind == ENGINE_PLAYING and self.controller.state is PlaybackState.PAUSED:
                self.controller.toggle_play_pause()

        return _listener

    def close(self) -> None:
        self._unsubscribe()
        with self._lock:
            self._stop_active()
        for engine in (self.preview, self.premium):
            if engine is not None:
                engine.close()


__all__ = [
    "AudioEngine",
    "EngineFailure",
    "PreviewEngine",
    "PremiumEngine",
    "PlaybackEngine",
    "MODE_PREMIUM",
    "MODE_PREVIEW",
    "MODE_UNAVAILABLE",
]
