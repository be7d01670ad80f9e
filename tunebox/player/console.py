"""Line-oriented player front end used by ``manage.py play``."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from tunebox.errors import TuneBoxError
from tunebox.models.dto import Song
from tunebox.player import view
from tunebox.player.client import CollectionClient
from tunebox.player.controller import QueueController
from tunebox.player.engines import MODE_UNAVAILABLE, PlaybackEngine, PremiumEngine, PreviewEngine

logger = logging.getLogger(__name__)

HELP = """Commands:
  list              show the queue
  search [TEXT]     reload the queue (empty TEXT clears the filter)
  favorites         load the favorite songs into the queue
  play N            play song number N
  pause             toggle play/pause
  next | prev       skip forward/back (wraps around)
  seek S            jump to S seconds
  vol V             set volume 0-100
  fav               toggle favorite on the current song
  now               show what is playing
  quit              leave the player"""


class PlayerConsole:
    """Parses commands and forwards intent to the controller.

    The console never touches an engine directly; ``PlaybackEngine`` reacts
    to the controller's events.
    """

    def __init__(self, controller: QueueController, client: CollectionClient,
                 playback: Optional[PlaybackEngine] = None,
                 input_fn: Callable[[str], str] = input, output: Callable[[str], None] = print):
        self.controller = controller
        self.client = client
        self.playback = playback
        self._input = input_fn
        self._output = output
        self._commands: Dict[str, Callable[[str], None]] = {
            "list": self.do_list,
            "search": self.do_search,
            "favorites": self.do_favorites,
            "play": self.do_play,
            "pause": self.do_pause,
            "next": self.do_next,
            "prev": self.do_prev,
            "seek": self.do_seek,
            "vol": self.do_vol,
            "fav": self.do_fav,
            "now": self.do_now,
            "help": self.do_help,
        }

    @property
    def mode(self) -> str:
        return self.playback.mode if self.playback is not None else MODE_UNAVAILABLE

    def _say(self, text: str) -> None:
        self._output(text)

    def _playable(self, song: Optional[Song]) -> bool:
        if song is None:
            return False
        if self.playback is not None:
            return self.playback.mode_for(song) != MODE_UNAVAILABLE
        return bool(song.audio_url or song.spotify_uri)

    def _refuse_unplayable(self) -> bool:
        """Transport stays disabled while the current song has no source."""
        song = self.controller.current_song
        if song is None or self._playable(song):
            return False
        if self.controller.is_playing:
            self.controller.toggle_play_pause()
        self._say(f"No playable source for {song.title}")
        return True

    def load_songs(self, search: Optional[str] = None) -> bool:
        sequence = self.controller.next_sequence()
        try:
            songs = self.client.fetch_songs(search)
        except TuneBoxError as exc:
            logger.warning("Loading songs failed: %s", exc)
            self._say(f"Could not load songs ({exc.code})")
            return False
        return self.controller.replace_queue(songs, sequence)

    # --- Commands ----------------------------------------------------------

    def do_list(self, _arg: str) -> None:
        self._say(view.render_song_list(
            self.controller.songs,
            current_id=getattr(self.controller.current_song, "id", None),
            favorite_ids=self.controller.favorite_ids,
        ))

    def do_search(self, arg: str) -> None:
        if self.load_songs(arg.strip() or None):
            self.do_list("")

    def do_favorites(self, _arg: str) -> None:
        sequence = self.controller.next_sequence()
        try:
            songs = self.client.fetch_favorite_songs()
        except TuneBoxError as exc:
            self._say(f"Could not load favorites ({exc.code})")
            return
        if self.controller.replace_queue(songs, sequence):
            self.do_list("")

    def do_play(self, arg: str) -> None:
        if not arg.strip():
            self.do_pause("")
            return
        try:
            number = int(arg)
        except ValueError:
            self._say("Usage: play N")
            return
        if not self.controller.play_index(number - 1):
            self._say(f"No song number {number}")
            return
        if self._refuse_unplayable():
            return
        self.do_now("")

    def do_pause(self, _arg: str) -> None:
        if self._refuse_unplayable():
            return
        self.controller.toggle_play_pause()
        self.do_now("")

    def do_next(self, _arg: str) -> None:
        self.controller.next()
        if self._refuse_unplayable():
            return
        self.do_now("")

    def do_prev(self, _arg: str) -> None:
        self.controller.previous()
        if self._refuse_unplayable():
            return
        self.do_now("")

    def do_seek(self, arg: str) -> None:
        try:
            seconds = float(arg)
        except ValueError:
            self._say("Usage: seek SECONDS")
            return
        if self._refuse_unplayable():
            return
        self.controller.seek(seconds)
        self.do_now("")

    def do_vol(self, arg: str) -> None:
        try:
            self.controller.set_volume(float(arg))
        except ValueError:
            self._say("Usage: vol 0-100")
            return
        self._say(f"Volume {self.controller.volume}%")

    def do_fav(self, _arg: str) -> None:
        result = self.controller.toggle_favorite()
        if result is None:
            self._say("Nothing selected")
            return
        self._say("Added to favorites" if result else "Removed from favorites")

    def do_now(self, _arg: str) -> None:
        song = self.controller.current_song
        self._say(view.render_now_playing(
            song,
            elapsed=self.controller.elapsed,
            playing=self.controller.is_playing,
            mode=self.mode,
            favorite=self.controller.is_favorite(song),
            volume=self.controller.volume,
        ))

    def do_help(self, _arg: str) -> None:
        self._say(HELP)

    # --- Loop --------------------------------------------------------------

    def handle(self, line: str) -> bool:
        """Run one command line. Returns False when the user asked to quit."""
        command, _, arg = line.strip().partition(" ")
        command = command.lower()
        if not command:
            return True
        if command in ("quit", "exit"):
            return False
        handler = self._commands.get(command)
        if handler is None:
            self._say(f"Unknown command: {command} (try 'help')")
            return True
        handler(arg)
        return True

    def run(self) -> None:
        self.controller.refresh_favorites()
        if self.load_songs():
            self.do_list("")
        self._say("Type 'help' for commands.")
        while True:
            try:
                line = self._input("tunebox> ")
            except (EOFError, KeyboardInterrupt):
                break
            if not self.handle(line):
                break
        if self.playback is not None:
            self.playback.close()


def build_console(client: CollectionClient, poll_interval: float = 0.5,
                  device_name: Optional[str] = None) -> PlayerConsole:
    """Wire controller, engines and console for an already logged-in client."""
    controller = QueueController(favorites=client)
    premium = None
    token = client.spotify_token()
    if token and token.get("premium"):
        premium = PremiumEngine.connect(token["access_token"], device_name, poll_interval=max(poll_interval, 1.0))
    elif token:
        logger.info("Spotify account is not premium; full tracks unavailable")
    playback = PlaybackEngine(
        controller,
        preview=PreviewEngine(poll_interval=poll_interval),
        premium=premium,
        premium_user=bool(premium),
    )
    return PlayerConsole(controller, client, playback=playback)
