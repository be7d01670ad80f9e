"""Plain-text rendering of the player state."""

from typing import Iterable, Optional, Set

from tunebox.models.dto import Song
from tunebox.player.engines import MODE_PREMIUM, MODE_PREVIEW

MODE_LABELS = {
    MODE_PREMIUM: "full track",
    MODE_PREVIEW: "preview",
}


def format_time(seconds) -> str:
    """Render seconds as ``m:ss``; negative or missing values read as zero."""
    try:
        total = int(seconds or 0)
    except (TypeError, ValueError):
        total = 0
    total = max(0, total)
    return f"{total // 60}:{total % 60:02d}"


def progress_bar(elapsed: float, duration: int, width: int = 30) -> str:
    if duration <= 0:
        filled = 0
    else:
        filled = int(round(width * min(1.0, max(0.0, elapsed / duration))))
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def render_now_playing(song: Optional[Song], elapsed: float = 0.0, playing: bool = False,
                       mode: str = "unavailable", favorite: bool = False, volume: int = 0) -> str:
    if song is None:
        return "Nothing selected"
    marker = "*" if favorite else " "
    status = "Playing" if playing else "Paused"
    label = MODE_LABELS.get(mode, "unavailable")
    lines = [
        f"{marker} {song.title} - {song.artist_name}",
        f"  {progress_bar(elapsed, song.duration)} {format_time(elapsed)} / {format_time(song.duration)}",
        f"  {status} | {label} | vol {volume}%",
    ]
    return "\n".join(lines)


def render_song_list(songs: Iterable[Song], current_id: Optional[str] = None,
                     favorite_ids: Optional[Set[str]] = None) -> str:
    favorite_ids = favorite_ids or set()
    rows = []
    for number, song in enumerate(songs, start=1):
        cursor = ">" if song.id == current_id else " "
        star = "*" if song.id in favorite_ids else " "
        preview = "" if song.has_preview else " (no preview)"
        rows.append(
            f"{cursor}{star}{number:>3}. {song.title} - {song.artist_name} [{format_time(song.duration)}]{preview}"
        )
    if not rows:
        return "No songs found"
    return "\n".join(rows)
