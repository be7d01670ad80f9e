import pytest
import requests

from tests.support.stubs import FakeMixer, SpotifyStub, spotify_error
from tunebox.models.dto import Song
from tunebox.player.engines import (
    ENGINE_ENDED,
    ENGINE_PAUSED,
    ENGINE_POSITION,
    EngineFailure,
    PremiumEngine,
    PreviewEngine,
)


def _song(song_id="a", audio_url="https://p.scdn.co/a.mp3", uri="spotify:track:a"):
    return Song(id=song_id, title="Song", duration=30, audio_url=audio_url, hasPreview=bool(audio_url), spotifyUri=uri)


def _preview():
    mixer = FakeMixer()
    fetched = []

    def _fetch(url):
        fetched.append(url)
        return b"ID3-bytes"

    engine = PreviewEngine(mixer=mixer, fetch=_fetch, poll_interval=None)
    events = []
    engine.on_state_change = lambda kind, position: events.append((kind, position))
    return engine, mixer.music, fetched, events


@pytest.mark.unit
def test_preview_engine_downloads_and_plays_from_offset():
    engine, music, fetched, _ = _preview()

    engine.load(_song())
    engine.set_volume(40)
    engine.play()

    assert fetched == ["https://p.scdn.co/a.mp3"]
    assert ("play", 0.0) in music.calls
    assert music.volume == 0.4


@pytest.mark.unit
def test_preview_pause_resume_and_seek():
    engine, music, _, _ = _preview()
    engine.load(_song())
    engine.play()

    engine.pause()
    engine.play()
    engine.seek(12)

    assert [call[0] for call in music.calls[-3:]] == ["pause", "unpause", "play"]
    assert music.calls[-1] == ("play", 12.0)
    music.pos_ms = 2500
    assert engine.position() == pytest.approx(14.5)


@pytest.mark.unit
def test_preview_seek_while_paused_stays_paused():
    engine, music, _, _ = _preview()
    engine.load(_song())
    engine.play()
    engine.pause()

    engine.seek(5)

    assert music.calls[-2:] == [("play", 5.0), ("pause",)]


@pytest.mark.unit
def test_preview_poll_reports_position_then_end():
    engine, music, _, events = _preview()
    engine.load(_song())
    engine.play()

    music.pos_ms = 1000
    engine.poll_once()
    music.busy = False
    engine.poll_once()
    engine.poll_once()

    assert events == [(ENGINE_POSITION, 1.0), (ENGINE_ENDED, 30.0)]


@pytest.mark.unit
def test_preview_without_audio_or_with_failed_download_raises():
    engine, _, _, _ = _preview()
    with pytest.raises(EngineFailure):
        engine.load(_song(audio_url=""))

    def _broken(url):
        raise requests.ConnectionError("offline")

    broken = PreviewEngine(mixer=FakeMixer(), fetch=_broken, poll_interval=None)
    with pytest.raises(EngineFailure):
        broken.load(_song())


@pytest.mark.unit
def test_preview_stop_unloads():
    engine, music, _, _ = _preview()
    engine.load(_song())

    engine.stop()

    assert music.calls[-2:] == [("stop",), ("unload",)]
    engine.play()
    assert music.calls[-1] == ("unload",)


def _premium(stub=None):
    stub = stub or SpotifyStub()
    engine = PremiumEngine(stub, "device-1", poll_interval=None)
    events = []
    engine.on_state_change = lambda kind, position: events.append((kind, position))
    return engine, stub, events


@pytest.mark.unit
def test_premium_engine_transfers_once_and_starts_uri():
    engine, stub, _ = _premium()

    engine.load(_song())
    engine.play()
    engine.load(_song("b", uri="spotify:track:b"))

    assert len(stub.calls_to("transfer_playback")) == 1
    assert stub.calls_to("start_playback")[0][2] == {
        "device_id": "device-1",
        "uris": ["spotify:track:a"],
        "position_ms": 0,
    }
    # Loading the next song pauses the previous one
    assert stub.calls_to("pause_playback")


@pytest.mark.unit
def test_premium_engine_seek_volume_and_resume():
    engine, stub, _ = _premium()
    engine.load(_song())
    engine.play()

    engine.seek(7.5)
    engine.set_volume(130)
    engine.pause()
    engine.play()

    assert stub.calls_to("seek_track")[0][1] == (7500,)
    assert stub.calls_to("volume")[0][1] == (100,)
    assert stub.calls_to("start_playback")[-1][2]["uris"] is None


@pytest.mark.unit
def test_premium_engine_requires_uri_and_wraps_errors():
    engine, stub, _ = _premium()
    with pytest.raises(EngineFailure):
        engine.load(_song(uri=None))

    stub.will_return("start_playback", spotify_error(403))
    engine.load(_song())
    with pytest.raises(EngineFailure):
        engine.play()


@pytest.mark.unit
def test_premium_poll_reports_remote_pause_and_track_end():
    engine, stub, events = _premium()
    engine.load(_song())
    engine.play()

    stub.will_return(
        "current_playback",
        {"item": {"uri": "spotify:track:a"}, "progress_ms": 4000, "is_playing": False},
        {"item": {"uri": "spotify:track:other"}, "progress_ms": 0, "is_playing": True},
    )
    engine.poll_once()
    engine.poll_once()

    assert events == [(ENGINE_PAUSED, 4.0), (ENGINE_POSITION, 4.0), (ENGINE_ENDED, 0.0)]


@pytest.mark.unit
def test_premium_connect_picks_named_device():
    stub = SpotifyStub().will_return(
        "devices",
        {"devices": [{"id": "d1", "name": "Phone", "is_active": True}, {"id": "d2", "name": "TuneBox Player"}]},
    )

    engine = PremiumEngine.connect("token", "TuneBox Player", poll_interval=None, spotify_factory=stub.factory)

    assert engine.device_id == "d2"
    assert stub.tokens == ["token"]


@pytest.mark.unit
def test_premium_connect_without_devices_returns_none():
    stub = SpotifyStub().will_return("devices", {"devices": []})

    assert PremiumEngine.connect("token", spotify_factory=stub.factory) is None


@pytest.mark.unit
def test_premium_poll_waits_for_the_device_to_switch_tracks():
    engine, stub, events = _premium()
    engine.load(_song())
    engine.play()

    stub.will_return(
        "current_playback",
        {"item": {"uri": "spotify:track:previous"}, "progress_ms": 90000, "is_playing": True},
        {"item": {"uri": "spotify:track:a"}, "progress_ms": 0, "is_playing": False},
        {"item": {"uri": "spotify:track:a"}, "progress_ms": 1000, "is_playing": True},
    )
    engine.poll_once()
    engine.poll_once()
    engine.poll_once()

    assert ENGINE_ENDED not in [kind for kind, _ in events]
    assert events[-1] == (ENGINE_POSITION, 1.0)
