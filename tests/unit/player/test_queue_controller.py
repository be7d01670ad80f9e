import pytest
from hypothesis import given, strategies as st

from tests.support.stubs import FakeFavoritesGateway
from tunebox.models.dto import Song
from tunebox.player.controller import PlaybackState, PlayerEvent, QueueController


def _songs(*ids, duration=200):
    return [Song(id=song_id, title=f"Title {song_id}", duration=duration) for song_id in ids]


def _controller(*ids, duration=200, **kwargs):
    return QueueController(songs=_songs(*ids, duration=duration), **kwargs)


@pytest.mark.unit
def test_first_song_is_selected_but_not_playing():
    controller = _controller("a", "b")

    assert controller.current_song.id == "a"
    assert controller.state is PlaybackState.STOPPED


@pytest.mark.unit
def test_play_selects_song_and_resets_elapsed():
    controller = _controller("a", "b", "c")
    controller.seek(50)

    assert controller.play(controller.songs[2]) is True

    assert controller.current_song.id == "c"
    assert controller.is_playing
    assert controller.elapsed == 0


@pytest.mark.unit
def test_play_ignores_songs_outside_the_queue():
    controller = _controller("a")

    assert controller.play(_songs("zzz")[0]) is False
    assert controller.state is PlaybackState.STOPPED


@pytest.mark.unit
def test_next_and_previous_wrap_around():
    controller = _controller("a", "b", "c")
    controller.play_index(2)

    controller.next()
    assert controller.current_song.id == "a"

    controller.previous()
    assert controller.current_song.id == "c"
    assert controller.is_playing


@pytest.mark.unit
@given(steps=st.lists(st.sampled_from(["next", "previous"]), max_size=30), size=st.integers(min_value=1, max_value=6))
def test_index_always_stays_inside_the_queue(steps, size):
    controller = _controller(*[str(i) for i in range(size)])
    expected = 0
    for step in steps:
        getattr(controller, step)()
        expected = (expected + (1 if step == "next" else -1)) % size
    assert controller.index == expected


@pytest.mark.unit
def test_transport_on_empty_queue_is_a_no_op():
    controller = QueueController()

    controller.next()
    controller.previous()
    controller.toggle_play_pause()
    controller.seek(10)

    assert controller.current_song is None
    assert controller.state is PlaybackState.STOPPED


@pytest.mark.unit
def test_toggle_play_pause():
    controller = _controller("a")

    controller.toggle_play_pause()
    assert controller.state is PlaybackState.PLAYING
    controller.toggle_play_pause()
    assert controller.state is PlaybackState.PAUSED


@pytest.mark.unit
@given(target=st.floats(min_value=-1e6, max_value=1e6, allow_nan=False))
def test_seek_is_clamped_to_the_song(target):
    controller = _controller("a", duration=180)

    controller.seek(target)

    assert 0 <= controller.elapsed <= 180


@pytest.mark.unit
@given(volume=st.floats(min_value=-500, max_value=500, allow_nan=False))
def test_volume_is_clamped(volume):
    controller = _controller("a")

    controller.set_volume(volume)

    assert 0 <= controller.volume <= 100


@pytest.mark.unit
def test_stale_queue_results_are_discarded():
    controller = QueueController()
    older = controller.next_sequence()
    newer = controller.next_sequence()

    assert controller.replace_queue(_songs("new"), newer) is True
    assert controller.replace_queue(_songs("old"), older) is False
    assert [song.id for song in controller.songs] == ["new"]


@pytest.mark.unit
def test_replacing_queue_keeps_the_active_song_when_present():
    controller = _controller("a", "b")
    controller.play_index(1)
    controller.seek(42)

    controller.replace_queue(_songs("x", "b"))

    assert controller.current_song.id == "b"
    assert controller.index == 1
    assert controller.elapsed == 42
    assert controller.is_playing


@pytest.mark.unit
def test_replacing_queue_without_the_active_song_selects_first_and_pauses():
    controller = _controller("a")
    controller.play_index(0)
    controller.seek(30)

    controller.replace_queue(_songs("x", "y"))

    assert controller.current_song.id == "x"
    assert controller.elapsed == 0
    assert controller.state is PlaybackState.PAUSED


@pytest.mark.unit
def test_empty_result_stops_playback():
    controller = _controller("a")
    controller.play_index(0)

    controller.replace_queue([])

    assert controller.current_song is None
    assert controller.state is PlaybackState.STOPPED


@pytest.mark.unit
def test_listeners_receive_events_and_can_unsubscribe():
    controller = _controller("a", "b")
    seen = []
    unsubscribe = controller.subscribe(lambda ctrl, event: seen.append(event))

    controller.next()
    controller.set_volume(10)
    unsubscribe()
    controller.next()

    assert seen == [PlayerEvent.SONG, PlayerEvent.STATE, PlayerEvent.VOLUME]


@pytest.mark.unit
def test_failing_listener_does_not_break_others():
    controller = _controller("a")
    seen = []

    def _boom(ctrl, event):
        raise RuntimeError("listener bug")

    controller.subscribe(_boom)
    controller.subscribe(lambda ctrl, event: seen.append(event))
    controller.toggle_play_pause()

    assert seen == [PlayerEvent.STATE]


@pytest.mark.unit
def test_toggle_favorite_is_confirmed_by_the_server():
    gateway = FakeFavoritesGateway()
    controller = _controller("a", favorites=gateway)

    assert controller.toggle_favorite() is True
    assert gateway.server_ids == {"a"}
    assert controller.toggle_favorite() is False
    assert gateway.server_ids == set()
    assert controller.favorite_ids == set()


@pytest.mark.unit
def test_failed_favorite_write_reconciles_with_server_state():
    gateway = FakeFavoritesGateway(server_ids={"b"})
    controller = _controller("a", "b", favorites=gateway)
    gateway.fail_writes = True

    assert controller.toggle_favorite() is False

    assert controller.favorite_ids == {"b"}
    assert ("fetch",) in gateway.calls


@pytest.mark.unit
def test_failed_write_and_read_restores_previous_flags():
    gateway = FakeFavoritesGateway()
    controller = _controller("a", favorites=gateway)
    controller.load_favorites({"a"})
    gateway.fail_writes = True
    gateway.fail_reads = True

    assert controller.toggle_favorite() is True

    assert controller.favorite_ids == {"a"}


@pytest.mark.unit
def test_toggle_favorite_without_a_song_returns_none():
    assert QueueController(favorites=FakeFavoritesGateway()).toggle_favorite() is None
