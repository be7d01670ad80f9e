import pytest
from spotipy.oauth2 import SpotifyOauthError

from tests.support.stubs import rate_limited, spotify_error, spotify_track
from tunebox.domain.catalog import SpotifyCredential
from tunebox.errors import UpstreamFailure

NOW = 1_700_000_000


def _fresh(**overrides):
    values = dict(access_token="live-token", refresh_token="refresh-me", expires_at=NOW + 3600, product="premium")
    values.update(overrides)
    return SpotifyCredential(**values)


def _search_page(*tracks):
    return {"tracks": {"items": list(tracks)}}


@pytest.mark.unit
def test_rate_limit_retries_with_doubling_delay_then_serves_fallback(track_source, spotify_stub, sleeps):
    spotify_stub.will_return("search", rate_limited())

    songs = track_source.fetch_songs(_fresh(), "sugar")

    assert len(spotify_stub.calls_to("search")) == 3
    assert sleeps == [1.0, 2.0]
    assert [song.title for song in songs] == ["Watermelon Sugar"]


@pytest.mark.unit
def test_rate_limit_recovers_on_second_attempt(track_source, spotify_stub, sleeps):
    spotify_stub.will_return("search", rate_limited(), _search_page(spotify_track("trk-9", "Recovered")))

    songs = track_source.fetch_songs(_fresh(), "recovered")

    assert [song.id for song in songs] == ["trk-9"]
    assert sleeps == [1.0]


@pytest.mark.unit
def test_missing_credential_serves_filtered_fallback_without_calling_spotify(track_source, spotify_stub):
    songs = track_source.fetch_songs(None, "weeknd")

    assert [song.title for song in songs] == ["Blinding Lights"]
    assert spotify_stub.calls == []


@pytest.mark.unit
def test_search_maps_tracks_into_canonical_songs(track_source, spotify_stub):
    spotify_stub.will_return(
        "search",
        _search_page(
            spotify_track("trk-1", "With Preview", duration_ms=200_999),
            None,
            spotify_track("trk-2", "No Preview", preview_url=None),
        ),
    )

    songs = track_source.fetch_songs(_fresh(), "  preview  ")

    assert spotify_stub.calls_to("search")[0][2] == {"q": "preview", "type": "track", "limit": 20}
    assert spotify_stub.tokens == ["live-token"]
    first, second = songs
    assert first.duration == 200
    assert first.has_preview is True
    assert first.spotify_uri == "spotify:track:trk-1"
    assert second.audio_url == ""
    assert second.has_preview is False


@pytest.mark.unit
def test_without_search_lists_saved_tracks(track_source, spotify_stub):
    spotify_stub.will_return(
        "current_user_saved_tracks",
        {"items": [{"track": spotify_track("saved-1", "Saved")}, {"track": None}, None]},
    )

    songs = track_source.fetch_songs(_fresh())

    assert [song.id for song in songs] == ["saved-1"]
    assert spotify_stub.calls_to("search") == []


@pytest.mark.unit
def test_empty_upstream_answer_falls_back_to_full_catalogue(track_source, spotify_stub):
    spotify_stub.will_return("current_user_saved_tracks", {"items": []})

    songs = track_source.fetch_songs(_fresh())

    assert [song.id for song in songs] == ["fallback-1", "fallback-2", "fallback-3", "fallback-4", "fallback-5"]


@pytest.mark.unit
def test_other_upstream_errors_fall_back_without_retrying(track_source, spotify_stub, sleeps):
    spotify_stub.will_return("search", spotify_error(502))

    songs = track_source.fetch_songs(_fresh(), "levitating")

    assert [song.id for song in songs] == ["fallback-2"]
    assert len(spotify_stub.calls_to("search")) == 1
    assert sleeps == []


@pytest.mark.unit
def test_malformed_payload_falls_back(track_source, spotify_stub):
    spotify_stub.will_return("search", _search_page({"id": "bad", "duration_ms": "not-a-number"}))

    songs = track_source.fetch_songs(_fresh(), "perfect")

    assert [song.id for song in songs] == ["fallback-4"]


@pytest.mark.unit
def test_credential_close_to_expiry_is_refreshed_before_use(track_source, spotify_stub, oauth_stub):
    spotify_stub.will_return("search", _search_page(spotify_track()))
    expiring = _fresh(expires_at=NOW + 120)

    track_source.fetch_songs(expiring, "song")

    assert oauth_stub.refreshed_with == ["refresh-me"]
    assert spotify_stub.tokens == ["refreshed-token"]


@pytest.mark.unit
def test_resolve_credential_marks_refreshed_and_keeps_refresh_token(track_source):
    resolved = track_source.resolve_credential(_fresh(expires_at=NOW - 5))

    assert resolved.refreshed is True
    assert resolved.access_token == "refreshed-token"
    assert resolved.refresh_token == "refresh-me"
    assert resolved.expires_at == NOW + 3600
    assert resolved.product == "premium"


@pytest.mark.unit
def test_resolve_credential_returns_fresh_token_untouched(track_source, oauth_stub):
    credential = _fresh()

    assert track_source.resolve_credential(credential) is credential
    assert oauth_stub.refreshed_with == []


@pytest.mark.unit
@pytest.mark.parametrize(
    "credential",
    [
        None,
        SpotifyCredential(access_token=None),
        SpotifyCredential(access_token="old", refresh_token=None, expires_at=NOW - 10),
    ],
)
def test_unusable_credentials_resolve_to_none(track_source, credential):
    assert track_source.resolve_credential(credential) is None


@pytest.mark.unit
def test_failed_refresh_serves_fallback(track_source, spotify_stub, oauth_stub):
    oauth_stub.refresh_result = SpotifyOauthError("invalid_grant")

    songs = track_source.fetch_songs(_fresh(expires_at=NOW), "rather")

    assert [song.title for song in songs] == ["Rather Be"]
    assert spotify_stub.calls == []


@pytest.mark.unit
def test_fetch_artists_searches_and_maps(track_source, spotify_stub):
    spotify_stub.will_return(
        "search",
        {"artists": {"items": [{"id": "a1", "name": "Found", "genres": ["indie"], "popularity": 12, "images": []}]}},
    )

    artists = track_source.fetch_artists(_fresh(), "found")

    assert spotify_stub.calls_to("search")[0][2]["type"] == "artist"
    assert [(artist.id, artist.genres, artist.popularity) for artist in artists] == [("a1", ["indie"], 12)]


@pytest.mark.unit
def test_fetch_artists_fallback_is_filtered(track_source):
    assert [artist.name for artist in track_source.fetch_artists(None, "DUA")] == ["Dua Lipa"]


@pytest.mark.unit
def test_fetch_playlists_lists_library_without_search(track_source, spotify_stub):
    spotify_stub.will_return(
        "current_user_playlists",
        {
            "items": [
                {
                    "id": "pl-1",
                    "name": "Road Trip",
                    "description": "",
                    "images": [{"url": "https://img/pl-1"}],
                    "tracks": {"total": 42},
                    "owner": {"display_name": "me"},
                }
            ]
        },
    )

    playlists = track_source.fetch_playlists(_fresh())

    assert playlists[0].tracks_count == 42
    assert playlists[0].image_url == "https://img/pl-1"
    assert playlists[0].owner == "me"


@pytest.mark.unit
def test_exchange_code_reads_profile_product(track_source, spotify_stub, oauth_stub):
    spotify_stub.will_return("current_user", {"id": "spotify-user", "product": "premium"})

    credential, profile = track_source.exchange_code("auth-code")

    assert oauth_stub.exchanged_codes == ["auth-code"]
    assert credential.access_token == "linked-token"
    assert credential.refresh_token == "linked-refresh"
    assert credential.expires_at == NOW + 3600
    assert credential.is_premium
    assert profile["id"] == "spotify-user"


@pytest.mark.unit
def test_exchange_code_without_token_is_an_upstream_failure(track_source, oauth_stub):
    oauth_stub.exchange_result = {}

    with pytest.raises(UpstreamFailure):
        track_source.exchange_code("auth-code")
