import pytest

import config


@pytest.mark.unit
def test_songs_source_defaults_to_spotify(monkeypatch):
    monkeypatch.delenv("SONGS_SOURCE", raising=False)
    assert config._get_songs_source() == "spotify"

    monkeypatch.setenv("SONGS_SOURCE", " Database ")
    assert config._get_songs_source() == "database"

    monkeypatch.setenv("SONGS_SOURCE", "supabase")
    assert config._get_songs_source() == "spotify"


@pytest.mark.unit
def test_numeric_helpers_ignore_garbage(monkeypatch):
    monkeypatch.setenv("TUNEBOX_TEST_INT", "abc")
    monkeypatch.setenv("TUNEBOX_TEST_FLOAT", "2.5")

    assert config._get_int("TUNEBOX_TEST_INT", 7) == 7
    assert config._get_float("TUNEBOX_TEST_FLOAT", 1.0) == 2.5
    assert config._get_int("TUNEBOX_TEST_MISSING", 3) == 3


@pytest.mark.unit
@pytest.mark.parametrize("raw,expected", [("1", True), ("yes", True), ("ON", True), ("0", False), ("nope", False)])
def test_bool_helper(monkeypatch, raw, expected):
    monkeypatch.setenv("TUNEBOX_TEST_BOOL", raw)
    assert config._get_bool("TUNEBOX_TEST_BOOL") is expected


@pytest.mark.unit
def test_csv_helper(monkeypatch):
    monkeypatch.setenv("TUNEBOX_TEST_CSV", " http://a , ,http://b")
    assert config._get_csv_list("TUNEBOX_TEST_CSV", "") == ["http://a", "http://b"]


@pytest.mark.unit
def test_upstream_defaults():
    assert config.Config.UPSTREAM_MAX_RETRIES >= 1
    assert config.Config.TOKEN_EXPIRY_BUFFER_SECONDS >= 0
    assert config.Config.SONGS_SOURCE in config.SONGS_SOURCES
