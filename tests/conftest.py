"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from diskplayer.env import Settings
from diskplayer.token_store import Token

PLAYBACK_CALLS = ("pause_playback", "transfer_playback", "start_playback")


@pytest.fixture
def settings(tmp_path):
    """Settings pointing every file at a temporary directory."""
    return Settings(
        token_path=tmp_path / "token.json",
        record_path=tmp_path / "record.txt",
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://127.0.0.1:0/callback",
        device_name="Kitchen",
    )


@pytest.fixture
def token():
    return Token(
        access_token="access-123",
        refresh_token="refresh-456",
        expiry=datetime(2030, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        token_type="Bearer",
        scope="user-read-playback-state",
    )


@pytest.fixture
def make_sp():
    """Build a mock spotipy.Spotify that reports the given devices."""

    def _make(*devices):
        sp = MagicMock()
        sp.devices.return_value = {"devices": list(devices)}
        return sp

    return _make


def playback_calls(sp):
    """Return the playback-changing calls made on a mock client, in order."""
    return [c for c in sp.method_calls if c[0] in PLAYBACK_CALLS]


@pytest.fixture(name="playback_calls")
def playback_calls_fixture():
    return playback_calls
