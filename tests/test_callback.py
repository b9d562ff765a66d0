"""Tests for the one-shot OAuth callback server, run against a real local socket."""

from concurrent.futures import TimeoutError as FutureTimeoutError
from unittest.mock import MagicMock, patch, sentinel

import pytest
import requests
from spotipy.oauth2 import SpotifyOauthError

from diskplayer.callback import CallbackReceiver
from diskplayer.config import SCOPE
from diskplayer.errors import AuthError, TokenWriteError
from diskplayer.spotify_client import build_auth_manager
from diskplayer.token_store import TokenStore, TokenStoreCacheHandler

STATE = "expected-state"


@pytest.fixture
def http():
    # Ignore proxy settings from the environment; the server is on loopback.
    session = requests.Session()
    session.trust_env = False
    yield session
    session.close()


@pytest.fixture
def auth_manager():
    return MagicMock()


@pytest.fixture
def receiver(auth_manager):
    receiver = CallbackReceiver(auth_manager, STATE, "http://127.0.0.1:0/callback")
    receiver.start()
    yield receiver
    receiver.shutdown()


def callback_url(receiver, path="/callback"):
    host, port = receiver.server_address
    return f"http://{host}:{port}{path}"


def test_successful_callback_delivers_client(receiver, auth_manager, http):
    with patch("diskplayer.callback.new_client", return_value=sentinel.client) as new_client:
        response = http.get(callback_url(receiver), params={"state": STATE, "code": "auth-code"}, timeout=5)

    assert response.status_code == 200
    assert "Login Completed" in response.text
    assert receiver.wait(timeout=5) is sentinel.client
    auth_manager.get_access_token.assert_called_once_with(code="auth-code", as_dict=False, check_cache=False)
    new_client.assert_called_once_with(auth_manager)


def test_state_mismatch_responds_404_and_fails_login(receiver, auth_manager, http):
    response = http.get(callback_url(receiver), params={"state": "forged", "code": "auth-code"}, timeout=5)

    assert response.status_code == 404
    with pytest.raises(AuthError, match="State mismatch"):
        receiver.wait(timeout=5)
    auth_manager.get_access_token.assert_not_called()


def test_failed_exchange_responds_403_and_fails_login(receiver, auth_manager, http):
    auth_manager.get_access_token.side_effect = SpotifyOauthError("invalid_grant")

    response = http.get(callback_url(receiver), params={"state": STATE, "code": "stale"}, timeout=5)

    assert response.status_code == 403
    with pytest.raises(AuthError, match="Token exchange failed"):
        receiver.wait(timeout=5)


def test_denied_consent_responds_403(receiver, auth_manager, http):
    response = http.get(callback_url(receiver), params={"state": STATE, "error": "access_denied"}, timeout=5)

    assert response.status_code == 403
    with pytest.raises(AuthError, match="access_denied"):
        receiver.wait(timeout=5)
    auth_manager.get_access_token.assert_not_called()


def test_token_write_failure_is_delivered(receiver, auth_manager, http):
    auth_manager.get_access_token.side_effect = TokenWriteError("disk full")

    response = http.get(callback_url(receiver), params={"state": STATE, "code": "auth-code"}, timeout=5)

    assert response.status_code == 500
    with pytest.raises(TokenWriteError):
        receiver.wait(timeout=5)


def test_other_paths_do_not_settle_login(receiver, http):
    response = http.get(callback_url(receiver, "/favicon.ico"), timeout=5)

    assert response.status_code == 404
    with pytest.raises(FutureTimeoutError):
        receiver.wait(timeout=0.1)


def test_only_first_callback_counts(receiver, auth_manager, http):
    with patch("diskplayer.callback.new_client", return_value=sentinel.client):
        first = http.get(callback_url(receiver), params={"state": STATE, "code": "one"}, timeout=5)
        second = http.get(callback_url(receiver), params={"state": STATE, "code": "two"}, timeout=5)

    assert first.status_code == 200
    assert second.status_code == 404
    assert auth_manager.get_access_token.call_count == 1


def test_shutdown_releases_port(auth_manager, http):
    receiver = CallbackReceiver(auth_manager, STATE, "http://127.0.0.1:0/callback")
    with receiver:
        url = callback_url(receiver)

    with pytest.raises(RuntimeError):
        receiver.server_address
    with pytest.raises(requests.ConnectionError):
        http.get(url, timeout=2)


def test_exchange_persists_token_through_store(settings, http):
    store = TokenStore(settings.token_path)
    auth_manager = build_auth_manager(settings, TokenStoreCacheHandler(store, scope=SCOPE))
    auth_manager._session = MagicMock()
    auth_manager._session.post.return_value.json.return_value = {
        "access_token": "new-access",
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_token": "new-refresh",
        "scope": SCOPE,
    }

    with CallbackReceiver(auth_manager, STATE, settings.redirect_uri) as receiver:
        response = http.get(callback_url(receiver), params={"state": STATE, "code": "auth-code"}, timeout=5)
        client = receiver.wait(timeout=5)

    assert response.status_code == 200
    assert client.auth_manager is auth_manager
    saved = store.load()
    assert saved.access_token == "new-access"
    assert saved.refresh_token == "new-refresh"


def disconnected_request(path):
    """A handler whose client hung up before the response could be written."""
    request = MagicMock()
    request.path = path
    request.wfile.write.side_effect = BrokenPipeError("client went away")
    return request


def test_login_is_delivered_when_browser_disconnects(auth_manager):
    receiver = CallbackReceiver(auth_manager, STATE, "http://127.0.0.1:0/callback")

    with patch("diskplayer.callback.new_client", return_value=sentinel.client):
        receiver.handle_callback(disconnected_request(f"/callback?state={STATE}&code=auth-code"))

    assert receiver.wait(timeout=1) is sentinel.client


def test_login_failure_is_delivered_when_browser_disconnects(auth_manager):
    receiver = CallbackReceiver(auth_manager, STATE, "http://127.0.0.1:0/callback")
    auth_manager.get_access_token.side_effect = SpotifyOauthError("invalid_grant")

    receiver.handle_callback(disconnected_request(f"/callback?state={STATE}&code=stale"))

    with pytest.raises(AuthError):
        receiver.wait(timeout=1)
