"""Spotipy auth manager and client setup and cleanup helpers."""

import logging
import secrets
from urllib.parse import urlparse

import spotipy
from spotipy.cache_handler import CacheHandler
from spotipy.oauth2 import SpotifyOAuth

from .config import REQUESTS_TIMEOUT_SECONDS, SCOPE
from .env import Settings
from .errors import ConfigError


def configure_spotipy_logging(level: int = logging.CRITICAL) -> None:
    """Reduce Spotipy logger noise so command output stays readable."""
    for logger_name in ("spotipy", "spotipy.client", "spotipy.oauth2"):
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        logger.propagate = level < logging.CRITICAL


# Apply logging policy at import so all consumers get consistent behavior.
configure_spotipy_logging()


def validate_redirect_uri(redirect_uri: str) -> str:
    """Ensure the redirect URI is an absolute http(s) URL with a host."""
    parsed = urlparse(redirect_uri)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ConfigError(f"Redirect URI must be an absolute http(s) URL, got {redirect_uri!r}")

    try:
        parsed.port
    except ValueError as exc:
        raise ConfigError(f"Redirect URI has an invalid port: {redirect_uri!r}") from exc

    return redirect_uri


def build_auth_manager(settings: Settings, cache_handler: CacheHandler) -> SpotifyOAuth:
    """Create the OAuth authorization-code manager for the configured app."""
    redirect_uri = validate_redirect_uri(settings.redirect_uri)

    # Credentials go straight to SpotifyOAuth; the process env is left untouched.
    return SpotifyOAuth(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        redirect_uri=redirect_uri,
        scope=SCOPE,
        cache_handler=cache_handler,
        open_browser=False,
        show_dialog=False,
    )


def new_state() -> str:
    """Return a fresh opaque state value for one login attempt."""
    return secrets.token_urlsafe(16)


def authorization_url(auth_manager: SpotifyOAuth, state: str) -> str:
    """Return the consent URL the user must visit."""
    return auth_manager.get_authorize_url(state=state)


def new_client(auth_manager: SpotifyOAuth) -> spotipy.Spotify:
    """Create a Spotipy client; failed calls surface immediately instead of retrying."""
    return spotipy.Spotify(
        auth_manager=auth_manager,
        requests_timeout=REQUESTS_TIMEOUT_SECONDS,
        retries=0,
        status_retries=0,
    )


def close_sessions(sp: spotipy.Spotify) -> None:
    """Close HTTP sessions held by Spotipy objects."""
    for obj in (sp, getattr(sp, "auth_manager", None)):
        # Spotipy keeps its requests sessions on private attributes.
        session = getattr(obj, "_session", None)
        close_fn = getattr(session, "close", None)
        if callable(close_fn):
            close_fn()
