"""Hands out an authenticated Spotipy client, logging in interactively when needed."""

import logging

import spotipy

from .callback import CallbackReceiver
from .config import SCOPE
from .env import Settings
from .errors import TokenNotFoundError
from .spotify_client import authorization_url, build_auth_manager, new_client, new_state
from .token_store import TokenStore, TokenStoreCacheHandler

logger = logging.getLogger(__name__)


def provision_client(settings: Settings, store: TokenStore | None = None) -> spotipy.Spotify:
    """Return a client backed by the cached token, or by a fresh interactive login.

    Only a missing token file triggers the login flow. Any other failure while
    reading the cache (e.g. a corrupt file) propagates to the caller.
    """
    store = store or TokenStore(settings.token_path)
    try:
        store.load()
    except TokenNotFoundError:
        logger.info("No cached token at %s; starting interactive login", store.path)
        return login(settings, store)

    return client_from_token(settings, store)


def client_from_token(settings: Settings, store: TokenStore) -> spotipy.Spotify:
    """Build a client straight from the cached token; Spotipy refreshes it on first use if expired."""
    auth_manager = build_auth_manager(settings, TokenStoreCacheHandler(store, scope=SCOPE))
    return new_client(auth_manager)


def login(settings: Settings, store: TokenStore) -> spotipy.Spotify:
    """Run the browser consent flow and block until the callback delivers a client."""
    auth_manager = build_auth_manager(settings, TokenStoreCacheHandler(store, scope=SCOPE))
    state = new_state()

    with CallbackReceiver(auth_manager, state, settings.redirect_uri) as receiver:
        url = authorization_url(auth_manager, state)
        print("Please log in to Spotify by visiting the following page in your browser:", url)
        return receiver.wait()
