"""One-shot local HTTP server that completes the OAuth authorization-code flow.

The server listens on the redirect URI's host and port until Spotify sends the
browser back with ``code`` and ``state``. The first callback on the redirect
path settles the login: on success the token is exchanged, persisted through
the auth manager's cache handler and a ready client is handed to the waiting
caller; on failure the caller receives an ``AuthError`` instead. Either way
the caller is expected to shut the server down right after ``wait()``.
"""

import logging
import threading
from concurrent.futures import Future
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

import requests
import spotipy
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from .config import CALLBACK_SHUTDOWN_GRACE_SECONDS
from .errors import AuthError, DiskplayerError
from .spotify_client import new_client

logger = logging.getLogger(__name__)

LOGIN_COMPLETED_MESSAGE = "Login Completed! You can close this window and return to the terminal."


def _first_param(params: dict[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


def _respond(request: BaseHTTPRequestHandler, status: int, message: str) -> None:
    body = message.encode("utf-8")
    request.send_response(status)
    request.send_header("Content-Type", "text/plain; charset=utf-8")
    request.send_header("Content-Length", str(len(body)))
    request.end_headers()
    request.wfile.write(body)


class CallbackReceiver:
    """Waits for exactly one successful OAuth redirect, then hands off a client."""

    def __init__(self, auth_manager: SpotifyOAuth, state: str, redirect_uri: str):
        parsed = urlparse(redirect_uri)
        self.auth_manager = auth_manager
        self.state = state
        self.host = parsed.hostname or "localhost"
        self.port = parsed.port if parsed.port is not None else (443 if parsed.scheme == "https" else 80)
        self.callback_path = parsed.path or "/"
        self._result: Future = Future()
        self._server: HTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def server_address(self) -> tuple[str, int]:
        if self._server is None:
            raise RuntimeError("Callback server is not running.")
        host, port = self._server.server_address[:2]
        return host, port

    def start(self) -> None:
        """Bind the local port and serve callbacks on a background thread."""
        receiver = self

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                receiver.handle_callback(self)

            def log_message(self, format: str, *args) -> None:
                logger.debug("callback server: " + format, *args)

        self._server = HTTPServer((self.host, self.port), CallbackHandler)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="diskplayer-callback",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Callback server listening on %s:%s", *self.server_address)

    def wait(self, timeout: float | None = None) -> spotipy.Spotify:
        """Block until the login settles; return the client or raise its error."""
        return self._result.result(timeout=timeout)

    def shutdown(self, grace: float = CALLBACK_SHUTDOWN_GRACE_SECONDS) -> None:
        """Stop serving, giving an in-flight response up to `grace` seconds."""
        if self._server is None:
            return

        server = self._server
        stopper = threading.Thread(target=server.shutdown, daemon=True)
        stopper.start()
        stopper.join(grace)
        if stopper.is_alive():
            logger.warning("Callback server did not stop within %.1fs; closing socket anyway.", grace)
        server.server_close()

        self._server = None
        self._thread = None

    def __enter__(self) -> "CallbackReceiver":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def handle_callback(self, request: BaseHTTPRequestHandler) -> None:
        """Validate one redirect request and settle the login with its outcome."""
        parsed = urlparse(request.path)
        if parsed.path != self.callback_path:
            _respond(request, 404, "Not found.")
            return

        # Only the first callback counts; later ones (refreshes, retries) are ignored.
        if self._result.done():
            _respond(request, 404, "Login already handled.")
            return

        params = parse_qs(parsed.query)

        received_state = _first_param(params, "state")
        if received_state != self.state:
            self._fail(AuthError(f"State mismatch: {received_state!r} != expected login state"))
            self._reply(request, 404, "Not found.")
            return

        error = _first_param(params, "error")
        code = _first_param(params, "code")
        if error or not code:
            self._fail(AuthError(f"Spotify authorization was not granted: {error or 'missing code'}"))
            self._reply(request, 403, "Couldn't get token.")
            return

        try:
            # Persists the token through the auth manager's cache handler.
            self.auth_manager.get_access_token(code=code, as_dict=False, check_cache=False)
        except (SpotifyOauthError, requests.RequestException) as exc:
            self._fail(AuthError(f"Token exchange failed: {exc}"), cause=exc)
            self._reply(request, 403, "Couldn't get token.")
            return
        except DiskplayerError as exc:
            self._fail(exc)
            self._reply(request, 500, "Couldn't save token.")
            return

        # Settle the handoff before replying; the browser may already be gone.
        self._result.set_result(new_client(self.auth_manager))
        logger.info("Spotify login completed")
        self._reply(request, 200, LOGIN_COMPLETED_MESSAGE)

    def _reply(self, request: BaseHTTPRequestHandler, status: int, message: str) -> None:
        try:
            _respond(request, status, message)
        except OSError as exc:
            logger.warning("Browser disconnected before the login response was sent: %s", exc)

    def _fail(self, error: Exception, cause: BaseException | None = None) -> None:
        if cause is not None:
            error.__cause__ = cause
        logger.error("Spotify login failed: %s", error)
        self._result.set_exception(error)
