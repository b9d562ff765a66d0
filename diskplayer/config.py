"""Shared configuration constants used across the application."""

from pathlib import Path

# Spotify OAuth scopes needed for reading the profile and controlling playback.
SCOPE = "user-read-private playlist-read-private user-modify-playback-state user-read-playback-state"

# Environment variables read by env.load_settings().
CLIENT_ID_ENV = "SPOTIPY_CLIENT_ID"
CLIENT_SECRET_ENV = "SPOTIPY_CLIENT_SECRET"
REDIRECT_URI_ENV = "SPOTIPY_REDIRECT_URI"
DEVICE_NAME_ENV = "DISKPLAYER_DEVICE_NAME"
TOKEN_PATH_ENV = "DISKPLAYER_TOKEN_PATH"
RECORD_PATH_ENV = "DISKPLAYER_RECORD_PATH"

# Local file paths used when the environment does not override them.
DEFAULT_ENV_FILE = Path(".env")
DEFAULT_TOKEN_PATH = Path(".spotifycache")
DEFAULT_RECORD_PATH = Path("record.txt")

# Owner read/write only; the token grants control over the account.
TOKEN_FILE_MODE = 0o600

# Runtime tuning constants.
REQUESTS_TIMEOUT_SECONDS = 10
CALLBACK_SHUTDOWN_GRACE_SECONDS = 5.0
