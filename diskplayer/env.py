"""Environment-variable helpers and the settings object built from them."""

import os
from dataclasses import dataclass
from pathlib import Path

from .config import (
    CLIENT_ID_ENV,
    CLIENT_SECRET_ENV,
    DEFAULT_ENV_FILE,
    DEFAULT_RECORD_PATH,
    DEFAULT_TOKEN_PATH,
    DEVICE_NAME_ENV,
    RECORD_PATH_ENV,
    REDIRECT_URI_ENV,
    TOKEN_PATH_ENV,
)
from .errors import ConfigError


def load_env_file(path: Path = DEFAULT_ENV_FILE) -> None:
    """Load simple KEY=VALUE pairs from a .env file into process env."""
    if not path.exists():
        return

    with path.open("r", encoding="utf-8") as env_file:
        for raw_line in env_file:
            line = raw_line.strip()
            # Skip comments, blank lines, and malformed rows.
            if not line or line.startswith("#") or "=" not in line:
                continue

            # Split once so values containing '=' are preserved.
            key, value = line.split("=", 1)
            os.environ[key.strip()] = value.strip().strip("'\"")


def get_required_env(name: str) -> str:
    """Fetch a required environment variable or raise a clear error."""
    value = os.getenv(name)
    if not value:
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def get_env_path(name: str, default: Path) -> Path:
    """Return a path from the environment, falling back to a default."""
    value = os.getenv(name, "").strip()
    return Path(value).expanduser() if value else default


@dataclass(frozen=True)
class Settings:
    token_path: Path
    record_path: Path
    client_id: str
    client_secret: str
    redirect_uri: str
    device_name: str


def load_settings() -> Settings:
    """Build Settings from the process environment."""
    return Settings(
        token_path=get_env_path(TOKEN_PATH_ENV, DEFAULT_TOKEN_PATH),
        record_path=get_env_path(RECORD_PATH_ENV, DEFAULT_RECORD_PATH),
        client_id=get_required_env(CLIENT_ID_ENV),
        client_secret=get_required_env(CLIENT_SECRET_ENV),
        redirect_uri=get_required_env(REDIRECT_URI_ENV),
        device_name=get_required_env(DEVICE_NAME_ENV),
    )
