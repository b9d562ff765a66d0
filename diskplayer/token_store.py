"""On-disk OAuth token persistence and its bridge into Spotipy's token cache."""

import json
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from spotipy.cache_handler import CacheHandler

from .config import TOKEN_FILE_MODE
from .errors import TokenDecodeError, TokenNotFoundError, TokenWriteError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("access_token", "refresh_token", "expiry", "token_type")


def parse_expiry(raw: Any) -> datetime:
    """Parse an ISO 8601 expiry, treating naive timestamps as UTC."""
    if not isinstance(raw, str) or not raw:
        raise ValueError(f"expiry must be a non-empty string, got {raw!r}")

    # Older interpreters reject the 'Z' suffix in fromisoformat().
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"

    expiry = datetime.fromisoformat(raw)
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry


@dataclass(frozen=True)
class Token:
    access_token: str
    refresh_token: str
    expiry: datetime
    token_type: str = "Bearer"
    scope: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "refresh_token": self.refresh_token,
            "expiry": self.expiry.isoformat(),
        }
        if self.scope is not None:
            payload["scope"] = self.scope
        return payload

    @classmethod
    def from_dict(cls, payload: Any) -> "Token":
        if not isinstance(payload, dict):
            raise TokenDecodeError("Token file must contain a JSON object.")

        missing = [field for field in REQUIRED_FIELDS if field not in payload]
        if missing:
            raise TokenDecodeError(f"Token file is missing fields: {', '.join(missing)}")

        try:
            expiry = parse_expiry(payload["expiry"])
        except ValueError as exc:
            raise TokenDecodeError(f"Token file has an invalid expiry: {exc}") from exc

        invalid = [
            field
            for field in ("access_token", "refresh_token", "token_type")
            if not isinstance(payload[field], str) or not payload[field]
        ]
        if invalid:
            raise TokenDecodeError(f"Token file fields must be non-empty strings: {', '.join(invalid)}")

        scope = payload.get("scope")
        if scope is not None and not isinstance(scope, str):
            raise TokenDecodeError("Token file scope must be a string.")

        return cls(
            access_token=payload["access_token"],
            refresh_token=payload["refresh_token"],
            expiry=expiry,
            token_type=payload["token_type"],
            scope=scope,
        )

    @classmethod
    def from_token_info(cls, token_info: dict[str, Any]) -> "Token":
        """Convert a Spotipy token-info dict (expires_at in epoch seconds)."""
        expires_at = token_info.get("expires_at")
        if expires_at is None:
            expires_at = int(time.time()) + int(token_info.get("expires_in", 0))

        return cls(
            access_token=token_info["access_token"],
            refresh_token=token_info.get("refresh_token") or "",
            expiry=datetime.fromtimestamp(int(expires_at), tz=timezone.utc),
            token_type=token_info.get("token_type") or "Bearer",
            scope=token_info.get("scope"),
        )

    def to_token_info(self, default_scope: str | None = None) -> dict[str, Any]:
        """Convert to the dict shape Spotipy validates and refreshes."""
        expires_at = int(self.expiry.timestamp())
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "refresh_token": self.refresh_token,
            "expires_at": expires_at,
            "expires_in": max(0, expires_at - int(time.time())),
            "scope": self.scope if self.scope is not None else default_scope,
        }


class TokenStore:
    """Reads and writes the single cached token file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> Token:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise TokenNotFoundError(f"No cached token at {self.path}") from exc
        except UnicodeDecodeError as exc:
            raise TokenDecodeError(f"Token file {self.path} is not UTF-8 text: {exc}") from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise TokenDecodeError(f"Token file {self.path} is not valid JSON: {exc}") from exc

        return Token.from_dict(payload)

    def save(self, token: Token) -> None:
        data = json.dumps(token.to_dict(), indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, TOKEN_FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as token_file:
                token_file.write(data)
            # os.open only applies the mode to new files.
            os.chmod(self.path, TOKEN_FILE_MODE)
        except OSError as exc:
            raise TokenWriteError(f"Failed to save token to {self.path}: {exc}") from exc

        logger.debug("Saved token to %s (expires %s)", self.path, token.expiry.isoformat())


class TokenStoreCacheHandler(CacheHandler):
    """Lets SpotifyOAuth read and refresh the token kept by a TokenStore."""

    def __init__(self, store: TokenStore, scope: str | None = None):
        self.store = store
        self.scope = scope

    def get_cached_token(self) -> dict[str, Any] | None:
        try:
            token = self.store.load()
        except TokenNotFoundError:
            return None
        return token.to_token_info(default_scope=self.scope)

    def save_token_to_cache(self, token_info: dict[str, Any]) -> None:
        self.store.save(Token.from_token_info(token_info))
