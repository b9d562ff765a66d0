"""Exception hierarchy shared by every diskplayer component."""


class DiskplayerError(Exception):
    """Base class for errors reported at the command boundary."""


class ConfigError(DiskplayerError):
    """A configuration value is missing or malformed."""


class NotFoundError(DiskplayerError):
    """A file the command depends on does not exist."""


class TokenNotFoundError(NotFoundError):
    """No token has been cached yet."""


class TokenDecodeError(DiskplayerError):
    """The token file exists but does not hold a valid token."""


class TokenWriteError(DiskplayerError):
    """The token could not be written to disk."""


class AuthError(DiskplayerError):
    """The interactive login failed (state mismatch, denied consent, failed exchange)."""


class DeviceNotFoundError(DiskplayerError):
    """No Spotify Connect device matches the configured name."""


class InvalidArgumentError(DiskplayerError):
    """A caller supplied an empty or unusable value."""
