"""Playback/device helpers that steer Spotify onto the configured device."""

import logging
from pathlib import Path
from typing import Any

import spotipy
from spotipy.exceptions import SpotifyException

from .env import Settings, load_settings
from .errors import DeviceNotFoundError, InvalidArgumentError
from .provisioner import provision_client
from .record import read_record
from .spotify_client import close_sessions

logger = logging.getLogger(__name__)

# Spotify answers a pause with these when nothing is playing or no device is active.
IGNORABLE_PAUSE_STATUSES = (403, 404)
TRACK_URI_PREFIX = "spotify:track:"


def list_devices(sp: spotipy.Spotify) -> list[dict[str, Any]]:
    """Return the live list of Spotify Connect devices."""
    return (sp.devices() or {}).get("devices", [])


def find_active_device_id(devices: list[dict[str, Any]]) -> str | None:
    for device in devices:
        if device.get("is_active"):
            return device.get("id")
    return None


def find_device_id(devices: list[dict[str, Any]], name: str) -> str | None:
    """Return the id of the device whose name matches exactly."""
    for device in devices:
        if device.get("name") == name:
            return device.get("id")
    return None


def resolve_target_device(sp: spotipy.Spotify, device_name: str) -> tuple[str, bool]:
    """Return (target device id, whether it is the active device)."""
    devices = list_devices(sp)
    target_id = find_device_id(devices, device_name)
    if target_id is None:
        seen = ", ".join(sorted(str(device.get("name")) for device in devices)) or "none"
        raise DeviceNotFoundError(f"Device identified by {device_name!r} not found (available: {seen})")

    return target_id, find_active_device_id(devices) == target_id


def pause_if_playing(sp: spotipy.Spotify) -> None:
    """Pause whatever is active; a reply meaning nothing to pause is not an error."""
    try:
        sp.pause_playback()
    except SpotifyException as exc:
        if exc.http_status not in IGNORABLE_PAUSE_STATUSES:
            raise
        logger.debug("Nothing to pause before transfer (HTTP %s)", exc.http_status)


def start_playback(sp: spotipy.Spotify, device_id: str, uri: str) -> None:
    # Tracks cannot be a playback context; they go in the uris list instead.
    if uri.startswith(TRACK_URI_PREFIX):
        sp.start_playback(device_id=device_id, uris=[uri])
    else:
        sp.start_playback(device_id=device_id, context_uri=uri)


def play_uri(uri: str, settings: Settings | None = None) -> None:
    """Play an album, playlist or track URI on the configured device."""
    uri = (uri or "").strip()
    if not uri:
        raise InvalidArgumentError("Spotify URI is required.")

    settings = settings or load_settings()
    sp = provision_client(settings)
    try:
        target_id, is_active = resolve_target_device(sp, settings.device_name)

        # Make the target device active without starting playback on it.
        if not is_active:
            logger.info("Transferring playback to %s", settings.device_name)
            pause_if_playing(sp)
            sp.transfer_playback(device_id=target_id, force_play=False)

        start_playback(sp, target_id, uri)
        logger.info("Playing %s on %s", uri, settings.device_name)
    finally:
        close_sessions(sp)


def play_path(path: Path | str, settings: Settings | None = None) -> None:
    """Play the URI stored on the first line of a record file."""
    play_uri(read_record(path), settings=settings)


def play(settings: Settings | None = None) -> None:
    """Play the URI from the configured record file."""
    settings = settings or load_settings()
    play_path(settings.record_path, settings=settings)


def pause(settings: Settings | None = None) -> None:
    """Pause playback, but only when the configured device is the active one."""
    settings = settings or load_settings()
    sp = provision_client(settings)
    try:
        target_id, is_active = resolve_target_device(sp, settings.device_name)
        if not is_active:
            logger.info("%s is not the active device; nothing to pause", settings.device_name)
            return

        sp.pause_playback(device_id=target_id)
    finally:
        close_sessions(sp)
