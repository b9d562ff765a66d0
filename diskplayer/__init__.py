"""Play or pause Spotify on a designated Spotify Connect device."""
