"""Terminal client for searching Spotify and controlling playback."""
