"""Default protocol and connection constants."""

# Last-known-good web client version, used when the version lookup fails.
FALLBACK_VERSION = (2, 3000, 1023223821)

LATEST_VERSION_URL = (
    "https://raw.githubusercontent.com/WhiskeySockets/Baileys/master/src/Defaults/baileys-version.json"
)

DEFAULT_CONNECTION_CONFIG = {
    "version": FALLBACK_VERSION,
    "version_url": LATEST_VERSION_URL,
    "version_timeout": 10.0,
    "browser": ("WhatsApp API", "Chrome", "4.0.0"),
    "sync_full_history": True,
    "audio_mimetype": "audio/mp4",
    "reconnect_max_attempts": 5,
    "reconnect_base_delay": 1.0,
    "reconnect_max_delay": 30.0,
    "reconnect_factor": 2.0,
}

SESSIONS_DIR = "sessions"
CREDS_FILENAME = "creds.json"
STORE_FILENAME = "store.sqlite3"
