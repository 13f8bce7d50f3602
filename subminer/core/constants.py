"""Fixed policy values shared across the bridge."""

NOTICE_PREFIX = "[mpv-subtitleminer]"

# Candidate ports tried in order when starting the helper
DEFAULT_PORTS = (61777, 61778, 61779, 61780, 61781)
MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_HOST = "127.0.0.1"

# Supervisor timing (seconds)
CONFIRMATION_DELAY = 0.5
AUTO_START_DELAY = 1.0

# Client timing (seconds)
RECONNECT_DELAY = 1.0
POLL_INTERVAL = 0.1
SINGLE_REQUEST_TIMEOUT = 10.0
RANGE_REQUEST_TIMEOUT = 15.0

ITEM_STORE_CAPACITY = 200

# Seconds of padding the helper adds around a subtitle when cutting audio
DEFAULT_AUDIO_OFFSET = 0.25

# Script message / key binding exposed to the host
TOGGLE_MESSAGE = "toggle-subtitleminer"
TOGGLE_KEY = "Ctrl+a"

# Notice durations (seconds)
NOTICE_SHORT = 2.0
NOTICE_MEDIUM = 3.0
NOTICE_LONG = 5.0
NOTICE_ERROR = 6.0
