"""Default values shared across lumi."""

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_STEP_TIMEOUT_SECONDS = 30.0

DEFAULT_BACKOFF_BASE = 2.0
DEFAULT_BACKOFF_INITIAL = 1.0
DEFAULT_BACKOFF_CAP = 60.0

SIGNATURE_HEADER = "x-elevenlabs-signature"
SIGNATURE_VERSION = "v1"

URGENT_ARRIVAL_WINDOW_DAYS = 7
CURRENCY = "NZD"

DEGRADED_MESSAGE = (
    "My systems are having trouble right now. Let me get a human from our "
    "team to help you - would you like someone to reach out to you?"
)
