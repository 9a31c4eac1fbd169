import os
from pathlib import Path
from dotenv import load_dotenv

from shared.constants import DEFAULT_CONFIG_DIR

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_truthy(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# App Configuration
APP_NAME = "yt-transcode"
VERSION = "1.0.0"

# Admission control
MAX_CONCURRENT = _env_int("TRANSCODE_MAX_CONCURRENT", 5)
RETRY_AFTER_SECONDS = _env_int("TRANSCODE_RETRY_AFTER", 10)
CACHE_MAX_AGE_SECONDS = _env_int("TRANSCODE_CACHE_MAX_AGE", 86400)  # 24 hours

# Provider settings
LIBRARY_CONCURRENT_REQUESTS = _env_int("TRANSCODE_CONCURRENT_REQUESTS", 2)
LIBRARY_TIMEOUT_SEC = _env_int("TRANSCODE_LIBRARY_TIMEOUT", 60)
DIRECT_TIMEOUT_SEC = _env_int("TRANSCODE_DIRECT_TIMEOUT", 60)
FALLBACK_TIMEOUT_SEC = _env_int("TRANSCODE_FALLBACK_TIMEOUT", 120)
CLI_TIMEOUT_SEC = _env_int("TRANSCODE_CLI_TIMEOUT", 180)
MAX_PAYLOAD_BYTES = _env_int("TRANSCODE_MAX_PAYLOAD_MB", 200) * 1024 * 1024
SNIFF_MEDIA_TYPE = _env_truthy("TRANSCODE_SNIFF_MEDIA_TYPE", True)

# Empty means "run the yt_dlp module with the current interpreter"
YT_DLP_PATH = os.getenv("YT_DLP_PATH", "").strip() or None

# Server
API_HOST = os.getenv("TRANSCODE_HOST", "0.0.0.0")
API_PORT = _env_int("TRANSCODE_PORT", 5005)

# Cookies: explicit path, else auto-detect cookies.txt in the config dir
COOKIE_FILE = os.getenv("TRANSCODE_COOKIE_FILE") or None
if not COOKIE_FILE:
    _potential = Path(DEFAULT_CONFIG_DIR).expanduser() / "cookies.txt"
    if _potential.exists():
        COOKIE_FILE = str(_potential)
