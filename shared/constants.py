"""
Shared constants used across the platform.
"""

# Audio formats: extension -> media type
AUDIO_MEDIA_TYPES = {
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
    "aac": "audio/aac",
    "webm": "audio/webm",
    "weba": "audio/webm",
    "opus": "audio/ogg",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "wav": "audio/wav",
}

# Preferred extension when naming a download after its media type
MEDIA_TYPE_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/aac": "aac",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/opus": "opus",
    "audio/flac": "flac",
    "audio/x-flac": "flac",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
}

DEFAULT_MEDIA_TYPE = "audio/mpeg"
DEFAULT_EXTENSION = "mp3"

# YouTube
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
YOUTUBE_PLAYER_CLIENTS = ("android", "ios", "web")
YDL_FORMAT_AUDIO = "bestaudio/bestaudio[ext=m4a]/bestaudio[ext=webm]/best"

# Configuration paths
DEFAULT_CONFIG_DIR = "~/.config/yt-transcode"

# Network Settings
DEFAULT_NETWORK_TIMEOUT = 30  # seconds
DEFAULT_DOWNLOAD_CHUNK_SIZE = 65536  # bytes
RANGE_CHUNK_SIZE = 10 * 1024 * 1024  # 10MB
