"""YouTube identifier helpers."""

from typing import Optional
from urllib.parse import urlparse, parse_qs

from shared.constants import YOUTUBE_WATCH_URL
from .errors import InvalidInput


def canonical_url(video_id: str) -> str:
    """Watch URL handed to yt-dlp for a video id."""
    return YOUTUBE_WATCH_URL.format(video_id=video_id)


def extract_youtube_video_id(url: str) -> Optional[str]:
    """Extract YouTube video id from youtube.com/youtu.be/music.youtube.com URLs."""
    if not url:
        return None
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    host = (parsed.netloc or "").lower()
    if "youtu.be" in host:
        vid = (parsed.path or "").strip("/").split("/")[0]
        return vid or None
    if "youtube.com" in host:
        path = (parsed.path or "").strip("/")
        # /shorts/<id>, /embed/<id>, /live/<id>
        parts = path.split("/")
        if len(parts) >= 2 and parts[0] in ("shorts", "embed", "live", "v"):
            return parts[1] or None
        q = parse_qs(parsed.query)
        vid = (q.get("v") or [None])[0]
        return vid or None
    return None


def is_valid_video_id(video_id: Optional[str]) -> bool:
    """Allow only safe YouTube video id (11 chars, alphanumeric + -_)."""
    if not video_id or len(video_id) != 11:
        return False
    return all(c.isascii() and (c.isalnum() or c in "-_") for c in video_id)


def normalize_identifier(raw: str) -> str:
    """
    Reduce an inbound identifier to a bare video id.

    Plain ids pass through (trimmed). Full YouTube links are reduced to
    their ``v=`` id. Whatever remains must be an 11-character YouTube id,
    since it ends up in a URL and a Content-Disposition filename.
    """
    value = (raw or "").strip()
    if not value:
        raise InvalidInput("Missing 'videoId' parameter")
    if "://" in value or "youtube.com" in value or "youtu.be" in value:
        video_id = extract_youtube_video_id(value if "://" in value else f"https://{value}")
        if not video_id:
            raise InvalidInput("Playlist-only or invalid YouTube URL (missing v=)")
    else:
        video_id = value
    if not is_valid_video_id(video_id):
        raise InvalidInput(f"Invalid 'videoId' parameter: {video_id!r}")
    return video_id
