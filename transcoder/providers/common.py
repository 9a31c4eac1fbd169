"""Helpers shared by the yt-dlp based providers."""

import time
from typing import Any, Dict, Optional

from shared.constants import YDL_FORMAT_AUDIO, DEFAULT_DOWNLOAD_CHUNK_SIZE
from ..errors import ProviderError, ProviderTimeout


def base_ydl_opts(
    timeout: float,
    cookie_file: Optional[str] = None,
    player_client: Optional[str] = None,
) -> Dict[str, Any]:
    """Quiet, single-video yt-dlp options for audio-only extraction."""
    opts: Dict[str, Any] = {
        'format': YDL_FORMAT_AUDIO,
        'quiet': True,
        'no_warnings': True,
        'noprogress': True,
        'noplaylist': True,
        'socket_timeout': timeout,
    }
    if cookie_file:
        opts['cookiefile'] = cookie_file
    if player_client:
        opts['extractor_args'] = {'youtube': {'player_client': [player_client]}}
    return opts


class Deadline:
    """Wall-clock budget for one provider attempt."""

    def __init__(self, seconds: float, what: str):
        self.seconds = seconds
        self.what = what
        self._expires = time.monotonic() + seconds

    @property
    def remaining(self) -> float:
        return max(0.0, self._expires - time.monotonic())

    def check(self) -> None:
        if time.monotonic() >= self._expires:
            raise ProviderTimeout(f"{self.what} timed out after {self.seconds:g}s")


def read_stream(resp: Any, max_bytes: int, deadline: Deadline, chunk_size: int = DEFAULT_DOWNLOAD_CHUNK_SIZE) -> bytes:
    """Read a file-like response to the end, enforcing size and time limits."""
    buffer = bytearray()
    while True:
        deadline.check()
        chunk = resp.read(chunk_size)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise ProviderError(f"payload exceeds {max_bytes} bytes")
    return bytes(buffer)


def require_progressive(info: Dict[str, Any]) -> None:
    """Reject formats whose URL is an HLS/DASH manifest rather than the audio itself."""
    protocol = info.get('protocol')
    if protocol and protocol not in ('http', 'https'):
        raise ProviderError(f"manifest-only format ({protocol})")
