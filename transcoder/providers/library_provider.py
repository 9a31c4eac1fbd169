"""
Primary provider: yt-dlp used as a library, payload kept in memory.

Resolves the best audio format and reads it through yt-dlp's own HTTP
stack, so cookies and per-format headers apply without extra wiring.
"""

import logging
import threading
from typing import Optional

import yt_dlp
from yt_dlp.networking import Request
from yt_dlp.utils import DownloadError

from shared.models import AcquisitionResult
from .. import config
from ..errors import ProviderError, ProviderTimeout
from ..identifiers import canonical_url
from ..media import media_type_for_extension
from .base import AudioProvider
from .common import Deadline, base_ydl_opts, read_stream, require_progressive

logger = logging.getLogger(__name__)


class YtDlpLibraryProvider(AudioProvider):
    """In-memory yt-dlp fetch with a provider-local concurrency throttle."""

    name = "library"
    label = "Primary"

    def __init__(
        self,
        concurrent_requests: int = config.LIBRARY_CONCURRENT_REQUESTS,
        timeout: float = config.LIBRARY_TIMEOUT_SEC,
        max_bytes: int = config.MAX_PAYLOAD_BYTES,
        cookie_file: Optional[str] = config.COOKIE_FILE,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.cookie_file = cookie_file
        self._throttle = threading.BoundedSemaphore(max(1, concurrent_requests))

    def attempt(self, video_id: str) -> AcquisitionResult:
        deadline = Deadline(self.timeout, "yt-dlp library fetch")
        if not self._throttle.acquire(timeout=self.timeout):
            raise ProviderTimeout(f"throttled: no free slot within {self.timeout:g}s")
        try:
            return self._fetch(video_id, deadline)
        finally:
            self._throttle.release()

    def _fetch(self, video_id: str, deadline: Deadline) -> AcquisitionResult:
        opts = base_ydl_opts(self.timeout, cookie_file=self.cookie_file)
        try:
            with yt_dlp.YoutubeDL(opts) as ydl:
                info = ydl.extract_info(canonical_url(video_id), download=False)
                if not info:
                    raise ProviderError("no video info returned")
                stream_url = info.get('url')
                if not stream_url:
                    raise ProviderError("no direct audio URL in selected format")
                require_progressive(info)
                deadline.check()
                headers = info.get('http_headers') or {}
                with ydl.urlopen(Request(stream_url, headers=headers)) as resp:
                    payload = read_stream(resp, self.max_bytes, deadline)
        except DownloadError as e:
            raise ProviderError(str(e)) from e

        ext = info.get('audio_ext')
        if not ext or ext == 'none':
            ext = info.get('ext')
        media_type = media_type_for_extension(ext)
        logger.debug(f"yt-dlp library fetched {len(payload)} bytes ({media_type}) for {video_id}")
        return AcquisitionResult(payload=payload, media_type=media_type, provider=self.name)
