"""
Direct downloader: resolve the googlevideo stream URL and fetch it with
ranged HTTP requests, rotating through player clients until one works.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
import yt_dlp
from yt_dlp.utils import DownloadError

from shared.constants import YOUTUBE_PLAYER_CLIENTS, RANGE_CHUNK_SIZE, DEFAULT_NETWORK_TIMEOUT
from shared.models import AcquisitionResult
from .. import config
from ..errors import ProviderError, ProviderTimeout
from ..identifiers import canonical_url
from ..media import clean_content_type, media_type_for_extension
from .base import AudioProvider
from .common import Deadline, base_ydl_opts, require_progressive

logger = logging.getLogger(__name__)

_CONTENT_RANGE_RE = re.compile(r"bytes\s+(\d+)-(\d+)/(\d+|\*)")


def parse_content_range(header: Optional[str]) -> Optional[int]:
    """Total size from a Content-Range header, or None when unknown."""
    if not header:
        return None
    match = _CONTENT_RANGE_RE.match(header.strip())
    if not match or match.group(3) == "*":
        return None
    return int(match.group(3))


class DirectStreamProvider(AudioProvider):
    """Ranged HTTP download of the resolved stream URL with client fallback."""

    name = "direct"
    label = "Direct downloader"

    def __init__(
        self,
        clients: Sequence[str] = YOUTUBE_PLAYER_CLIENTS,
        timeout: float = config.DIRECT_TIMEOUT_SEC,
        max_bytes: int = config.MAX_PAYLOAD_BYTES,
        chunk_size: int = RANGE_CHUNK_SIZE,
        cookie_file: Optional[str] = config.COOKIE_FILE,
    ):
        self.clients = tuple(clients)
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.chunk_size = chunk_size
        self.cookie_file = cookie_file

    def attempt(self, video_id: str) -> AcquisitionResult:
        deadline = Deadline(self.timeout, "direct download")
        errors: List[str] = []
        for client in self.clients:
            deadline.check()
            try:
                info = self._resolve(video_id, client)
                payload, content_type = self._download(info['url'], info.get('http_headers') or {}, deadline)
            except ProviderTimeout:
                raise
            except (ProviderError, DownloadError, requests.RequestException) as e:
                logger.debug(f"Direct download via '{client}' client failed for {video_id}: {e}")
                errors.append(f"{client}: {e}")
                continue
            if not payload:
                errors.append(f"{client}: empty response")
                continue
            media_type = clean_content_type(content_type)
            if not media_type or not media_type.startswith("audio/"):
                media_type = media_type_for_extension(info.get('ext'))
            return AcquisitionResult(payload=payload, media_type=media_type, provider=self.name)
        raise ProviderError(" | ".join(errors) or "no player clients configured")

    def _resolve(self, video_id: str, client: str) -> Dict[str, Any]:
        opts = base_ydl_opts(self.timeout, cookie_file=self.cookie_file, player_client=client)
        with yt_dlp.YoutubeDL(opts) as ydl:
            info = ydl.extract_info(canonical_url(video_id), download=False)
        if not info or not info.get('url'):
            raise ProviderError("no stream URL resolved")
        require_progressive(info)
        return info

    def _download(self, url: str, headers: Dict[str, str], deadline: Deadline) -> Tuple[bytes, Optional[str]]:
        # googlevideo throttles long unranged reads; pull fixed-size ranges instead
        buffer = bytearray()
        content_type = None
        start = 0
        with requests.Session() as session:
            session.headers.update(headers)
            while True:
                deadline.check()
                end = start + self.chunk_size - 1
                request_timeout = max(1.0, min(DEFAULT_NETWORK_TIMEOUT, deadline.remaining))
                with session.get(url, headers={"Range": f"bytes={start}-{end}"}, timeout=request_timeout) as resp:
                    if resp.status_code == 416 and buffer:
                        # Asked past the end of a stream whose length was never announced
                        break
                    resp.raise_for_status()
                    content_type = content_type or resp.headers.get("Content-Type")
                    chunk = resp.content
                    if len(buffer) + len(chunk) > self.max_bytes:
                        raise ProviderError(f"payload exceeds {self.max_bytes} bytes")
                    if resp.status_code == 200:
                        # Server ignored the Range header and sent everything
                        return chunk, content_type
                    total = parse_content_range(resp.headers.get("Content-Range"))
                buffer.extend(chunk)
                start += len(chunk)
                if not chunk:
                    break
                if total is not None:
                    if start >= total:
                        break
                elif len(chunk) < self.chunk_size:
                    # No Content-Range total: a short range is the last one
                    break
        return bytes(buffer), content_type
