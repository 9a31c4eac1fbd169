"""
Fallback provider: let yt-dlp run its full downloader into a scratch
directory, then read the file back. Slower than the in-memory paths but
survives formats that need yt-dlp's fragment handling.
"""

import logging
import tempfile
from pathlib import Path
from typing import Optional

import yt_dlp
from yt_dlp.utils import DownloadError

from shared.constants import DEFAULT_MEDIA_TYPE
from shared.models import AcquisitionResult
from .. import config
from ..errors import ProviderError
from ..identifiers import canonical_url
from ..media import sniff_media_type
from .base import AudioProvider
from .common import Deadline, base_ydl_opts

logger = logging.getLogger(__name__)


class YtDlpTempfileProvider(AudioProvider):
    """yt-dlp download to a temporary directory that is always removed."""

    name = "fallback"
    label = "yt-dlp tempfile"

    def __init__(
        self,
        timeout: float = config.FALLBACK_TIMEOUT_SEC,
        max_bytes: int = config.MAX_PAYLOAD_BYTES,
        sniff: bool = config.SNIFF_MEDIA_TYPE,
        cookie_file: Optional[str] = config.COOKIE_FILE,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.sniff = sniff
        self.cookie_file = cookie_file

    def attempt(self, video_id: str) -> AcquisitionResult:
        deadline = Deadline(self.timeout, "yt-dlp tempfile download")
        with tempfile.TemporaryDirectory(prefix="fallback-transcode-") as tmp:
            tmp_dir = Path(tmp)
            opts = base_ydl_opts(self.timeout, cookie_file=self.cookie_file)
            opts.update({
                'outtmpl': str(tmp_dir / '%(id)s.%(ext)s'),
                'max_filesize': self.max_bytes,
                'retries': 3,
                'progress_hooks': [lambda _status: deadline.check()],
            })
            try:
                with yt_dlp.YoutubeDL(opts) as ydl:
                    ydl.download([canonical_url(video_id)])
            except DownloadError as e:
                raise ProviderError(str(e)) from e

            produced = sorted(p for p in tmp_dir.iterdir() if p.is_file() and not p.name.endswith(".part"))
            if not produced:
                raise ProviderError("yt-dlp finished without writing a file")
            payload = produced[0].read_bytes()

        logger.debug(f"yt-dlp tempfile download read {len(payload)} bytes for {video_id}")
        # Declared type is a guess; sniffing corrects it when the container is recognisable
        media_type = sniff_media_type(payload, DEFAULT_MEDIA_TYPE) if self.sniff else DEFAULT_MEDIA_TYPE
        return AcquisitionResult(payload=payload, media_type=media_type, provider=self.name)
