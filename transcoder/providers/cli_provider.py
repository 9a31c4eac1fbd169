"""
Last-resort provider: run the yt-dlp executable and capture stdout.

The child process is owned by a single attempt and is killed on every
exit path (timeout, error, greenlet kill) before the attempt returns.
"""

import logging
import subprocess
import sys
from typing import List, Optional

from shared.constants import DEFAULT_MEDIA_TYPE
from shared.models import AcquisitionResult
from .. import config
from ..errors import ProviderError, ProviderTimeout
from ..identifiers import canonical_url
from ..media import sniff_media_type
from .base import AudioProvider

logger = logging.getLogger(__name__)


def _terminate(proc: subprocess.Popen) -> None:
    if proc.poll() is None:
        proc.kill()
    try:
        proc.wait(timeout=5)
    except subprocess.TimeoutExpired:
        logger.warning(f"yt-dlp process {proc.pid} did not exit after kill")


class YtDlpCliProvider(AudioProvider):
    """yt-dlp subprocess streaming best audio to stdout."""

    name = "cli"
    label = "yt-dlp CLI"

    def __init__(
        self,
        executable: Optional[str] = config.YT_DLP_PATH,
        timeout: float = config.CLI_TIMEOUT_SEC,
        sniff: bool = config.SNIFF_MEDIA_TYPE,
        cookie_file: Optional[str] = config.COOKIE_FILE,
    ):
        self.executable = executable
        self.timeout = timeout
        self.sniff = sniff
        self.cookie_file = cookie_file

    def build_args(self, video_id: str) -> List[str]:
        if self.executable:
            args = [self.executable]
        else:
            args = [sys.executable, "-m", "yt_dlp"]
        args.extend([
            "--format", "bestaudio",  # Get the best audio format
            "--output", "-",          # Pipe output to stdout
            "--no-warnings",
            "--quiet",
        ])
        if self.cookie_file:
            args.extend(["--cookies", self.cookie_file])
        args.append(canonical_url(video_id))
        return args

    def attempt(self, video_id: str) -> AcquisitionResult:
        args = self.build_args(video_id)
        logger.debug(f"Spawning yt-dlp: {' '.join(args)}")
        try:
            proc = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise ProviderError(f"Failed to start yt-dlp: {e}") from e

        with proc:
            try:
                stdout, stderr = proc.communicate(timeout=self.timeout)
            except subprocess.TimeoutExpired as e:
                raise ProviderTimeout(f"yt-dlp timed out after {self.timeout:g}s") from e
            finally:
                _terminate(proc)

        code = proc.returncode
        if code != 0:
            error_output = stderr.decode("utf-8", errors="replace").strip()
            raise ProviderError(f"yt-dlp failed with code {code}: {error_output or 'Unknown error'}")
        if not stdout:
            raise ProviderError("yt-dlp produced no output")

        logger.debug(f"yt-dlp succeeded, received {len(stdout)} bytes.")
        # bestaudio is usually opus/webm or m4a; audio/mpeg is only the fallback guess
        media_type = sniff_media_type(stdout, DEFAULT_MEDIA_TYPE) if self.sniff else DEFAULT_MEDIA_TYPE
        return AcquisitionResult(payload=stdout, media_type=media_type, provider=self.name)
