import io
import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from yt_dlp.utils import DownloadError

from transcoder.errors import ProviderError, ProviderTimeout
from transcoder.providers import PROVIDER_NAMES, default_providers
from transcoder.providers.base import LazyProvider
from transcoder.providers.cli_provider import YtDlpCliProvider
from transcoder.providers.direct_provider import DirectStreamProvider, parse_content_range
from transcoder.providers.library_provider import YtDlpLibraryProvider
from transcoder.providers.tempfile_provider import YtDlpTempfileProvider

VIDEO_ID = "dQw4w9WgXcQ"
WATCH_URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"
MP3_BYTES = b"ID3\x04\x00" + b"\x00" * 100
WEBM_BYTES = b"\x1a\x45\xdf\xa3" + b"\x00" * 100


# --- Registry / lazy loading ---

def test_registry_order():
    assert PROVIDER_NAMES == ("library", "direct", "fallback", "cli")
    assert [p.name for p in default_providers()] == list(PROVIDER_NAMES)


def test_default_providers_filter_keeps_canonical_order():
    assert [p.name for p in default_providers(["cli", "library"])] == ["library", "cli"]


def test_default_providers_rejects_unknown():
    with pytest.raises(ValueError):
        default_providers(["nope"])


def test_lazy_provider_imports_on_first_attempt_only():
    instance = MagicMock()
    instance.attempt.return_value = "result"
    module = MagicMock()
    module.Thing.return_value = instance

    lazy = LazyProvider("thing", "Thing", "some.module:Thing", options={"timeout": 3})
    with patch("transcoder.providers.base.importlib.import_module", return_value=module) as import_module:
        assert not lazy.loaded
        import_module.assert_not_called()

        assert lazy.attempt(VIDEO_ID) == "result"
        assert lazy.attempt(VIDEO_ID) == "result"

    import_module.assert_called_once_with("some.module")
    module.Thing.assert_called_once_with(timeout=3)
    assert lazy.loaded


def test_lazy_provider_resolves_real_class():
    lazy = LazyProvider("cli", "yt-dlp CLI", "transcoder.providers.cli_provider:YtDlpCliProvider")
    provider = lazy.resolve()
    assert isinstance(provider, YtDlpCliProvider)
    assert lazy.resolve() is provider


# --- yt-dlp CLI ---

def _fake_proc(stdout=b"", stderr=b"", returncode=0, running=False):
    proc = MagicMock()
    proc.__enter__.return_value = proc
    proc.__exit__.return_value = False
    proc.communicate.return_value = (stdout, stderr)
    proc.returncode = returncode
    proc.poll.return_value = None if running else returncode
    return proc


def test_cli_build_args_defaults_to_module_invocation():
    args = YtDlpCliProvider(executable=None, cookie_file=None).build_args(VIDEO_ID)
    assert args[:3] == [sys.executable, "-m", "yt_dlp"]
    assert args[args.index("--format") + 1] == "bestaudio"
    assert args[args.index("--output") + 1] == "-"
    assert args[-1] == WATCH_URL


def test_cli_build_args_uses_configured_executable_and_cookies():
    args = YtDlpCliProvider(executable="/usr/local/bin/yt-dlp", cookie_file="/tmp/c.txt").build_args(VIDEO_ID)
    assert args[0] == "/usr/local/bin/yt-dlp"
    assert args[args.index("--cookies") + 1] == "/tmp/c.txt"


def test_cli_success_returns_stdout():
    proc = _fake_proc(stdout=MP3_BYTES)
    with patch("transcoder.providers.cli_provider.subprocess.Popen", return_value=proc) as popen:
        result = YtDlpCliProvider(executable="yt-dlp", cookie_file=None).attempt(VIDEO_ID)

    assert result.payload == MP3_BYTES
    assert result.media_type == "audio/mpeg"
    assert result.provider == "cli"
    assert popen.call_args.kwargs["stdout"] == subprocess.PIPE
    assert popen.call_args.kwargs["stderr"] == subprocess.PIPE
    proc.kill.assert_not_called()


def test_cli_sniffs_actual_container():
    proc = _fake_proc(stdout=WEBM_BYTES)
    with patch("transcoder.providers.cli_provider.subprocess.Popen", return_value=proc):
        result = YtDlpCliProvider(executable="yt-dlp", sniff=True, cookie_file=None).attempt(VIDEO_ID)
    assert result.media_type == "audio/webm"


def test_cli_without_sniffing_declares_mpeg():
    proc = _fake_proc(stdout=WEBM_BYTES)
    with patch("transcoder.providers.cli_provider.subprocess.Popen", return_value=proc):
        result = YtDlpCliProvider(executable="yt-dlp", sniff=False, cookie_file=None).attempt(VIDEO_ID)
    assert result.media_type == "audio/mpeg"


def test_cli_nonzero_exit_reports_stderr():
    proc = _fake_proc(stdout=b"partial", stderr=b"ERROR: Video unavailable\n", returncode=1)
    with patch("transcoder.providers.cli_provider.subprocess.Popen", return_value=proc):
        with pytest.raises(ProviderError) as excinfo:
            YtDlpCliProvider(executable="yt-dlp", cookie_file=None).attempt(VIDEO_ID)
    assert str(excinfo.value) == "yt-dlp failed with code 1: ERROR: Video unavailable"


def test_cli_nonzero_exit_without_stderr():
    proc = _fake_proc(returncode=2)
    with patch("transcoder.providers.cli_provider.subprocess.Popen", return_value=proc):
        with pytest.raises(ProviderError, match="code 2: Unknown error"):
            YtDlpCliProvider(executable="yt-dlp", cookie_file=None).attempt(VIDEO_ID)


def test_cli_empty_stdout_is_failure():
    proc = _fake_proc(stdout=b"")
    with patch("transcoder.providers.cli_provider.subprocess.Popen", return_value=proc):
        with pytest.raises(ProviderError, match="produced no output"):
            YtDlpCliProvider(executable="yt-dlp", cookie_file=None).attempt(VIDEO_ID)


def test_cli_spawn_failure():
    with patch("transcoder.providers.cli_provider.subprocess.Popen", side_effect=FileNotFoundError("no such file")):
        with pytest.raises(ProviderError, match="Failed to start yt-dlp"):
            YtDlpCliProvider(executable="/missing/yt-dlp", cookie_file=None).attempt(VIDEO_ID)


def test_cli_timeout_kills_process():
    proc = _fake_proc(running=True)
    proc.communicate.side_effect = subprocess.TimeoutExpired(cmd="yt-dlp", timeout=1)
    with patch("transcoder.providers.cli_provider.subprocess.Popen", return_value=proc):
        with pytest.raises(ProviderTimeout):
            YtDlpCliProvider(executable="yt-dlp", timeout=1, cookie_file=None).attempt(VIDEO_ID)
    proc.kill.assert_called_once()
    proc.wait.assert_called()


def test_cli_cancellation_kills_process():
    class Cancelled(BaseException):
        pass

    proc = _fake_proc(running=True)
    proc.communicate.side_effect = Cancelled()
    with patch("transcoder.providers.cli_provider.subprocess.Popen", return_value=proc):
        with pytest.raises(Cancelled):
            YtDlpCliProvider(executable="yt-dlp", cookie_file=None).attempt(VIDEO_ID)
    proc.kill.assert_called_once()


# --- yt-dlp library (in memory) ---

def _fake_ydl_class(ydl):
    cls = MagicMock()
    cls.return_value.__enter__.return_value = ydl
    cls.return_value.__exit__.return_value = False
    return cls


def test_library_reads_stream_through_yt_dlp():
    ydl = MagicMock()
    ydl.extract_info.return_value = {
        "url": "https://rr1.googlevideo.com/videoplayback?x=1",
        "ext": "m4a",
        "audio_ext": "m4a",
        "http_headers": {"User-Agent": "ua"},
    }
    ydl.urlopen.return_value = io.BytesIO(b"\x00\x00\x00\x20ftypM4A " + b"\x00" * 500)

    with patch("transcoder.providers.library_provider.yt_dlp.YoutubeDL", _fake_ydl_class(ydl)) as cls:
        result = YtDlpLibraryProvider(timeout=5, cookie_file=None).attempt(VIDEO_ID)

    assert result.media_type == "audio/mp4"
    assert result.size == 512
    assert result.provider == "library"
    ydl.extract_info.assert_called_once_with(WATCH_URL, download=False)
    opts = cls.call_args.args[0]
    assert opts["quiet"] is True
    assert opts["socket_timeout"] == 5


def test_library_wraps_download_error():
    ydl = MagicMock()
    ydl.extract_info.side_effect = DownloadError("ERROR: Sign in to confirm you're not a bot")

    with patch("transcoder.providers.library_provider.yt_dlp.YoutubeDL", _fake_ydl_class(ydl)):
        with pytest.raises(ProviderError, match="not a bot"):
            YtDlpLibraryProvider(timeout=5, cookie_file=None).attempt(VIDEO_ID)


def test_library_requires_direct_url():
    ydl = MagicMock()
    ydl.extract_info.return_value = {"ext": "webm"}

    with patch("transcoder.providers.library_provider.yt_dlp.YoutubeDL", _fake_ydl_class(ydl)):
        with pytest.raises(ProviderError, match="no direct audio URL"):
            YtDlpLibraryProvider(timeout=5, cookie_file=None).attempt(VIDEO_ID)


def test_library_rejects_manifest_formats():
    ydl = MagicMock()
    ydl.extract_info.return_value = {"url": "https://manifest.googlevideo.com/hls.m3u8", "protocol": "m3u8_native"}

    with patch("transcoder.providers.library_provider.yt_dlp.YoutubeDL", _fake_ydl_class(ydl)):
        with pytest.raises(ProviderError, match="manifest-only format"):
            YtDlpLibraryProvider(timeout=5, cookie_file=None).attempt(VIDEO_ID)

    ydl.urlopen.assert_not_called()


def test_library_enforces_size_limit():
    ydl = MagicMock()
    ydl.extract_info.return_value = {"url": "https://x", "ext": "webm"}
    ydl.urlopen.return_value = io.BytesIO(b"\x00" * 2048)

    with patch("transcoder.providers.library_provider.yt_dlp.YoutubeDL", _fake_ydl_class(ydl)):
        with pytest.raises(ProviderError, match="exceeds"):
            YtDlpLibraryProvider(timeout=5, max_bytes=1024, cookie_file=None).attempt(VIDEO_ID)


def test_library_throttle_times_out_when_saturated():
    provider = YtDlpLibraryProvider(concurrent_requests=1, timeout=0.05, cookie_file=None)
    provider._throttle.acquire()
    try:
        with patch("transcoder.providers.library_provider.yt_dlp.YoutubeDL") as cls:
            with pytest.raises(ProviderTimeout, match="throttled"):
                provider.attempt(VIDEO_ID)
            cls.assert_not_called()
    finally:
        provider._throttle.release()


def test_library_releases_throttle_after_failure():
    ydl = MagicMock()
    ydl.extract_info.side_effect = DownloadError("boom")
    provider = YtDlpLibraryProvider(concurrent_requests=1, timeout=5, cookie_file=None)

    with patch("transcoder.providers.library_provider.yt_dlp.YoutubeDL", _fake_ydl_class(ydl)):
        for _ in range(2):
            with pytest.raises(ProviderError):
                provider.attempt(VIDEO_ID)

    assert provider._throttle.acquire(blocking=False)
    provider._throttle.release()


# --- Direct ranged download ---

def _resp(status, content, headers=None):
    resp = MagicMock()
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    resp.status_code = status
    resp.content = content
    resp.headers = headers or {}
    return resp


def _session_with(responses):
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = responses
    session_cls = MagicMock()
    session_cls.return_value.__enter__.return_value = session
    session_cls.return_value.__exit__.return_value = False
    return session_cls, session


def test_parse_content_range():
    assert parse_content_range("bytes 0-3/10") == 10
    assert parse_content_range("bytes 0-3/*") is None
    assert parse_content_range(None) is None


def test_direct_downloads_in_ranges():
    info = {"url": "https://googlevideo/x", "ext": "webm", "http_headers": {"User-Agent": "ua"}}
    responses = [
        _resp(206, b"abcd", {"Content-Range": "bytes 0-3/10", "Content-Type": "audio/webm; codecs=\"opus\""}),
        _resp(206, b"efgh", {"Content-Range": "bytes 4-7/10"}),
        _resp(206, b"ij", {"Content-Range": "bytes 8-9/10"}),
    ]
    session_cls, session = _session_with(responses)
    provider = DirectStreamProvider(clients=("android",), chunk_size=4, timeout=30, cookie_file=None)

    with patch.object(DirectStreamProvider, "_resolve", return_value=info), \
            patch("transcoder.providers.direct_provider.requests.Session", session_cls):
        result = provider.attempt(VIDEO_ID)

    assert result.payload == b"abcdefghij"
    assert result.media_type == "audio/webm"
    ranges = [c.kwargs["headers"]["Range"] for c in session.get.call_args_list]
    assert ranges == ["bytes=0-3", "bytes=4-7", "bytes=8-11"]
    assert session.headers["User-Agent"] == "ua"


def test_direct_accepts_full_body_when_range_ignored():
    info = {"url": "https://googlevideo/x", "ext": "m4a"}
    session_cls, _ = _session_with([_resp(200, b"whole-file", {"Content-Type": "application/octet-stream"})])
    provider = DirectStreamProvider(clients=("android",), chunk_size=4, timeout=30, cookie_file=None)

    with patch.object(DirectStreamProvider, "_resolve", return_value=info), \
            patch("transcoder.providers.direct_provider.requests.Session", session_cls):
        result = provider.attempt(VIDEO_ID)

    assert result.payload == b"whole-file"
    assert result.media_type == "audio/mp4"


@pytest.mark.parametrize("content_range", [None, "bytes 0-3/*"])
def test_direct_keeps_reading_when_total_unknown(content_range):
    info = {"url": "https://googlevideo/x", "ext": "webm"}
    headers = {"Content-Range": content_range} if content_range else {}
    responses = [
        _resp(206, b"abcd", dict(headers, **{"Content-Type": "audio/webm"})),
        _resp(206, b"efgh", headers),
        _resp(206, b"ij", headers),
    ]
    session_cls, session = _session_with(responses)
    provider = DirectStreamProvider(clients=("android",), chunk_size=4, timeout=30, cookie_file=None)

    with patch.object(DirectStreamProvider, "_resolve", return_value=info), \
            patch("transcoder.providers.direct_provider.requests.Session", session_cls):
        result = provider.attempt(VIDEO_ID)

    assert result.payload == b"abcdefghij"
    assert session.get.call_count == 3


def test_direct_stops_at_range_not_satisfiable_when_total_unknown():
    info = {"url": "https://googlevideo/x", "ext": "m4a"}
    responses = [_resp(206, b"abcd"), _resp(206, b"efgh"), _resp(416, b"")]
    session_cls, session = _session_with(responses)
    provider = DirectStreamProvider(clients=("android",), chunk_size=4, timeout=30, cookie_file=None)

    with patch.object(DirectStreamProvider, "_resolve", return_value=info), \
            patch("transcoder.providers.direct_provider.requests.Session", session_cls):
        result = provider.attempt(VIDEO_ID)

    assert result.payload == b"abcdefgh"
    assert result.media_type == "audio/mp4"
    responses[2].raise_for_status.assert_not_called()


def test_direct_rotates_player_clients():
    info = {"url": "https://googlevideo/x", "ext": "m4a"}
    session_cls, _ = _session_with([_resp(200, b"data", {"Content-Type": "audio/mp4"})])
    provider = DirectStreamProvider(clients=("android", "ios"), timeout=30, cookie_file=None)

    with patch.object(DirectStreamProvider, "_resolve", side_effect=[DownloadError("android blocked"), info]) as resolve, \
            patch("transcoder.providers.direct_provider.requests.Session", session_cls):
        result = provider.attempt(VIDEO_ID)

    assert result.payload == b"data"
    assert [c.args[1] for c in resolve.call_args_list] == ["android", "ios"]


def test_direct_combines_client_errors():
    provider = DirectStreamProvider(clients=("android", "ios", "web"), timeout=30, cookie_file=None)
    errors = [DownloadError("a-err"), ProviderError("no stream URL resolved"), DownloadError("w-err")]

    with patch.object(DirectStreamProvider, "_resolve", side_effect=errors):
        with pytest.raises(ProviderError) as excinfo:
            provider.attempt(VIDEO_ID)

    message = str(excinfo.value)
    assert message.index("android:") < message.index("ios:") < message.index("web:")
    assert "a-err" in message and "w-err" in message


def test_direct_resolve_passes_player_client():
    ydl = MagicMock()
    ydl.extract_info.return_value = {"url": "https://x"}
    with patch("transcoder.providers.direct_provider.yt_dlp.YoutubeDL", _fake_ydl_class(ydl)) as cls:
        DirectStreamProvider(timeout=30, cookie_file=None)._resolve(VIDEO_ID, "ios")
    opts = cls.call_args.args[0]
    assert opts["extractor_args"] == {"youtube": {"player_client": ["ios"]}}


def test_direct_resolve_rejects_manifest_formats():
    ydl = MagicMock()
    ydl.extract_info.return_value = {"url": "https://manifest.googlevideo.com/dash", "protocol": "http_dash_segments"}
    with patch("transcoder.providers.direct_provider.yt_dlp.YoutubeDL", _fake_ydl_class(ydl)):
        with pytest.raises(ProviderError, match="manifest-only format"):
            DirectStreamProvider(timeout=30, cookie_file=None)._resolve(VIDEO_ID, "web")


def test_direct_resolve_accepts_progressive_https():
    ydl = MagicMock()
    ydl.extract_info.return_value = {"url": "https://rr1.googlevideo.com/videoplayback", "protocol": "https"}
    with patch("transcoder.providers.direct_provider.yt_dlp.YoutubeDL", _fake_ydl_class(ydl)):
        info = DirectStreamProvider(timeout=30, cookie_file=None)._resolve(VIDEO_ID, "web")
    assert info["protocol"] == "https"


# --- yt-dlp temp file ---

def _tempfile_ydl(write=None):
    """YoutubeDL stand-in that writes ``write`` into the outtmpl directory on download()."""
    seen = {}

    def factory(opts):
        seen["opts"] = opts
        out_dir = Path(opts["outtmpl"]).parent
        seen["dir"] = out_dir
        ydl = MagicMock()

        def download(urls):
            seen["urls"] = urls
            if write is not None:
                (out_dir / f"{VIDEO_ID}.webm").write_bytes(write)
            return 0

        ydl.download.side_effect = download
        ctx = MagicMock()
        ctx.__enter__.return_value = ydl
        ctx.__exit__.return_value = False
        return ctx

    return factory, seen


def test_tempfile_reads_file_and_cleans_up():
    factory, seen = _tempfile_ydl(write=WEBM_BYTES)
    with patch("transcoder.providers.tempfile_provider.yt_dlp.YoutubeDL", side_effect=factory):
        result = YtDlpTempfileProvider(timeout=30, sniff=True, cookie_file=None).attempt(VIDEO_ID)

    assert result.payload == WEBM_BYTES
    assert result.media_type == "audio/webm"
    assert result.provider == "fallback"
    assert seen["urls"] == [WATCH_URL]
    assert not seen["dir"].exists()


def test_tempfile_declares_mpeg_without_sniffing():
    factory, _ = _tempfile_ydl(write=WEBM_BYTES)
    with patch("transcoder.providers.tempfile_provider.yt_dlp.YoutubeDL", side_effect=factory):
        result = YtDlpTempfileProvider(timeout=30, sniff=False, cookie_file=None).attempt(VIDEO_ID)
    assert result.media_type == "audio/mpeg"


def test_tempfile_without_output_is_failure_and_cleans_up():
    factory, seen = _tempfile_ydl(write=None)
    with patch("transcoder.providers.tempfile_provider.yt_dlp.YoutubeDL", side_effect=factory):
        with pytest.raises(ProviderError, match="without writing a file"):
            YtDlpTempfileProvider(timeout=30, cookie_file=None).attempt(VIDEO_ID)
    assert not seen["dir"].exists()


def test_tempfile_wraps_download_error_and_cleans_up():
    seen = {}

    def factory(opts):
        seen["dir"] = Path(opts["outtmpl"]).parent
        (seen["dir"] / "partial.webm.part").write_bytes(b"xx")
        ydl = MagicMock()
        ydl.download.side_effect = DownloadError("ERROR: HTTP Error 403")
        ctx = MagicMock()
        ctx.__enter__.return_value = ydl
        ctx.__exit__.return_value = False
        return ctx

    with patch("transcoder.providers.tempfile_provider.yt_dlp.YoutubeDL", side_effect=factory):
        with pytest.raises(ProviderError, match="403"):
            YtDlpTempfileProvider(timeout=30, cookie_file=None).attempt(VIDEO_ID)
    assert not seen["dir"].exists()
