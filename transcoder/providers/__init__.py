"""
Audio source providers, in fallback order.

Cheapest and fastest first, heaviest last:
library (yt-dlp in memory) -> direct (ranged HTTP) -> fallback (yt-dlp to temp file) -> cli (yt-dlp subprocess).
"""

from typing import Iterable, List, Optional

from .base import AudioProvider, LazyProvider

PROVIDER_REGISTRY = (
    ("library", "Primary", "transcoder.providers.library_provider:YtDlpLibraryProvider"),
    ("direct", "Direct downloader", "transcoder.providers.direct_provider:DirectStreamProvider"),
    ("fallback", "yt-dlp tempfile", "transcoder.providers.tempfile_provider:YtDlpTempfileProvider"),
    ("cli", "yt-dlp CLI", "transcoder.providers.cli_provider:YtDlpCliProvider"),
)

PROVIDER_NAMES = tuple(name for name, _, _ in PROVIDER_REGISTRY)


def default_providers(only: Optional[Iterable[str]] = None) -> List[LazyProvider]:
    """
    Build lazy references for the provider chain in canonical order.

    ``only`` restricts the chain to the named providers; order stays canonical.
    """
    wanted = None
    if only:
        wanted = {n.strip().lower() for n in only if n and n.strip()}
        unknown = wanted - set(PROVIDER_NAMES)
        if unknown:
            raise ValueError(f"Unknown provider(s): {', '.join(sorted(unknown))}")
    return [
        LazyProvider(name, label, target)
        for name, label, target in PROVIDER_REGISTRY
        if wanted is None or name in wanted
    ]


__all__ = [
    "AudioProvider",
    "LazyProvider",
    "PROVIDER_NAMES",
    "PROVIDER_REGISTRY",
    "default_providers",
]
