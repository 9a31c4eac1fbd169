"""Media type helpers: extension tables and magic-byte sniffing."""

from typing import Optional

from shared.constants import (
    AUDIO_MEDIA_TYPES,
    MEDIA_TYPE_EXTENSIONS,
    DEFAULT_MEDIA_TYPE,
    DEFAULT_EXTENSION,
)


def media_type_for_extension(ext: Optional[str], default: str = DEFAULT_MEDIA_TYPE) -> str:
    """Map a container extension (m4a, webm, ...) to a media type."""
    if not ext:
        return default
    return AUDIO_MEDIA_TYPES.get(ext.lower().lstrip("."), default)


def filename_extension(media_type: Optional[str]) -> str:
    """Extension to use in Content-Disposition for a media type."""
    if not media_type:
        return DEFAULT_EXTENSION
    base = media_type.split(";", 1)[0].strip().lower()
    return MEDIA_TYPE_EXTENSIONS.get(base, DEFAULT_EXTENSION)


def clean_content_type(header: Optional[str]) -> Optional[str]:
    """Strip parameters (codecs=, charset=) from a Content-Type header."""
    if not header:
        return None
    base = header.split(";", 1)[0].strip().lower()
    return base or None


def sniff_media_type(payload: bytes, default: str = DEFAULT_MEDIA_TYPE) -> str:
    """
    Guess the container of an audio payload from its first bytes.

    Falls back to ``default`` when nothing matches.
    """
    head = payload[:16]
    if head.startswith(b"ID3"):
        return "audio/mpeg"
    if len(head) >= 2 and head[0] == 0xFF and (head[1] & 0xE0) == 0xE0:
        # MPEG frame sync; ADTS AAC shares the sync word but has layer bits 00
        if (head[1] & 0x06) == 0:
            return "audio/aac"
        return "audio/mpeg"
    if len(head) >= 8 and head[4:8] == b"ftyp":
        return "audio/mp4"
    if head.startswith(b"\x1a\x45\xdf\xa3"):
        return "audio/webm"
    if head.startswith(b"OggS"):
        return "audio/ogg"
    if head.startswith(b"fLaC"):
        return "audio/flac"
    if head.startswith(b"RIFF") and head[8:12] == b"WAVE":
        return "audio/wav"
    return default
