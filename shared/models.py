"""
Data models for audio acquisition requests and their outcomes.

This module defines the core data structures passed between the API
boundary, the fallback chain and the individual source providers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import uuid


@dataclass(frozen=True)
class AcquisitionRequest:
    """
    One inbound request to fetch audio for a video.

    Attributes:
        identifier: Opaque token naming the target media (YouTube video id)
        request_id: Correlation id used as a log prefix
    """
    identifier: str
    request_id: str = field(default_factory=lambda: AcquisitionRequest.generate_id())

    @staticmethod
    def generate_id() -> str:
        """Generate a short correlation id."""
        return uuid.uuid4().hex[:12]

    @property
    def log_prefix(self) -> str:
        return f"[API:transcode][{self.request_id}]"


@dataclass(frozen=True)
class AcquisitionResult:
    """
    Audio bytes produced by exactly one provider.

    Attributes:
        payload: Raw audio bytes, passed through untouched
        media_type: Declared content type (e.g. audio/mpeg)
        provider: Name of the provider that produced the payload
    """
    payload: bytes
    media_type: str
    provider: Optional[str] = None

    @property
    def size(self) -> int:
        """Byte length of the payload."""
        return len(self.payload)

    @property
    def is_empty(self) -> bool:
        return not self.payload

    def summary(self) -> Dict[str, Any]:
        """Metadata without the payload, for logs and CLI output."""
        return {
            "provider": self.provider,
            "media_type": self.media_type,
            "size": self.size,
        }


@dataclass(frozen=True)
class ProviderFailure:
    """A single failed provider attempt, kept in attempted order."""
    provider_name: str
    message: str
    label: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.label or self.provider_name} failed: {self.message}"
