"""Exception taxonomy for the transcode pipeline."""

from typing import List, Optional, Sequence

from shared.models import ProviderFailure


class TranscodeError(Exception):
    """Base class for every error raised by the pipeline."""

    status_code = 500


class InvalidInput(TranscodeError):
    """The request did not name a usable video."""

    status_code = 400


class CapacityExceeded(TranscodeError):
    """The concurrency gate is full. Callers should retry later."""

    status_code = 503

    def __init__(self, message: str = "Server is at capacity. Please try again later.", retry_after: int = 10):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderError(TranscodeError):
    """A single provider attempt failed. Recovered by the fallback chain."""


class ProviderTimeout(ProviderError):
    """A provider attempt exceeded its time budget."""


class EmptyResult(ProviderError):
    """A provider reported success but produced no bytes."""


class AllProvidersFailed(TranscodeError):
    """Every provider in the chain failed; carries the ordered failure history."""

    def __init__(self, failures: Sequence[ProviderFailure], message: Optional[str] = None):
        self.failures: List[ProviderFailure] = list(failures)
        if message is None:
            message = "All download methods failed: " + "; ".join(str(f) for f in self.failures)
        super().__init__(message)
