"""
Ordered fallback over audio providers.

Providers are tried one at a time in priority order. The first non-empty
result wins and later providers are never touched. Each failure is recorded
and the chain moves on; only exhausting every provider is fatal.
"""

import logging
import time
from typing import List, Optional, Sequence

from shared.models import AcquisitionRequest, AcquisitionResult, ProviderFailure
from .errors import AllProvidersFailed, EmptyResult
from .providers import default_providers

logger = logging.getLogger(__name__)


class FallbackChain:
    """Runs providers sequentially until one produces audio."""

    def __init__(self, providers: Optional[Sequence] = None):
        self.providers = list(providers) if providers is not None else default_providers()
        if not self.providers:
            raise ValueError("FallbackChain needs at least one provider")

    @property
    def names(self) -> List[str]:
        return [getattr(p, "name", type(p).__name__) for p in self.providers]

    def run(self, request: AcquisitionRequest) -> AcquisitionResult:
        prefix = request.log_prefix
        failures: List[ProviderFailure] = []

        for provider in self.providers:
            name = getattr(provider, "name", type(provider).__name__)
            label = getattr(provider, "label", name)
            logger.info(f"{prefix} Attempting {label} method...")
            started = time.monotonic()
            try:
                result = provider.attempt(request.identifier)
                if result is None or result.is_empty:
                    raise EmptyResult(f"{label} produced no audio data")
            except Exception as e:
                failure = ProviderFailure(provider_name=name, message=str(e) or type(e).__name__, label=label)
                failures.append(failure)
                logger.error(f"{prefix} {label} failed after {time.monotonic() - started:.1f}s: {failure.message}")
                continue

            logger.info(
                f"{prefix} {label} method succeeded: {result.size} bytes, "
                f"{result.media_type}, {time.monotonic() - started:.1f}s"
            )
            if result.provider is None:
                result = AcquisitionResult(payload=result.payload, media_type=result.media_type, provider=name)
            return result

        error = AllProvidersFailed(failures)
        logger.error(f"{prefix} {error}")
        raise error
