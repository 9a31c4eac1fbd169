"""
YouTube audio transcode pipeline.

Admission-controlled, ordered-fallback acquisition: a ConcurrencyGate in
front of a FallbackChain of independent audio providers.
"""

from .chain import FallbackChain
from .gate import ConcurrencyGate

__all__ = ["ConcurrencyGate", "FallbackChain"]
