"""Abstract audio source provider interface."""

import importlib
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from shared.models import AcquisitionResult

logger = logging.getLogger(__name__)


class AudioProvider(ABC):
    """Interface for audio acquisition strategies (yt-dlp library, direct HTTP, CLI, ...)."""

    name: str = "provider"
    label: str = "Provider"

    @abstractmethod
    def attempt(self, video_id: str) -> AcquisitionResult:
        """
        Fetch audio for a video id.

        Raise ProviderError (or any exception) on failure. Must not leave
        temp files or child processes behind on any outcome.
        """
        pass


class LazyProvider:
    """
    Reference to a provider class that is imported on first use.

    The chain only pays for a provider's imports and setup when it actually
    reaches that stage. The built instance is cached for later requests.
    """

    def __init__(self, name: str, label: str, target: str, options: Optional[Dict[str, Any]] = None):
        self.name = name
        self.label = label
        self.target = target
        self.options = dict(options or {})
        self._instance: Optional[AudioProvider] = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"LazyProvider({self.name!r}, {self.target!r})"

    @property
    def loaded(self) -> bool:
        return self._instance is not None

    def resolve(self) -> AudioProvider:
        with self._lock:
            if self._instance is None:
                module_path, _, class_name = self.target.partition(":")
                logger.debug(f"Loading provider '{self.name}' from {self.target}")
                module = importlib.import_module(module_path)
                cls = getattr(module, class_name)
                self._instance = cls(**self.options)
            return self._instance

    def attempt(self, video_id: str) -> AcquisitionResult:
        return self.resolve().attempt(video_id)
