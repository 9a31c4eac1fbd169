import pytest

from shared.models import AcquisitionResult


class FakeProvider:
    """Scripted provider that records how often it was called."""

    def __init__(self, name, outcome, label=None):
        self.name = name
        self.label = label or name
        self.outcome = outcome
        self.calls = []

    def attempt(self, video_id):
        self.calls.append(video_id)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        if callable(self.outcome):
            return self.outcome(video_id)
        return self.outcome


@pytest.fixture
def make_provider():
    def _make(name, outcome, label=None):
        return FakeProvider(name, outcome, label=label)
    return _make


@pytest.fixture
def audio_result():
    def _make(size=1024, media_type="audio/mpeg", fill=b"\xab"):
        return AcquisitionResult(payload=fill * size, media_type=media_type)
    return _make
