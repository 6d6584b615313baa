"""
Pytest fixtures for meetscribe tests.
"""

import io
import sys
import tempfile
import wave
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from meetscribe.backends.base import (  # noqa: E402
    JobStatus,
    JobStatusResponse,
    TranscriptionBackend,
    TranscriptResult,
    Utterance,
)


def make_wav(seconds: float = 1.0, sample_rate: int = 16000, channels: int = 1,
             sample_width: int = 2, frequency: float = 440.0, amplitude: float = 0.3) -> bytes:
    """Build a complete PCM WAV file containing a sine tone."""
    frames = int(seconds * sample_rate)
    t = np.arange(frames) / sample_rate
    tone = amplitude * np.sin(2 * np.pi * frequency * t)
    if sample_width == 2:
        samples = (tone * 32767).astype('<i2')
    else:
        samples = ((tone * 127) + 128).astype(np.uint8)
    if channels == 2:
        samples = np.repeat(samples, 2)

    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(samples.tobytes())
    return buffer.getvalue()


class FakeClock:
    """Monotonic clock that only moves when the client sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class StubBackend(TranscriptionBackend):
    """Scriptable backend.

    Args:
        upload_errors: Exceptions raised by successive upload() calls (None = succeed)
        statuses: Responses returned by successive polls; the last one repeats
        clock: Optional FakeClock used to record when each poll happened
    """

    BACKEND_ID = "stub"
    BACKEND_NAME = "Stub"

    def __init__(self, upload_errors: Optional[list] = None,
                 statuses: Optional[List[JobStatusResponse]] = None, clock: Optional[FakeClock] = None):
        self.upload_errors = list(upload_errors or [])
        self.statuses = list(statuses or [JobStatusResponse(JobStatus.COMPLETED, TranscriptResult(text=""))])
        self.clock = clock
        self.uploads: List[bytes] = []
        self.poll_times: List[float] = []

    def upload(self, data: bytes) -> str:
        self.uploads.append(data)
        if self.upload_errors:
            error = self.upload_errors.pop(0)
            if error is not None:
                raise error
        return f"job-{len(self.uploads)}"

    def get_status(self, handle: str) -> JobStatusResponse:
        self.poll_times.append(self.clock() if self.clock else 0.0)
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]


def completed(text: Optional[str] = None, utterances: Optional[List[Utterance]] = None) -> JobStatusResponse:
    return JobStatusResponse(JobStatus.COMPLETED, TranscriptResult(text=text, utterances=utterances))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def wav_factory():
    """Factory for sine-tone WAV files."""
    return make_wav


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def hello_backend():
    """Backend that answers every job with one utterance: 'hello world' by speaker 0."""
    return StubBackend(statuses=[
        completed(
            text="hello world",
            utterances=[Utterance(text="hello world", speaker_id="0", start_offset_ms=0, confidence=0.9)],
        )
    ])


@pytest.fixture
def schema_path():
    return Path(__file__).parent.parent / "src" / "meetscribe" / "config_schema.yaml"


@pytest.fixture
def fresh_config():
    """Give a test its own ConfigManager singleton and restore the previous one afterwards."""
    from meetscribe.utils import ConfigManager

    original = ConfigManager._instance
    ConfigManager.reset()
    yield ConfigManager
    ConfigManager._instance = original
