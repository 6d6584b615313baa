"""
Transcription Client

Runs one transcription job per recombined window against a backend:
upload, poll until the job finishes or the time ceiling is hit, and retry
transient failures with exponential backoff.

transcribe() never raises. Every failure (fatal error, retries exhausted,
timeout) is logged and comes back as an empty list of segments.
"""

import time
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

import requests

from .backends.base import (
    BackendError,
    JobStatus,
    TranscriptionBackend,
    TranscriptionJob,
)
from .logger import get_logger, log_exception
from .meeting.capture import AudioSource
from .meeting.segments import TranscriptionSegment, map_segments
from .meeting.wav import RecombinedAudio

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_TIMEOUT = 300.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


class ErrorKind(Enum):
    """Whether a failure is worth another attempt."""
    TRANSIENT = "transient"
    FATAL = "fatal"


def classify_error(error: BaseException) -> ErrorKind:
    """
    Classify a failure from a backend call.

    Rate limiting (429), server errors (>= 500), timeouts and connection
    resets are transient; everything else is fatal.
    """
    if isinstance(error, BackendError):
        if error.reason in (BackendError.TIMEOUT, BackendError.CONNECTION_RESET):
            return ErrorKind.TRANSIENT
        status = error.status_code
    elif isinstance(error, (requests.Timeout, requests.ConnectionError,
                            ConnectionResetError, TimeoutError)):
        return ErrorKind.TRANSIENT
    elif isinstance(error, requests.HTTPError) and error.response is not None:
        status = error.response.status_code
    else:
        return ErrorKind.FATAL

    if status is not None and (status == 429 or status >= 500):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


def is_retryable(error: BaseException) -> bool:
    return classify_error(error) == ErrorKind.TRANSIENT


def backoff_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY,
                  max_delay: float = DEFAULT_MAX_DELAY) -> float:
    """Seconds to wait before the given (1-based) attempt: 2s, 4s, 8s ... capped at max_delay."""
    if attempt <= 1:
        return 0.0
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


class TranscriptionClient:
    """Drives transcription jobs against a TranscriptionBackend."""

    def __init__(
        self,
        backend: TranscriptionBackend,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self._clock = clock

    def transcribe(
        self,
        audio: RecombinedAudio,
        source: AudioSource,
        captured_at: Optional[datetime] = None,
    ) -> List[TranscriptionSegment]:
        """
        Transcribe one window of audio from one source.

        Args:
            audio: Recombined WAV for the window
            source: Capture source (decides speaker labels)
            captured_at: Window capture time; defaults to the audio's own, then now

        Returns:
            Segments in backend order; empty on any failure
        """
        window_start = captured_at or audio.captured_at or datetime.now()
        try:
            job = self.run_job(audio.data)
            if job is None or job.status != JobStatus.COMPLETED:
                return []
            segments = map_segments(job.result, source, window_start)
            logger.info(f"{source.value}: job {job.id} produced {len(segments)} segment(s)")
            return segments
        except Exception as e:
            log_exception(e, f"while transcribing {source.value} audio")
            return []

    def run_job(self, data: bytes) -> Optional[TranscriptionJob]:
        """
        Submit and poll a job, retrying transient failures.

        Returns:
            The job in a terminal state (completed, error or timed_out),
            or None when a fatal error occurred or attempts ran out
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                logger.warning(f"Retry {attempt}/{self.max_attempts} after {delay:.1f}s: {last_error}")
                self._sleep(delay)

            try:
                return self._attempt(data)
            except Exception as e:
                if classify_error(e) == ErrorKind.FATAL:
                    logger.error(f"Transcription failed (attempt {attempt}/{self.max_attempts}): {e}")
                    return None
                logger.warning(f"Transient transcription error (attempt {attempt}/{self.max_attempts}): {e}")
                last_error = e

        logger.error(f"Transcription failed after {self.max_attempts} attempts: {last_error}")
        return None

    def _attempt(self, data: bytes) -> TranscriptionJob:
        """One upload plus polling until a terminal status or the time ceiling."""
        started = self._clock()
        job = TranscriptionJob(id=self.backend.upload(data), submitted_at=datetime.now())
        logger.debug(f"Job {job.id} submitted ({len(data)} bytes)")

        while True:
            # The ceiling covers the upload too; never poll once it has passed
            remaining = self.timeout - (self._clock() - started)
            if remaining <= 0:
                break

            response = self.backend.get_status(job.id)
            job.polls += 1
            job.status = response.status

            if response.status.is_terminal:
                if response.status == JobStatus.COMPLETED:
                    job.result = response.result
                else:
                    job.error = response.error
                    logger.error(f"Job {job.id} failed on the backend: {response.error}")
                return job

            remaining = self.timeout - (self._clock() - started)
            if remaining <= 0:
                break
            self._sleep(min(self.poll_interval, remaining))

        job.status = JobStatus.TIMED_OUT
        logger.error(f"Job {job.id} timed out after {self.timeout:.0f}s ({job.polls} polls)")
        return job
