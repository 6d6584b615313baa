"""
Base classes for transcription backends.

Every vendor adapter exposes the same asynchronous-job capability:
upload audio to get a job handle, then poll the handle for its status.
Failures cross this boundary only as BackendError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from ..logger import get_logger

logger = get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0
CONNECT_TIMEOUT = 5.0


class JobStatus(str, Enum):
    """Lifecycle of a transcription job."""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    TIMED_OUT = "timed_out"  # Imposed by the client, never reported by a backend

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.TIMED_OUT)


@dataclass
class Utterance:
    """A contiguous span of speech attributed to one speaker."""
    text: str
    speaker_id: Optional[str] = None
    start_offset_ms: float = 0.0
    confidence: Optional[float] = None


@dataclass
class TranscriptResult:
    """Backend output: a list of utterances, or only the whole-job text."""
    text: Optional[str] = None
    utterances: Optional[List[Utterance]] = None


@dataclass
class JobStatusResponse:
    """One status poll."""
    status: JobStatus
    result: Optional[TranscriptResult] = None
    error: Optional[str] = None


@dataclass
class TranscriptionJob:
    """A submitted job as tracked by the client."""
    id: str
    submitted_at: datetime
    status: JobStatus = JobStatus.QUEUED
    result: Optional[TranscriptResult] = None
    error: Optional[str] = None
    polls: int = 0


class BackendError(Exception):
    """Normalized failure from a backend call.

    Args:
        message: Human readable description
        status_code: HTTP status, when the failure was an HTTP response
        reason: "timeout" or "connection_reset" for transport failures
    """

    TIMEOUT = "timeout"
    CONNECTION_RESET = "connection_reset"

    def __init__(self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason
        super().__init__(message)


class BackendNotAvailableError(Exception):
    """Raised when a backend cannot be used (e.g. missing API key)."""
    def __init__(self, backend_id: str, install_hint: str):
        self.backend_id = backend_id
        self.install_hint = install_hint
        super().__init__(f"Backend '{backend_id}' not available. {install_hint}")


class TranscriptionBackend(ABC):
    """
    Abstract base class for transcription backends.

    All vendors (AssemblyAI, OpenAI, ...) must implement this interface.
    """

    # Class attributes to be overridden by subclasses
    BACKEND_ID: str = "base"
    BACKEND_NAME: str = "Base Backend"

    @abstractmethod
    def upload(self, data: bytes) -> str:
        """
        Submit a WAV file for transcription.

        Args:
            data: Complete WAV container

        Returns:
            Job handle to poll with get_status

        Raises:
            BackendError: On any failure
        """

    @abstractmethod
    def get_status(self, handle: str) -> JobStatusResponse:
        """
        Poll a job.

        Raises:
            BackendError: On any failure
        """

    @classmethod
    def is_available(cls) -> bool:
        """
        Check if this backend can be used (credentials present).

        Override in subclasses.
        """
        return True

    @classmethod
    def get_install_hint(cls) -> str:
        """
        Get setup instructions for this backend.

        Override in subclasses to provide specific instructions.
        """
        return "Configure the backend credentials."


class HttpTranscriptionBackend(TranscriptionBackend):
    """Shared plumbing for REST backends built on requests."""

    def __init__(self, api_key: str, base_url: str, request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.session = session or requests.Session()

    def _get_headers(self) -> Dict[str, str]:
        return {}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body, raising BackendError on failure."""
        url = f"{self.base_url}{path}"
        headers = dict(self._get_headers())
        headers.update(kwargs.pop("headers", {}))

        try:
            response = self.session.request(
                method, url,
                headers=headers,
                timeout=(CONNECT_TIMEOUT, self.request_timeout),
                **kwargs
            )
        except requests.Timeout as e:
            raise BackendError(f"{method} {path} timed out: {e}", reason=BackendError.TIMEOUT) from e
        except requests.ConnectionError as e:
            raise BackendError(f"{method} {path} connection failed: {e}",
                               reason=BackendError.CONNECTION_RESET) from e
        except requests.RequestException as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise BackendError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{method} {path} returned invalid JSON: {e}") from e


def clamp_confidence(value: Optional[float]) -> Optional[float]:
    """Clamp a confidence into [0, 1], passing None through."""
    if value is None:
        return None
    return max(0.0, min(1.0, float(value)))
