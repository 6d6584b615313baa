"""
meetscribe transcription backends

A single job-style interface over the vendor APIs:
- AssemblyAI - asynchronous jobs with speaker diarization (default)
- OpenAI Whisper - synchronous, exposed as an already-completed job
"""

from .base import (
    BackendError,
    BackendNotAvailableError,
    HttpTranscriptionBackend,
    JobStatus,
    JobStatusResponse,
    TranscriptionBackend,
    TranscriptionJob,
    TranscriptResult,
    Utterance,
)
from .factory import (
    create_backend,
    get_all_backends,
    get_available_backends,
    get_backend_class,
    is_backend_available,
    register_backend,
)

__all__ = [
    # Base classes
    "BackendError",
    "BackendNotAvailableError",
    "HttpTranscriptionBackend",
    "JobStatus",
    "JobStatusResponse",
    "TranscriptionBackend",
    "TranscriptionJob",
    "TranscriptResult",
    "Utterance",
    # Factory functions
    "create_backend",
    "get_all_backends",
    "get_available_backends",
    "get_backend_class",
    "is_backend_available",
    "register_backend",
]
