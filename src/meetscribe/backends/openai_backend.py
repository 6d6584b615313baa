"""
OpenAI Whisper backend.

The Whisper endpoint answers synchronously, so upload() runs the whole
transcription and keeps the result under a generated handle; the first
get_status() for that handle reports it as completed and forgets it.
Whisper does no diarization: segments carry no speaker id.
"""

import math
import os
import threading
import uuid
from typing import Dict, Optional

from .base import (
    DEFAULT_REQUEST_TIMEOUT,
    BackendError,
    HttpTranscriptionBackend,
    JobStatus,
    JobStatusResponse,
    TranscriptResult,
    Utterance,
    clamp_confidence,
)
from .factory import register_backend

OPENAI_BASE_URL = "https://api.openai.com"
WHISPER_MODEL = "whisper-1"


@register_backend
class OpenAIWhisperBackend(HttpTranscriptionBackend):
    """OpenAI Whisper transcription (segment timestamps, no speakers)."""

    BACKEND_ID = "openai"
    BACKEND_NAME = "OpenAI Whisper"

    def __init__(self, api_key: Optional[str] = None, language: Optional[str] = "en",
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT, base_url: str = OPENAI_BASE_URL,
                 model: str = WHISPER_MODEL, session=None):
        super().__init__(
            api_key or os.environ.get("OPENAI_API_KEY", ""),
            base_url,
            request_timeout=request_timeout,
            session=session,
        )
        self.language = language
        self.model = model
        self._results: Dict[str, TranscriptResult] = {}
        self._lock = threading.Lock()

    def _get_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def upload(self, data: bytes) -> str:
        form = {
            "model": self.model,
            "response_format": "verbose_json",
            "timestamp_granularities[]": "segment",
        }
        if self.language:
            form["language"] = self.language

        response = self._request(
            "POST", "/v1/audio/transcriptions",
            files={"file": ("window.wav", data, "audio/wav")},
            data=form,
        )

        handle = uuid.uuid4().hex
        with self._lock:
            self._results[handle] = self._parse_result(response)
        return handle

    def get_status(self, handle: str) -> JobStatusResponse:
        with self._lock:
            result = self._results.pop(handle, None)
        if result is None:
            raise BackendError(f"Unknown job handle: {handle}", status_code=404)
        return JobStatusResponse(status=JobStatus.COMPLETED, result=result)

    @staticmethod
    def _parse_result(data: dict) -> TranscriptResult:
        segments = data.get("segments")
        if segments is None:
            return TranscriptResult(text=data.get("text"))

        utterances = []
        for segment in segments:
            avg_logprob = segment.get("avg_logprob")
            confidence = clamp_confidence(math.exp(avg_logprob)) if avg_logprob is not None else None
            utterances.append(Utterance(
                text=(segment.get("text") or "").strip(),
                speaker_id=None,
                start_offset_ms=float(segment.get("start") or 0.0) * 1000.0,
                confidence=confidence,
            ))
        return TranscriptResult(text=data.get("text"), utterances=utterances)

    @classmethod
    def is_available(cls) -> bool:
        return bool(os.environ.get("OPENAI_API_KEY"))

    @classmethod
    def get_install_hint(cls) -> str:
        return "Set OPENAI_API_KEY in your environment or .env file."
