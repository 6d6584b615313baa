"""
AssemblyAI backend.

Uploads the WAV, starts a transcript with speaker labels and polls
/v2/transcript/{id}. Utterance times are reported in milliseconds and
speakers as letters ("A", "B", ...).
"""

import os
from typing import Any, Dict, List, Optional

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
from ..logger import get_logger

logger = get_logger(__name__)

ASSEMBLYAI_BASE_URL = "https://api.assemblyai.com"

_STATUS_MAP = {
    "queued": JobStatus.QUEUED,
    "processing": JobStatus.PROCESSING,
    "completed": JobStatus.COMPLETED,
    "error": JobStatus.ERROR,
}


@register_backend
class AssemblyAIBackend(HttpTranscriptionBackend):
    """AssemblyAI asynchronous transcription with diarization."""

    BACKEND_ID = "assemblyai"
    BACKEND_NAME = "AssemblyAI"

    def __init__(self, api_key: Optional[str] = None, language: Optional[str] = "en",
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT, base_url: str = ASSEMBLYAI_BASE_URL,
                 session=None):
        super().__init__(
            api_key or os.environ.get("ASSEMBLYAI_API_KEY", ""),
            base_url,
            request_timeout=request_timeout,
            session=session,
        )
        self.language = language

    def _get_headers(self) -> Dict[str, str]:
        return {"authorization": self.api_key}

    def upload(self, data: bytes) -> str:
        uploaded = self._request(
            "POST", "/v2/upload",
            data=data,
            headers={"content-type": "application/octet-stream"},
        )
        upload_url = uploaded.get("upload_url")
        if not upload_url:
            raise BackendError("Upload response has no upload_url")

        request: Dict[str, Any] = {"audio_url": upload_url, "speaker_labels": True}
        if self.language:
            request["language_code"] = self.language

        job = self._request("POST", "/v2/transcript", json=request)
        job_id = job.get("id")
        if not job_id:
            raise BackendError("Transcript response has no id")
        logger.debug(f"AssemblyAI job {job_id} submitted ({len(data)} bytes)")
        return job_id

    def get_status(self, handle: str) -> JobStatusResponse:
        data = self._request("GET", f"/v2/transcript/{handle}")
        status = _STATUS_MAP.get(data.get("status"))
        if status is None:
            raise BackendError(f"Unknown job status: {data.get('status')!r}")

        if status == JobStatus.ERROR:
            return JobStatusResponse(status=status, error=data.get("error") or "unknown error")
        if status != JobStatus.COMPLETED:
            return JobStatusResponse(status=status)

        return JobStatusResponse(status=status, result=self._parse_result(data))

    @staticmethod
    def _parse_result(data: dict) -> TranscriptResult:
        utterances: Optional[List[Utterance]] = None
        if data.get("utterances") is not None:
            utterances = [
                Utterance(
                    text=u.get("text", ""),
                    speaker_id=str(u["speaker"]) if u.get("speaker") is not None else None,
                    start_offset_ms=float(u.get("start") or 0),
                    confidence=clamp_confidence(u.get("confidence")),
                )
                for u in data["utterances"]
            ]
        return TranscriptResult(text=data.get("text"), utterances=utterances)

    @classmethod
    def is_available(cls) -> bool:
        return bool(os.environ.get("ASSEMBLYAI_API_KEY"))

    @classmethod
    def get_install_hint(cls) -> str:
        return "Set ASSEMBLYAI_API_KEY in your environment or .env file."
