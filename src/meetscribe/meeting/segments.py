"""
Mapping of backend results onto transcript segments.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from ..backends.base import TranscriptResult, clamp_confidence
from .capture import AudioSource

MIC_SPEAKER = "You"
SYSTEM_SPEAKER = "Speaker"
DEFAULT_CONFIDENCE = 0.8


@dataclass(frozen=True)
class TranscriptionSegment:
    """A transcribed span with speaker attribution and absolute time."""
    text: str
    speaker: str
    timestamp: datetime
    confidence: float

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "speaker": self.speaker,
            "text": self.text,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TranscriptionSegment":
        """Create from dictionary."""
        return cls(
            text=data["text"],
            speaker=data["speaker"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            confidence=float(data.get("confidence", DEFAULT_CONFIDENCE)),
        )


def speaker_label(source: AudioSource, speaker_id: Optional[str] = None) -> str:
    """Microphone audio is always the user; system audio keeps the backend's speaker id."""
    if source == AudioSource.MICROPHONE:
        return MIC_SPEAKER
    if speaker_id is None or speaker_id == "":
        return SYSTEM_SPEAKER
    return f"{SYSTEM_SPEAKER} {speaker_id}"


def map_segments(result: Optional[TranscriptResult], source: AudioSource,
                 window_start: datetime) -> List[TranscriptionSegment]:
    """
    Turn a completed job's result into segments.

    One segment per utterance when the backend produced utterances, otherwise
    a single fallback segment carrying the whole-job text. Empty text is kept;
    filtering is up to the consumer.

    Args:
        result: The completed job's result
        source: Which capture source the audio came from
        window_start: Capture time of the window's first fragment for this source
    """
    if result is None:
        return []

    if result.utterances:
        return [
            TranscriptionSegment(
                text=utterance.text,
                speaker=speaker_label(source, utterance.speaker_id),
                timestamp=window_start + timedelta(milliseconds=utterance.start_offset_ms),
                confidence=(clamp_confidence(utterance.confidence)
                            if utterance.confidence is not None else DEFAULT_CONFIDENCE),
            )
            for utterance in result.utterances
        ]

    if result.text is not None:
        return [TranscriptionSegment(
            text=result.text,
            speaker=speaker_label(source),
            timestamp=window_start,
            confidence=DEFAULT_CONFIDENCE,
        )]

    return []
