"""
Session transcript sink.

Segments are appended to a JSONL session file as they arrive (one header
line, then one line per segment) so a crashed session can be reloaded.
"""

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..logger import get_logger
from .segments import TranscriptionSegment

logger = get_logger(__name__)

DEFAULT_OUTPUT_DIR = Path("Meetings")


@dataclass
class TranscriptWriter:
    """Collects accepted segments and mirrors them into a JSONL session file.

    Segments whose trimmed text is empty are dropped here, at the consumer.
    """

    output_dir: Path = field(default_factory=lambda: DEFAULT_OUTPUT_DIR)
    meeting_name: Optional[str] = None

    # Internal state
    entries: List[TranscriptionSegment] = field(default_factory=list)
    meeting_start: Optional[datetime] = None
    participants: set = field(default_factory=set)
    session_file: Optional[Path] = None
    _persist: bool = True
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)

    def start_meeting(self) -> Optional[Path]:
        """Mark the start of a new meeting and open its session file."""
        self.entries = []
        self.participants = set()
        self.meeting_start = datetime.now()

        if not self._persist:
            return None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.session_file = self.output_dir / self.meeting_start.strftime("meeting_%Y%m%d_%H%M%S.jsonl")
        header = {
            "_type": "header",
            "meeting_start": self.meeting_start.isoformat(),
            "meeting_name": self.meeting_name,
        }
        self.session_file.write_text(json.dumps(header) + "\n", encoding="utf-8")
        logger.info(f"Session file: {self.session_file}")
        return self.session_file

    def add_segment(self, segment: TranscriptionSegment) -> bool:
        """Accept a segment (also appends to the session file). Returns False if it was dropped."""
        if not segment.text or not segment.text.strip():
            return False

        segment = TranscriptionSegment(
            text=segment.text.strip(),
            speaker=segment.speaker,
            timestamp=segment.timestamp,
            confidence=segment.confidence,
        )
        with self._lock:
            self.entries.append(segment)
            self.participants.add(segment.speaker)
            self._append_to_file(segment)
        return True

    # Lets the writer be registered directly as a pipeline segment handler
    __call__ = add_segment

    def _append_to_file(self, segment: TranscriptionSegment):
        if not self._persist or self.session_file is None:
            return
        try:
            with open(self.session_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(segment.to_dict()) + "\n")
        except OSError as e:
            logger.warning(f"Failed to append to session file: {e}")

    @classmethod
    def load(cls, path: Path) -> "TranscriptWriter":
        """Rebuild a writer from a session file (skips malformed lines)."""
        path = Path(path)
        lines = path.read_text(encoding="utf-8").strip().split("\n")

        writer = cls(output_dir=path.parent)
        writer._persist = False
        writer.session_file = path

        for number, line in enumerate(lines):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
                if number == 0 and data.get("_type") == "header":
                    writer.meeting_name = data.get("meeting_name")
                    if data.get("meeting_start"):
                        writer.meeting_start = datetime.fromisoformat(data["meeting_start"])
                    continue
                segment = TranscriptionSegment.from_dict(data)
            except (ValueError, KeyError, TypeError):
                logger.debug(f"Skipping malformed line {number + 1} in {path}")
                continue
            writer.entries.append(segment)
            writer.participants.add(segment.speaker)

        logger.info(f"Loaded {len(writer.entries)} segments from {path}")
        return writer

    def get_full_text(self) -> str:
        """Get all text without formatting, in chronological order."""
        sorted_entries = sorted(self.entries, key=lambda e: e.timestamp)
        return "\n".join(f"{e.speaker}: {e.text}" for e in sorted_entries)
