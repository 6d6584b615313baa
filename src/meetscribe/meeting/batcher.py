"""
Fixed-period batching of captured fragments.

Fragments from both capture threads are appended to one shared buffer.
Every ``window_seconds`` the buffer is swapped out under the lock and the
old contents are split by source, preserving arrival order.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from ..logger import get_logger
from .capture import AudioFragment, AudioSource

logger = get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 10.0


@dataclass
class WindowBatch:
    """All fragments drained from the buffer in one window, split by source."""
    started_at: datetime
    drained_at: datetime
    system: List[AudioFragment] = field(default_factory=list)
    microphone: List[AudioFragment] = field(default_factory=list)

    def fragments_for(self, source: AudioSource) -> List[AudioFragment]:
        if source == AudioSource.SYSTEM:
            return self.system
        return self.microphone

    @property
    def is_empty(self) -> bool:
        return not self.system and not self.microphone

    def __len__(self) -> int:
        return len(self.system) + len(self.microphone)


class WindowBatcher:
    """
    Accumulates fragments and drains them on a fixed period.

    ``append`` and ``drain`` are mutually exclusive: a fragment lands either
    in the batch being drained or in the next one, never both.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        on_window: Optional[Callable[[WindowBatch], None]] = None
    ):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.window_seconds = window_seconds
        self.on_window = on_window

        self._lock = threading.Lock()
        self._buffer: List[AudioFragment] = []

        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        self.windows_emitted = 0

    def append(self, fragment: AudioFragment):
        """Add a fragment. Safe to call from any thread."""
        with self._lock:
            self._buffer.append(fragment)

    def pending(self) -> int:
        """Number of fragments waiting for the next drain."""
        with self._lock:
            return len(self._buffer)

    def drain(self) -> Optional[WindowBatch]:
        """Atomically take everything buffered so far. Returns None if nothing was buffered."""
        with self._lock:
            fragments, self._buffer = self._buffer, []

        if not fragments:
            return None

        batch = WindowBatch(started_at=fragments[0].captured_at, drained_at=datetime.now())
        for fragment in fragments:
            batch.fragments_for(fragment.source).append(fragment)
        return batch

    def flush(self) -> Optional[WindowBatch]:
        """Drain now and hand the batch to ``on_window`` (if anything was buffered)."""
        batch = self.drain()
        if batch is None:
            return None

        self.windows_emitted += 1
        logger.debug(
            f"Window {self.windows_emitted}: {len(batch.system)} system / "
            f"{len(batch.microphone)} microphone fragments"
        )
        if self.on_window:
            try:
                self.on_window(batch)
            except Exception as e:
                logger.error(f"Window handler failed: {e}", exc_info=True)
        return batch

    def start(self):
        """Start the window timer thread."""
        if self._timer_thread and self._timer_thread.is_alive():
            return
        self._stop_event.clear()
        self._timer_thread = threading.Thread(target=self._timer_loop, name="window-timer", daemon=True)
        self._timer_thread.start()

    def _timer_loop(self):
        # Fires on schedule regardless of how long downstream work takes
        while not self._stop_event.wait(self.window_seconds):
            self.flush()

    def stop(self, flush: bool = True) -> Optional[WindowBatch]:
        """Stop the timer. With ``flush`` the remaining fragments are emitted as a final window."""
        self._stop_event.set()
        if self._timer_thread:
            self._timer_thread.join(timeout=self.window_seconds + 1.0)
            self._timer_thread = None
        if flush:
            return self.flush()
        return None

    def is_running(self) -> bool:
        return self._timer_thread is not None and self._timer_thread.is_alive()
