"""
Meeting pipeline: capture -> window batching -> recombination -> transcription.

The window timer never waits for transcription. Drained windows go into a
FIFO consumed by a single worker thread, so windows are transcribed one at
a time and segments reach consumers in window order.
"""

import queue
import threading
from typing import Callable, List, Optional

from ..backends import create_backend
from ..logger import get_logger, log_exception
from ..transcription_client import TranscriptionClient
from ..utils import ConfigManager
from .batcher import WindowBatch, WindowBatcher
from .capture import AudioSource, CaptureDegraded, StreamCapture
from .segments import TranscriptionSegment
from .wav import audio_level, recombine

logger = get_logger(__name__)

# Within a window, system audio is transcribed before the microphone
SOURCE_ORDER = (AudioSource.SYSTEM, AudioSource.MICROPHONE)

_STOP = object()


class MeetingPipeline:
    """Wires the capture, batching and transcription stages together."""

    def __init__(
        self,
        client: TranscriptionClient,
        capture: Optional[StreamCapture] = None,
        window_seconds: float = 10.0,
        silence_threshold: float = 0.0,
        on_segment: Optional[Callable[[TranscriptionSegment], None]] = None,
        on_degraded: Optional[Callable[[CaptureDegraded], None]] = None,
    ):
        self.client = client
        self.silence_threshold = silence_threshold
        self.batcher = WindowBatcher(window_seconds=window_seconds, on_window=self._enqueue)
        self.capture = capture or StreamCapture()
        self.capture.on_fragment = self.batcher.append
        if on_degraded:
            self.capture.on_degraded = on_degraded

        self._segment_handlers: List[Callable[[TranscriptionSegment], None]] = []
        if on_segment:
            self._segment_handlers.append(on_segment)

        self._windows: "queue.Queue" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._running = False
        self.windows_processed = 0

    def add_segment_handler(self, handler: Callable[[TranscriptionSegment], None]):
        self._segment_handlers.append(handler)

    def start(self) -> bool:
        """Start capture, the window timer and the window worker."""
        if self._running:
            return True

        if not self.capture.start():
            logger.error("Pipeline not started: no capture source is running")
            return False

        self._running = True
        self._worker = threading.Thread(target=self._worker_loop, name="window-worker", daemon=True)
        self._worker.start()
        self.batcher.start()
        logger.info(f"Pipeline started ({self.batcher.window_seconds:.0f}s windows)")
        return True

    def stop(self):
        """
        Stop capturing and flush.

        The remaining buffered audio becomes a final window; queued and
        in-flight windows are allowed to finish before this returns.
        """
        if not self._running:
            return

        self.capture.stop()
        self.batcher.stop(flush=True)

        self._windows.put(_STOP)
        if self._worker:
            self._worker.join()
            self._worker = None
        self._running = False
        logger.info(f"Pipeline stopped after {self.windows_processed} window(s)")

    def is_running(self) -> bool:
        return self._running

    def _enqueue(self, batch: WindowBatch):
        self._windows.put(batch)

    def _worker_loop(self):
        while True:
            batch = self._windows.get()
            if batch is _STOP:
                break
            try:
                self.process_window(batch)
            except Exception as e:
                log_exception(e, "while processing window")

    def process_window(self, batch: Optional[WindowBatch]) -> List[TranscriptionSegment]:
        """Transcribe one drained window and hand every segment to the handlers."""
        if batch is None or batch.is_empty:
            return []

        segments: List[TranscriptionSegment] = []
        for source in SOURCE_ORDER:
            fragments = batch.fragments_for(source)
            if not fragments:
                continue

            audio = recombine([f.payload for f in fragments], captured_at=fragments[0].captured_at)
            if audio is None:
                logger.debug(f"{source.value}: nothing to transcribe in window")
                continue

            if self.silence_threshold > 0:
                level = audio_level(audio)
                if level < self.silence_threshold:
                    logger.debug(f"{source.value}: window below silence threshold ({level:.4f})")
                    continue

            logger.debug(f"{source.value}: transcribing {audio.duration_seconds:.1f}s of audio")
            for segment in self.client.transcribe(audio, source, captured_at=audio.captured_at):
                segments.append(segment)
                self._emit(segment)

        self.windows_processed += 1
        return segments

    def _emit(self, segment: TranscriptionSegment):
        for handler in self._segment_handlers:
            try:
                handler(segment)
            except Exception as e:
                log_exception(e, "in segment handler")


def build_pipeline(
    on_segment: Optional[Callable[[TranscriptionSegment], None]] = None,
    on_degraded: Optional[Callable[[CaptureDegraded], None]] = None,
) -> MeetingPipeline:
    """Build a pipeline from the loaded configuration."""
    transcription = ConfigManager.get_config_section('transcription')
    capture_options = ConfigManager.get_config_section('capture')
    batching = ConfigManager.get_config_section('batching')
    sample_rate = ConfigManager.get_config_value('audio', 'sample_rate') or 16000

    backend = create_backend(
        transcription.get('backend', 'assemblyai'),
        language=transcription.get('language'),
        request_timeout=transcription.get('request_timeout', 30.0),
    )
    client = TranscriptionClient(
        backend,
        poll_interval=transcription.get('poll_interval', 5.0),
        timeout=transcription.get('timeout', 300.0),
        max_attempts=transcription.get('max_attempts', 3),
        base_delay=transcription.get('base_delay', 1.0),
        max_delay=transcription.get('max_delay', 10.0),
    )

    pipeline = MeetingPipeline(
        client,
        capture=StreamCapture(
            sample_rate=sample_rate,
            system_device=capture_options.get('system_device'),
            mic_silence_trim=capture_options.get('mic_silence_trim', True),
            system_command=capture_options.get('system_command'),
            mic_command=capture_options.get('mic_command'),
            read_size=capture_options.get('read_size') or 4096,
        ),
        window_seconds=batching.get('window_seconds', 10.0),
        silence_threshold=batching.get('silence_threshold') or 0.0,
        on_segment=on_segment,
        on_degraded=on_degraded,
    )
    return pipeline
