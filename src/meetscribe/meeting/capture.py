"""
Audio capture for meeting transcription.

Runs one long-lived external process per source:
- System audio (others): ffmpeg reading the loopback device
  (BlackHole on macOS, a PulseAudio monitor on Linux, dshow on Windows).
- Microphone (user): sox reading the default input device.

Both processes write a WAV stream to stdout. Whatever bytes each read
returns are emitted immediately as an AudioFragment; fragment boundaries
are arbitrary and need not align with the header or sample frames.
"""

import shutil
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..logger import get_logger

logger = get_logger(__name__)

DEFAULT_SAMPLE_RATE = 16000
DEFAULT_READ_SIZE = 4096
STOP_TIMEOUT = 2.0


class AudioSource(str, Enum):
    """Where a fragment of audio came from."""
    SYSTEM = "system"
    MICROPHONE = "microphone"


@dataclass(frozen=True)
class AudioFragment:
    """Raw bytes read from a capture process."""
    payload: bytes
    captured_at: datetime
    source: AudioSource


@dataclass
class CaptureDegraded:
    """A capture process failed to start or exited while capturing."""
    source: AudioSource
    reason: str
    returncode: Optional[int] = None


def default_system_device() -> str:
    """Platform default loopback device name."""
    if sys.platform == 'darwin':
        return "BlackHole 2ch"
    if sys.platform == 'win32':
        return "Stereo Mix"
    return "default.monitor"


def build_system_command(sample_rate: int = DEFAULT_SAMPLE_RATE, device: Optional[str] = None) -> List[str]:
    """ffmpeg argv that writes mono 16-bit WAV from the loopback device to stdout."""
    device = device or default_system_device()
    if sys.platform == 'darwin':
        source = ['-f', 'avfoundation', '-i', f':{device}']
    elif sys.platform == 'win32':
        source = ['-f', 'dshow', '-i', f'audio={device}']
    else:
        source = ['-f', 'pulse', '-i', device]

    return [
        'ffmpeg', '-hide_banner', '-loglevel', 'error',
        *source,
        '-acodec', 'pcm_s16le',
        '-ar', str(sample_rate),
        '-ac', '1',
        # No LIST/INFO chunk: the stream must keep the plain 44-byte header
        '-map_metadata', '-1',
        '-fflags', '+bitexact',
        '-flags:a', '+bitexact',
        '-f', 'wav',
        '-',  # stdout
    ]


def build_mic_command(sample_rate: int = DEFAULT_SAMPLE_RATE, silence_trim: bool = True) -> List[str]:
    """sox argv that writes mono 16-bit WAV from the default microphone to stdout."""
    command = [
        'sox', '-q',
        '-d',  # default audio device
        '-r', str(sample_rate),
        '-c', '1',
        '-b', '16',
        '-e', 'signed-integer',
        '-t', 'wav',
        '-',
    ]
    if silence_trim:
        command += ['silence', '1', '0.1', '1%', '1', '1.0', '1%']
    return command


def check_dependencies() -> Dict[str, Optional[str]]:
    """Locate the external capture tools. Maps tool name to its path (None if missing)."""
    return {tool: shutil.which(tool) for tool in ('ffmpeg', 'sox')}


class CaptureProcess:
    """One capture process and the thread that reads its stdout."""

    def __init__(
        self,
        source: AudioSource,
        command: List[str],
        on_fragment: Callable[[AudioFragment], None],
        on_degraded: Callable[[CaptureDegraded], None],
        read_size: int = DEFAULT_READ_SIZE,
    ):
        self.source = source
        self.command = command
        self.on_fragment = on_fragment
        self.on_degraded = on_degraded
        self.read_size = read_size

        self._process: Optional[subprocess.Popen] = None
        self._reader: Optional[threading.Thread] = None
        self._stderr_reader: Optional[threading.Thread] = None

        # Held while emitting; stop() takes it to fence off late fragments
        self._emit_lock = threading.Lock()
        self._stopped = True

    def start(self) -> bool:
        """Spawn the process. Returns False (and reports degradation) if it cannot start."""
        if self.is_running():
            return True

        try:
            self._process = subprocess.Popen(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
            )
        except OSError as e:
            self._process = None
            self._degrade(f"failed to start {self.command[0]}: {e}")
            return False

        self._stopped = False
        self._reader = threading.Thread(
            target=self._read_loop, name=f"capture-{self.source.value}", daemon=True
        )
        self._stderr_reader = threading.Thread(
            target=self._stderr_loop, args=(self._process,),
            name=f"capture-{self.source.value}-stderr", daemon=True
        )
        self._reader.start()
        self._stderr_reader.start()
        logger.info(f"{self.source.value} capture started: {' '.join(self.command)}")
        return True

    def _read_loop(self):
        process = self._process
        stream = process.stdout
        while True:
            try:
                data = stream.read(self.read_size)
            except (OSError, ValueError):
                # Pipe closed underneath us by stop()
                break
            if not data:
                break

            fragment = AudioFragment(payload=data, captured_at=datetime.now(), source=self.source)
            with self._emit_lock:
                if self._stopped:
                    return
                self.on_fragment(fragment)

        # EOF: the process exited on its own unless stop() got there first
        with self._emit_lock:
            if self._stopped:
                return
            self._stopped = True
        returncode = process.wait()
        self._degrade(f"{self.command[0]} exited", returncode)

    def _stderr_loop(self, process: subprocess.Popen):
        try:
            for line in iter(process.stderr.readline, b''):
                logger.debug(f"{self.source.value} capture: {line.decode(errors='replace').rstrip()}")
        except (OSError, ValueError):
            pass  # stderr closed by stop()

    def _degrade(self, reason: str, returncode: Optional[int] = None):
        event = CaptureDegraded(source=self.source, reason=reason, returncode=returncode)
        logger.warning(f"Capture degraded ({self.source.value}): {reason}"
                       + (f" (exit code {returncode})" if returncode is not None else ""))
        try:
            self.on_degraded(event)
        except Exception as e:
            logger.error(f"Capture degraded handler failed: {e}", exc_info=True)

    def stop(self, timeout: float = STOP_TIMEOUT):
        """Terminate the process (SIGTERM, then SIGKILL). No fragment is emitted after this returns."""
        with self._emit_lock:
            self._stopped = True

        process = self._process
        if process is None:
            return

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"{self.source.value} capture did not exit, killing")
                process.kill()
                process.wait()

        # Readers hit EOF once the process is gone
        for thread in (self._reader, self._stderr_reader):
            if thread and thread is not threading.current_thread():
                thread.join(timeout=timeout)

        for stream in (process.stdout, process.stderr):
            if stream:
                stream.close()

        self._process = None
        self._reader = None
        self._stderr_reader = None

    def is_running(self) -> bool:
        return self._process is not None and not self._stopped


@dataclass
class StreamCapture:
    """Captures system audio and microphone simultaneously as two independent processes.

    Fragments from both sources are handed to ``on_fragment`` from the reader
    threads, so the callback must be thread-safe.
    """

    on_fragment: Optional[Callable[[AudioFragment], None]] = None
    on_degraded: Optional[Callable[[CaptureDegraded], None]] = None
    sample_rate: int = DEFAULT_SAMPLE_RATE
    system_device: Optional[str] = None
    mic_silence_trim: bool = True
    system_command: Optional[List[str]] = None
    mic_command: Optional[List[str]] = None
    read_size: int = DEFAULT_READ_SIZE

    degraded_events: List[CaptureDegraded] = field(default_factory=list)
    _processes: Dict[AudioSource, CaptureProcess] = field(default_factory=dict)
    _recording: bool = False

    def _commands(self) -> Dict[AudioSource, List[str]]:
        return {
            AudioSource.SYSTEM: self.system_command or build_system_command(self.sample_rate, self.system_device),
            AudioSource.MICROPHONE: self.mic_command or build_mic_command(self.sample_rate, self.mic_silence_trim),
        }

    def _handle_fragment(self, fragment: AudioFragment):
        if self.on_fragment:
            self.on_fragment(fragment)

    def _handle_degraded(self, event: CaptureDegraded):
        self.degraded_events.append(event)
        if self.on_degraded:
            self.on_degraded(event)

    def start(self) -> bool:
        """Start capturing from both sources. Returns True if at least one source is running."""
        if self._recording:
            return True

        self._recording = True
        self._processes = {}
        for source, command in self._commands().items():
            process = CaptureProcess(
                source, command, self._handle_fragment, self._handle_degraded, read_size=self.read_size
            )
            self._processes[source] = process
            process.start()

        running = [s.value for s, p in self._processes.items() if p.is_running()]
        if not running:
            logger.error("No capture source could be started")
            self._recording = False
            self._processes = {}
        return bool(running)

    def stop(self):
        """Stop capturing audio from both sources."""
        self._recording = False
        for process in self._processes.values():
            process.stop()
        self._processes = {}
        logger.info("Capture stopped")

    def is_recording(self) -> bool:
        """Check if currently recording."""
        return self._recording

    def running_sources(self) -> List[AudioSource]:
        return [source for source, process in self._processes.items() if process.is_running()]
