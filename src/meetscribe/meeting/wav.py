"""
WAV container handling.

Recombines the fragments one capture source produced during a window into a
single well-formed WAV file: the header is read from the first structurally
valid fragment, the first 44 bytes of every fragment are dropped and the
remainders are concatenated behind a freshly written header.
"""

import struct
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

import numpy as np

from ..logger import get_logger

logger = get_logger(__name__)

HEADER_SIZE = 44

# Field offsets inside the canonical 44-byte header
RIFF_OFFSET = 0
WAVE_OFFSET = 8
FMT_OFFSET = 12
CHANNELS_OFFSET = 22
SAMPLE_RATE_OFFSET = 24
BITS_PER_SAMPLE_OFFSET = 34

DEFAULT_SAMPLE_RATE = 16000
DEFAULT_CHANNELS = 1
DEFAULT_BITS_PER_SAMPLE = 16
MIN_SAMPLE_RATE = 8000
MAX_SAMPLE_RATE = 48000

MAX_PAYLOAD_BYTES = 100 * 1024 * 1024  # 100 MiB
UINT32_MAX = 0xFFFFFFFF

_HEADER_STRUCT = struct.Struct('<4sI4s4sIHHIIHH4sI')


@dataclass(frozen=True)
class ContainerHeader:
    """Format fields of a PCM WAV header."""
    sample_rate: int = DEFAULT_SAMPLE_RATE
    channels: int = DEFAULT_CHANNELS
    bits_per_sample: int = DEFAULT_BITS_PER_SAMPLE

    def clamped(self) -> "ContainerHeader":
        """Replace out-of-range fields with the defaults."""
        sample_rate = self.sample_rate
        if sample_rate < MIN_SAMPLE_RATE or sample_rate > MAX_SAMPLE_RATE:
            sample_rate = DEFAULT_SAMPLE_RATE
        channels = self.channels if self.channels in (1, 2) else DEFAULT_CHANNELS
        bits = self.bits_per_sample if self.bits_per_sample in (8, 16) else DEFAULT_BITS_PER_SAMPLE
        return ContainerHeader(sample_rate=sample_rate, channels=channels, bits_per_sample=bits)

    @property
    def byte_rate(self) -> int:
        return min(self.sample_rate * self.channels * self.bits_per_sample // 8, UINT32_MAX)

    @property
    def block_align(self) -> int:
        return self.channels * self.bits_per_sample // 8


@dataclass
class RecombinedAudio:
    """One WAV container built from a window's fragments for a single source."""
    header: ContainerHeader
    payload: bytes
    data: bytes  # The complete container: header + payload
    captured_at: Optional[datetime] = None

    @property
    def total_payload_bytes(self) -> int:
        return len(self.payload)

    @property
    def duration_seconds(self) -> float:
        bytes_per_second = self.header.byte_rate
        if not bytes_per_second:
            return 0.0
        return len(self.payload) / bytes_per_second


def is_valid_wav(data: bytes) -> bool:
    """Check the RIFF/WAVE/fmt markers of a (possibly partial) WAV buffer."""
    if len(data) < HEADER_SIZE:
        return False
    return (
        data[RIFF_OFFSET:RIFF_OFFSET + 4] == b'RIFF'
        and data[WAVE_OFFSET:WAVE_OFFSET + 4] == b'WAVE'
        and data[FMT_OFFSET:FMT_OFFSET + 4] == b'fmt '
    )


def parse_header(data: bytes) -> ContainerHeader:
    """Read the format fields of a valid WAV header and clamp them to supported values."""
    channels, = struct.unpack_from('<H', data, CHANNELS_OFFSET)
    sample_rate, = struct.unpack_from('<I', data, SAMPLE_RATE_OFFSET)
    bits_per_sample, = struct.unpack_from('<H', data, BITS_PER_SAMPLE_OFFSET)
    return ContainerHeader(sample_rate, channels, bits_per_sample).clamped()


def build_header(header: ContainerHeader, payload_size: int) -> bytes:
    """Write a canonical 44-byte PCM header for ``payload_size`` bytes of samples."""
    return _HEADER_STRUCT.pack(
        b'RIFF',
        min(36 + payload_size, UINT32_MAX),
        b'WAVE',
        b'fmt ',
        16,  # PCM format chunk size
        1,   # Audio format (1 = PCM)
        header.channels,
        header.sample_rate,
        header.byte_rate,
        header.block_align,
        header.bits_per_sample,
        b'data',
        min(payload_size, UINT32_MAX),
    )


def recombine(
    fragments: Iterable[bytes],
    captured_at: Optional[datetime] = None,
    max_payload_bytes: int = MAX_PAYLOAD_BYTES,
) -> Optional[RecombinedAudio]:
    """
    Combine WAV fragments into a single container.

    Args:
        fragments: Fragment payloads in arrival order
        captured_at: Capture time of the first fragment, carried through to the result
        max_payload_bytes: Payload cap; longer audio is truncated with a warning

    Returns:
        The combined audio, or None when there is nothing to transcribe
    """
    # Too short to hold a header: contributes nothing
    usable = [bytes(f) for f in fragments if len(f) >= HEADER_SIZE]
    if not usable:
        return None

    header = None
    for fragment in usable:
        if is_valid_wav(fragment):
            header = parse_header(fragment)
            break
    if header is None:
        header = ContainerHeader()

    payload = b''.join(fragment[HEADER_SIZE:] for fragment in usable)
    if not payload:
        return None

    # Already a complete container, no need to rewrite the header
    if len(usable) == 1 and is_valid_wav(usable[0]) and len(payload) <= max_payload_bytes:
        return RecombinedAudio(header=header, payload=payload, data=usable[0], captured_at=captured_at)

    if len(payload) > max_payload_bytes:
        logger.warning(
            f"Combined audio too large ({len(payload)} bytes), truncating to {max_payload_bytes} bytes"
        )
        payload = payload[:max_payload_bytes]

    data = build_header(header, len(payload)) + payload
    return RecombinedAudio(header=header, payload=payload, data=data, captured_at=captured_at)


def audio_level(audio: RecombinedAudio) -> float:
    """RMS level of the payload in [0, 1] (0 for empty or unsupported audio)."""
    if audio.header.bits_per_sample == 16:
        usable = len(audio.payload) - len(audio.payload) % 2
        samples = np.frombuffer(audio.payload[:usable], dtype='<i2').astype(np.float32) / 32768.0
    else:
        samples = (np.frombuffer(audio.payload, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples))))
