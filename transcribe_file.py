#!/usr/bin/env python3
"""
meetscribe WAV File Transcriber
Transcribes a WAV file through the configured backend, as if it were one window.

Usage:
    python transcribe_file.py <file.wav>
    python transcribe_file.py call.wav --source system

Requires:
    - ASSEMBLYAI_API_KEY or OPENAI_API_KEY (environment or .env)
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent / "src"))

from meetscribe.backends import create_backend  # noqa: E402
from meetscribe.meeting.capture import AudioSource  # noqa: E402
from meetscribe.meeting.wav import is_valid_wav, recombine  # noqa: E402
from meetscribe.transcription_client import TranscriptionClient  # noqa: E402
from meetscribe.utils import ConfigManager  # noqa: E402


def transcribe_file(audio_path: str, source: AudioSource = AudioSource.SYSTEM) -> list:
    """Transcribe a WAV file and return its segments."""
    data = Path(audio_path).read_bytes()
    if not is_valid_wav(data):
        raise RuntimeError(f"Not a WAV file: {audio_path}")

    audio = recombine([data], captured_at=datetime.fromtimestamp(Path(audio_path).stat().st_mtime))
    if audio is None:
        return []

    transcription = ConfigManager.get_config_section('transcription')
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
    )
    return client.transcribe(audio, source)


if __name__ == "__main__":
    load_dotenv(Path(__file__).parent / ".env")

    parser = argparse.ArgumentParser(description="Transcribe a WAV file with meetscribe")
    parser.add_argument("file", help="WAV file (any sample rate, 8 or 16-bit PCM)")
    parser.add_argument("--source", choices=[s.value for s in AudioSource], default=AudioSource.SYSTEM.value,
                        help="Label speakers as system audio (Speaker X) or microphone (You)")
    args = parser.parse_args()

    if not Path(args.file).exists():
        print(f"Error: File not found: {args.file}")
        sys.exit(1)

    try:
        segments = transcribe_file(args.file, AudioSource(args.source))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not segments:
        print("No transcript (silence or transcription failure, see logs).", file=sys.stderr)
        sys.exit(1)
    for segment in segments:
        print(f"[{segment.timestamp.strftime('%H:%M:%S')}] {segment.speaker}: {segment.text.strip()}")
