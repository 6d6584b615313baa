"""
meetscribe command line.

    meetscribe record [--name "Weekly sync"]
    meetscribe check
"""

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .backends import BackendNotAvailableError, get_backend_class
from .logger import MeetscribeLogger, get_logger
from .meeting.capture import CaptureDegraded, check_dependencies
from .meeting.segments import TranscriptionSegment
from .utils import ConfigManager

logger = get_logger(__name__)


def print_header(title: str):
    """Print a section header."""
    print()
    print("=" * 50)
    print(f"  {title}")
    print("=" * 50)
    print()


def setup_logging():
    """Configure logging from the loaded configuration."""
    MeetscribeLogger.configure(
        level=ConfigManager.get_config_value('misc', 'log_level') or "INFO",
        log_file=ConfigManager.get_config_value('misc', 'log_file'),
    )


def print_segment(segment: TranscriptionSegment):
    if not segment.text.strip():
        return
    ConfigManager.console_print(
        f"[{segment.timestamp.strftime('%H:%M:%S')}] {segment.speaker}: {segment.text.strip()}"
    )


def print_degraded(event: CaptureDegraded):
    print(f"[Meeting Audio] {event.source.value} capture stopped: {event.reason}", file=sys.stderr)


def run_check() -> int:
    """Report capture tools and backend credentials."""
    print_header("meetscribe setup check")
    ok = True

    for tool, path in check_dependencies().items():
        if path:
            print(f"  [ok]      {tool}: {path}")
        else:
            ok = False
            print(f"  [missing] {tool} - install with your package manager (e.g. brew install {tool})")

    backend_id = ConfigManager.get_config_value('transcription', 'backend')
    backend_class = get_backend_class(backend_id)
    if backend_class is None:
        ok = False
        print(f"  [missing] unknown backend '{backend_id}'")
    elif backend_class.is_available():
        print(f"  [ok]      {backend_class.BACKEND_NAME} credentials found")
    else:
        ok = False
        print(f"  [missing] {backend_class.BACKEND_NAME}: {backend_class.get_install_hint()}")

    print()
    print("Ready to record." if ok else "Fix the items above before recording.")
    return 0 if ok else 1


def run_record(name: Optional[str] = None) -> int:
    """Record until Ctrl+C, printing and saving segments as they arrive."""
    from .meeting.pipeline import build_pipeline
    from .meeting.transcript import TranscriptWriter

    writer = TranscriptWriter(
        output_dir=Path(ConfigManager.get_config_value('output', 'transcripts_folder') or "Meetings"),
        meeting_name=name,
    )

    try:
        pipeline = build_pipeline(on_degraded=print_degraded)
    except BackendNotAvailableError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    pipeline.add_segment_handler(writer)
    pipeline.add_segment_handler(print_segment)

    session_file = writer.start_meeting()
    print_header(name or "Meeting")
    if session_file:
        print(f"Saving to {session_file}")

    if not pipeline.start():
        print("Error: could not start audio capture (run 'meetscribe check')", file=sys.stderr)
        return 1
    print("Recording... press Ctrl+C to stop.")

    stop_requested = threading.Event()
    signal.signal(signal.SIGINT, lambda signum, frame: stop_requested.set())
    while not stop_requested.wait(0.5):
        pass

    print("\nProcessing final audio...")
    pipeline.stop()
    print(f"Meeting ended: {len(writer.entries)} segments, participants: "
          f"{', '.join(sorted(writer.participants)) or 'none'}")
    return 0


def main(argv=None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(prog="meetscribe", description="Near-real-time meeting transcription")
    parser.add_argument("--config", help="Path to config.yaml")
    subparsers = parser.add_subparsers(dest="command")
    record = subparsers.add_parser("record", help="Record and transcribe a meeting")
    record.add_argument("--name", "-n", help="Meeting name")
    subparsers.add_parser("check", help="Check capture tools and API keys")
    args = parser.parse_args(argv)

    ConfigManager.initialize(config_path=args.config)
    setup_logging()

    if args.command == "check":
        return run_check()
    if args.command == "record":
        return run_record(args.name)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
