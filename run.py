"""
meetscribe - near-real-time meeting transcription.

Entry point for running from a checkout without installing:
    python run.py check
    python run.py record --name "Weekly sync"
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent / "src"))


if __name__ == '__main__':
    load_dotenv(Path(__file__).parent / ".env")

    from meetscribe.main import main
    sys.exit(main())
