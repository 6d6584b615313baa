"""
meetscribe - near-real-time meeting transcription.

Captures system audio and the microphone, batches them into fixed windows,
rebuilds one WAV per source and window, and transcribes it with a
speaker-labelling backend.
"""

__version__ = "0.1.0"
