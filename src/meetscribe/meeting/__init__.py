"""
Meeting Transcription

Captures meeting audio (mic + system loopback) with speaker separation and
turns fixed windows of it into transcript segments.
"""

_EXPORTS = {
    "AudioFragment": ".capture",
    "AudioSource": ".capture",
    "StreamCapture": ".capture",
    "WindowBatch": ".batcher",
    "WindowBatcher": ".batcher",
    "RecombinedAudio": ".wav",
    "recombine": ".wav",
    "TranscriptionSegment": ".segments",
    "map_segments": ".segments",
    "MeetingPipeline": ".pipeline",
    "build_pipeline": ".pipeline",
    "TranscriptWriter": ".transcript",
}


# Lazy imports so the low-level modules can be used without pulling in the pipeline
def __getattr__(name):
    if name in _EXPORTS:
        import importlib
        module = importlib.import_module(_EXPORTS[name], __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_EXPORTS)
