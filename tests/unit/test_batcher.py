"""
Tests for the window batcher.
"""

import threading
import time
from datetime import datetime, timedelta

import pytest

from meetscribe.meeting.batcher import WindowBatcher
from meetscribe.meeting.capture import AudioFragment, AudioSource


def fragment(source: AudioSource, payload: bytes, offset_ms: int = 0) -> AudioFragment:
    base = datetime(2024, 5, 1, 9, 0, 0)
    return AudioFragment(payload=payload, captured_at=base + timedelta(milliseconds=offset_ms), source=source)


class TestDrain:
    """Tests for atomic drain and partitioning."""

    def test_empty_drain_returns_none(self):
        batcher = WindowBatcher()
        assert batcher.drain() is None

    def test_partitions_by_source_in_arrival_order(self):
        batcher = WindowBatcher()
        batcher.append(fragment(AudioSource.SYSTEM, b's1', 0))
        batcher.append(fragment(AudioSource.MICROPHONE, b'm1', 1))
        batcher.append(fragment(AudioSource.SYSTEM, b's2', 2))
        batcher.append(fragment(AudioSource.MICROPHONE, b'm2', 3))

        batch = batcher.drain()

        assert [f.payload for f in batch.system] == [b's1', b's2']
        assert [f.payload for f in batch.microphone] == [b'm1', b'm2']
        assert batch.fragments_for(AudioSource.SYSTEM) is batch.system
        assert len(batch) == 4
        assert batch.started_at == datetime(2024, 5, 1, 9, 0, 0)

    def test_drain_empties_buffer(self):
        batcher = WindowBatcher()
        batcher.append(fragment(AudioSource.SYSTEM, b'x'))
        assert batcher.drain() is not None
        assert batcher.pending() == 0
        assert batcher.drain() is None

    def test_one_sided_window(self):
        batcher = WindowBatcher()
        batcher.append(fragment(AudioSource.MICROPHONE, b'm'))
        batch = batcher.drain()
        assert batch.system == []
        assert not batch.is_empty

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            WindowBatcher(window_seconds=0)

    def test_concurrent_appends_are_neither_lost_nor_duplicated(self):
        """Two producers appending while another thread drains: every fragment lands in exactly one batch."""
        batcher = WindowBatcher()
        per_producer = 2000
        batches = []
        done = threading.Event()

        def produce(source: AudioSource):
            for i in range(per_producer):
                batcher.append(fragment(source, f"{source.value}-{i}".encode()))

        def drain_loop():
            while not done.is_set():
                batch = batcher.drain()
                if batch:
                    batches.append(batch)
                time.sleep(0.0005)

        drainer = threading.Thread(target=drain_loop)
        producers = [threading.Thread(target=produce, args=(s,)) for s in AudioSource]
        drainer.start()
        for p in producers:
            p.start()
        for p in producers:
            p.join()
        done.set()
        drainer.join()
        final = batcher.drain()
        if final:
            batches.append(final)

        for source in AudioSource:
            payloads = [f.payload for b in batches for f in b.fragments_for(source)]
            assert len(payloads) == per_producer
            assert len(set(payloads)) == per_producer
            # Arrival order preserved per source
            assert payloads == [f"{source.value}-{i}".encode() for i in range(per_producer)]


class TestTimer:
    """Tests for the periodic window timer."""

    def test_flush_calls_handler(self):
        received = []
        batcher = WindowBatcher(on_window=received.append)
        batcher.append(fragment(AudioSource.SYSTEM, b'x'))

        batch = batcher.flush()

        assert received == [batch]
        assert batcher.windows_emitted == 1

    def test_flush_skips_empty_buffer(self):
        received = []
        batcher = WindowBatcher(on_window=received.append)
        assert batcher.flush() is None
        assert received == []

    def test_handler_errors_do_not_escape(self):
        def boom(batch):
            raise RuntimeError("downstream failure")

        batcher = WindowBatcher(on_window=boom)
        batcher.append(fragment(AudioSource.SYSTEM, b'x'))
        assert batcher.flush() is not None

    def test_timer_fires_periodically(self):
        received = []
        batcher = WindowBatcher(window_seconds=0.05, on_window=received.append)
        batcher.start()
        try:
            batcher.append(fragment(AudioSource.SYSTEM, b'a'))
            deadline = time.time() + 2.0
            while not received and time.time() < deadline:
                time.sleep(0.01)
        finally:
            batcher.stop(flush=False)

        assert len(received) == 1
        assert received[0].system[0].payload == b'a'

    def test_stop_flushes_remaining(self):
        received = []
        batcher = WindowBatcher(window_seconds=60, on_window=received.append)
        batcher.start()
        batcher.append(fragment(AudioSource.MICROPHONE, b'tail'))

        batch = batcher.stop(flush=True)

        assert not batcher.is_running()
        assert received == [batch]
        assert batch.microphone[0].payload == b'tail'
