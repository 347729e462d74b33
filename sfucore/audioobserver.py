"""Tracks audio levels of streams and reports the loudest ones."""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass
class AudioStream:
    """Accumulated audio level samples of one stream."""

    id: str
    sum: int = 0
    total: int = 0


def _trunc_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator >= 0) else -quotient


class AudioObserver:
    """Collects audio levels per stream and ranks the active speakers."""

    def __init__(self, threshold: int = 0, interval: int = 0, filter: int = 0) -> None:
        threshold = min(max(threshold, 0), 127)
        filter = min(max(filter, 0), 100)
        self.threshold = threshold
        self.expected = _trunc_div(interval * filter, 2000)
        self.streams: list[AudioStream] = []
        self.previous: list[str] | None = None
        self._lock = threading.Lock()

    def add_stream(self, stream_id: str) -> None:
        with self._lock:
            self.streams.append(AudioStream(stream_id))

    def remove_stream(self, stream_id: str) -> None:
        with self._lock:
            for index, stream in enumerate(self.streams):
                if stream.id == stream_id:
                    self.streams[index] = self.streams[-1]
                    self.streams.pop()
                    return

    def observe(self, stream_id: str, dbov: int) -> None:
        """Record one audio level sample (in -dBov) for a stream."""
        with self._lock:
            for stream in self.streams:
                if stream.id == stream_id:
                    if dbov <= self.threshold:
                        stream.sum += dbov
                        stream.total += 1
                    return

    def calc(self) -> list[str] | None:
        """Return active stream ids, loudest first, or None if unchanged."""
        with self._lock:
            self.streams.sort(key=lambda s: (-s.total, s.sum))
            stream_ids = [s.id for s in self.streams if s.total >= self.expected]
            for stream in self.streams:
                stream.total = 0
                stream.sum = 0

            previous = self.previous or []
            if len(previous) == len(stream_ids) and previous == stream_ids:
                return None
            self.previous = stream_ids
            return stream_ids