"""RTP stream statistics and the metrics they feed."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, replace
from typing import Protocol, Sequence

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF


@dataclass
class BufferStats:
    """Counters reported by a receive buffer."""

    last_expected: int = 0
    last_received: int = 0
    lost_rate: float = 0.0
    packet_count: int = 0
    jitter: float = 0.0
    total_byte: int = 0


class _StatsSource(Protocol):
    def get_stats(self) -> BufferStats: ...


class _Metric:
    def __init__(self, subsystem: str, name: str, help: str = "") -> None:
        self.subsystem = subsystem
        self.name = name
        self.help = help
        self._lock = threading.Lock()

    @property
    def full_name(self) -> str:
        return f"{self.subsystem}_{self.name}"


class Counter(_Metric):
    """A value that only goes up."""

    def __init__(self, subsystem: str, name: str, help: str = "") -> None:
        super().__init__(subsystem, name, help)
        self.value = 0.0

    def add(self, amount: float) -> None:
        if amount < 0:
            raise ValueError("counter cannot decrease in value")
        with self._lock:
            self.value += amount


class Gauge(_Metric):
    """A value that goes up and down."""

    def __init__(self, subsystem: str, name: str, help: str = "") -> None:
        super().__init__(subsystem, name, help)
        self.value = 0.0

    def inc(self) -> None:
        with self._lock:
            self.value += 1

    def dec(self) -> None:
        with self._lock:
            self.value -= 1


class Histogram(_Metric):
    """Observations counted into cumulative buckets."""

    def __init__(
        self, subsystem: str, name: str, buckets: Sequence[float], help: str = ""
    ) -> None:
        super().__init__(subsystem, name, help)
        bounds = sorted(float(bound) for bound in buckets)
        if not bounds or bounds[-1] != math.inf:
            bounds.append(math.inf)
        self.buckets = tuple(bounds)
        self.counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0

    def observe(self, value: float) -> None:
        with self._lock:
            for index, bound in enumerate(self.buckets):
                if value <= bound:
                    self.counts[index] += 1
            self.count += 1
            self.sum += value


class Summary(_Metric):
    """Count and sum of observations."""

    def __init__(self, subsystem: str, name: str, help: str = "") -> None:
        super().__init__(subsystem, name, help)
        self.count = 0
        self.sum = 0.0

    def observe(self, value: float) -> None:
        with self._lock:
            self.count += 1
            self.sum += value


DRIFT_BUCKETS = (5, 10, 20, 40, 80, 160, math.inf)

DRIFT = Histogram("rtp", "drift_millis", DRIFT_BUCKETS)
EXPECTED_COUNT = Counter("rtp", "expected")
RECEIVED_COUNT = Counter("rtp", "received")
PACKET_COUNT = Counter("rtp", "packets")
TOTAL_BYTES = Counter("rtp", "bytes")
EXPECTED_MINUS_RECEIVED = Summary("rtp", "expected_minus_received")
LOST_RATE = Summary("rtp", "lost_rate")
JITTER = Summary("rtp", "jitter")

SESSIONS = Gauge("sfu", "sessions", "Current number of sessions")
PEERS = Gauge("sfu", "peers", "Current number of peers connected")
AUDIO_TRACKS = Gauge("sfu", "audio_tracks", "Current number of audio tracks")
VIDEO_TRACKS = Gauge("sfu", "video_tracks", "Current number of video tracks")


class Stream:
    """Statistics kept for one received RTP stream."""

    def __init__(self, buffer: _StatsSource) -> None:
        self.buffer = buffer
        self.cname = ""
        self.drift_in_millis = 0
        self._lock = threading.Lock()
        self._has_stats = False
        self._last_stats = BufferStats()
        self._diff_stats = BufferStats()

    def update_stats(self, stats: BufferStats) -> tuple[bool, BufferStats]:
        """Store ``stats``; return whether a previous sample existed and the difference."""
        with self._lock:
            had_stats = False
            if self._has_stats:
                last = self._last_stats
                self._diff_stats = replace(
                    self._diff_stats,
                    last_expected=(stats.last_expected - last.last_expected) & _MASK32,
                    last_received=(stats.last_received - last.last_received) & _MASK32,
                    packet_count=(stats.packet_count - last.packet_count) & _MASK32,
                    total_byte=(stats.total_byte - last.total_byte) & _MASK64,
                )
                had_stats = True
            self._last_stats = replace(stats)
            self._has_stats = True
            return had_stats, replace(self._diff_stats)

    def calc_stats(self) -> None:
        """Sample the buffer and record the results in the RTP metrics."""
        buffer_stats = self.buffer.get_stats()
        drift = self.drift_in_millis
        had_stats, diff = self.update_stats(buffer_stats)

        DRIFT.observe(float(drift))
        if had_stats:
            EXPECTED_COUNT.add(float(diff.last_expected))
            RECEIVED_COUNT.add(float(diff.last_received))
            PACKET_COUNT.add(float(diff.packet_count))
            TOTAL_BYTES.add(float(diff.total_byte))

        EXPECTED_MINUS_RECEIVED.observe(
            float((buffer_stats.last_expected - buffer_stats.last_received) & _MASK32)
        )
        LOST_RATE.observe(float(buffer_stats.lost_rate))
        JITTER.observe(float(buffer_stats.jitter))