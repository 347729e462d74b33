"""Remembers sent packets so NACKed ones can be found and retransmitted."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

# Ignore retransmission requests arriving within this many milliseconds.
IGNORE_RETRANSMISSION_MS = 100

_MASK16 = 0xFFFF
_MASK32 = 0xFFFFFFFF


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


@dataclass
class PacketMeta:
    """Mapping of one forwarded packet back to its source."""

    source_seq_no: int = 0
    target_seq_no: int = 0
    timestamp: int = 0
    last_nack: int = 0
    layer: int = 0
    misc: int = 0

    def set_vp8_payload_meta(self, tlz0_idx: int, pic_id: int) -> None:
        self.misc = ((tlz0_idx & 0xFF) << 16) | (pic_id & _MASK16)

    def get_vp8_payload_meta(self) -> tuple[int, int]:
        """Return ``(tlz0_idx, pic_id)``."""
        return (self.misc >> 16) & 0xFF, self.misc & _MASK16


class Sequencer:
    """A ring of packet metadata indexed by outgoing sequence number."""

    def __init__(
        self, max_track: int, clock: Optional[Callable[[], int]] = None
    ) -> None:
        self._clock = clock or _monotonic_ms
        self._lock = threading.Lock()
        self._init = False
        self._max = max_track
        self._seq = [PacketMeta() for _ in range(max_track)]
        self._step = 0
        self._head_sn = 0
        self._start_time = self._clock()

    def _advance(self) -> None:
        self._step += 1
        if self._step >= self._max:
            self._step = 0

    def push(
        self, sn: int, off_sn: int, timestamp: int, layer: int, head: bool
    ) -> Optional[PacketMeta]:
        """Record a forwarded packet; return its stored metadata or None if too old."""
        with self._lock:
            if not self._init:
                self._head_sn = off_sn
                self._init = True

            if head:
                inc = (off_sn - self._head_sn) & _MASK16
                for _ in range(1, inc):
                    self._advance()
                self._head_sn = off_sn
            else:
                step = self._step - ((self._head_sn - off_sn) & _MASK16)
                if step < 0 and -step >= self._max:
                    logger.debug(
                        "Old packet received, can not be sequenced (head=%d received=%d)",
                        sn,
                        off_sn,
                    )
                    return None

            meta = PacketMeta(
                source_seq_no=sn,
                target_seq_no=off_sn,
                timestamp=timestamp,
                layer=layer,
            )
            self._seq[self._step] = meta
            self._advance()
            return meta

    def get_seq_no_pairs(self, seq_nos: Iterable[int]) -> list[PacketMeta]:
        """Return copies of metadata for NACKed numbers not recently requested."""
        with self._lock:
            found: list[PacketMeta] = []
            ref_time = (self._clock() - self._start_time) & _MASK32
            for sn in seq_nos:
                step = self._step - ((self._head_sn - sn) & _MASK16) - 1
                if step < 0:
                    if -step >= self._max:
                        continue
                    step += self._max
                meta = self._seq[step]
                if meta.target_seq_no != sn:
                    continue
                since = (ref_time - meta.last_nack) & _MASK32
                if meta.last_nack == 0 or since > IGNORE_RETRANSMISSION_MS:
                    meta.last_nack = ref_time
                    found.append(dataclasses.replace(meta))
            return found