"""Transport-wide congestion control feedback (RTCP TWCC) generation."""

from __future__ import annotations

import random
import struct
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

PACKET_NOT_RECEIVED = 0
PACKET_RECEIVED_SMALL_DELTA = 1
PACKET_RECEIVED_LARGE_DELTA = 2
PACKET_RECEIVED_WITHOUT_DELTA = 3

SYMBOL_SIZE_ONE_BIT = 0
SYMBOL_SIZE_TWO_BIT = 1

FORMAT_TCC = 15
TYPE_TRANSPORT_SPECIFIC_FEEDBACK = 205

_BASE_SEQUENCE_NUMBER_OFFSET = 8
_TCC_REPORT_DELTA_NS = 100_000_000
_TCC_REPORT_DELTA_AFTER_MARK_NS = 50_000_000

_MASK16 = 0xFFFF
_MASK32 = 0xFFFFFFFF

FeedbackHandler = Callable[[bytes], None]


@dataclass(frozen=True)
class _ExtInfo:
    ext_tsn: int
    timestamp: int


def _trunc_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator >= 0) else -quotient


def _clamp_int16(value: int) -> int:
    wrapped = ((value + 0x8000) & _MASK16) - 0x8000
    if wrapped != value:
        wrapped = 0x7FFF if wrapped > 0 else -0x8000
    return wrapped


def set_n_bits_of_uint16(src: int, size: int, start_index: int, val: int) -> int:
    """Truncate ``val`` to ``size`` bits and OR it into ``src`` at ``start_index``."""
    if start_index + size > 16:
        return 0
    val &= (1 << size) - 1
    return (src | (val << (16 - size - start_index))) & _MASK16


class Responder:
    """Collects transport-wide sequence numbers and builds TWCC feedback packets."""

    def __init__(self, ssrc: int = 0, sender_ssrc: Optional[int] = None) -> None:
        self.media_ssrc = ssrc & _MASK32
        self.sender_ssrc = (
            random.getrandbits(32) if sender_ssrc is None else sender_ssrc & _MASK32
        )
        self.feedback_count = 0
        self.length = 0
        self.delta_length = 0
        self.payload = bytearray(100)
        self.deltas = bytearray(200)
        self.chunk = 0
        self._ext_info: list[_ExtInfo] = []
        self._last_report = 0
        self._cycles = 0
        self._last_ext_sn = 0
        self._last_sn = 0
        self._on_feedback: Optional[FeedbackHandler] = None
        self._lock = threading.RLock()

    def on_feedback(self, fn: FeedbackHandler) -> None:
        """Set the callback receiving each built feedback packet."""
        self._on_feedback = fn

    def push(self, sn: int, time_ns: int, marker: bool) -> None:
        """Record a transport-wide sequence number read from an RTP extension."""
        with self._lock:
            sn &= _MASK16
            if sn < 0x0FFF and self._last_sn > 0xF000:
                self._cycles = (self._cycles + (1 << 16)) & _MASK32
            self._ext_info.append(
                _ExtInfo(self._cycles | sn, _trunc_div(time_ns, 1000))
            )
            if self._last_report == 0:
                self._last_report = time_ns
            self._last_sn = sn
            delta = time_ns - self._last_report
            count = len(self._ext_info)
            if (
                count > 20
                and self.media_ssrc != 0
                and (
                    delta >= _TCC_REPORT_DELTA_NS
                    or count > 100
                    or (marker and delta >= _TCC_REPORT_DELTA_AFTER_MARK_NS)
                )
            ):
                packet = self.build_transport_cc_packet()
                if packet is not None and self._on_feedback is not None:
                    self._on_feedback(packet)
                self._last_report = time_ns

    def build_transport_cc_packet(self) -> Optional[bytes]:
        """Encode the pending sequence numbers as an RTCP TWCC packet."""
        with self._lock:
            if not self._ext_info:
                return None
            self._ext_info.sort(key=lambda info: info.ext_tsn)
            packets: list[_ExtInfo] = []
            for info in self._ext_info:
                if info.ext_tsn < self._last_ext_sn:
                    continue
                if self._last_ext_sn != 0:
                    packets.extend(
                        _ExtInfo(missing, 0)
                        for missing in range(self._last_ext_sn + 1, info.ext_tsn)
                    )
                self._last_ext_sn = info.ext_tsn
                packets.append(info)
            self._ext_info.clear()

            self._encode_statuses(packets)
            return self._assemble()

    def _encode_statuses(self, packets: list[_ExtInfo]) -> None:
        first_recv = False
        same = True
        timestamp = 0
        last_status = PACKET_RECEIVED_WITHOUT_DELTA
        max_status = PACKET_NOT_RECEIVED
        statuses: deque[int] = deque()

        for info in packets:
            status = PACKET_NOT_RECEIVED
            if info.timestamp != 0:
                if not first_recv:
                    first_recv = True
                    ref_time = _trunc_div(info.timestamp, 64_000)
                    timestamp = ref_time * 64_000
                    self.write_header(
                        packets[0].ext_tsn & _MASK16,
                        len(packets) & _MASK16,
                        ref_time & _MASK32,
                    )
                    self.feedback_count = (self.feedback_count + 1) & 0xFF
                delta = _trunc_div(info.timestamp - timestamp, 250)
                if delta < 0 or delta > 255:
                    status = PACKET_RECEIVED_LARGE_DELTA
                    self.write_delta(status, _clamp_int16(delta) & _MASK16)
                else:
                    status = PACKET_RECEIVED_SMALL_DELTA
                    self.write_delta(status, delta)
                timestamp = info.timestamp

            if (
                same
                and status != last_status
                and last_status != PACKET_RECEIVED_WITHOUT_DELTA
            ):
                if len(statuses) > 7:
                    self.write_run_length_chunk(last_status, len(statuses))
                    statuses.clear()
                    last_status = PACKET_RECEIVED_WITHOUT_DELTA
                    max_status = PACKET_NOT_RECEIVED
                    same = True
                else:
                    same = False
            statuses.append(status)
            max_status = max(max_status, status)
            last_status = status

            if (
                not same
                and max_status == PACKET_RECEIVED_LARGE_DELTA
                and len(statuses) > 6
            ):
                for index in range(7):
                    self.create_status_symbol_chunk(
                        SYMBOL_SIZE_TWO_BIT, statuses.popleft(), index
                    )
                self.write_status_symbol_chunk(SYMBOL_SIZE_TWO_BIT)
                last_status = PACKET_RECEIVED_WITHOUT_DELTA
                max_status = PACKET_NOT_RECEIVED
                same = True
                for pending in statuses:
                    max_status = max(max_status, pending)
                    if (
                        same
                        and last_status != PACKET_RECEIVED_WITHOUT_DELTA
                        and pending != last_status
                    ):
                        same = False
                    last_status = pending
            elif not same and len(statuses) > 13:
                for index in range(14):
                    self.create_status_symbol_chunk(
                        SYMBOL_SIZE_ONE_BIT, statuses.popleft(), index
                    )
                self.write_status_symbol_chunk(SYMBOL_SIZE_ONE_BIT)
                last_status = PACKET_RECEIVED_WITHOUT_DELTA
                max_status = PACKET_NOT_RECEIVED
                same = True

        if statuses:
            if same:
                self.write_run_length_chunk(last_status, len(statuses))
            else:
                size = (
                    SYMBOL_SIZE_TWO_BIT
                    if max_status == PACKET_RECEIVED_LARGE_DELTA
                    else SYMBOL_SIZE_ONE_BIT
                )
                # Index and queue length move together, so only the leading
                # half of the remaining symbols ends up in the chunk.
                index = 0
                while index < len(statuses):
                    self.create_status_symbol_chunk(size, statuses.popleft(), index)
                    index += 1
                self.write_status_symbol_chunk(size)

    def _assemble(self) -> bytes:
        packet_len = (self.length + self.delta_length + 4) & _MASK16
        pad_size = (-packet_len) % 4
        packet_len += pad_size
        first_byte = 0x80 | (0x20 if pad_size else 0) | FORMAT_TCC
        header = struct.pack(
            "!BBH", first_byte, TYPE_TRANSPORT_SPECIFIC_FEEDBACK, packet_len // 4 - 1
        )
        packet = bytearray(packet_len)
        packet[0:4] = header
        packet[4 : 4 + self.length] = self.payload[: self.length]
        start = 4 + self.length
        packet[start : start + self.delta_length] = self.deltas[: self.delta_length]
        if pad_size:
            packet[-1] = pad_size
        self.delta_length = 0
        return bytes(packet)

    def write_header(self, base_sn: int, packet_count: int, ref_time: int) -> None:
        """Write sender/media SSRC, base sequence, status count and reference time."""
        struct.pack_into(
            "!IIHHI",
            self.payload,
            0,
            self.sender_ssrc & _MASK32,
            self.media_ssrc & _MASK32,
            base_sn & _MASK16,
            packet_count & _MASK16,
            ((ref_time << 8) | self.feedback_count) & _MASK32,
        )
        self.length = 16

    def write_run_length_chunk(self, symbol: int, run_length: int) -> None:
        struct.pack_into(
            "!H", self.payload, self.length, ((symbol << 13) | run_length) & _MASK16
        )
        self.length += 2

    def create_status_symbol_chunk(
        self, symbol_size: int, symbol: int, index: int
    ) -> None:
        """Place one symbol at ``index`` in the status vector chunk being built."""
        bits = symbol_size + 1
        self.chunk = set_n_bits_of_uint16(
            self.chunk, bits, (bits * index + 2) & _MASK16, symbol
        )

    def write_status_symbol_chunk(self, symbol_size: int) -> None:
        self.chunk = set_n_bits_of_uint16(self.chunk, 1, 0, 1)
        self.chunk = set_n_bits_of_uint16(self.chunk, 1, 1, symbol_size)
        struct.pack_into("!H", self.payload, self.length, self.chunk)
        self.chunk = 0
        self.length += 2

    def write_delta(self, delta_type: int, delta: int) -> None:
        if delta_type == PACKET_RECEIVED_SMALL_DELTA:
            self.deltas[self.delta_length] = delta & 0xFF
            self.delta_length += 1
            return
        struct.pack_into("!H", self.deltas, self.delta_length, delta & _MASK16)
        self.delta_length += 2