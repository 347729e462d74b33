"""Small shared helpers: atomic flags, NTP time, VP8 payload edits, codec lookup."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from sfucore.errors import CodecNotFoundError

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF
_NS_PER_SECOND = 1_000_000_000
# Seconds between 1900-01-01 (NTP epoch) and 1970-01-01 (Unix epoch).
_NTP_UNIX_OFFSET_SECONDS = 2_208_988_800


class AtomicBool:
    """A thread-safe boolean flag."""

    def __init__(self, value: bool = False) -> None:
        self._value = bool(value)
        self._lock = threading.Lock()

    def set(self, value: bool) -> bool:
        """Store ``value``; return True if the stored value changed."""
        with self._lock:
            swapped = self._value != bool(value)
            self._value = bool(value)
            return swapped

    def get(self) -> bool:
        with self._lock:
            return self._value

    def __bool__(self) -> bool:
        return self.get()


@dataclass
class CodecCapability:
    """What a codec is and how it is configured."""

    mime_type: str
    clock_rate: int = 0
    channels: int = 0
    sdp_fmtp_line: str = ""
    rtcp_feedback: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class CodecParameters:
    """A codec capability bound to an RTP payload type."""

    capability: CodecCapability
    payload_type: int = 0


def ntp_to_millis_since_epoch(ntp: int) -> int:
    """Convert a 64-bit NTP timestamp to milliseconds since the NTP epoch."""
    ntp &= _MASK64
    return ((((ntp & _MASK32) * 1000) >> 32) + ((ntp >> 32) * 1000)) & _MASK64


def ntp_duration_ns(ntp: int) -> int:
    """Nanoseconds since the NTP epoch represented by a 64-bit NTP timestamp."""
    ntp &= _MASK64
    seconds = ((ntp >> 32) * _NS_PER_SECOND) & _MASK64
    frac = ((ntp & _MASK32) * _NS_PER_SECOND) & _MASK64
    nsec = frac >> 32
    if frac & _MASK32 >= 0x80000000:
        nsec += 1
    return (seconds + nsec) & _MASK64


def ntp_to_unix_ns(ntp: int) -> int:
    """Convert a 64-bit NTP timestamp to nanoseconds since the Unix epoch."""
    return ntp_duration_ns(ntp) - _NTP_UNIX_OFFSET_SECONDS * _NS_PER_SECOND


def to_ntp_time(unix_ns: int) -> int:
    """Convert nanoseconds since the Unix epoch to a 64-bit NTP timestamp."""
    nsec = (unix_ns + _NTP_UNIX_OFFSET_SECONDS * _NS_PER_SECOND) & _MASK64
    seconds = nsec // _NS_PER_SECOND
    remainder = (nsec - seconds * _NS_PER_SECOND) << 32
    frac = remainder // _NS_PER_SECOND
    if remainder % _NS_PER_SECOND >= _NS_PER_SECOND // 2:
        frac += 1
    return ((seconds << 32) | frac) & _MASK64


def modify_vp8_temporal_payload(
    payload: bytearray,
    pic_id_idx: int,
    tlz0_idx: int,
    pic_id: int,
    tlz0_id: int,
    m_bit: bool,
) -> None:
    """Rewrite the picture id and TL0PICIDX of a VP8 payload in place."""
    high, low = (pic_id & 0xFFFF).to_bytes(2, "big")
    payload[pic_id_idx] = high
    if m_bit:
        payload[pic_id_idx] |= 0x80
        payload[pic_id_idx + 1] = low
    payload[tlz0_idx] = tlz0_id & 0xFF


def codec_parameters_fuzzy_search(
    needle: CodecParameters, haystack: list[CodecParameters]
) -> CodecParameters:
    """Find a codec by MIME type and fmtp line, falling back to MIME type alone."""
    wanted = needle.capability.mime_type.casefold()
    for candidate in haystack:
        if (
            candidate.capability.mime_type.casefold() == wanted
            and candidate.capability.sdp_fmtp_line == needle.capability.sdp_fmtp_line
        ):
            return candidate
    for candidate in haystack:
        if candidate.capability.mime_type.casefold() == wanted:
            return candidate
    raise CodecNotFoundError()