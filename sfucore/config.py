"""Router and simulcast configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def _normalise(mapping: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key).lower(): value for key, value in mapping.items()}


def _uint(value: Any, name: str, bits: int | None = None) -> int:
    number = int(value)
    if number < 0:
        raise ValueError(f"{name} must not be negative, got {number}")
    if bits is not None and number >= 1 << bits:
        raise ValueError(f"{name} must fit in {bits} bits, got {number}")
    return number


@dataclass
class SimulcastConfig:
    """How simulcast layers are chosen for new subscribers."""

    best_quality_first: bool = False
    enable_temporal_layer: bool = False

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> SimulcastConfig:
        """Build a config from a mapping using the configuration-file keys."""
        data = _normalise(mapping)
        return cls(
            best_quality_first=bool(data.get("bestqualityfirst", False)),
            enable_temporal_layer=bool(data.get("enabletemporallayer", False)),
        )


@dataclass
class RouterConfig:
    """Settings for routing RTP and RTCP between peers."""

    with_stats: bool = False
    max_bandwidth: int = 0
    max_packet_track: int = 0
    audio_level_interval: int = 0
    audio_level_threshold: int = 0
    audio_level_filter: int = 0
    simulcast: SimulcastConfig = field(default_factory=SimulcastConfig)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> RouterConfig:
        """Build a config from a mapping using the configuration-file keys."""
        data = _normalise(mapping)
        simulcast = data.get("simulcast") or {}
        return cls(
            with_stats=bool(data.get("withstats", False)),
            max_bandwidth=_uint(data.get("maxbandwidth", 0), "maxbandwidth", 64),
            max_packet_track=int(data.get("maxpackettrack", 0)),
            audio_level_interval=int(data.get("audiolevelinterval", 0)),
            audio_level_threshold=_uint(
                data.get("audiolevelthreshold", 0), "audiolevelthreshold", 8
            ),
            audio_level_filter=int(data.get("audiolevelfilter", 0)),
            simulcast=SimulcastConfig.from_mapping(simulcast),
        )