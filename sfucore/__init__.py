"""Building blocks of a WebRTC selective forwarding unit: sequencing, TWCC feedback, audio levels and sessions."""

__version__ = "0.1.0"

__all__ = [
    "audioobserver",
    "config",
    "datachannel",
    "errors",
    "helpers",
    "mediaengine",
    "sequencer",
    "session",
    "stats",
    "twcc",
]