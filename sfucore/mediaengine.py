"""Codec and RTP header extension registries for publisher and subscriber links."""

from __future__ import annotations

import enum
import threading

from sfucore.helpers import CodecCapability, CodecParameters

FRAME_MARKING_URI = "urn:ietf:params:rtp-hdrext:framemarking"
SDES_MID_URI = "urn:ietf:params:rtp-hdrext:sdes:mid"
SDES_RTP_STREAM_ID_URI = "urn:ietf:params:rtp-hdrext:sdes:rtp-stream-id"
TRANSPORT_CC_URI = (
    "http://www.ietf.org/id/draft-holmer-rmcat-transport-wide-cc-extensions-01"
)
AUDIO_LEVEL_URI = "urn:ietf:params:rtp-hdrext:ssrc-audio-level"

MIME_TYPE_OPUS = "audio/opus"
MIME_TYPE_VP8 = "video/VP8"
MIME_TYPE_VP9 = "video/VP9"
MIME_TYPE_H264 = "video/H264"


class CodecKind(enum.IntEnum):
    """The media kind a codec or header extension belongs to."""

    AUDIO = 1
    VIDEO = 2


class MediaEngine:
    """Holds the codecs and header extensions a connection may negotiate."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._codecs: dict[CodecKind, list[CodecParameters]] = {
            kind: [] for kind in CodecKind
        }
        self._extensions: dict[CodecKind, list[str]] = {kind: [] for kind in CodecKind}

    def register_codec(self, codec: CodecParameters, kind: CodecKind) -> None:
        """Add a codec; a codec whose payload type is already taken is ignored."""
        kind = CodecKind(kind)
        with self._lock:
            registered = self._codecs[kind]
            if any(c.payload_type == codec.payload_type for c in registered):
                return
            registered.append(codec)

    def register_header_extension(self, uri: str, kind: CodecKind) -> None:
        """Add an RTP header extension URI for a media kind."""
        kind = CodecKind(kind)
        with self._lock:
            registered = self._extensions[kind]
            if uri not in registered:
                registered.append(uri)

    def codecs(self, kind: CodecKind) -> list[CodecParameters]:
        with self._lock:
            return list(self._codecs[CodecKind(kind)])

    def header_extensions(self, kind: CodecKind) -> list[str]:
        with self._lock:
            return list(self._extensions[CodecKind(kind)])


def _video_feedback() -> list[tuple[str, str]]:
    return [("goog-remb", ""), ("ccm", "fir"), ("nack", ""), ("nack", "pli")]


def _video_codec(mime_type: str, fmtp: str, payload_type: int) -> CodecParameters:
    return CodecParameters(
        CodecCapability(
            mime_type=mime_type,
            clock_rate=90000,
            sdp_fmtp_line=fmtp,
            rtcp_feedback=_video_feedback(),
        ),
        payload_type=payload_type,
    )


def publisher_media_engine() -> MediaEngine:
    """Build the engine used for connections that receive media from clients."""
    engine = MediaEngine()
    engine.register_codec(
        CodecParameters(
            CodecCapability(
                mime_type=MIME_TYPE_OPUS,
                clock_rate=48000,
                channels=2,
                sdp_fmtp_line="minptime=10;useinbandfec=1",
            ),
            payload_type=111,
        ),
        CodecKind.AUDIO,
    )

    video_codecs = [
        _video_codec(MIME_TYPE_VP8, "", 96),
        _video_codec(MIME_TYPE_VP9, "profile-id=0", 98),
        _video_codec(MIME_TYPE_VP9, "profile-id=1", 100),
        _video_codec(
            MIME_TYPE_H264,
            "level-asymmetry-allowed=1;packetization-mode=1;profile-level-id=42001f",
            102,
        ),
        _video_codec(
            MIME_TYPE_H264,
            "level-asymmetry-allowed=1;packetization-mode=0;profile-level-id=42001f",
            127,
        ),
        _video_codec(
            MIME_TYPE_H264,
            "level-asymmetry-allowed=1;packetization-mode=1;profile-level-id=42e01f",
            125,
        ),
        _video_codec(
            MIME_TYPE_H264,
            "level-asymmetry-allowed=1;packetization-mode=0;profile-level-id=42e01f",
            108,
        ),
        _video_codec(
            MIME_TYPE_H264,
            "level-asymmetry-allowed=1;packetization-mode=1;profile-level-id=640032",
            123,
        ),
    ]
    for codec in video_codecs:
        engine.register_codec(codec, CodecKind.VIDEO)

    for uri in (SDES_MID_URI, SDES_RTP_STREAM_ID_URI, TRANSPORT_CC_URI, FRAME_MARKING_URI):
        engine.register_header_extension(uri, CodecKind.VIDEO)
    for uri in (SDES_MID_URI, SDES_RTP_STREAM_ID_URI, AUDIO_LEVEL_URI):
        engine.register_header_extension(uri, CodecKind.AUDIO)
    return engine


def subscriber_media_engine() -> MediaEngine:
    """Build the empty engine for outgoing connections; codecs are added per track."""
    return MediaEngine()