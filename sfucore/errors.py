"""Exceptions raised by the SFU core."""


class SFUError(Exception):
    """Base class for every error raised by this package."""


class PeerConnectionInitError(SFUError):
    """A peer connection could not be initialised."""

    def __init__(self, message: str = "pc init failed") -> None:
        super().__init__(message)


class DataChannelCreationError(SFUError):
    """A data channel could not be created."""

    def __init__(self, message: str = "failed to create data channel") -> None:
        super().__init__(message)


class NoReceiverFoundError(SFUError):
    """No receiver exists for the requested track or layer."""

    def __init__(self, message: str = "no receiver found") -> None:
        super().__init__(message)


class ShortPacketError(SFUError):
    """A packet is too short to be parsed."""

    def __init__(self, message: str = "packet is not large enough") -> None:
        super().__init__(message)


class NilPacketError(SFUError):
    """A packet was missing where one was required."""

    def __init__(self, message: str = "invalid nil packet") -> None:
        super().__init__(message)


class SpatialNotSupportedError(SFUError):
    """The track does not support simulcast or SVC layers."""

    def __init__(
        self, message: str = "current track does not support simulcast/SVC"
    ) -> None:
        super().__init__(message)


class SpatialLayerBusyError(SFUError):
    """A spatial layer change is already in progress."""

    def __init__(
        self, message: str = "a spatial layer change is in progress, try latter"
    ) -> None:
        super().__init__(message)


class CodecNotFoundError(SFUError):
    """No codec in a list matches the one searched for."""

    def __init__(self, message: str = "codec not found") -> None:
        super().__init__(message)