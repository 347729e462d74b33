"""Data channels with middleware chains run before the message callback."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence


@dataclass
class DataChannelMessage:
    """A message received on a data channel."""

    data: bytes
    is_string: bool = False


@dataclass
class ProcessArgs:
    """Everything a message processor receives."""

    peer: Any
    message: DataChannelMessage
    data_channel: Any = None


Processor = Callable[[ProcessArgs], None]
Middleware = Callable[[Processor], Processor]


def chain(middlewares: Sequence[Middleware], last: Processor) -> Processor:
    """Wrap ``last`` so that the first middleware runs first."""
    handler = last
    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler


@dataclass
class Datachannel:
    """A labelled data channel negotiated with every peer that joins."""

    label: str
    middlewares: list[Middleware] = field(default_factory=list)
    _on_message: Optional[Processor] = field(default=None, repr=False)

    def use(self, *args: Middleware) -> None:
        """Append middlewares run before the message callback."""
        self.middlewares.extend(args)

    def on_message(self, fn: Processor) -> None:
        """Set the callback fired after all middlewares processed a message."""
        self._on_message = fn

    def processor(self) -> Processor:
        """Return the full processing chain for this channel."""

        def deliver(args: ProcessArgs) -> None:
            if self._on_message is not None:
                self._on_message(args)

        return chain(list(self.middlewares), deliver)