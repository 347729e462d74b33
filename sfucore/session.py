"""A session: a set of peers that are subscribed to each other's media and data."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from sfucore.audioobserver import AudioObserver
from sfucore.config import RouterConfig
from sfucore.datachannel import Datachannel, DataChannelMessage
from sfucore.helpers import AtomicBool

logger = logging.getLogger(__name__)

AUDIO_LEVELS_METHOD = "audioLevels"
API_CHANNEL_LABEL = "ion-sfu"


class DataChannel(Protocol):
    label: str
    is_open: bool

    def on_message(self, fn: Callable[[DataChannelMessage], None]) -> None: ...

    def send_text(self, text: str) -> None: ...

    def send(self, data: bytes) -> None: ...


_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class ChannelAPIMessage:
    """A message sent on the API data channel."""

    method: str
    params: Any = None

    def to_json(self) -> str:
        body: dict[str, Any] = {"method": self.method}
        if self.params is not None:
            body["params"] = self.params
        text = json.dumps(body, separators=(",", ":"), ensure_ascii=False)
        for char, escape in _JSON_ESCAPES.items():
            text = text.replace(char, escape)
        return text


def _send(dc: DataChannel, msg: DataChannelMessage) -> None:
    try:
        if msg.is_string:
            dc.send_text(msg.data.decode("utf-8", errors="replace"))
        else:
            dc.send(msg.data)
    except Exception:
        logger.exception("Sending dc message err")


class Session:
    """Peers inside a session are automatically subscribed to each other."""

    def __init__(
        self,
        id: str,
        datachannels: Optional[list[Datachannel]] = None,
        config: Optional[RouterConfig] = None,
    ) -> None:
        self.id = id
        self.config = config or RouterConfig()
        self.datachannels = list(datachannels or [])
        self.audio_observer = AudioObserver(
            self.config.audio_level_threshold,
            self.config.audio_level_interval,
            self.config.audio_level_filter,
        )
        self._lock = threading.RLock()
        self._peers: dict[str, Any] = {}
        self._relay_peers: dict[str, Any] = {}
        self._fan_out_dcs: list[str] = []
        self._closed = AtomicBool()
        self._stopped = threading.Event()
        self._on_close: Optional[Callable[[], None]] = None

    @property
    def closed(self) -> bool:
        return self._closed.get()

    def add_peer(self, peer: Any) -> None:
        with self._lock:
            self._peers[peer.id] = peer

    def get_peer(self, peer_id: str) -> Any:
        with self._lock:
            return self._peers.get(peer_id)

    def remove_peer(self, peer: Any) -> None:
        """Remove a peer; the session closes once no peers remain."""
        pid = peer.id
        logger.debug("RemovePeer from session (peer_id=%s session_id=%s)", pid, self.id)
        with self._lock:
            if self._peers.get(pid) is peer:
                del self._peers[pid]
            remaining = len(self._peers) + len(self._relay_peers)
        if remaining == 0:
            self.close()

    def register_relay_peer(self, peer_id: str, relay_peer: Any) -> None:
        with self._lock:
            self._relay_peers[peer_id] = relay_peer

    def remove_relay_peer(self, peer_id: str) -> None:
        with self._lock:
            self._relay_peers.pop(peer_id, None)

    def get_relay_peer(self, peer_id: str) -> Any:
        with self._lock:
            return self._relay_peers.get(peer_id)

    def fan_out_labels(self) -> list[str]:
        with self._lock:
            return list(self._fan_out_dcs)

    def _relay_handler(self, peer: Any, label: str) -> Callable[[DataChannelMessage], None]:
        def handle(msg: DataChannelMessage) -> None:
            self.fan_out_message(peer.id, label, msg)
            publisher = peer.publisher
            if publisher is not None and publisher.relayed():
                for rdc in publisher.get_relayed_data_channels(label):
                    _send(rdc, msg)

        return handle

    def _fan_out_handler(self, origin: str, label: str) -> Callable[[DataChannelMessage], None]:
        def handle(msg: DataChannelMessage) -> None:
            self.fan_out_message(origin, label, msg)

        return handle

    def add_datachannel(self, owner: str, dc: DataChannel) -> None:
        """Fan a peer-created data channel out to every other peer in the session."""
        label = dc.label
        with self._lock:
            if label in self._fan_out_dcs:
                dc.on_message(self._fan_out_handler(owner, label))
                return
            self._fan_out_dcs.append(label)
            peer_owner = self._peers.get(owner)
        peers = self.peers()
        if peer_owner is not None and peer_owner.subscriber is not None:
            peer_owner.subscriber.register_datachannel(label, dc)

        dc.on_message(self._fan_out_handler(owner, label))

        for peer in peers:
            if peer.id == owner or peer.subscriber is None:
                continue
            try:
                ndc = peer.subscriber.add_data_channel(label)
            except Exception:
                logger.exception("error adding datachannel")
                continue
            publisher = peer.publisher
            if publisher is not None and publisher.relayed():
                publisher.add_relay_fan_out_data_channel(label)
            ndc.on_message(self._relay_handler(peer, label))
            peer.subscriber.negotiate()

    def publish(self, router: Any, receiver: Any) -> None:
        """Add down tracks for a receiver to every other subscribing peer."""
        for peer in self.peers():
            if router.id == peer.id or peer.subscriber is None:
                continue
            logger.debug("Publishing track to peer (peer_id=%s)", peer.id)
            try:
                router.add_down_tracks(peer.subscriber, receiver)
            except Exception:
                logger.exception("Error subscribing transport to router")

    def subscribe(self, peer: Any) -> None:
        """Subscribe a peer to fan-out channels and to every published stream."""
        with self._lock:
            labels = list(self._fan_out_dcs)
            publishers = [
                p
                for p in self._peers.values()
                if p is not peer and p.publisher is not None
            ]

        for label in labels:
            try:
                dc = peer.subscriber.add_data_channel(label)
            except Exception:
                logger.exception("error adding datachannel")
                continue
            dc.on_message(self._relay_handler(peer, label))

        for p in publishers:
            try:
                p.publisher.router.add_down_tracks(peer.subscriber, None)
            except Exception:
                logger.exception("Subscribing to router err")

        for rp in self.relay_peers():
            try:
                rp.router.add_down_tracks(peer.subscriber, None)
            except Exception:
                logger.exception("Subscribing to router err")

        peer.subscriber.negotiate()

    def peers(self) -> list[Any]:
        with self._lock:
            return list(self._peers.values())

    def relay_peers(self) -> list[Any]:
        with self._lock:
            return list(self._relay_peers.values())

    def on_close(self, fn: Callable[[], None]) -> None:
        self._on_close = fn

    def close(self) -> None:
        """Close the session once, firing the close handler."""
        if not self._closed.set(True):
            return
        self._stopped.set()
        if self._on_close is not None:
            self._on_close()

    def fan_out_message(self, origin: str, label: str, msg: DataChannelMessage) -> None:
        for dc in self.get_data_channels(origin, label):
            _send(dc, msg)

    def get_data_channels(self, peer_id: str, label: str) -> list[DataChannel]:
        """Open channels with ``label`` of all peers but ``peer_id``, plus relay channels."""
        with self._lock:
            found: list[DataChannel] = []
            for pid, peer in self._peers.items():
                if pid == peer_id or peer.subscriber is None:
                    continue
                dc = peer.subscriber.data_channel(label)
                if dc is not None and dc.is_open:
                    found.append(dc)
            for rp in self._relay_peers.values():
                dc = rp.data_channel(label)
                if dc is not None:
                    found.append(dc)
            return found

    def emit_audio_levels(self) -> Optional[str]:
        """Send changed active speakers on the API channel; return the message sent."""
        levels = self.audio_observer.calc()
        if levels is None:
            return None
        text = ChannelAPIMessage(AUDIO_LEVELS_METHOD, levels).to_json()
        for dc in self.get_data_channels("", API_CHANNEL_LABEL):
            try:
                dc.send_text(text)
            except Exception:
                logger.exception("Sending audio levels err")
        return text

    def _observe_audio_levels(self, interval_ms: int) -> None:
        while not self._stopped.wait(interval_ms / 1000):
            if self.closed:
                return
            self.emit_audio_levels()

    def start(self) -> threading.Thread:
        """Start the background audio level reporter; it stops when the session closes."""
        interval = self.config.audio_level_interval
        if interval <= 50:
            logger.debug("Values near/under 20ms may return unexpected values")
        if interval == 0:
            interval = 1000
        thread = threading.Thread(
            target=self._observe_audio_levels,
            args=(interval,),
            name=f"audio-levels-{self.id}",
            daemon=True,
        )
        thread.start()
        return thread