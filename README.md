# sfucore

Building blocks for a WebRTC selective forwarding unit (SFU), in plain Python
with no third-party dependencies.

## Modules

- `sfucore.sequencer`: `Sequencer` keeps a ring of `PacketMeta` records that
  map rewritten RTP sequence numbers back to the source ones.
  `get_seq_no_pairs` answers a NACK with copies of the matching records and
  leaves out a number that was already requested within the last 100 ms.
  `PacketMeta.set_vp8_payload_meta` / `get_vp8_payload_meta` store the VP8
  TL0PICIDX and picture id of a packet.
- `sfucore.twcc`: `Responder` collects transport-wide sequence numbers with
  `push` and, once enough have arrived, builds an RTCP transport-wide
  congestion control feedback packet and passes its bytes to the callback set
  with `on_feedback`. `build_transport_cc_packet` builds one on demand.
- `sfucore.audioobserver`: `AudioObserver` accumulates audio levels per stream
  (`add_stream`, `remove_stream`, `observe`). `calc` returns the ids of the
  streams with enough samples, loudest first, or `None` when the list is the
  same as last time.
- `sfucore.datachannel`: `Datachannel` holds a label, middlewares added with
  `use` and a callback set with `on_message`; `processor()` returns the chain
  built by `chain`, in which the first middleware runs first.
- `sfucore.session`: `Session` tracks the peers and relay peers of a session,
  fans data channel messages out to the other peers (`add_datachannel`,
  `fan_out_message`, `get_data_channels`), subscribes peers to each other's
  routers (`publish`, `subscribe`), and closes itself when its last peer is
  removed. `emit_audio_levels` sends the active speakers as a
  `ChannelAPIMessage` on the `ion-sfu` channel; `start` runs it in a
  background thread every `audio_level_interval` milliseconds (1000 when the
  interval is 0) until the session closes.
- `sfucore.mediaengine`: `MediaEngine` holds codecs and header extension URIs
  per `CodecKind`; a codec whose payload type is already registered is
  ignored. `publisher_media_engine()` returns the Opus, VP8, VP9 and H.264
  table offered to publishers; `subscriber_media_engine()` returns an empty
  engine.
- `sfucore.stats`: `Stream.calc_stats` samples a buffer's `BufferStats` and
  records the results in module-level `Counter`, `Gauge`, `Histogram` and
  `Summary` metrics (`DRIFT`, `EXPECTED_COUNT`, `SESSIONS` and others).
- `sfucore.helpers`: `AtomicBool`, NTP time conversion (`to_ntp_time`,
  `ntp_to_unix_ns`, `ntp_duration_ns`, `ntp_to_millis_since_epoch`), VP8
  payload rewriting (`modify_vp8_temporal_payload`) and
  `codec_parameters_fuzzy_search` over `CodecParameters`.
- `sfucore.config`: `RouterConfig` and `SimulcastConfig`; `from_mapping`
  builds them from configuration-file keys such as `maxpackettrack` or
  `bestqualityfirst`, matched without regard to case.
- `sfucore.errors`: the exceptions, all derived from `SFUError`.

## Installation

```
pip install .
```

## Examples

Answering a NACK:

```python
from sfucore.sequencer import Sequencer

seq = Sequencer(500)
for sn in range(1, 100):
    seq.push(sn, sn + 15, 123, 0, True)

for meta in seq.get_seq_no_pairs([57, 58]):
    print(meta.source_seq_no, "->", meta.target_seq_no)  # 42 -> 57, 43 -> 58
```

Finding the active speakers:

```python
from sfucore.audioobserver import AudioObserver

observer = AudioObserver(threshold=40, interval=1000, filter=20)
observer.add_stream("alice")
observer.add_stream("bob")
for _ in range(20):
    observer.observe("alice", 20)
print(observer.calc())  # ['alice']
print(observer.calc())  # [] - nobody spoke since the last call
```

Building transport-wide congestion feedback:

```python
from sfucore.twcc import Responder

responder = Responder(ssrc=1234)
responder.on_feedback(lambda packet: print(packet.hex()))
```

Processing data channel messages through middleware:

```python
from sfucore.datachannel import Datachannel, DataChannelMessage, ProcessArgs

dc = Datachannel("chat")
dc.use(lambda nxt: lambda args: nxt(args))
dc.on_message(lambda args: print(args.message.data))
dc.processor()(ProcessArgs(peer=None, message=DataChannelMessage(b"hi", True)))
```

## What this package does not do

There are no WebRTC peer connections, no ICE, DTLS or TURN, no signalling
server and no command to run. Nothing here reads or writes RTP on the network.
`Session` works with peer, router, subscriber, publisher and data channel
objects that the caller supplies (a data channel needs `label`, `is_open`,
`on_message`, `send_text` and `send`). The metrics in `sfucore.stats` are kept
in memory and are not exported anywhere.

## Running the tests

```
pip install .[test]
pytest
```