import pytest

from sfucore.twcc import (
    PACKET_NOT_RECEIVED,
    PACKET_RECEIVED_LARGE_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_RECEIVED_WITHOUT_DELTA,
    SYMBOL_SIZE_ONE_BIT,
    SYMBOL_SIZE_TWO_BIT,
    Responder,
    set_n_bits_of_uint16,
)

SENDER_SSRC = 4195875351
MEDIA_SSRC = 1124282272

SYMBOLS_ONE = [
    PACKET_NOT_RECEIVED,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_NOT_RECEIVED,
    PACKET_NOT_RECEIVED,
    PACKET_NOT_RECEIVED,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_NOT_RECEIVED,
    PACKET_NOT_RECEIVED,
]

SYMBOLS_TWO = [
    PACKET_NOT_RECEIVED,
    PACKET_RECEIVED_WITHOUT_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_RECEIVED_SMALL_DELTA,
    PACKET_NOT_RECEIVED,
    PACKET_NOT_RECEIVED,
]


@pytest.mark.parametrize(
    "start_len, symbol, run_length, expected",
    [
        (0, PACKET_NOT_RECEIVED, 221, bytes([0, 0xDD])),
        (1, PACKET_RECEIVED_WITHOUT_DELTA, 24, bytes([0, 0x60, 0x18])),
    ],
)
def test_write_run_length_chunk(start_len, symbol, run_length, expected):
    responder = Responder()
    responder.length = start_len
    responder.write_run_length_chunk(symbol, run_length)
    assert bytes(responder.payload[: responder.length]) == expected


@pytest.mark.parametrize(
    "start_len, size, symbols, expected",
    [
        (0, SYMBOL_SIZE_ONE_BIT, SYMBOLS_ONE, bytes([0x9F, 0x1C])),
        (1, SYMBOL_SIZE_TWO_BIT, SYMBOLS_TWO, bytes([0x0, 0xCD, 0x50])),
    ],
)
def test_write_status_symbol_chunk(start_len, size, symbols, expected):
    responder = Responder()
    responder.length = start_len
    for index, symbol in enumerate(symbols):
        responder.create_status_symbol_chunk(size, symbol, index)
    responder.write_status_symbol_chunk(size)
    assert bytes(responder.payload[: responder.length]) == expected
    assert responder.chunk == 0


@pytest.mark.parametrize(
    "start_len, delta_type, delta, expected",
    [
        (0, PACKET_RECEIVED_SMALL_DELTA, 255, bytes([0xFF])),
        (1, PACKET_RECEIVED_SMALL_DELTA, 255, bytes([0, 0xFF])),
        (0, PACKET_RECEIVED_LARGE_DELTA, 32767, bytes([0x7F, 0xFF])),
        (1, PACKET_RECEIVED_LARGE_DELTA, -32768 & 0xFFFF, bytes([0, 0x80, 0x00])),
    ],
)
def test_write_delta(start_len, delta_type, delta, expected):
    responder = Responder()
    responder.delta_length = start_len
    responder.write_delta(delta_type, delta)
    assert bytes(responder.deltas[: responder.delta_length]) == expected
    assert responder.delta_length == start_len + delta_type


HEADER = bytes(
    [
        0xFA, 0x17, 0xFA, 0x17,
        0x43, 0x3, 0x2F, 0xA0,
        0x0, 0x99, 0x0, 0x1,
        0x3D, 0xE8, 0x2, 0x17,
    ]
)


def test_write_header():
    responder = Responder(MEDIA_SSRC, sender_ssrc=SENDER_SSRC)
    responder.feedback_count = 23
    responder.write_header(153, 1, 4057090)
    assert bytes(responder.payload[0:16]) == HEADER
    assert responder.length == 16


def test_tcc_packet_payload():
    responder = Responder(MEDIA_SSRC, sender_ssrc=SENDER_SSRC)
    responder.feedback_count = 23
    responder.write_header(153, 1, 4057090)
    responder.write_run_length_chunk(PACKET_RECEIVED_WITHOUT_DELTA, 24)
    responder.write_run_length_chunk(PACKET_NOT_RECEIVED, 221)
    for index, symbol in enumerate(SYMBOLS_ONE):
        responder.create_status_symbol_chunk(SYMBOL_SIZE_ONE_BIT, symbol, index)
    responder.write_status_symbol_chunk(SYMBOL_SIZE_ONE_BIT)
    for index, symbol in enumerate(SYMBOLS_TWO):
        responder.create_status_symbol_chunk(SYMBOL_SIZE_TWO_BIT, symbol, index)
    responder.write_status_symbol_chunk(SYMBOL_SIZE_TWO_BIT)
    want = HEADER + bytes([0x60, 0x18, 0x0, 0xDD, 0x9F, 0x1C, 0xCD, 0x50])
    assert bytes(responder.payload[:24]) == want
    assert responder.length == 24


@pytest.mark.parametrize(
    "src, size, start, val, expected",
    [
        (0, 1, 0, 1, 0x8000),
        (0, 2, 0, 7, 0xC000),
        (0xFFFF, 4, 14, 1, 0),
        (0x8000, 1, 15, 1, 0x8001),
    ],
)
def test_set_n_bits_of_uint16(src, size, start, val, expected):
    assert set_n_bits_of_uint16(src, size, start, val) == expected


def test_build_packet_bytes():
    responder = Responder(MEDIA_SSRC, sender_ssrc=SENDER_SSRC)
    for sn in range(1, 6):
        responder.push(sn, 1_000_000_000 + sn * 1_000_000, False)
    packet = responder.build_transport_cc_packet()
    expected = (
        bytes([0xAF, 0xCD, 0x00, 0x06])
        + bytes([0xFA, 0x17, 0xFA, 0x17, 0x43, 0x03, 0x2F, 0xA0])
        + bytes([0x00, 0x01, 0x00, 0x05, 0x00, 0x00, 0x0F, 0x00])
        + bytes([0x20, 0x05])
        + bytes([0xA4, 0x04, 0x04, 0x04, 0x04])
        + bytes([0x01])
    )
    assert packet == expected
    assert responder.feedback_count == 1
    assert responder.delta_length == 0


def test_build_with_nothing_pending_returns_none():
    responder = Responder(MEDIA_SSRC)
    assert responder.build_transport_cc_packet() is None


def test_packet_length_invariants_and_gap_fill():
    responder = Responder(MEDIA_SSRC, sender_ssrc=SENDER_SSRC)
    responder.push(1, 2_000_000_000, False)
    responder.push(3, 2_001_000_000, False)
    packet = responder.build_transport_cc_packet()
    assert len(packet) % 4 == 0
    assert (int.from_bytes(packet[2:4], "big") + 1) * 4 == len(packet)
    assert packet[12:14] == bytes([0x00, 0x01])
    assert int.from_bytes(packet[14:16], "big") == 3


def test_sequence_wraparound_extends_count():
    responder = Responder(MEDIA_SSRC, sender_ssrc=SENDER_SSRC)
    responder.push(0xFFF0, 3_000_000_000, False)
    responder.push(1, 3_001_000_000, False)
    packet = responder.build_transport_cc_packet()
    assert packet[12:14] == bytes([0xFF, 0xF0])
    assert int.from_bytes(packet[14:16], "big") == 18


def test_push_emits_feedback_after_report_delta():
    responder = Responder(MEDIA_SSRC, sender_ssrc=SENDER_SSRC)
    received = []
    responder.on_feedback(received.append)
    for sn in range(21):
        responder.push(sn + 1, 1_000_000_000 + sn * 10_000_000, False)
    assert len(received) == 1
    assert received[0][1] == 205
    assert int.from_bytes(received[0][14:16], "big") == 21


def test_push_without_media_ssrc_never_emits():
    responder = Responder(0)
    received = []
    responder.on_feedback(received.append)
    for sn in range(30):
        responder.push(sn + 1, 1_000_000_000 + sn * 10_000_000, False)
    assert received == []


@pytest.mark.parametrize("marker, expected_count", [(True, 1), (False, 0)])
def test_marker_shortens_report_interval(marker, expected_count):
    responder = Responder(MEDIA_SSRC)
    received = []
    responder.on_feedback(received.append)
    for sn in range(20):
        responder.push(sn + 1, 1_000_000_000 + sn * 3_000_000, False)
    responder.push(21, 1_000_000_000 + 20 * 3_000_000, marker)
    assert len(received) == expected_count