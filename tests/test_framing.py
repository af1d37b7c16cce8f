"""Tests for frame encoding, decoding, escaping and checksums."""

from sony_xm4_mcp.protocol.framing import (
    END_MARKER,
    ESCAPE_BYTE,
    START_MARKER,
    DataType,
    Message,
    checksum,
    decode,
    encode,
    escape,
    make_ack,
    unescape,
)

RESERVED = bytes([0x3C, 0x3D, 0x3E])


def test_checksum_wraps_to_one_byte():
    """Checksum is the byte sum truncated to 8 bits."""
    assert checksum(b"") == 0
    assert checksum(bytes([0x01, 0x02, 0x03])) == 0x06
    assert checksum(bytes([0xFF, 0x02])) == 0x01
    assert checksum(bytes([0x80] * 4)) == 0x00


def test_escape_reserved_bytes():
    assert escape(bytes([0x3C])) == bytes([0x3D, 0x2C])
    assert escape(bytes([0x3D])) == bytes([0x3D, 0x2D])
    assert escape(bytes([0x3E])) == bytes([0x3D, 0x2E])


def test_escape_passes_other_bytes():
    data = bytes([0x00, 0x2C, 0x3B, 0x3F, 0xFF])
    assert escape(data) == data


def test_unescape_reverses_escape():
    samples = [
        b"",
        RESERVED,
        RESERVED * 3,
        bytes(range(256)),
        bytes([0x3D, 0x2C, 0x3D]),
    ]
    for data in samples:
        assert unescape(escape(data)) == data


def test_unescape_unknown_sequence_kept_verbatim():
    """An escape byte followed by an unknown value is not treated as corruption."""
    assert unescape(bytes([0x01, 0x3D, 0x99, 0x02])) == bytes([0x01, 0x3D, 0x99, 0x02])


def test_unescape_trailing_escape_byte():
    assert unescape(bytes([0x10, 0x3D])) == bytes([0x10, 0x3D])


def test_encode_layout():
    """Ack frame for seq 0: START 01 00 00000000 01 END."""
    frame = encode(DataType.ACK, 0, b"")
    assert frame == bytes([0x3E, 0x01, 0x00, 0x00, 0x00, 0x00, 0x00, 0x01, 0x3C])


def test_encode_asc_get():
    """Known frame for an ANC status query with seq 1."""
    frame = encode(DataType.DATA_MDR, 1, bytes([0x66, 0x02]))
    body = bytes([0x0C, 0x01, 0x00, 0x00, 0x00, 0x02, 0x66, 0x02])
    assert frame == bytes([START_MARKER]) + body + bytes([checksum(body), END_MARKER])


def test_encode_masks_sequence():
    message = decode(encode(DataType.DATA, 0x1FF, b"\x01"))
    assert message is not None
    assert message.seq == 0xFF


def test_encode_escapes_checksum_byte():
    """Payload chosen so the checksum lands on a reserved value."""
    # 0x0C + 0x00 + 0x01 (length) + 0x2F = 0x3C
    frame = encode(DataType.DATA_MDR, 0, bytes([0x2F]))
    assert frame[-3:] == bytes([ESCAPE_BYTE, 0x2C, END_MARKER])
    assert decode(frame) == Message(DataType.DATA_MDR, 0, bytes([0x2F]))


def test_frame_has_no_markers_inside():
    frame = encode(DataType.DATA_MDR, 0x3E, RESERVED * 4)
    inner = frame[1:-1]
    assert START_MARKER not in inner
    assert END_MARKER not in inner


def test_roundtrip_reserved_payloads():
    payloads = [b"", RESERVED, bytes(range(256)), bytes([0x3D] * 10), bytes([0x68, 0x02, 1, 1, 0, 1, 0, 19])]
    for data_type in (DataType.DATA, DataType.DATA_MDR, DataType.DATA_MDR2):
        for seq in (0, 1, 0x3C, 0x3D, 0x3E, 255):
            for payload in payloads:
                message = decode(encode(data_type, seq, payload))
                assert message == Message(data_type, seq, payload)


def test_decode_rejects_bad_checksum():
    frame = bytearray(encode(DataType.DATA_MDR, 2, bytes([0x10, 0x00])))
    frame[-2] ^= 0x01
    assert decode(bytes(frame)) is None


def test_decode_rejects_every_checksum_value_but_one():
    good = encode(DataType.DATA_MDR, 3, bytes([0x11, 0x00, 0x50, 0x00]))
    good_checksum = good[-2]
    for value in range(256):
        if value == good_checksum or value in RESERVED:
            continue
        bad = good[:-2] + bytes([value]) + good[-1:]
        assert decode(bad) is None


def test_decode_rejects_short_or_unmarked():
    assert decode(b"") is None
    assert decode(bytes([START_MARKER])) is None
    assert decode(bytes([START_MARKER, END_MARKER])) is None
    frame = encode(DataType.DATA, 0, b"\x01")
    assert decode(b"\x00" + frame[1:]) is None
    assert decode(frame[:-1] + b"\x00") is None


def test_decode_rejects_truncated_payload():
    """Declared length longer than the bytes present."""
    body = bytes([0x0C, 0x00, 0x00, 0x00, 0x00, 0x05, 0x01, 0x02])
    frame = bytes([START_MARKER]) + body + bytes([checksum(body), END_MARKER])
    assert decode(frame) is None


def test_make_ack():
    message = decode(make_ack(7))
    assert message == Message(DataType.ACK, 7, b"")


def test_message_repr():
    r = repr(Message(DataType.DATA_MDR, 4, bytes([0x66, 0x02])))
    assert "0x0C" in r
    assert "66 02" in r
