"""Tests for frame reassembly from a fragmented byte stream."""

from sony_xm4_mcp.protocol.framing import DataType, Message, decode, encode
from sony_xm4_mcp.protocol.reassembler import FrameReassembler


def _frames():
    return [
        encode(DataType.DATA_MDR, 1, bytes([0x67, 0x02, 0x01, 0x02, 0x02, 0x00, 0x00, 0x00])),
        encode(DataType.ACK, 2, b""),
        # Payload full of reserved bytes, so the frame carries escape sequences
        encode(DataType.DATA_MDR, 0x3E, bytes([0x3C, 0x3D, 0x3E, 0x3D])),
        encode(DataType.DATA_MDR2, 4, bytes([0x11, 0x00, 0x5A, 0x00])),
    ]


def _collect(reassembler, chunks):
    out = []
    for chunk in chunks:
        out.extend(reassembler.feed(chunk))
    return out


def test_single_frame():
    frame = _frames()[0]
    assert list(FrameReassembler().feed(frame)) == [frame]


def test_several_frames_in_one_chunk():
    frames = _frames()
    assert list(FrameReassembler().feed(b"".join(frames))) == frames


def test_every_two_way_split():
    """Splitting the stream at any single point yields the same frames."""
    frames = _frames()
    stream = b"".join(frames)
    for cut in range(len(stream) + 1):
        got = _collect(FrameReassembler(), [stream[:cut], stream[cut:]])
        assert got == frames, f"split at {cut}"


def test_byte_by_byte():
    frames = _frames()
    stream = b"".join(frames)
    reassembler = FrameReassembler()
    got = _collect(reassembler, [stream[i : i + 1] for i in range(len(stream))])
    assert got == frames
    assert reassembler.buffered == 0


def test_irregular_chunks():
    frames = _frames()
    stream = b"".join(frames)
    sizes = [3, 1, 7, 2, 11, 5, 1, 1, 13]
    chunks = []
    pos = 0
    i = 0
    while pos < len(stream):
        size = sizes[i % len(sizes)]
        chunks.append(stream[pos : pos + size])
        pos += size
        i += 1
    assert _collect(FrameReassembler(), chunks) == frames


def test_noise_before_start_discarded():
    frame = _frames()[1]
    reassembler = FrameReassembler()
    assert list(reassembler.feed(b"\x00\x01\x02garbage" + frame)) == [frame]
    assert reassembler.buffered == 0


def test_noise_without_start_cleared():
    reassembler = FrameReassembler()
    assert list(reassembler.feed(b"\x01\x02\x03\x3c\x04")) == []
    assert reassembler.buffered == 0


def test_unterminated_frame_waits():
    """A start marker followed by garbage yields nothing until an end marker arrives."""
    reassembler = FrameReassembler()
    assert list(reassembler.feed(b"\x99\x3e\x10\x20\x30")) == []
    assert reassembler.buffered == 4
    assert list(reassembler.feed(b"\x40\x50")) == []
    assert list(reassembler.feed(b"\x3c")) == [b"\x3e\x10\x20\x30\x40\x50\x3c"]
    assert reassembler.buffered == 0


def test_messages_drops_malformed_frames():
    good = _frames()
    bad_checksum = bytearray(good[3])
    bad_checksum[-2] ^= 0xFF
    stream = good[0] + bytes(bad_checksum) + b"\x3e\x01\x3c" + good[1]
    messages = list(FrameReassembler().messages(stream))
    assert messages == [decode(good[0]), decode(good[1])]


def test_messages_decodes_escaped_payload():
    frame = _frames()[2]
    reassembler = FrameReassembler()
    messages = list(reassembler.messages(frame[:4]))
    messages += list(reassembler.messages(frame[4:]))
    assert messages == [Message(DataType.DATA_MDR, 0x3E, bytes([0x3C, 0x3D, 0x3E, 0x3D]))]


def test_chunk_fed_during_drain_is_processed_in_order():
    """A chunk arriving while frames are being handled is queued, not interleaved."""
    frames = _frames()
    reassembler = FrameReassembler()
    seen = []
    fed_again = False
    for frame in reassembler.feed(frames[0] + frames[1]):
        seen.append(frame)
        if not fed_again:
            fed_again = True
            # Re-entrant feed returns nothing itself
            assert list(reassembler.feed(frames[2])) == []
    assert seen == [frames[0], frames[1], frames[2]]


def test_reset_clears_partial_frame():
    reassembler = FrameReassembler()
    frame = _frames()[0]
    list(reassembler.feed(frame[:5]))
    assert reassembler.buffered == 5
    reassembler.reset()
    assert reassembler.buffered == 0
    assert list(reassembler.feed(frame[5:])) == []
