"""Message frame encoder and decoder for the Sony MDR control protocol.

Frame layout::

    +-------+------------------------------------------------------------------+-----+
    | START |                      escaped body                                | END |
    | 0x3E  | DataType | Seq  | Payload length | Payload          | Checksum   | 0x3C|
    |       | 1 byte   | 1 B  | 4 bytes (BE)   | variable length  | 1 byte     |     |
    +-------+------------------------------------------------------------------+-----+

- Seq: low byte of the sequence number
- Checksum: low 8 bits of the sum of every body byte before it
- Escaping: the three marker bytes (0x3C, 0x3D, 0x3E) are replaced inside
  the body by 0x3D followed by the byte minus 0x10. Escaping is applied
  after the checksum is computed, and covers the checksum byte too.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

START_MARKER = 0x3E  # '>'
END_MARKER = 0x3C    # '<'
ESCAPE_BYTE = 0x3D   # '='

ESCAPE_MAP = {
    0x3C: 0x2C,
    0x3D: 0x2D,
    0x3E: 0x2E,
}
UNESCAPE_MAP = {v: k for k, v in ESCAPE_MAP.items()}

HEADER_SIZE = 6     # data_type(1) + seq(1) + length(4)
MIN_BODY_SIZE = 7   # header + checksum


class DataType(IntEnum):
    """Frame data types."""

    DATA = 0x00
    ACK = 0x01
    DATA_MDR = 0x0C      # v1 settings commands
    DATA_COMMON = 0x0D
    DATA_MDR2 = 0x0E     # v2 settings commands
    SHOT_MDR = 0x1C


@dataclass
class Message:
    """A decoded protocol message."""

    data_type: int
    seq: int
    payload: bytes

    def __repr__(self) -> str:
        return (
            f"Message(data_type=0x{self.data_type:02X}, seq={self.seq}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def escape(body: bytes) -> bytes:
    """Replace reserved bytes with their two-byte escape sequences."""
    out = bytearray()
    for b in body:
        if b in ESCAPE_MAP:
            out.append(ESCAPE_BYTE)
            out.append(ESCAPE_MAP[b])
        else:
            out.append(b)
    return bytes(out)


def unescape(body: bytes) -> bytes:
    """Reverse :func:`escape`.

    An escape byte followed by an unrecognised value is kept verbatim
    together with that value.
    """
    out = bytearray()
    i = 0
    while i < len(body):
        if body[i] == ESCAPE_BYTE and i + 1 < len(body):
            follow = body[i + 1]
            if follow in UNESCAPE_MAP:
                out.append(UNESCAPE_MAP[follow])
            else:
                out.append(body[i])
                out.append(follow)
            i += 2
        else:
            out.append(body[i])
            i += 1
    return bytes(out)


def checksum(data: bytes) -> int:
    """Additive checksum: sum of all bytes, truncated to 8 bits."""
    return sum(data) & 0xFF


def encode(data_type: int, seq: int, payload: bytes = b"") -> bytes:
    """Build a complete frame ready to write to the RFCOMM channel.

    Args:
        data_type: Frame data type (see :class:`DataType`).
        seq: Sequence number; only the low byte is sent.
        payload: Command payload bytes.

    Returns:
        The framed, escaped bytes including start and end markers.
    """
    body = bytearray([data_type & 0xFF, seq & 0xFF])
    body += len(payload).to_bytes(4, "big")
    body += payload
    body.append(checksum(body))
    return bytes([START_MARKER]) + escape(bytes(body)) + bytes([END_MARKER])


def decode(frame: bytes) -> Message | None:
    """Decode a frame produced by :func:`encode`.

    Args:
        frame: Raw bytes from start marker through end marker inclusive.

    Returns:
        A ``Message``, or ``None`` if the frame is truncated, badly
        delimited, or fails the checksum.
    """
    if len(frame) < 2:
        return None
    if frame[0] != START_MARKER or frame[-1] != END_MARKER:
        return None

    body = unescape(frame[1:-1])
    if len(body) < MIN_BODY_SIZE:
        return None

    data_type = body[0]
    seq = body[1]
    length = int.from_bytes(body[2:HEADER_SIZE], "big")

    if len(body) < HEADER_SIZE + length + 1:
        return None

    payload = body[HEADER_SIZE : HEADER_SIZE + length]
    expected = body[HEADER_SIZE + length]
    if checksum(body[: HEADER_SIZE + length]) != expected:
        return None

    return Message(data_type=data_type, seq=seq, payload=bytes(payload))


def make_ack(seq: int) -> bytes:
    """Build an acknowledgement frame for ``seq``."""
    return encode(DataType.ACK, seq, b"")
