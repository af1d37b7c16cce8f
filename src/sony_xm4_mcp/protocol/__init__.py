"""Protocol layer: framing, escaping, checksums, command builders, parsing and reassembly."""

from .framing import DataType, Message, decode, encode, make_ack
from .commands import Command, build_command
from .reassembler import FrameReassembler
