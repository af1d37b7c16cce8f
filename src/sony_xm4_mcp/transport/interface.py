"""
Transport boundary between the session and the Bluetooth stack.

The transport delivers inbound activity as events on an asyncio queue
owned by the session, one event per read or closure, and accepts raw
frame bytes for writing. It knows nothing about framing.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Union, runtime_checkable


@dataclass
class DataReceived:
    """A chunk of bytes read from the channel, in stream order."""

    data: bytes


@dataclass
class ChannelClosed:
    """The channel was closed by the peer or failed."""

    reason: str = ""


TransportEvent = Union[DataReceived, ChannelClosed]


@runtime_checkable
class Connection(Protocol):
    """An open duplex byte channel to the headphones."""

    @property
    def is_open(self) -> bool:
        ...

    def write(self, data: bytes) -> bool:
        """
        Write raw bytes. Non-blocking best-effort.

        Returns True if the bytes were handed to the channel.
        """
        ...

    def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        ...


# (address, channel, events) -> open connection; raises ConnectionError
Opener = Callable[[str, int, "asyncio.Queue[TransportEvent]"], Awaitable[Connection]]

# address -> RFCOMM channel number; may block
ChannelResolver = Callable[[str], int]
