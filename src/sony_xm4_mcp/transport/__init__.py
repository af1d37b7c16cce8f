"""Transport layer: RFCOMM connection, channel discovery, inbound events."""

from .interface import ChannelClosed, Connection, DataReceived, TransportEvent
