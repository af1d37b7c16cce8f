"""RFCOMM connection to Sony headphones.

Uses the kernel Bluetooth sockets (``AF_BLUETOOTH`` / ``BTPROTO_RFCOMM``,
Linux with BlueZ) driven by the asyncio event loop. Reads are forwarded
to the session as transport events; writes go through an asyncio stream
writer and never block the caller.
"""

from __future__ import annotations

import asyncio
import logging
import socket

from .interface import ChannelClosed, DataReceived, TransportEvent

logger = logging.getLogger(__name__)

READ_SIZE = 1024
CONNECT_TIMEOUT_S = 10.0


class RFCOMMConnection:
    """An open RFCOMM stream.

    Usage::

        events = asyncio.Queue()
        conn = await RFCOMMConnection.open("AA:BB:CC:DD:EE:FF", 9, events)
        conn.write(frame_bytes)
        event = await events.get()
        conn.close()
    """

    def __init__(
        self,
        address: str,
        channel: int,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        events: asyncio.Queue[TransportEvent],
    ) -> None:
        self._address = address
        self._channel = channel
        self._reader = reader
        self._writer = writer
        self._events = events
        self._open = True
        self._read_task: asyncio.Task | None = None

    @property
    def address(self) -> str:
        return self._address

    @property
    def channel(self) -> int:
        return self._channel

    @property
    def is_open(self) -> bool:
        return self._open

    @classmethod
    async def open(
        cls,
        address: str,
        channel: int,
        events: asyncio.Queue[TransportEvent],
        timeout_s: float = CONNECT_TIMEOUT_S,
    ) -> RFCOMMConnection:
        """Connect to ``address`` on RFCOMM ``channel``.

        Raises:
            ConnectionError: If the platform has no RFCOMM sockets or the
                channel cannot be opened.
        """
        if not hasattr(socket, "AF_BLUETOOTH") or not hasattr(socket, "BTPROTO_RFCOMM"):
            raise ConnectionError("RFCOMM sockets are not supported on this platform")

        loop = asyncio.get_running_loop()
        sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
        sock.setblocking(False)
        try:
            await asyncio.wait_for(loop.sock_connect(sock, (address, channel)), timeout_s)
            reader, writer = await asyncio.open_connection(sock=sock)
        except (OSError, asyncio.TimeoutError) as e:
            sock.close()
            raise ConnectionError(
                f"Could not open RFCOMM channel {channel} on {address}: {str(e) or 'timed out'}"
            ) from e
        except BaseException:
            # Cancelled mid-connect: never leave a half-open link behind
            sock.close()
            raise

        conn = cls(address, channel, reader, writer, events)
        conn._read_task = loop.create_task(conn._read_loop())
        logger.info("RFCOMM channel %d open to %s", channel, address)
        return conn

    def write(self, data: bytes) -> bool:
        if not self._open or self._writer.is_closing():
            return False
        try:
            self._writer.write(data)
        except OSError as e:
            logger.warning("RFCOMM write error: %s", e)
            return False
        return True

    def close(self) -> None:
        if not self._open:
            return
        self._open = False

        if self._read_task is not None:
            self._read_task.cancel()
            self._read_task = None
        try:
            self._writer.close()
        except OSError as e:
            logger.warning("Error closing RFCOMM channel: %s", e)
        logger.info("RFCOMM channel %d to %s closed", self._channel, self._address)

    async def _read_loop(self) -> None:
        reason = "closed by remote"
        try:
            while True:
                data = await self._reader.read(READ_SIZE)
                if not data:
                    break
                self._events.put_nowait(DataReceived(data))
        except OSError as e:
            logger.warning("RFCOMM read error: %s", e)
            reason = str(e)
        self._open = False
        self._events.put_nowait(ChannelClosed(reason))
