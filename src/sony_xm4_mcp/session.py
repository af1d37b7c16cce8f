"""Headphone session: connection lifecycle, ACK tracking and message dispatch.

A :class:`HeadphoneSession` owns one RFCOMM connection at a time and is
the only writer of its :class:`HeadphoneState`. All of its methods run on
a single asyncio event loop; transport reads reach it as events on a
queue drained by one pump task, so inbound handling never interleaves.

Two protocol quirks are preserved here:

- Outbound frames carry the sequence number of the last ACK received
  from the headphones, not a local counter.
- Mode changes are applied locally as soon as they are sent. The
  headphones keep reporting the old mode for a while afterwards, so mode
  notifications are ignored during a cooldown window.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from enum import Enum
from functools import partial
from typing import Callable, Coroutine

from .config import DiscoveryConfig, SessionConfig
from .cooldown import StaleNotificationFilter
from .models.state import AncMode, HeadphoneState
from .protocol.commands import (
    BATTERY_REPORT_FUNCTIONS,
    Command,
    build_asc_get,
    build_asc_set,
    build_battery_get,
    build_dsee_set,
    mode_from_name,
)
from .protocol.framing import DataType, Message, encode, make_ack
from .protocol.parser import CommandPayload, parse_asc, parse_battery, parse_dsee, split_command
from .protocol.reassembler import FrameReassembler
from .transport.interface import (
    ChannelClosed,
    ChannelResolver,
    Connection,
    DataReceived,
    Opener,
    TransportEvent,
)

logger = logging.getLogger(__name__)

_MAC_RE = re.compile(r"^[0-9A-F]{2}(:[0-9A-F]{2}){5}$")

# Data types whose payloads carry settings commands
_COMMAND_DATA_TYPES = (DataType.DATA_MDR, DataType.DATA_MDR2)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def normalize_address(address: str) -> str | None:
    """Return ``address`` as ``AA:BB:CC:DD:EE:FF``, or None if malformed."""
    normalized = address.strip().replace("-", ":").upper()
    if not _MAC_RE.match(normalized):
        return None
    return normalized


def _log_task_error(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Scheduled session task failed", exc_info=task.exception())


async def _open_rfcomm(address: str, channel: int, events: asyncio.Queue) -> Connection:
    from .transport.rfcomm import RFCOMMConnection

    return await RFCOMMConnection.open(address, channel, events)


class HeadphoneSession:
    """Stateful link to one pair of headphones.

    Usage::

        session = HeadphoneSession()
        await session.connect("AC:80:0A:12:34:56")
        session.set_mode(AncMode.NOISE_CANCELLING)
        print(session.headphone.to_dict())
        session.disconnect()
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        opener: Opener | None = None,
        channel_resolver: ChannelResolver | None = None,
        discovery: DiscoveryConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or SessionConfig()
        self._opener = opener or _open_rfcomm
        if channel_resolver is None:
            from .transport.discovery import discover_channel

            channel_resolver = partial(discover_channel, config=discovery or DiscoveryConfig())
        self._resolve_channel = channel_resolver

        self.headphone = HeadphoneState()
        self.connection_error: str | None = None

        self._state = ConnectionState.DISCONNECTED
        self._address: str | None = None
        self._channel: int | None = None
        self._connection: Connection | None = None
        self._events: asyncio.Queue[TransportEvent] | None = None
        self._last_ack_seq = 0
        self._reassembler = FrameReassembler()
        self._stale_filter = StaleNotificationFilter(
            self._config.notification_cooldown_s, clock=clock
        )

        self._connect_task: asyncio.Task | None = None
        self._status_task: asyncio.Task | None = None
        self._pump_task: asyncio.Task | None = None

    # -- properties ----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def is_connecting(self) -> bool:
        return self._state is ConnectionState.CONNECTING

    @property
    def last_ack_seq(self) -> int:
        return self._last_ack_seq

    @property
    def address(self) -> str | None:
        return self._address

    @property
    def channel(self) -> int | None:
        return self._channel

    def status(self) -> dict:
        result = {
            "state": self._state.value,
            "address": self._address,
            "channel": self._channel,
        }
        if self.connection_error:
            result["error"] = self.connection_error
        result.update(self.headphone.to_dict())
        return result

    # -- connection ----------------------------------------------------------

    async def connect(self, address: str, channel: int | None = None) -> bool:
        """Open the control channel to ``address``.

        Args:
            address: Bluetooth MAC address; ``-`` separators are accepted.
            channel: RFCOMM channel, discovered over SDP when omitted.

        Returns:
            True once connected. False if a connection already exists or
            is in progress, or if opening failed (see ``connection_error``).
        """
        if self._state is not ConnectionState.DISCONNECTED:
            logger.info("Connect ignored: session is %s", self._state.value)
            return False

        self._state = ConnectionState.CONNECTING
        self.connection_error = None
        self.headphone.reset()

        normalized = normalize_address(address)
        if normalized is None:
            self._fail(f"Device not found: {address!r}. Check MAC address and pairing.")
            return False

        logger.info("Connecting to %s...", normalized)
        self._address = normalized
        task = self._replace_task(self._connect_task, self._open_channel(normalized, channel))
        self._connect_task = task

        await asyncio.wait({task})
        if task.cancelled():
            logger.info("Connect attempt to %s cancelled", normalized)
            return False
        return task.result()

    async def _open_channel(self, address: str, channel: int | None) -> bool:
        events: asyncio.Queue[TransportEvent] = asyncio.Queue()
        try:
            if channel is None:
                channel = await asyncio.to_thread(self._resolve_channel, address)
            logger.info("Using RFCOMM channel: %s", channel)
            connection = await self._opener(address, channel, events)
        except OSError as e:
            self._fail(f"Failed to open RFCOMM channel: {e}")
            return False
        except Exception as e:
            logger.exception("Unexpected error opening RFCOMM channel")
            self._fail(f"Failed to open RFCOMM channel: {e!r}")
            return False

        self._connection = connection
        self._channel = channel
        self._events = events
        self._state = ConnectionState.CONNECTED
        logger.info("Connected to %s on channel %s", address, channel)

        loop = asyncio.get_running_loop()
        self._pump_task = loop.create_task(self._pump_events(events))
        self._pump_task.add_done_callback(self._on_pump_done)
        self._status_task = self._replace_task(
            self._status_task, self._delayed_status(self._config.initial_status_delay_s)
        )
        return True

    def _fail(self, error: str) -> None:
        logger.error(error)
        self.connection_error = error
        self._state = ConnectionState.DISCONNECTED

    def disconnect(self) -> None:
        """Tear down the connection and forget all per-connection state.

        Safe to call in any state. Scheduled work is cancelled before the
        channel is closed.
        """
        logger.info("Disconnecting...")

        for task in (self._status_task, self._connect_task, self._pump_task):
            if task is not None:
                task.cancel()
        self._status_task = None
        self._connect_task = None
        self._pump_task = None

        if self._connection is not None:
            self._connection.close()
        self._connection = None
        self._events = None
        self._channel = None

        self._state = ConnectionState.DISCONNECTED
        self._last_ack_seq = 0
        self._reassembler.reset()
        self._stale_filter.clear()
        self.headphone.reset()

    # -- scheduled work ------------------------------------------------------

    def _replace_task(
        self, previous: asyncio.Task | None, coro: Coroutine
    ) -> asyncio.Task:
        if previous is not None:
            previous.cancel()
        task = asyncio.get_running_loop().create_task(coro)
        task.add_done_callback(_log_task_error)
        return task

    def _on_pump_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        logger.error("Inbound event pump failed", exc_info=task.exception())
        # The link is useless without its reader
        if task is self._pump_task:
            self._pump_task = None
            self.disconnect()

    async def _delayed_status(self, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        self.request_status()

    async def _status_sequence(self) -> None:
        self.send(DataType.DATA_MDR, build_asc_get())
        await asyncio.sleep(self._config.status_step_delay_s)
        dual = self._config.battery_query == "dual"
        self.send(DataType.DATA_MDR, build_battery_get(dual=dual))

    def request_status(self) -> None:
        """Query the ANC mode, then the battery level shortly after."""
        # A fresh status should always be applied
        self._stale_filter.clear()

        if self._connection is None:
            logger.warning("Cannot request status: channel is not open")
            return

        logger.info("Requesting status")
        self._status_task = self._replace_task(self._status_task, self._status_sequence())

    # -- sending -------------------------------------------------------------

    def send(self, data_type: int, payload: bytes) -> bool:
        """Encode and write a message.

        The sequence number is the last one acknowledged by the
        headphones.
        """
        if self._connection is None or not self.is_connected:
            logger.warning("Cannot send: not connected")
            return False

        seq = self._last_ack_seq
        frame = encode(data_type, seq, payload)
        logger.debug(
            "<<< SEND type=%02X seq=%d payload=[%s]", data_type, seq, payload.hex(" ")
        )
        logger.debug("<<< RAW: %s", frame.hex(" "))

        if not self._connection.write(frame):
            logger.error("Failed to send message type=%02X", data_type)
            return False
        return True

    def _send_ack(self, seq: int) -> None:
        if self._connection is None:
            return
        if not self._connection.write(make_ack(seq)):
            logger.error("Failed to send ACK seq=%d", seq)

    # -- commands ------------------------------------------------------------

    def set_mode(self, mode: AncMode) -> None:
        """Switch the ANC mode, updating the local state immediately."""
        logger.info("set_mode called: %s", mode.display_name)
        self._stale_filter.mark_command()
        self.send(DataType.DATA_MDR, build_asc_set(mode))
        self.headphone.mode = mode

    def set_noise_cancelling(self) -> None:
        self.set_mode(AncMode.NOISE_CANCELLING)

    def set_ambient(self) -> None:
        self.set_mode(AncMode.AMBIENT)

    def set_off(self) -> None:
        self.set_mode(AncMode.OFF)

    def set_dsee(self, enabled: bool) -> None:
        logger.info("set_dsee called: %s", enabled)
        self.send(DataType.DATA_MDR, build_dsee_set(enabled))
        self.headphone.dsee_enabled = enabled

    def cycle_mode(self, order: list[str]) -> AncMode | None:
        """Advance to the next mode in ``order`` (cycle ids or mode names).

        Returns:
            The mode applied, or None when not connected, ``order`` has
            fewer than two entries, or the next entry is not a mode.
        """
        if not self.is_connected or len(order) < 2:
            return None

        current = self.headphone.mode.cycle_id
        if current in order:
            next_id = order[(order.index(current) + 1) % len(order)]
        else:
            next_id = order[0]

        try:
            mode = mode_from_name(next_id)
        except ValueError:
            logger.warning("Ignoring unknown cycle mode %r", next_id)
            return None
        self.set_mode(mode)
        return mode

    # -- receiving -----------------------------------------------------------

    async def _pump_events(self, events: asyncio.Queue[TransportEvent]) -> None:
        while True:
            event = await events.get()
            if isinstance(event, DataReceived):
                self.feed(event.data)
            elif isinstance(event, ChannelClosed):
                logger.info("RFCOMM channel closed: %s", event.reason or "no reason given")
                self._pump_task = None
                self.disconnect()
                return

    def feed(self, chunk: bytes) -> None:
        """Process raw bytes read from the channel."""
        for message in self._reassembler.messages(chunk):
            self.handle_message(message)

    def handle_message(self, message: Message) -> None:
        if message.data_type == DataType.ACK:
            logger.debug(">>> ACK received, seq=%d", message.seq)
            self._last_ack_seq = message.seq
            return

        self._send_ack(message.seq)

        if message.data_type not in _COMMAND_DATA_TYPES:
            return
        cmd = split_command(message.payload)
        if cmd is None:
            return

        if cmd.command in (Command.ASC_RET, Command.ASC_NOTIFY):
            self._handle_asc(cmd.data)
        elif cmd.function in BATTERY_REPORT_FUNCTIONS:
            self._handle_battery(cmd.inquired_type, cmd.data)
        elif cmd.command is Command.DSEE_RET:
            self._handle_dsee(cmd.data)
        elif cmd.command is Command.CONNECT_NOTIFY:
            logger.info("Received connect notification, requesting status...")
            self.request_status()
        elif cmd.command is Command.READY_NOTIFY:
            logger.info("Received ready notification, headphones initialized")
            self.request_status()
        elif cmd.command is Command.CAPABILITY_NOTIFY:
            logger.info("Received capability notification: %s", cmd.data.hex(" "))
        else:
            self._log_unhandled(cmd)

    def _log_unhandled(self, cmd: CommandPayload) -> None:
        logger.info(
            "Unhandled MDR command: %s, data: %s", cmd.code.hex(), cmd.data[:10].hex(" ")
        )

    def _handle_asc(self, data: bytes) -> None:
        mode = parse_asc(data)
        if mode is None:
            return

        if self._stale_filter.is_cooling_down():
            logger.info("ASC response (ignored, cooldown): %s", mode.display_name)
            return

        logger.info("ASC response: %s", mode.display_name)
        self.headphone.mode = mode

    def _handle_battery(self, battery_type: int, data: bytes) -> None:
        reading = parse_battery(battery_type, data)
        if reading is None:
            return
        if self.headphone.apply_battery(reading):
            logger.info("Battery: %s, charging: %s", reading.level, reading.charging)

    def _handle_dsee(self, data: bytes) -> None:
        enabled = parse_dsee(data)
        if enabled is None:
            return
        self.headphone.dsee_enabled = enabled
        logger.info("DSEE: %s", enabled)
