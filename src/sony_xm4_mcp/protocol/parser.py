"""Payload parsing for device messages."""

from __future__ import annotations

from dataclasses import dataclass

from ..models.state import AncMode, BatteryReading
from .commands import BATTERY_TYPE_DUAL, BATTERY_TYPE_SINGLE, Command, lookup_command


@dataclass
class CommandPayload:
    """A message payload split into its command code and trailing data."""

    code: bytes
    command: Command | None
    data: bytes

    @property
    def function(self) -> int:
        return self.code[0]

    @property
    def inquired_type(self) -> int:
        return self.code[1]

    def __repr__(self) -> str:
        name = self.command.name if self.command is not None else self.code.hex()
        return f"CommandPayload({name}, data={self.data.hex(' ') or '(empty)'})"


def split_command(payload: bytes) -> CommandPayload | None:
    """Split a payload into its two code bytes and the remaining data."""
    if len(payload) < 2:
        return None
    return CommandPayload(
        code=bytes(payload[:2]),
        command=lookup_command(payload),
        data=bytes(payload[2:]),
    )


def parse_asc(data: bytes) -> AncMode | None:
    """Parse an ambient sound control status.

    ``data`` follows the command code:
    ``[effect, setting type, dual/single value, ASM setting type, ASM id, ASM level]``.
    The setting type, ASM id and level do not affect the mode.
    """
    if len(data) < 6:
        return None

    effect = data[0]
    dual_single = data[2]
    asm_setting_type = data[3]

    if effect == 0x00:
        return AncMode.OFF

    if dual_single == 0x02:
        return AncMode.NOISE_CANCELLING
    if dual_single == 0x01:
        return AncMode.WIND
    if dual_single == 0x00:
        # NC is off; ambient is active when its level is adjustable
        if asm_setting_type == 0x01:
            return AncMode.AMBIENT
        return AncMode.OFF
    return AncMode.UNKNOWN


def parse_battery(battery_type: int, data: bytes) -> BatteryReading | None:
    """Parse a battery level response or notification.

    Args:
        battery_type: Inquired-type byte of the command code
            (0x00 single battery, 0x01 left/right).
        data: Bytes after the command code. Left/right form is
            ``[left, left charging, right, right charging]``; single form
            is ``[level, charging]``.
    """
    if battery_type == BATTERY_TYPE_DUAL and len(data) >= 4:
        return _dual_reading(data)
    if battery_type == BATTERY_TYPE_SINGLE and len(data) >= 2:
        level = data[0]
        return BatteryReading(left=level, right=level, charging=data[1] == 0x01)
    # Unrecognised type: treat a long enough payload as left/right
    if len(data) >= 4:
        return _dual_reading(data)
    return None


def _dual_reading(data: bytes) -> BatteryReading:
    return BatteryReading(
        left=data[0],
        right=data[2],
        charging=data[1] == 0x01 or data[3] == 0x01,
    )


def parse_dsee(data: bytes) -> bool | None:
    """Parse a DSEE status response; the flag is at offset 1."""
    if len(data) < 2:
        return None
    return data[1] != 0
