"""Command code constants and payload builders.

Each command is identified by a two-byte code at the start of a
``DATA_MDR`` payload: a function byte followed by an inquired-type byte.
The enum value is that code read as a big-endian 16-bit integer.
"""

from __future__ import annotations

from enum import IntEnum

from ..models.state import AncMode


class Command(IntEnum):
    """Two-byte command codes."""

    # Ambient sound control (NC/ASM)
    ASC_GET = 0x6602
    ASC_RET = 0x6702
    ASC_SET = 0x6802
    ASC_NOTIFY = 0x6902

    # Battery, left/right form
    BATTERY_GET = 0x1001
    BATTERY_RET = 0x1101
    BATTERY_NOTIFY = 0x1301

    # Battery, single form
    BATTERY_GET_SINGLE = 0x1000
    BATTERY_RET_SINGLE = 0x1100

    # DSEE upscaling feature toggle
    DSEE_GET = 0x660A
    DSEE_RET = 0x670A
    DSEE_SET = 0x680A

    # Unsolicited notifications
    CONNECT_NOTIFY = 0xA501
    READY_NOTIFY = 0x8501
    CAPABILITY_NOTIFY = 0xA901

    @property
    def code(self) -> bytes:
        """The two bytes sent on the wire."""
        return self.value.to_bytes(2, "big")


# Function bytes of battery level responses and notifications
BATTERY_REPORT_FUNCTIONS = (0x11, 0x13)

BATTERY_TYPE_SINGLE = 0x00
BATTERY_TYPE_DUAL = 0x01

ASC_LEVEL_MAX = 19
ASC_LEVEL_DISABLED = 0xFF

# effect, setting type, dual/single value, ASM setting type, ASM id, ASM level
ASC_SETTINGS: dict[AncMode, tuple[int, int, int, int, int, int]] = {
    AncMode.NOISE_CANCELLING: (0x01, 0x02, 0x02, 0x00, 0x00, 0x00),
    AncMode.AMBIENT: (0x01, 0x01, 0x00, 0x01, 0x00, ASC_LEVEL_MAX),
    AncMode.WIND: (0x01, 0x02, 0x01, 0x00, 0x00, 0x00),
    AncMode.OFF: (0x00, 0x00, 0x00, 0x00, 0x00, 0x00),
    AncMode.UNKNOWN: (0x00, 0x00, 0x00, 0x00, 0x00, 0x00),
}

# Mapping from user-facing mode names to modes
MODE_NAMES: dict[str, AncMode] = {
    "nc": AncMode.NOISE_CANCELLING,
    "noise_cancelling": AncMode.NOISE_CANCELLING,
    "noiseCancelling": AncMode.NOISE_CANCELLING,
    "ambient": AncMode.AMBIENT,
    "wind": AncMode.WIND,
    "off": AncMode.OFF,
}


def lookup_command(payload: bytes) -> Command | None:
    """Return the command whose code prefixes ``payload``, if known."""
    if len(payload) < 2:
        return None
    value = int.from_bytes(payload[:2], "big")
    try:
        return Command(value)
    except ValueError:
        return None


def mode_from_name(name: str) -> AncMode:
    """Resolve a user-facing mode name.

    Raises:
        ValueError: If the name is not a known mode.
    """
    mode = MODE_NAMES.get(name.strip())
    if mode is None:
        mode = MODE_NAMES.get(name.strip().lower())
    if mode is None:
        raise ValueError(f"Unknown mode '{name}'. Valid: {list(MODE_NAMES)}")
    return mode


def build_command(command: Command, data: bytes = b"") -> bytes:
    """Build a command payload: the two code bytes followed by ``data``."""
    return command.code + data


def build_asc_get() -> bytes:
    """Build an ambient sound control status query."""
    return build_command(Command.ASC_GET)


def build_asc_set(mode: AncMode) -> bytes:
    """Build the 8-byte ambient sound control payload for ``mode``.

    Layout: ``[0x68, 0x02, effect, setting type, dual/single value,
    ASM setting type, ASM id, ASM level]``.
    """
    return build_command(Command.ASC_SET, bytes(ASC_SETTINGS[mode]))


def build_battery_get(dual: bool = False) -> bytes:
    """Build a battery level query.

    Args:
        dual: Query left/right levels instead of the single battery.
    """
    if dual:
        return build_command(Command.BATTERY_GET)
    return build_command(Command.BATTERY_GET_SINGLE)


def build_dsee_get() -> bytes:
    """Build a DSEE status query."""
    return build_command(Command.DSEE_GET)


def build_dsee_set(enabled: bool) -> bytes:
    """Build a command enabling or disabling DSEE.

    The value sits at offset 1 after the code bytes, where the
    status response carries it.
    """
    return build_command(Command.DSEE_SET, bytes([0x01, 1 if enabled else 0]))
