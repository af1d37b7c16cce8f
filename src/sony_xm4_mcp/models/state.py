"""Headphone state model: ANC mode, battery readings, feature flags."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AncMode(Enum):
    """Ambient sound control mode reported by or requested from the device."""

    NOISE_CANCELLING = "noise_cancelling"
    AMBIENT = "ambient"
    WIND = "wind"
    OFF = "off"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def cycle_id(self) -> str:
        """Identifier used by mode cycling; wind reduction cycles as off."""
        return _CYCLE_IDS[self]


_DISPLAY_NAMES = {
    AncMode.NOISE_CANCELLING: "Noise Cancelling",
    AncMode.AMBIENT: "Ambient",
    AncMode.WIND: "Wind Reduction",
    AncMode.OFF: "Off",
    AncMode.UNKNOWN: "Unknown",
}

_CYCLE_IDS = {
    AncMode.NOISE_CANCELLING: "noiseCancelling",
    AncMode.AMBIENT: "ambient",
    AncMode.WIND: "off",
    AncMode.OFF: "off",
    AncMode.UNKNOWN: "",
}


@dataclass(frozen=True)
class BatteryReading:
    """A single battery report. Levels are percentages (0-100)."""

    left: int | None = None
    right: int | None = None
    charging: bool = False

    @property
    def level(self) -> int | None:
        """The level worth displaying: the lower side when both are known."""
        if self.left is not None and self.right is not None:
            return min(self.left, self.right)
        if self.left is not None:
            return self.left
        return self.right


@dataclass
class HeadphoneState:
    """Current view of the headphones, owned and mutated by the session."""

    mode: AncMode = AncMode.UNKNOWN
    left_battery: int | None = None
    right_battery: int | None = None
    charging: bool = False
    dsee_enabled: bool = False

    @property
    def battery(self) -> BatteryReading:
        return BatteryReading(
            left=self.left_battery,
            right=self.right_battery,
            charging=self.charging,
        )

    @property
    def battery_level(self) -> int | None:
        return self.battery.level

    @property
    def battery_display(self) -> str:
        level = self.battery_level
        if level is None:
            return "—"
        suffix = " (charging)" if self.charging else ""
        return f"{level}%{suffix}"

    def apply_battery(self, reading: BatteryReading) -> bool:
        """Store a battery reading.

        Returns:
            True if the displayed level or charging flag changed.
        """
        old_level = self.battery_level
        old_charging = self.charging

        self.left_battery = reading.left
        self.right_battery = reading.right
        self.charging = reading.charging

        return self.battery_level != old_level or self.charging != old_charging

    def reset(self) -> None:
        self.mode = AncMode.UNKNOWN
        self.left_battery = None
        self.right_battery = None
        self.charging = False
        self.dsee_enabled = False

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "mode_name": self.mode.display_name,
            "battery_left": self.left_battery,
            "battery_right": self.right_battery,
            "battery_level": self.battery_level,
            "battery": self.battery_display,
            "charging": self.charging,
            "dsee_enabled": self.dsee_enabled,
        }
