"""Data models for the headphone state."""

from .state import AncMode, BatteryReading, HeadphoneState
