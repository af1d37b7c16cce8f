"""Cooldown window for device mode notifications.

After a mode change is sent, the headphones keep reporting the previous
mode for a short while. Notifications arriving inside the window would
overwrite the optimistic local mode with a stale value, so they are
dropped until the window has passed.
"""

from __future__ import annotations

import time
from typing import Callable

DEFAULT_COOLDOWN_S = 3.0


class StaleNotificationFilter:
    """Tracks the last locally issued mode command."""

    def __init__(
        self,
        cooldown_s: float = DEFAULT_COOLDOWN_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_s = cooldown_s
        self._clock = clock
        self._last_command: float | None = None

    def mark_command(self) -> None:
        self._last_command = self._clock()

    def clear(self) -> None:
        self._last_command = None

    def elapsed(self) -> float:
        """Seconds since the last command, infinite when there was none."""
        if self._last_command is None:
            return float("inf")
        return self._clock() - self._last_command

    def is_cooling_down(self) -> bool:
        return self.elapsed() < self.cooldown_s
