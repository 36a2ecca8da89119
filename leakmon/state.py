from __future__ import annotations

import copy
from dataclasses import dataclass, field, asdict

from .constants import LEAK_NOT_DETECTED, NO_FAULT, DEFAULT_SENSOR1_LOCATION, DEFAULT_SENSOR2_LOCATION


@dataclass
class ChannelState:
    """Published readings for one sensor channel.

    temperature/humidity are the mean of the last three samples reported by the
    device. They are only replaced by a good reading; a faulted or missing
    channel keeps its last-known values."""
    index: int
    location: str = ""
    health: int = NO_FAULT
    temperature: float = 0.0
    humidity: float = 0.0


@dataclass
class MonitorState:
    """Holds the shared runtime state of the leak monitor.

    Owned by LeakMonitor and written once at the end of each completed poll
    cycle. Readers receive copies via LeakMonitor.snapshot()."""
    alert_state: int = LEAK_NOT_DETECTED
    device_fault: int = NO_FAULT
    sensor1: ChannelState = field(default_factory=lambda: ChannelState(1, DEFAULT_SENSOR1_LOCATION))
    sensor2: ChannelState = field(default_factory=lambda: ChannelState(2, DEFAULT_SENSOR2_LOCATION))

    polls_total: int = 0
    polls_failed: int = 0
    last_poll_ts: float = 0.0
    last_ok_ts: float = 0.0
    last_error: str = ""

    def channel(self, index: int) -> ChannelState:
        if index == 1:
            return self.sensor1
        if index == 2:
            return self.sensor2
        raise KeyError(f"no such channel: {index}")

    def channels(self):
        return (self.sensor1, self.sensor2)

    def copy(self) -> "MonitorState":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return asdict(self)
