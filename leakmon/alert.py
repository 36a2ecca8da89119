from __future__ import annotations

from typing import Iterable

from .constants import LEAK_DETECTED, LEAK_NOT_DETECTED


def next_alert_state(current: int, humidities: Iterable[float], threshold: float) -> int:
    """Apply the leak hysteresis rule once.

    Raise when any channel is strictly above the threshold; clear only when every
    channel is strictly below it. A reading exactly at the threshold never causes
    a transition, so a sensor hovering around the limit does not flap the alert.
    """
    values = list(humidities)
    if current == LEAK_NOT_DETECTED:
        if any(h > threshold for h in values):
            return LEAK_DETECTED
        return LEAK_NOT_DETECTED
    if values and all(h < threshold for h in values):
        return LEAK_NOT_DETECTED
    return LEAK_DETECTED


class LeakAlert:
    """Debounced leak flag carried across poll cycles."""
    def __init__(self, threshold: float, state: int = LEAK_NOT_DETECTED):
        self.threshold = float(threshold)
        self.state = state

    @property
    def detected(self) -> bool:
        return self.state == LEAK_DETECTED

    def update(self, humidities: Iterable[float]) -> bool:
        """Evaluate one cycle's humidities. Returns True if the state changed."""
        new = next_alert_state(self.state, humidities, self.threshold)
        changed = new != self.state
        self.state = new
        return changed
