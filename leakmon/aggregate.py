from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional, Sequence

from .constants import NO_FAULT, GENERAL_FAULT
from .parser import RawRecord
from .state import ChannelState


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; NaN for an empty sequence or one whose sum overflows."""
    if not values:
        return math.nan
    try:
        return math.fsum(values) / len(values)
    except OverflowError:
        return math.nan


def aggregate(channel: ChannelState, record: Optional[RawRecord]) -> ChannelState:
    """Fold one parsed record into a channel's published readings.

    Returns a new ChannelState; the input is never modified.

    - no record: the channel is returned unchanged (health included)
    - status other than "Detected": health=fault, readings kept
    - "Detected" with a non-numeric sample: same as above
    - "Detected" with good samples: health=normal, readings = mean of samples
    """
    if record is None:
        return replace(channel)

    if not record.detected:
        return replace(channel, health=GENERAL_FAULT)

    temperature = mean(record.temperatures)
    humidity = mean(record.humidities)
    if not (math.isfinite(temperature) and math.isfinite(humidity)):
        return replace(channel, health=GENERAL_FAULT)

    return replace(channel, health=NO_FAULT, temperature=temperature, humidity=humidity)
