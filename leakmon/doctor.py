from __future__ import annotations

import time
from typing import Optional

from .aggregate import aggregate
from .alert import next_alert_state
from .config import MonitorConfig, validate_config
from .constants import LEAK_DETECTED, LEAK_NOT_DETECTED, NO_FAULT, CHANNEL_INDICES
from .errors import FetchError
from .fetch import TelemetryFetcher
from .parser import parse_payload, latest_by_channel, tokenize
from .state import ChannelState


class _PrintLogger:
    """Routes parser skip events to the doctor's console output."""
    def emit(self, event: str, **fields):
        detail = " ".join(f"{k}={v}" for k, v in fields.items())
        print(f"  WARN: {event} {detail}".rstrip())

    def debug(self, event: str, **fields):
        pass


def run_doctor(cfg: MonitorConfig, fetcher: Optional[TelemetryFetcher] = None) -> int:
    """Fetch the telemetry page once and report what the monitor would make of it.

    Read-only: no state is kept and no notifications are sent. Returns 0 when
    the device answered and both channels parsed cleanly, 1 otherwise."""
    print("Doctor Mode (safe):")
    print("  - Fetches the sensor board once; no alerts or notifications are sent.")
    print()

    for w in validate_config(cfg):
        print(f"  WARN: {w}")

    fetcher = fetcher or TelemetryFetcher(cfg.ip_address, cfg.port, cfg.path)
    print(f"  URL: {fetcher.url}")
    t0 = time.monotonic()
    try:
        payload = fetcher.fetch()
    except FetchError as e:
        print(f"  FAIL: could not read telemetry ({e.kind}): {e}")
        return 1
    print(f"  OK: response received in {time.monotonic() - t0:.2f}s ({len(payload)} chars)")

    records = parse_payload(payload, logger=_PrintLogger())
    print(f"  Tokens: {len(tokenize(payload))}  Records: {len(records)}")
    latest = latest_by_channel(records)

    ok = True
    humidities = []
    locations = {1: cfg.sensor1_location, 2: cfg.sensor2_location}
    for index in CHANNEL_INDICES:
        rec = latest.get(index)
        if rec is None:
            print(f"  WARN: sensor {index} ({locations[index]}): no record in payload")
            ok = False
            continue
        ch = aggregate(ChannelState(index, locations[index]), rec)
        if ch.health != NO_FAULT:
            print(f"  WARN: sensor {index} ({locations[index]}): fault (status={rec.status!r})")
            ok = False
            continue
        humidities.append(ch.humidity)
        print(f"  OK: sensor {index} ({locations[index]}): {ch.temperature:.2f} C  {ch.humidity:.2f}% RH")

    if humidities:
        state = next_alert_state(LEAK_NOT_DETECTED, humidities, cfg.alert_threshold)
        verdict = "LEAK" if state == LEAK_DETECTED else "no leak"
        print(f"  Threshold {cfg.alert_threshold:g}% RH: {verdict}")

    print("Doctor complete.")
    return 0 if ok else 1
