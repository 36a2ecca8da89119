from __future__ import annotations

import json
import sys
from typing import Optional, TextIO

from .util import iso_ms, wall_s


class JsonLogger:
    """Minimal structured logger.

    Emits single-line events for poll results, alert transitions and faults so
    logs are easy to grep and machine-parse. debug() events (raw payloads,
    per-record parsing) are only written when verbose is enabled."""
    def __init__(self, enable_json: bool, verbose: bool = False, stream: Optional[TextIO] = None):
        """Create a logger.

        Args:
            enable_json: Write one JSON object per event instead of a text line.
            verbose: Also write debug() events.
            stream: A file-like object used for event output (defaults to stdout).
        """
        self.enable_json = enable_json
        self.verbose = bool(verbose)
        self._stream = stream

    def emit(self, event: str, **fields):
        """Emit an event with a name and optional key/value fields."""
        t = wall_s()
        ts_iso = iso_ms(t)
        out = self._stream or sys.stdout
        if self.enable_json:
            payload = {"ts": t, "ts_iso": ts_iso, "event": event, **fields}
            print(json.dumps(payload, sort_keys=True, default=str), file=out, flush=True)
        else:
            msg = f"[{ts_iso}] {event}"
            if fields:
                msg += " " + " ".join(f"{k}={v}" for k, v in fields.items())
            print(msg, file=out, flush=True)

    def debug(self, event: str, **fields):
        """Emit an event only in verbose mode."""
        if self.verbose:
            self.emit(event, **fields)
