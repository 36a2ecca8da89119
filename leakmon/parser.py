"""Telemetry record scanner.

The sensor board reports one record per line:

    SHT,1,Soil Stack,Detected,22.2,22.2,22.3,51.7%,51.7%,51.6%

Samples are most-recent first. Line boundaries carry no meaning: the payload is
flattened into one comma-delimited token stream and scanned with a cursor. A
record starts at the "SHT" marker; anything that does not fit the record shape
is skipped and the scan resumes at the next marker.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .constants import DEVICE_TYPE, STATUS_DETECTED, CHANNEL_INDICES, SAMPLES_PER_READING

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
_INDEX_TOKENS = {str(i): i for i in CHANNEL_INDICES}


@dataclass(frozen=True)
class RawRecord:
    """One sensor record as reported by the device.

    temperatures/humidities are empty unless status is "Detected". Values that
    failed numeric coercion are NaN."""
    device_type: str
    index: int
    location: str
    status: str
    temperatures: Tuple[float, ...] = ()
    humidities: Tuple[float, ...] = ()

    @property
    def detected(self) -> bool:
        return self.status == STATUS_DETECTED


def tokenize(payload: Optional[str]) -> List[str]:
    """Trim the payload, turn line breaks into field delimiters and split."""
    text = (payload or "").strip()
    if not text:
        return []
    text = _LINE_BREAK_RE.sub(",", text)
    return [tok.strip() for tok in text.split(",")]


def to_float(token: str) -> float:
    try:
        return float(token)
    except (TypeError, ValueError):
        return math.nan


def strip_percent(token: str) -> str:
    return token[:-1] if token.endswith("%") else token


class _Cursor:
    def __init__(self, tokens: List[str]):
        self.tokens = tokens
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek(self) -> Optional[str]:
        if self.at_end():
            return None
        return self.tokens[self.pos]

    def take(self) -> str:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def take_fields(self, n: int) -> Optional[List[str]]:
        """Take the next n record fields.

        Stops short at the end of the stream or at a record marker and returns
        None; the cursor is then left on that marker so the scan can resume there.
        """
        out = []
        while len(out) < n:
            tok = self.peek()
            if tok is None or tok == DEVICE_TYPE:
                return None
            out.append(self.take())
        return out


def parse_payload(payload: Optional[str], logger=None) -> List[RawRecord]:
    """Scan a raw telemetry payload into RawRecords, in payload order.

    Never raises on content. Malformed records are skipped (and reported as
    'record_skipped' events when a logger is given)."""
    cur = _Cursor(tokenize(payload))
    records: List[RawRecord] = []

    while not cur.at_end():
        start = cur.pos
        if cur.take() != DEVICE_TYPE:
            continue

        index_tok = cur.peek()
        index = _INDEX_TOKENS.get(index_tok) if index_tok is not None else None
        if index is None:
            _skipped(logger, start, "bad_index", token=index_tok)
            continue
        cur.take()

        head = cur.take_fields(2)
        if head is None:
            _skipped(logger, start, "truncated", index=index)
            continue
        location, status = head

        if status != STATUS_DETECTED:
            if logger is not None:
                logger.debug("record_parsed", index=index, status=status)
            records.append(RawRecord(DEVICE_TYPE, index, location, status))
            continue

        samples = cur.take_fields(2 * SAMPLES_PER_READING)
        if samples is None:
            _skipped(logger, start, "truncated", index=index)
            continue

        temps = tuple(to_float(t) for t in samples[:SAMPLES_PER_READING])
        humids = tuple(to_float(strip_percent(h)) for h in samples[SAMPLES_PER_READING:])
        if logger is not None:
            logger.debug("record_parsed", index=index, status=status, temperatures=list(temps), humidities=list(humids))
        records.append(RawRecord(DEVICE_TYPE, index, location, status, temps, humids))

    return records


def latest_by_channel(records: Iterable[RawRecord]) -> Dict[int, RawRecord]:
    """Map channel index -> record. Later records for the same channel win."""
    out: Dict[int, RawRecord] = {}
    for rec in records:
        out[rec.index] = rec
    return out


def _skipped(logger, pos: int, reason: str, **fields):
    if logger is None:
        return
    logger.emit("record_skipped", reason=reason, token_pos=pos, **fields)
