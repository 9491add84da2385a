"""Merge independently captured event chunks into one replay timeline.

Each chunk is internally time-ordered, but absolute timestamps are not
comparable across chunks: one recording may start near zero, another may use
wall-clock time. Every chunk is therefore rebased onto a running offset, in
the order the caller lists the chunks, with a fixed gap between chunks so two
captures never interleave.
"""
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Iterable, List, Optional, Sequence

from rrweb_uploader.constants import DEFAULT_INTER_CHUNK_GAP_MS
from rrweb_uploader.utils.clock import now_ms
from rrweb_uploader.utils.exceptions import InvalidArtifact


def _as_millis(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    # NaN and Infinity parse from JSON but are not usable times
    if not math.isfinite(value):
        return None
    return int(value)


def read_timestamp(record: Dict[str, Any]) -> Optional[int]:
    """
    Locate the timestamp of an event record.

    Checks the top-level ``timestamp`` first, then ``data.timestamp``.

    Returns:
        Timestamp in milliseconds, or None if the record carries none
    """
    if not isinstance(record, dict):
        return None
    timestamp = _as_millis(record.get("timestamp"))
    if timestamp is not None:
        return timestamp
    data = record.get("data")
    if isinstance(data, dict):
        return _as_millis(data.get("timestamp"))
    return None


@dataclass(frozen=True)
class EventEnvelope:
    """A record reduced to what merging needs: its time and the raw payload."""
    timestamp: int
    raw: Any

    @classmethod
    def wrap(cls, record: Any, fallback: int) -> "EventEnvelope":
        timestamp = read_timestamp(record)
        return cls(timestamp=fallback if timestamp is None else timestamp, raw=record)

    def rewrite(self, timestamp: int) -> Any:
        """
        Copy of the raw record carrying the rebased timestamp.

        The top-level ``timestamp`` is always written, so records that only
        had ``data.timestamp`` or no timestamp at all come out normalized
        with one (replay players read the top-level field). A mirrored
        ``data.timestamp`` is rewritten only where it already existed.
        """
        if not isinstance(self.raw, dict):
            return self.raw
        record = dict(self.raw)
        record["timestamp"] = timestamp
        data = record.get("data")
        if isinstance(data, dict) and "timestamp" in data:
            record["data"] = {**data, "timestamp": timestamp}
        return record


@dataclass
class MergeResult:
    events: List[Any]

    @property
    def count(self) -> int:
        return len(self.events)


def merge_chunks(
    chunks: Iterable[Sequence[Any]],
    gap_ms: int = DEFAULT_INTER_CHUNK_GAP_MS,
    now: Optional[int] = None,
) -> MergeResult:
    """
    Merge event chunks into one non-decreasing timeline.

    Args:
        chunks: Event chunks in caller-declared order
        gap_ms: Gap inserted between the end of one chunk and the next
        now: Fallback base time for a chunk whose first record has no timestamp

    Returns:
        MergeResult with the rewritten events
    """
    merged: List[tuple] = []
    running_offset = 0

    for chunk in chunks:
        if not chunk:
            continue

        base = read_timestamp(chunk[0])
        if base is None:
            base = now_ms() if now is None else now

        envelopes = [EventEnvelope.wrap(record, base) for record in chunk]
        for envelope in envelopes:
            delta = envelope.timestamp - base
            new_timestamp = running_offset + delta
            merged.append((new_timestamp, envelope.rewrite(new_timestamp)))

        running_offset += (envelopes[-1].timestamp - base) + gap_ms

    # Stable: records sharing a timestamp keep their merge order
    merged.sort(key=lambda item: item[0])
    return MergeResult(events=[record for _, record in merged])


def extract_events(payload: Any) -> List[Any]:
    """
    Turn a fetched artifact into an event chunk.

    Accepts a published artifact (an object with an ``events`` list) or a
    bare list of events.

    Raises:
        InvalidArtifact: If no event list can be found
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("events"), list):
        return payload["events"]
    raise InvalidArtifact()
