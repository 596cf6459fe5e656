"""Activation provenance tracking for one generation session.

Records which entries were force-activated or vector-activated through
events, which scan depth each keyword entry was analysed with, and
parent -> child links found by cross-entry detection.

Everything is bounded: records older than MAX_AGE seconds are evicted on
cleanup(), and any map, set or list that grows beyond MAX_TRACKED is
trimmed to its TRIM_TO most recent records. Size bounds are enforced on
every mark_* call, TTL eviction on cleanup() (and therefore on reset()).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

MAX_AGE = 5 * 60.0   # seconds
MAX_TRACKED = 200
TRIM_TO = 100


@dataclass
class ActivationRecord:
    entry_id: str
    kind: str
    evidence: dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0


def _trim_map(records: dict[str, Any]) -> None:
    if len(records) > MAX_TRACKED:
        keep = list(records.items())[-TRIM_TO:]
        records.clear()
        records.update(keep)


class ActivationTracker:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.cycle_id: str | None = None
        # id -> timestamp; dicts keep insertion order, used as ordered sets
        self._force_activated: dict[str, float] = {}
        self._vector_activated: dict[str, float] = {}
        self._programmatic: dict[str, ActivationRecord] = {}
        self._scan_depth: dict[str, ActivationRecord] = {}
        self._recursion: list[ActivationRecord] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self, cycle_id: str | None = None) -> None:
        """Clear all state for a new generation cycle."""
        self.cycle_id = cycle_id
        self._force_activated.clear()
        self._vector_activated.clear()
        self._programmatic.clear()
        self._scan_depth.clear()
        self._recursion.clear()
        self.cleanup()

    def cleanup(self) -> None:
        """Evict records older than MAX_AGE and trim oversized collections."""
        now = self._clock()

        def fresh(ts: float) -> bool:
            return now - ts <= MAX_AGE

        for ids in (self._force_activated, self._vector_activated):
            stale = [uid for uid, ts in ids.items() if not fresh(ts)]
            for uid in stale:
                del ids[uid]
            _trim_map(ids)

        for records in (self._programmatic, self._scan_depth):
            stale = [uid for uid, rec in records.items() if not fresh(rec.timestamp)]
            for uid in stale:
                del records[uid]
            _trim_map(records)

        self._recursion = [r for r in self._recursion if fresh(r.timestamp)][-TRIM_TO:]

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def _touch(self, ids: dict[str, float], entry_id: str, now: float) -> None:
        ids.pop(entry_id, None)
        ids[entry_id] = now
        _trim_map(ids)

    def _store(self, records: dict[str, ActivationRecord], record: ActivationRecord) -> None:
        records.pop(record.entry_id, None)
        records[record.entry_id] = record
        _trim_map(records)

    def mark_force_activated(self, entry_id: str, source: str) -> None:
        now = self._clock()
        self._touch(self._force_activated, entry_id, now)
        self._store(self._programmatic, ActivationRecord(
            entry_id=entry_id, kind="force", evidence={"source": source}, timestamp=now,
        ))
        logger.debug("force activation tracked: %s (%s)", entry_id, source)

    def mark_vector_activated(self, entry_id: str, kind: str) -> None:
        now = self._clock()
        self._touch(self._vector_activated, entry_id, now)
        self._store(self._programmatic, ActivationRecord(
            entry_id=entry_id, kind="vector", evidence={"vector_type": kind}, timestamp=now,
        ))

    def mark_scan_depth_activated(self, entry_id: str, depth: int, reason: str) -> None:
        self._store(self._scan_depth, ActivationRecord(
            entry_id=entry_id, kind="scan_depth",
            evidence={"depth": depth, "reason": reason}, timestamp=self._clock(),
        ))

    def mark_recursion(self, parent_id: str, child_id: str) -> None:
        now = self._clock()
        for link in reversed(self._recursion):
            if link.entry_id == child_id and link.evidence.get("parent") == parent_id:
                link.timestamp = now
                return
        self._recursion.append(ActivationRecord(
            entry_id=child_id, kind="recursion", evidence={"parent": parent_id}, timestamp=now,
        ))
        if len(self._recursion) > MAX_TRACKED:
            self._recursion = self._recursion[-TRIM_TO:]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def is_force_activated(self, entry_id: str) -> bool:
        return entry_id in self._force_activated

    def is_vector_activated(self, entry_id: str) -> bool:
        return entry_id in self._vector_activated

    def programmatic_evidence(self, entry_id: str) -> dict[str, Any] | None:
        record = self._programmatic.get(entry_id)
        if record is None:
            return None
        return {"type": record.kind, **record.evidence}

    def scan_depth_evidence(self, entry_id: str) -> dict[str, Any] | None:
        record = self._scan_depth.get(entry_id)
        return dict(record.evidence) if record else None

    def get_recursion_parent(self, entry_id: str) -> str | None:
        for link in self._recursion:
            if link.entry_id == entry_id:
                return link.evidence["parent"]
        return None

    def sizes(self) -> dict[str, int]:
        return {
            "force_activated": len(self._force_activated),
            "vector_activated": len(self._vector_activated),
            "programmatic": len(self._programmatic),
            "scan_depth": len(self._scan_depth),
            "recursion": len(self._recursion),
        }
