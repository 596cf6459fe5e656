"""Attribution engine session: runs one generation cycle end-to-end.

Cycle flow:
  1. on_generation_start()        reset the tracker, remember generation type.
  2. on_entries_force_activated() record programmatic activations (optional).
  3. on_entries_activated()       for each entry (capped at MAX_ENTRIES):
       validate -> resolve scan depth -> slice recent messages ->
       run the detector chain -> classify -> AttributionReport.

The engine holds no listeners and no globals; the caller invokes the
methods in order. A single bad entry never aborts the batch: any failure
while analysing it degrades that entry to an "unknown" report.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from pydantic import ValidationError

from lorelens import categories, reports, scan_depth
from lorelens.detectors import DetectionContext, DetectorChain
from lorelens.models import (
    AttributionReport,
    BatchResult,
    ConversationMessage,
    EngineSettings,
    LoreEntry,
)
from lorelens.tracker import ActivationTracker

logger = logging.getLogger(__name__)

MAX_ENTRIES = 100


def normalize_entry(raw: Any) -> LoreEntry:
    """Validate a raw entry. Raises ValidationError/TypeError on malformed input."""
    if isinstance(raw, LoreEntry):
        return raw
    if not isinstance(raw, dict):
        raise TypeError(f"entry must be an object, got {type(raw).__name__}")
    return LoreEntry.model_validate(raw)


def normalize_messages(messages: Iterable[Any] | None) -> list[ConversationMessage]:
    """Validate chat history, filling missing indexes from position. Bad items are skipped."""
    history: list[ConversationMessage] = []
    for position, raw in enumerate(messages or []):
        try:
            if isinstance(raw, ConversationMessage):
                msg = raw
            elif isinstance(raw, dict):
                msg = ConversationMessage.model_validate(raw)
            else:
                raise TypeError(f"message must be an object, got {type(raw).__name__}")
        except (ValidationError, TypeError) as e:
            logger.warning("Skipping malformed message at %d: %s", position, e)
            continue
        if msg.index is None:
            msg = msg.model_copy(update={"index": position})
        history.append(msg)
    return history


def _raw_id(raw: Any, position: int) -> str:
    if isinstance(raw, LoreEntry) and raw.id:
        return raw.id
    if isinstance(raw, dict):
        uid = raw.get("uid", raw.get("id"))
        if uid is not None and uid != "":
            return str(uid)
    return f"#{position}"


def _raw_title(raw: Any, fallback: str) -> str:
    if isinstance(raw, dict):
        comment = raw.get("comment")
        if isinstance(comment, str) and comment:
            return comment
    return fallback


class AttributionEngine:
    def __init__(
        self,
        settings: EngineSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        chain: DetectorChain | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.tracker = ActivationTracker(clock=clock)
        self.chain = chain or DetectorChain()
        self.cycle_id: str | None = None
        self.generation_type: str | None = None
        self.current_entries: list[LoreEntry] = []

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_generation_start(self, generation_type: str | None, cycle_id: str | None = None) -> str:
        """Begin a new cycle. Returns the cycle id."""
        self.cycle_id = cycle_id or uuid.uuid4().hex
        self.generation_type = generation_type
        self.current_entries = []
        self.tracker.reset(self.cycle_id)
        logger.debug("generation started: type=%s cycle=%s", generation_type, self.cycle_id)
        return self.cycle_id

    def on_entries_force_activated(self, entries: Iterable[Any]) -> int:
        """Record force-activated entries. Returns how many were tracked."""
        return self._mark(entries, lambda uid: self.tracker.mark_force_activated(
            uid, "force activation event"))

    def on_entries_vector_activated(self, entries: Iterable[Any], kind: str = "vector") -> int:
        return self._mark(entries, lambda uid: self.tracker.mark_vector_activated(uid, kind))

    def _mark(self, entries: Iterable[Any], mark: Callable[[str], None]) -> int:
        tracked = 0
        for position, raw in enumerate(entries or []):
            uid = _raw_id(raw, position)
            if uid.startswith("#"):
                logger.debug("ignoring activation event entry without id at %d", position)
                continue
            mark(uid)
            tracked += 1
        return tracked

    def on_entries_activated(
        self,
        entries: Iterable[Any] | None,
        messages: Iterable[Any] | None = None,
        chat_id: str | None = None,
        character_id: str | None = None,
    ) -> BatchResult:
        """Attribute every activated entry. Never raises for per-entry problems."""
        if self.cycle_id is None:
            logger.warning("entries activated before any generation started; starting a cycle")
            self.on_generation_start(None)

        if isinstance(entries, (str, bytes, dict)) or not isinstance(entries, Iterable):
            if entries is not None:
                logger.warning("entries must be a list, got %s", type(entries).__name__)
            entries = []
        raw_entries = list(entries)
        total = len(raw_entries)
        limited = raw_entries[:MAX_ENTRIES]
        if total > MAX_ENTRIES:
            logger.info("processing %d of %d activated entries", MAX_ENTRIES, total)

        parsed: list[LoreEntry | Exception] = []
        for raw in limited:
            try:
                parsed.append(normalize_entry(raw))
            except (ValidationError, TypeError, ValueError) as e:
                parsed.append(e)
        active = [p for p in parsed if isinstance(p, LoreEntry)]
        self.current_entries = active

        history = normalize_messages(messages)
        depth_config = self.settings.scan_depth_config(chat_id, character_id)

        results: list[AttributionReport] = []
        for position, (raw, item) in enumerate(zip(limited, parsed)):
            entry_id = _raw_id(raw, position)
            if isinstance(item, Exception):
                logger.warning("Malformed entry %s: %s", entry_id, item)
                results.append(reports.failure_report(entry_id, _raw_title(raw, entry_id), item))
                continue
            try:
                report = self._analyze(item, history, active, depth_config, entry_id)
            except Exception as e:
                logger.warning("Failed to analyse entry %s", entry_id, exc_info=True)
                report = reports.failure_report(entry_id, item.title, e)
            results.append(report)

        return BatchResult(
            cycle_id=self.cycle_id,
            generation_type=self.generation_type,
            total_entries=total,
            processed_entries=len(limited),
            truncated=total > MAX_ENTRIES,
            reports=results,
        )

    def categorize(self, entries: Iterable[Any]) -> list[dict[str, str]]:
        """Display category per raw entry; malformed entries count as General."""
        result: list[dict[str, str]] = []
        for position, raw in enumerate(entries or []):
            try:
                entry = normalize_entry(raw)
            except (ValidationError, TypeError, ValueError):
                result.append({"entry_id": _raw_id(raw, position), "category": "General"})
                continue
            result.append({
                "entry_id": entry.id or f"#{position}",
                "category": categories.classify(entry, self.settings),
            })
        return result

    # ------------------------------------------------------------------
    # Single entry
    # ------------------------------------------------------------------

    def analyze(
        self,
        entry: LoreEntry | dict,
        messages: Iterable[Any] | None = None,
        active_entries: Sequence[LoreEntry] | None = None,
        chat_id: str | None = None,
        character_id: str | None = None,
    ) -> AttributionReport:
        """Attribute one entry outside a batch. Raises on malformed input."""
        entry = normalize_entry(entry)
        return self._analyze(
            entry,
            normalize_messages(messages),
            list(active_entries) if active_entries is not None else self.current_entries,
            self.settings.scan_depth_config(chat_id, character_id),
            entry.id or "#0",
        )

    def _analyze(self, entry, history, active, depth_config, entry_id) -> AttributionReport:
        depth, source = scan_depth.describe(entry, depth_config)
        ctx = DetectionContext(
            messages=history[-depth:] if history else [],
            scan_depth=depth,
            scan_depth_source=source,
            active_entries=active,
            settings=self.settings,
            tracker=self.tracker,
            generation_type=self.generation_type,
        )
        detection = self.chain.run(entry, ctx)
        category = categories.classify(entry, self.settings)
        report = reports.build_report(entry, detection, category, entry_id)

        if self.settings.debug:
            logger.info('"%s" (scan depth %d): %s', report.title, depth, report.summary)
        else:
            logger.debug('"%s" (scan depth %d): %s', report.title, depth, report.summary)
        return report
