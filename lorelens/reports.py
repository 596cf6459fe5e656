"""Attribution report assembly.

Detectors return a Detection; build_report() turns it into the public
AttributionReport, merging truncation notes from the entry and adding the
probability note for probabilistic entries. Since the entry is known to be
active, the note only explains that the roll succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lorelens.models import AttributionReport, Evidence, LoreEntry, Mechanism

# Terminal states that are not activation mechanisms
_NO_PROBABILITY: set[str] = {"suppressed", "unknown"}


@dataclass
class Detection:
    mechanism: Mechanism
    reason: str
    summary: str
    explanation: str = ""
    high_confidence: bool = True
    evidence: dict[str, Any] = field(default_factory=dict)


def probability_note(entry: LoreEntry) -> str | None:
    if entry.use_probability and entry.probability is not None and entry.probability < 100:
        return f"{entry.probability}% chance"
    return None


def build_report(
    entry: LoreEntry,
    detection: Detection,
    category: str = "General",
    entry_id: str | None = None,
) -> AttributionReport:
    evidence = Evidence(**detection.evidence)
    if entry.truncated:
        evidence.truncated = {**entry.truncated, **evidence.truncated}

    summary = detection.summary
    explanation = detection.explanation
    if detection.mechanism not in _NO_PROBABILITY:
        note = probability_note(entry)
        if note:
            evidence.probability_note = note
            summary += f" ({entry.probability}%)"
            explanation += (
                f" (Entry has {entry.probability}% activation probability; "
                "since it activated, the roll succeeded.)"
            )

    return AttributionReport(
        entry_id=entry_id or entry.id,
        title=entry.title,
        mechanism=detection.mechanism,
        reason=detection.reason,
        summary=summary,
        explanation=explanation,
        high_confidence=detection.high_confidence,
        category=category,
        evidence=evidence,
    )


def failure_report(entry_id: str, title: str, error: BaseException | str) -> AttributionReport:
    """Report for an entry that could not be analysed at all."""
    message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
    return AttributionReport(
        entry_id=entry_id,
        title=title,
        mechanism="unknown",
        reason="Entry could not be analysed",
        summary="UNKNOWN - Malformed entry",
        explanation=f"The entry could not be analysed: {message}",
        evidence=Evidence(details={"error": message}),
    )
