"""Ordered detector chain.

Each detector tests one activation mechanism and returns a Detection or
None. DetectorChain.run() walks them in priority order and stops at the
first hit; when nothing fires, a terminal "unknown" detection is built from
the miss reasons the detectors left on the context.

Order (highest priority first):

  1   DecoratorDetector         @@activate -> decorator_activate,
                                @@dont_activate -> suppressed (terminal)
  2   ConstantDetector          constant flag
  2b  ForcedActivationDetector  force-activated through an event
  3   VectorizedDetector        vectorized flag or vector-activated event
  4   StickyDetector            sticky / sticky_remaining > 0
  5   GlobalContextDetector     any global-context match flag
  6   CollectionDetector        world is a character repository / tag library
  7   KeywordDetector           primary keys (+ secondary logic) in scan window
  8   CrossEntryDetector        own keys inside another active entry's content
  9   ReportedReasonDetector    retrieval subsystem supplied a reason
  10  DatabankDetector          source == "databank"
  11  GenerationTypeDetector    current generation type listed in triggers
  12  RecursionDelayDetector    delay_until_recursion > 0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from lorelens import categories
from lorelens.matching import find_matches, matches
from lorelens.models import (
    ACTIVATE_DECORATOR,
    SUPPRESS_DECORATOR,
    ConversationMessage,
    EngineSettings,
    LoreEntry,
    TriggeringMessage,
)
from lorelens.reports import Detection
from lorelens.selective import evaluate
from lorelens.tracker import ActivationTracker

logger = logging.getLogger(__name__)

MAX_CROSS_ENTRY = 50
EXCERPT_LENGTH = 200


@dataclass
class DetectionContext:
    """Everything a detector may look at for one entry."""

    messages: list[ConversationMessage] = field(default_factory=list)
    scan_depth: int = 5
    scan_depth_source: str = "default"
    active_entries: list[LoreEntry] = field(default_factory=list)
    settings: EngineSettings = field(default_factory=EngineSettings)
    tracker: ActivationTracker = field(default_factory=ActivationTracker)
    generation_type: str | None = None
    misses: list[str] = field(default_factory=list)
    notes: dict = field(default_factory=dict)

    def miss(self, reason: str) -> None:
        self.misses.append(reason)


class Detector(Protocol):
    name: str

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None: ...


# ---------------------------------------------------------------------------
# Flag-based detectors
# ---------------------------------------------------------------------------

class DecoratorDetector:
    name = "decorator"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        if ACTIVATE_DECORATOR in entry.decorators:
            return Detection(
                mechanism="decorator_activate",
                reason="@@activate Decorator",
                summary="DECORATOR - @@activate forced activation",
                explanation="Entry was force-activated by the @@activate decorator.",
            )
        if SUPPRESS_DECORATOR in entry.decorators:
            return Detection(
                mechanism="suppressed",
                reason="Suppressed by @@dont_activate decorator",
                summary="SUPPRESSED - @@dont_activate",
                explanation=(
                    "The entry carries the @@dont_activate decorator, which prevents "
                    "activation regardless of any other setting."
                ),
            )
        return None


class ConstantDetector:
    name = "constant"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        if not entry.constant:
            return None
        return Detection(
            mechanism="constant",
            reason="Constant Entry - Always Active",
            summary="CONSTANT - Always fires regardless of keywords",
            explanation=(
                "This entry is marked as constant and is activated during every "
                "generation, regardless of chat content or keywords."
            ),
        )


class ForcedActivationDetector:
    name = "forced"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        if not entry.id or not ctx.tracker.is_force_activated(entry.id):
            return None
        evidence = ctx.tracker.programmatic_evidence(entry.id) or {}
        source = evidence.get("source", "force activation event")
        return Detection(
            mechanism="forced_external",
            reason="Force-Activated Programmatically",
            summary="FORCED - Activated by an external force-activation event",
            explanation=f"This entry was force-activated programmatically ({source}).",
            evidence={"details": {"source": source}},
        )


class VectorizedDetector:
    name = "vectorized"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        tracked = bool(entry.id) and ctx.tracker.is_vector_activated(entry.id)
        if not entry.vectorized and not tracked:
            return None
        details = {}
        if tracked:
            details = {k: v for k, v in (ctx.tracker.programmatic_evidence(entry.id) or {}).items()
                       if k != "type"}
        return Detection(
            mechanism="vectorized",
            reason="Vectorized Entry - Semantic Similarity",
            summary="VECTORIZED - Triggered by semantic similarity",
            explanation=(
                "This entry was activated by semantic similarity search, "
                "not keyword matching."
            ),
            evidence={"details": details},
        )


class StickyDetector:
    name = "sticky"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        sticky = entry.sticky or 0
        remaining = entry.sticky_remaining or 0
        if sticky <= 0 and remaining <= 0:
            return None
        return Detection(
            mechanism="sticky",
            reason="Sticky Entry - Timed Activation",
            summary="STICKY - Active from previous trigger",
            explanation="This entry is sticky and remains active from a previous trigger.",
            evidence={"details": {
                "sticky": entry.sticky,
                "remaining_messages": entry.sticky_remaining if remaining > 0 else "unknown",
            }},
        )


class GlobalContextDetector:
    name = "global_context"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        fields = entry.global_context_matches
        if not fields:
            return None
        joined = ", ".join(fields)
        return Detection(
            mechanism="global_context",
            reason="Global Context Matching",
            summary=f"GLOBAL - Matched {joined}",
            explanation=f"This entry was activated by matching against global context: {joined}.",
            evidence={"global_matches": fields},
        )


# (comment fragments, sub-type) for tag-library entries; first hit wins
TAG_LIBRARY_TYPES = [
    (("linguistics", "command", "flirt"), "Linguistics Framework"),
    (("dere", "kuudere", "sadodere"), "Dere Type System"),
    (("clanker",), "Anti-Clanker System"),
    (("species", "human", "oni"), "Species/Character Type"),
    (("auto-trigger", "filtration"), "Auto-Trigger System"),
]


def tag_library_type(comment: str) -> str:
    lowered = comment.lower()
    for fragments, label in TAG_LIBRARY_TYPES:
        if any(fragment in lowered for fragment in fragments):
            return label
    return "Tag Library System"


class CollectionDetector:
    name = "collection"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        if not entry.world:
            return None
        if entry.world in ctx.settings.character_repositories:
            system_type, specific = "Character Repository", "Character Repository System"
            mechanism = "character_repository"
        elif entry.world in ctx.settings.tag_libraries:
            system_type, specific = "Tag Library", tag_library_type(entry.comment)
            mechanism = "tag_library"
        else:
            return None
        return Detection(
            mechanism=mechanism,
            reason=f"Collection Tag - {system_type}",
            summary=f"COLLECTION - {specific}",
            explanation=(
                f"This entry belongs to '{entry.world}', a registered "
                f"{system_type.lower()} ({specific})."
            ),
            evidence={"details": {
                "world": entry.world,
                "system_type": system_type,
                "collection_type": specific,
            }},
        )


# ---------------------------------------------------------------------------
# Text-based detectors
# ---------------------------------------------------------------------------

def _triggering_messages(entry: LoreEntry, messages: list[ConversationMessage]) -> list[TriggeringMessage]:
    found: list[TriggeringMessage] = []
    last = len(messages) - 1
    for position, msg in enumerate(messages):
        if not msg.text:
            continue
        keys: list[str] = []
        fragments: list[str] = []
        for key in entry.primary_keys:
            hits = find_matches(msg.text, key, entry.options)
            if hits:
                keys.append(key.raw)
                fragments.extend(hits)
        if keys:
            found.append(TriggeringMessage(
                sender=msg.sender,
                index=msg.index if msg.index is not None else position,
                is_last=position == last,
                is_system=msg.is_system,
                excerpt=msg.text[:EXCERPT_LENGTH],
                keys=keys,
                fragments=fragments,
            ))
    return found


class KeywordDetector:
    name = "keyword"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        keys = entry.primary_keys
        if not keys:
            ctx.miss("No keywords defined")
            return None

        scan_text = "\n".join(m.text for m in ctx.messages)
        options = entry.options
        matched = [key.raw for key in keys if matches(scan_text, key, options)]
        if not matched:
            ctx.miss("No primary keyword matches")
            return None
        primary = matched[0]

        evidence: dict = {
            "matched_keys": matched,
            "scan_depth": ctx.scan_depth,
            "details": {"primary_key": primary, "scan_depth_source": ctx.scan_depth_source},
        }

        secondary = entry.compiled_secondary_keys
        if entry.selective and secondary:
            result = evaluate(scan_text, secondary, entry.selective_logic, options)
            logic = result.logic.name
            if not result.passed:
                ctx.miss(f"Secondary keywords failed {logic} logic")
                ctx.notes["primary_key"] = primary
                return None
            evidence["secondary_keys"] = result.matched
            evidence["secondary_logic"] = logic
            mechanism = "keyword_with_secondary"
            reason = "Keywords + Secondary Logic"
            summary = f'CHAT - "{primary}" + {logic}'
            explanation = (
                f'Primary keyword "{primary}" and secondary keywords ({logic}) '
                f"matched in the last {ctx.scan_depth} message(s)."
            )
        else:
            mechanism = "keyword_match"
            reason = "Keyword Match in Chat"
            summary = f'CHAT - Keyword "{primary}"'
            explanation = (
                f'Primary keyword "{primary}" matched in the last '
                f"{ctx.scan_depth} message(s)."
            )

        triggering = _triggering_messages(entry, ctx.messages)
        evidence["triggering_messages"] = triggering
        if triggering and triggering[-1].is_last:
            summary += f" (last message from {triggering[-1].sender})"

        if entry.id:
            ctx.tracker.mark_scan_depth_activated(entry.id, ctx.scan_depth, ctx.scan_depth_source)
        return Detection(
            mechanism=mechanism,
            reason=reason,
            summary=summary,
            explanation=explanation,
            evidence=evidence,
        )


class CrossEntryDetector:
    name = "cross_entry"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        active = ctx.active_entries
        if len(active) <= 1 or not entry.primary_keys:
            return None
        if len(active) > MAX_CROSS_ENTRY:
            ctx.miss(f"Cross-entry check skipped ({len(active)} active entries)")
            ctx.notes["cross_entry_skipped"] = len(active)
            return None

        options = entry.options
        for other in active:
            if other is entry or (entry.id and other.id == entry.id) or not other.content:
                continue
            for key in entry.primary_keys:
                if matches(other.content, key, options):
                    return self._found(entry, other, key.raw, ctx)
        return None

    def _found(self, entry: LoreEntry, parent: LoreEntry, key: str, ctx: DetectionContext) -> Detection:
        if entry.id and parent.id:
            ctx.tracker.mark_recursion(parent.id, entry.id)
        label = parent.title
        is_character = categories.classify(entry, ctx.settings) == "Characters"
        if is_character:
            mechanism = "character_via_entry"
            reason = "Character Entry Triggered by Another Entry"
            summary = f'CHARACTER - Triggered by "{label}"'
            explanation = (
                "This character entry was triggered by keywords found in another "
                f'active entry: "{label}".'
            )
        else:
            mechanism = "cross_entry"
            reason = "Triggered by Another Lorebook Entry"
            summary = f'CROSS-ENTRY - Triggered by "{label}"'
            explanation = (
                "This entry was triggered by keywords found in another active "
                f'entry: "{label}".'
            )
        return Detection(
            mechanism=mechanism,
            reason=reason,
            summary=summary,
            explanation=explanation,
            evidence={
                "matched_keys": [key],
                "triggering_entry": parent.id or label,
                "details": {"triggering_entry_title": label,
                            "triggering_entry_content": parent.content[:EXCERPT_LENGTH]},
            },
        )


# ---------------------------------------------------------------------------
# Fallback detectors
# ---------------------------------------------------------------------------

class ReportedReasonDetector:
    name = "reported"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        if not (entry.reported_reason or entry.matched_text):
            return None
        reason = entry.reported_reason or "Retrieval subsystem activation"
        explanation = f"The retrieval subsystem reported the activation reason: {reason}."
        details = {}
        if entry.matched_text:
            details["matched_text"] = entry.matched_text
            explanation += f' Matched text: "{entry.matched_text}".'
        return Detection(
            mechanism="reported",
            reason=reason,
            summary=f"REPORTED - {reason}",
            explanation=explanation,
            evidence={"details": details},
        )


class DatabankDetector:
    name = "databank"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        if entry.source != "databank":
            return None
        return Detection(
            mechanism="databank",
            reason="Data Bank Retrieval",
            summary="DATABANK - Retrieved from vector data bank",
            explanation=(
                "This entry was retrieved from the data bank by semantic similarity "
                "to attached files."
            ),
        )


class GenerationTypeDetector:
    name = "generation_type"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        if not entry.triggers:
            return None
        ctx.notes["generation_types"] = list(entry.triggers)
        if not ctx.generation_type or ctx.generation_type not in entry.triggers:
            return None
        return Detection(
            mechanism="generation_type",
            reason=f"Generation Type Match: {ctx.generation_type}",
            summary=f"GEN_TYPE - Triggered by {ctx.generation_type} generation",
            explanation=(
                "This entry is configured to trigger on "
                f"'{ctx.generation_type}' generations."
            ),
            high_confidence=False,
            evidence={"details": {"generation_types": list(entry.triggers)}},
        )


class RecursionDelayDetector:
    name = "recursion_delayed"

    def detect(self, entry: LoreEntry, ctx: DetectionContext) -> Detection | None:
        level = entry.delay_until_recursion or 0
        if level <= 0:
            return None
        details: dict = {"recursion_level": level}
        parent = ctx.tracker.get_recursion_parent(entry.id) if entry.id else None
        if parent:
            details["parent"] = parent
        return Detection(
            mechanism="recursion_delayed",
            reason="Recursion Delayed Entry",
            summary="RECURSION - Activated during recursive scan",
            explanation=f"This entry only activates during recursion level {level}.",
            high_confidence=False,
            evidence={"details": details},
        )


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------

def unknown_detection(entry: LoreEntry, ctx: DetectionContext) -> Detection:
    details: dict = {}
    if ctx.misses:
        details["misses"] = list(ctx.misses)
    details.update(ctx.notes)
    if entry.cooldown and entry.cooldown > 0:
        details["cooldown"] = entry.cooldown
    if entry.delay and entry.delay > 0:
        details["delay"] = entry.delay

    if not entry.primary_keys:
        return Detection(
            mechanism="unknown",
            reason="No keywords defined",
            summary="NO KEYS - Entry has no keywords defined",
            explanation=(
                "This entry has no primary keywords, so it cannot have activated "
                "through keyword matching, and no other mechanism applies."
            ),
            high_confidence=False,
            evidence={"details": details},
        )
    return Detection(
        mechanism="unknown",
        reason="Activation method unknown",
        summary="UNKNOWN - Could not determine activation reason",
        explanation=(
            "Could not determine why this entry was activated. "
            + (f"Last check: {ctx.misses[-1]}." if ctx.misses else "")
        ).strip(),
        high_confidence=False,
        evidence={"scan_depth": ctx.scan_depth, "details": details},
    )


DEFAULT_DETECTORS: list[Detector] = [
    DecoratorDetector(),
    ConstantDetector(),
    ForcedActivationDetector(),
    VectorizedDetector(),
    StickyDetector(),
    GlobalContextDetector(),
    CollectionDetector(),
    KeywordDetector(),
    CrossEntryDetector(),
    ReportedReasonDetector(),
    DatabankDetector(),
    GenerationTypeDetector(),
    RecursionDelayDetector(),
]


class DetectorChain:
    def __init__(self, detectors: list[Detector] | None = None) -> None:
        self.detectors = list(detectors) if detectors is not None else list(DEFAULT_DETECTORS)

    def run(self, entry: LoreEntry, ctx: DetectionContext) -> Detection:
        """Return the first positive detection, or the terminal unknown one."""
        for detector in self.detectors:
            result = detector.detect(entry, ctx)
            if result is not None:
                logger.debug("entry %s: %s fired (%s)", entry.id, detector.name, result.mechanism)
                return result
        return unknown_detection(entry, ctx)
