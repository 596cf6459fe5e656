"""Display categories for lore entries.

Independent of attribution; used only to group entries in consuming UIs.

Priority:
  1. explicit character tag                      -> Characters
  2. constant / vectorized entry types           -> Constants / Vectorized
  3. owning collection is a character repository -> Characters
  4. title starts with a person emoji            -> Characters
  5. whole-word heuristics over keys + content + comment
  6. General
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from lorelens.models import AttributionReport, EngineSettings, LoreEntry

CATEGORY_ORDER = [
    "Characters",
    "Locations",
    "Objects",
    "Events/Lore",
    "Rules/Systems",
    "Constants",
    "Vectorized",
    "General",
]

_PERSON_EMOJI = re.compile("^(?:\U0001F451|\U0001F9D9|\U0001F464|\U0001F9DD|\U0001F9DB|\U0001F478|\U0001F934|\U0001F468|\U0001F469|\U0001F9D1)")

# Checked in order; first hit wins
_HEURISTICS = [
    ("Characters", re.compile(r"\b(?:character|person|npc|people)\b", re.IGNORECASE)),
    ("Locations", re.compile(r"\b(?:location|place|city|town|building|room)\b", re.IGNORECASE)),
    ("Objects", re.compile(r"\b(?:item|object|weapon|tool|artifact)\b", re.IGNORECASE)),
    ("Events/Lore", re.compile(r"\b(?:event|history|story|lore|legend)\b", re.IGNORECASE)),
    ("Rules/Systems", re.compile(r"\b(?:rule|law|magic|system|mechanic)\b", re.IGNORECASE)),
]


def classify(entry: LoreEntry, settings: EngineSettings | None = None) -> str:
    """Return the display category for an entry."""
    if entry.character_tag:
        return "Characters"
    if entry.constant:
        return "Constants"
    if entry.vectorized:
        return "Vectorized"
    if settings and entry.world and entry.world in settings.character_repositories:
        return "Characters"

    if _PERSON_EMOJI.match(entry.comment or (entry.keys[0] if entry.keys else "")):
        return "Characters"

    text = f"{' '.join(entry.keys)} {entry.content} {entry.comment}"
    for category, pattern in _HEURISTICS:
        if pattern.search(text):
            return category
    return "General"


def group_by_category(reports: Iterable[AttributionReport]) -> dict[str, list[AttributionReport]]:
    """Group reports by category, known categories first in display order."""
    groups: dict[str, list[AttributionReport]] = {}
    for report in reports:
        groups.setdefault(report.category, []).append(report)

    def order(name: str) -> tuple[int, str]:
        if name in CATEGORY_ORDER:
            return CATEGORY_ORDER.index(name), name
        return len(CATEGORY_ORDER), name

    return {name: groups[name] for name in sorted(groups, key=order)}
