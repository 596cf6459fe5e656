"""Effective scan depth for an entry.

Precedence, highest first:
  1. chat-scope override
  2. character-scope override
  3. global default setting
  4. the entry's own scan depth
  5. DEFAULT_SCAN_DEPTH

A layer counts only when it is a positive integer; the result is always >= 1.
"""

from __future__ import annotations

from typing import Any

from lorelens.models import LoreEntry, ScanDepthConfig

DEFAULT_SCAN_DEPTH = 5


def _positive(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def describe(entry: LoreEntry | None, config: ScanDepthConfig | None = None) -> tuple[int, str]:
    """Return (depth, source) where source names the layer that won."""
    config = config or ScanDepthConfig()
    layers = [
        ("chat", config.chat_override),
        ("character", config.character_override),
        ("global", config.global_default),
        ("entry", entry.scan_depth if entry is not None else None),
    ]
    for source, value in layers:
        depth = _positive(value)
        if depth is not None:
            return depth, source
    return DEFAULT_SCAN_DEPTH, "default"


def resolve(
    entry: LoreEntry | None,
    chat_override: int | None = None,
    character_override: int | None = None,
    global_default: int | None = None,
) -> int:
    config = ScanDepthConfig.model_construct(
        chat_override=chat_override,
        character_override=character_override,
        global_default=global_default,
    )
    return describe(entry, config)[0]


def resolve_for(entry: LoreEntry | None, config: ScanDepthConfig | None) -> int:
    return describe(entry, config)[0]
