"""Keyword matching primitive.

A key is either a literal string or a ``/pattern/flags`` regex literal.
Literal keys honour case sensitivity and whole-word options; regex keys
carry their own flags. Matching is total: any string input returns a bool,
never raises.

Regex keys that fail to compile, or that look prone to catastrophic
backtracking (nested quantifiers, very long patterns), degrade to literal
substring matching of the raw key.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import NamedTuple

logger = logging.getLogger(__name__)

MAX_KEYS = 20            # keys compiled per list (primary / secondary)
MAX_KEY_LENGTH = 500     # longer keys are dropped
MAX_PATTERN_LENGTH = 200
MAX_FRAGMENTS = 50       # regex fragments collected per key per text

_REGEX_LITERAL = re.compile(r"^/(.+)/([gimsuy]*)$", re.DOTALL)

_QUANT_BRACE = re.compile(r"\{\d*,?\d*\}")

_FLAG_MAP = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


class MatchOptions(NamedTuple):
    case_sensitive: bool = False
    match_whole_words: bool = False


DEFAULT_OPTIONS = MatchOptions()


@dataclass(frozen=True)
class Key:
    """A parsed key. ``pattern`` is set only for accepted regex literals."""

    raw: str
    pattern: re.Pattern | None = None
    rejected: bool = False  # regex literal that fell back to literal matching

    @property
    def is_regex(self) -> bool:
        return self.pattern is not None


def _quantifier_at(pattern: str, i: int) -> int:
    """Length of the repeat quantifier (+, *, {m,n}) starting at ``i``, else 0."""
    if i >= len(pattern):
        return 0
    if pattern[i] in "+*":
        return 1
    if pattern[i] == "{":
        brace = _QUANT_BRACE.match(pattern, i)
        if brace and brace.group(0) != "{}":
            return len(brace.group(0))
    return 0


def is_safe_pattern(pattern: str) -> bool:
    """Reject patterns that are too long or that repeat an ambiguous group.

    A group is ambiguous when its body holds a quantifier (``+ * ? {m,n}``)
    or an alternation, at any nesting depth. Repeating such a group with
    ``+``, ``*`` or ``{m,n}`` is rejected: ``(a+)+``, ``(\\w+\\s?)+``,
    ``((a+))+``, ``(a|aa)+``.
    """
    if len(pattern) >= MAX_PATTERN_LENGTH:
        return False

    # One frame per open group: [has_quantifier, has_alternation]
    stack: list[list[bool]] = [[False, False]]
    i, n = 0, len(pattern)
    while i < n:
        char = pattern[i]
        if char == "\\":
            i += 2
            continue
        if char == "[":
            i += 1
            if i < n and pattern[i] == "^":
                i += 1
            if i < n and pattern[i] == "]":
                i += 1
            while i < n and pattern[i] != "]":
                i += 2 if pattern[i] == "\\" else 1
            i += 1
            continue
        if char == "(":
            stack.append([False, False])
            i += 1
            if i < n and pattern[i] == "?":
                i += 1  # group modifier, not a quantifier
            continue
        if char == ")":
            i += 1
            if len(stack) == 1:
                continue  # unbalanced; left to re.compile
            has_quant, has_alt = stack.pop()
            repeat = _quantifier_at(pattern, i)
            if repeat and (has_quant or has_alt):
                return False
            stack[-1][0] = stack[-1][0] or has_quant or bool(repeat)
            stack[-1][1] = stack[-1][1] or has_alt
            continue
        if char == "|":
            stack[-1][1] = True
        elif char == "?" or _quantifier_at(pattern, i):
            stack[-1][0] = True
            i += max(_quantifier_at(pattern, i), 1)
            continue
        i += 1
    return True


@lru_cache(maxsize=4096)
def compile_key(raw: str) -> Key:
    """Parse a raw key once. Regex literals are compiled; everything else is literal."""
    literal = _REGEX_LITERAL.match(raw)
    if not literal:
        return Key(raw=raw)

    pattern, flag_chars = literal.group(1), literal.group(2)
    if not is_safe_pattern(pattern):
        logger.debug("regex key rejected by guard, matching literally: %r", raw)
        return Key(raw=raw, rejected=True)

    flags = 0
    for char in flag_chars:
        flags |= _FLAG_MAP.get(char, 0)
    try:
        return Key(raw=raw, pattern=re.compile(pattern, flags))
    except re.error as e:
        logger.debug("regex key %r failed to compile (%s), matching literally", raw, e)
        return Key(raw=raw, rejected=True)


def compile_keys(raw_keys: list[str]) -> tuple[list[Key], int]:
    """Compile up to MAX_KEYS keys. Returns (keys, number of oversized keys dropped)."""
    keys: list[Key] = []
    dropped = 0
    for raw in raw_keys[:MAX_KEYS]:
        if len(raw) >= MAX_KEY_LENGTH:
            dropped += 1
            continue
        keys.append(compile_key(raw))
    return keys, dropped


@lru_cache(maxsize=1024)
def _word_pattern(needle: str) -> re.Pattern:
    return re.compile(r"(?:^|\W)(" + re.escape(needle) + r")(?:$|\W)")


def _match_literal(haystack: str, needle: str, options: MatchOptions) -> bool:
    if not options.case_sensitive:
        haystack = haystack.lower()
        needle = needle.lower()

    if options.match_whole_words:
        if len(needle.strip().split()) > 1:
            # Multi-word phrase: plain containment
            return needle in haystack
        return _word_pattern(needle).search(haystack) is not None

    return needle in haystack


def matches(haystack: str, key: str | Key, options: MatchOptions | None = None) -> bool:
    """Return True if ``key`` matches inside ``haystack``."""
    if not isinstance(haystack, str) or not haystack:
        return False
    if isinstance(key, str):
        if not key:
            return False
        key = compile_key(key)
    elif not isinstance(key, Key) or not key.raw:
        return False

    if key.pattern is not None:
        return key.pattern.search(haystack) is not None
    return _match_literal(haystack, key.raw, options or DEFAULT_OPTIONS)


def find_matches(
    text: str,
    key: str | Key,
    options: MatchOptions | None = None,
    limit: int = MAX_FRAGMENTS,
) -> list[str]:
    """Return the fragments of ``text`` matched by ``key`` (at most ``limit``)."""
    if isinstance(key, str):
        if not key:
            return []
        key = compile_key(key)
    if not matches(text, key, options):
        return []
    if key.pattern is None:
        return [key.raw]

    fragments: list[str] = []
    for found in key.pattern.finditer(text):
        if len(fragments) >= limit:
            break
        fragments.append(found.group(0))
    return fragments
