"""Secondary-key logic evaluation.

Runs after a primary key has matched. Modes (pass condition / short-circuit):

  AND_ANY (0)  at least one secondary key matches  / first match
  AND_ALL (1)  every secondary key matches         / first miss
  NOT_ANY (2)  no secondary key matches            / none
  NOT_ALL (3)  at least one secondary key misses   / first miss
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import NamedTuple

from lorelens.matching import Key, MatchOptions, matches
from lorelens.models import SelectiveLogic


class SecondaryResult(NamedTuple):
    passed: bool
    matched: list[str]
    logic: SelectiveLogic


def evaluate(
    scan_text: str,
    keys: Sequence[str | Key],
    logic: SelectiveLogic | int = SelectiveLogic.AND_ANY,
    options: MatchOptions | None = None,
) -> SecondaryResult:
    """Evaluate ``keys`` against ``scan_text`` under ``logic``."""
    logic = SelectiveLogic(logic)
    any_matched = False
    all_matched = True
    matched: list[str] = []

    for key in keys:
        if matches(scan_text, key, options):
            any_matched = True
            matched.append(key.raw if isinstance(key, Key) else key)
        else:
            all_matched = False

        if logic == SelectiveLogic.AND_ANY and any_matched:
            break
        if logic in (SelectiveLogic.AND_ALL, SelectiveLogic.NOT_ALL) and not all_matched:
            break

    if logic == SelectiveLogic.AND_ANY:
        passed = any_matched
    elif logic == SelectiveLogic.AND_ALL:
        passed = all_matched
    elif logic == SelectiveLogic.NOT_ANY:
        passed = not any_matched
    else:
        passed = not all_matched

    return SecondaryResult(passed=passed, matched=matched, logic=logic)
