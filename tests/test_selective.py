"""Tests for secondary-key logic modes."""

import pytest

from lorelens.matching import MatchOptions
from lorelens.models import SelectiveLogic
from lorelens.selective import evaluate

SCAN = "The knight drew a silver sword."


# ── truth table: A matches, B does not ───────────────────────


@pytest.mark.parametrize("logic,expected", [
    (SelectiveLogic.AND_ANY, True),
    (SelectiveLogic.AND_ALL, False),
    (SelectiveLogic.NOT_ANY, False),
    (SelectiveLogic.NOT_ALL, True),
])
def test_truth_table_mixed(logic, expected):
    result = evaluate(SCAN, ["silver", "golden"], logic)
    assert result.passed is expected
    assert result.logic == logic


def test_all_match():
    assert evaluate(SCAN, ["silver", "sword"], SelectiveLogic.AND_ALL).passed
    assert not evaluate(SCAN, ["silver", "sword"], SelectiveLogic.NOT_ALL).passed


def test_none_match():
    assert evaluate(SCAN, ["golden", "axe"], SelectiveLogic.NOT_ANY).passed
    assert not evaluate(SCAN, ["golden", "axe"], SelectiveLogic.AND_ANY).passed


def test_default_is_and_any():
    assert evaluate(SCAN, ["axe", "sword"]).passed


def test_accepts_int_logic():
    assert evaluate(SCAN, ["golden"], 2).logic == SelectiveLogic.NOT_ANY


# ── matched keys reported ────────────────────────────────────


def test_and_any_stops_at_first_match():
    result = evaluate(SCAN, ["silver", "sword"], SelectiveLogic.AND_ANY)
    assert result.matched == ["silver"]


def test_not_any_collects_every_match():
    result = evaluate(SCAN, ["silver", "sword", "axe"], SelectiveLogic.NOT_ANY)
    assert result.matched == ["silver", "sword"]
    assert not result.passed


def test_and_all_stops_at_first_miss():
    result = evaluate(SCAN, ["axe", "silver"], SelectiveLogic.AND_ALL)
    assert result.matched == []
    assert not result.passed


def test_options_apply_to_secondary_keys():
    opts = MatchOptions(case_sensitive=True)
    assert not evaluate(SCAN, ["Silver"], SelectiveLogic.AND_ANY, opts).passed
