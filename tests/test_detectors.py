"""Tests for the detector chain: priority order and each mechanism."""

from lorelens.detectors import (
    CrossEntryDetector,
    DetectionContext,
    DetectorChain,
    KeywordDetector,
    tag_library_type,
)
from lorelens.models import ConversationMessage, EngineSettings, LoreEntry
from lorelens.tracker import ActivationTracker


def _entry(**fields) -> LoreEntry:
    fields.setdefault("uid", "e1")
    return LoreEntry.model_validate(fields)


def _ctx(*texts: str, **kwargs) -> DetectionContext:
    messages = [ConversationMessage(name="Aria", text=t, index=i) for i, t in enumerate(texts)]
    return DetectionContext(messages=messages, scan_depth=len(texts) or 5, **kwargs)


def _run(entry: LoreEntry, ctx: DetectionContext | None = None):
    return DetectorChain().run(entry, ctx or _ctx())


# ── flag detectors and their order ───────────────────────────


def test_constant_ignores_keys_and_history():
    entry = _entry(constant=True, key=["dragon"])
    assert _run(entry, _ctx("a dragon appears")).mechanism == "constant"
    assert _run(entry, _ctx()).mechanism == "constant"


def test_activate_decorator_beats_constant():
    assert _run(_entry(decorators=["@@activate"], constant=True)).mechanism == "decorator_activate"


def test_suppressed_regardless_of_flags():
    entry = _entry(decorators=["@@dont_activate"], constant=True, vectorized=True,
                   sticky=3, key=["dragon"])
    result = _run(entry, _ctx("dragon"))
    assert result.mechanism == "suppressed"


def test_vectorized():
    assert _run(_entry(vectorized=True, key=["x"])).mechanism == "vectorized"


def test_vector_event_counts_as_vectorized():
    tracker = ActivationTracker()
    tracker.mark_vector_activated("e1", "databank")
    result = _run(_entry(key=["x"]), _ctx(tracker=tracker))
    assert result.mechanism == "vectorized"
    assert result.evidence["details"] == {"vector_type": "databank"}


def test_forced_external_before_vectorized():
    tracker = ActivationTracker()
    tracker.mark_force_activated("e1", "script")
    result = _run(_entry(vectorized=True), _ctx(tracker=tracker))
    assert result.mechanism == "forced_external"
    assert result.evidence["details"]["source"] == "script"


def test_constant_before_forced_external():
    tracker = ActivationTracker()
    tracker.mark_force_activated("e1", "script")
    assert _run(_entry(constant=True), _ctx(tracker=tracker)).mechanism == "constant"


def test_sticky_either_counter():
    assert _run(_entry(sticky=2)).mechanism == "sticky"
    assert _run(_entry(stickyRemaining=1)).mechanism == "sticky"
    assert _run(_entry(sticky=0, stickyRemaining=0, key=["zzz"])).mechanism == "unknown"


def test_global_context_lists_fields():
    result = _run(_entry(matchCharacterDescription=True, matchCreatorNotes=True))
    assert result.mechanism == "global_context"
    assert result.evidence["global_matches"] == ["Character Description", "Creator Notes"]


def test_global_context_before_collection():
    settings = EngineSettings(tag_libraries=["Tags"])
    entry = _entry(matchScenario=True, world="Tags")
    assert _run(entry, _ctx(settings=settings)).mechanism == "global_context"


def test_collection_membership():
    settings = EngineSettings(character_repositories=["Chars"], tag_libraries=["Tags"])
    repo = _run(_entry(world="Chars", key=["x"]), _ctx(settings=settings))
    assert repo.mechanism == "character_repository"
    lib = _run(_entry(world="Tags", comment="Kuudere traits"), _ctx(settings=settings))
    assert lib.mechanism == "tag_library"
    assert lib.evidence["details"]["collection_type"] == "Dere Type System"


def test_tag_library_types():
    assert tag_library_type("Linguistics: commands") == "Linguistics Framework"
    assert tag_library_type("Species - Oni") == "Species/Character Type"
    assert tag_library_type("misc") == "Tag Library System"


# ── keyword detector ─────────────────────────────────────────


def test_keyword_match():
    ctx = _ctx("hello", "they walked through the moonlit forest at night")
    result = _run(_entry(key=["moonlit forest"], selective=False), ctx)
    assert result.mechanism == "keyword_match"
    assert result.evidence["matched_keys"] == ["moonlit forest"]
    messages = result.evidence["triggering_messages"]
    assert len(messages) == 1
    assert messages[0].index == 1
    assert messages[0].is_last
    assert messages[0].sender == "Aria"


def test_keyword_no_keys_is_unknown():
    result = _run(_entry(key=[]), _ctx("anything"))
    assert result.mechanism == "unknown"
    assert result.reason.lower() == "no keywords defined"


def test_keyword_no_match_is_unknown():
    result = _run(_entry(key=["dragon"]), _ctx("a quiet inn"))
    assert result.mechanism == "unknown"
    assert "No primary keyword matches" in result.evidence["details"]["misses"]


def test_keyword_with_secondary_pass():
    entry = _entry(key=["knight"], keysecondary=["sword", "axe"], selective=True,
                   selectiveLogic=0)
    result = _run(entry, _ctx("the knight lifts a sword"))
    assert result.mechanism == "keyword_with_secondary"
    assert result.evidence["secondary_keys"] == ["sword"]
    assert result.evidence["secondary_logic"] == "AND_ANY"


def test_keyword_with_secondary_fail():
    entry = _entry(key=["knight"], keysecondary=["sword", "axe"], selective=True,
                   selectiveLogic=1)
    result = _run(entry, _ctx("the knight lifts a sword"))
    assert result.mechanism == "unknown"
    assert "Secondary keywords failed AND_ALL logic" in result.explanation


def test_secondary_ignored_when_not_selective():
    entry = _entry(key=["knight"], keysecondary=["axe"], selective=False, selectiveLogic=1)
    assert _run(entry, _ctx("the knight")).mechanism == "keyword_match"


def test_keyword_regex_fragments():
    ctx = _ctx("red fox and red hen")
    result = _run(_entry(key=["/red \\w+/"]), ctx)
    assert result.mechanism == "keyword_match"
    assert result.evidence["triggering_messages"][0].fragments == ["red fox", "red hen"]


def test_keyword_records_scan_depth():
    tracker = ActivationTracker()
    ctx = _ctx("dragon", tracker=tracker)
    KeywordDetector().detect(_entry(key=["dragon"]), ctx)
    assert tracker.scan_depth_evidence("e1") == {"depth": 1, "reason": "default"}


def test_keyword_respects_whole_words():
    entry = _entry(key=["cat"], matchWholeWords=True)
    assert _run(entry, _ctx("concatenate")).mechanism == "unknown"
    assert _run(entry, _ctx("The Cat sat")).mechanism == "keyword_match"


# ── cross-entry detector ─────────────────────────────────────


def test_cross_entry_trigger_records_parent():
    tracker = ActivationTracker()
    parent = _entry(uid="p", comment="Old Mill", content="The miller keeps a black cat.")
    child = _entry(uid="c", key=["black cat"], content="A sly animal.")
    ctx = _ctx("nothing here", active_entries=[parent, child], tracker=tracker)
    result = _run(child, ctx)
    assert result.mechanism == "cross_entry"
    assert result.evidence["triggering_entry"] == "p"
    assert tracker.get_recursion_parent("c") == "p"


def test_cross_entry_character_variant():
    parent = _entry(uid="p", content="Aria waits by the gate.")
    child = _entry(uid="c", key=["Aria"], bunnymo_character=True)
    result = _run(child, _ctx(active_entries=[parent, child]))
    assert result.mechanism == "character_via_entry"


def test_cross_entry_skipped_above_limit():
    entries = [_entry(uid=f"o{i}", content="a black cat") for i in range(60)]
    child = _entry(uid="c", key=["black cat"])
    ctx = _ctx(active_entries=entries + [child])
    assert CrossEntryDetector().detect(child, ctx) is None
    assert ctx.notes["cross_entry_skipped"] == 61


def test_cross_entry_ignores_self():
    child = _entry(uid="c", key=["cat"], content="a cat")
    other = _entry(uid="o", content="a dog")
    assert _run(child, _ctx(active_entries=[child, other])).mechanism == "unknown"


# ── fallback detectors ───────────────────────────────────────


def test_reported_reason():
    result = _run(_entry(key=["zzz"], triggerReason="matched by script", matchedText="zz"))
    assert result.mechanism == "reported"
    assert result.evidence["details"]["matched_text"] == "zz"


def test_databank():
    assert _run(_entry(source="databank")).mechanism == "databank"


def test_generation_type():
    entry = _entry(key=["zzz"], triggers=["continue"])
    assert _run(entry, _ctx(generation_type="continue")).mechanism == "generation_type"
    result = _run(entry, _ctx(generation_type="normal"))
    assert result.mechanism == "unknown"
    assert result.evidence["details"]["generation_types"] == ["continue"]


def test_recursion_delayed():
    assert _run(_entry(key=["zzz"], delayUntilRecursion=2)).mechanism == "recursion_delayed"


def test_unknown_reports_cooldown_and_delay():
    result = _run(_entry(key=["zzz"], cooldown=3, delay=2), _ctx("nothing"))
    assert result.mechanism == "unknown"
    assert result.evidence["details"]["cooldown"] == 3
    assert result.evidence["details"]["delay"] == 2


def test_custom_chain():
    chain = DetectorChain([KeywordDetector()])
    assert chain.run(_entry(constant=True, key=["x"]), _ctx("x")).mechanism == "keyword_match"
