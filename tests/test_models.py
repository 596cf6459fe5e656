"""Tests for lorelens.models: entry normalisation and message validation."""

import pytest
from pydantic import ValidationError

from lorelens.models import (
    ConversationMessage,
    EngineSettings,
    LoreEntry,
    SelectiveLogic,
)


class TestLoreEntry:
    def test_wire_names(self) -> None:
        e = LoreEntry.model_validate({
            "uid": 42,
            "key": ["dragon"],
            "keysecondary": ["fire"],
            "selectiveLogic": 1,
            "caseSensitive": True,
            "matchWholeWords": True,
            "scanDepth": 3,
            "stickyRemaining": 2,
            "useProbability": True,
            "probability": 40,
        })
        assert e.id == "42"
        assert e.keys == ["dragon"]
        assert e.secondary_keys == ["fire"]
        assert e.selective_logic == SelectiveLogic.AND_ALL
        assert e.options.case_sensitive
        assert e.options.match_whole_words
        assert e.scan_depth == 3
        assert e.sticky_remaining == 2
        assert e.use_probability and e.probability == 40

    def test_python_names(self) -> None:
        e = LoreEntry(id="a", keys=["x"], secondary_keys=["y"], selective=True)
        assert e.keys == ["x"]
        assert e.selective

    def test_defaults(self) -> None:
        e = LoreEntry()
        assert e.keys == []
        assert e.selective_logic == SelectiveLogic.AND_ANY
        assert not e.options.case_sensitive
        assert e.content == ""

    def test_null_fields_normalised(self) -> None:
        e = LoreEntry.model_validate({
            "uid": 1, "key": None, "content": None, "constant": None,
            "selectiveLogic": None, "caseSensitive": None,
        })
        assert e.keys == []
        assert e.content == ""
        assert e.constant is False
        assert e.selective_logic == SelectiveLogic.AND_ANY

    def test_bare_string_key(self) -> None:
        assert LoreEntry.model_validate({"key": "dragon"}).keys == ["dragon"]

    def test_empty_keys_dropped(self) -> None:
        assert LoreEntry.model_validate({"key": ["", None, "a", 7]}).keys == ["a", "7"]

    def test_invalid_selective_logic(self) -> None:
        with pytest.raises(ValidationError):
            LoreEntry.model_validate({"key": ["x"], "selectiveLogic": 9})

    def test_invalid_key_type(self) -> None:
        with pytest.raises(ValidationError):
            LoreEntry.model_validate({"key": {"not": "a list"}})
        with pytest.raises(ValidationError):
            LoreEntry.model_validate({"key": [{"nested": 1}]})

    def test_keys_compiled_once(self) -> None:
        e = LoreEntry.model_validate({"key": ["/drag(on|oness)/i", "wyrm"]})
        assert e.primary_keys[0].is_regex
        assert not e.primary_keys[1].is_regex

    def test_key_truncation_recorded(self) -> None:
        e = LoreEntry.model_validate({"key": [f"k{i}" for i in range(25)]})
        assert len(e.primary_keys) == 20
        assert e.truncated == {"keys": 25}

    def test_oversized_key_dropped(self) -> None:
        e = LoreEntry.model_validate({"key": ["ok", "x" * 800]})
        assert [k.raw for k in e.primary_keys] == ["ok"]
        assert e.truncated == {"oversized_keys": 1}

    def test_title(self) -> None:
        assert LoreEntry(comment="Old Mill", keys=["mill"]).title == "Old Mill"
        assert LoreEntry(keys=["mill"]).title == "mill"
        assert LoreEntry(id="7").title == "7"

    def test_global_context_matches(self) -> None:
        e = LoreEntry.model_validate({"matchScenario": True, "matchPersonaDescription": True})
        assert e.global_context_matches == ["Persona Description", "Scenario"]

    def test_extra_fields_ignored(self) -> None:
        e = LoreEntry.model_validate({"uid": 1, "position": 4, "displayIndex": 2})
        assert e.id == "1"


class TestConversationMessage:
    def test_wire_name_for_text(self) -> None:
        m = ConversationMessage.model_validate({"name": "Aria", "mes": "Hello"})
        assert m.text == "Hello"
        assert m.sender == "Aria"

    def test_user_sender(self) -> None:
        m = ConversationMessage(name="Sam", is_user=True, text="hi")
        assert m.sender == "user"

    def test_immutable(self) -> None:
        m = ConversationMessage(text="x")
        with pytest.raises(ValidationError):
            m.text = "y"  # type: ignore[misc]


class TestEngineSettings:
    def test_scan_depth_config(self) -> None:
        s = EngineSettings(
            global_scan_depth=10,
            chat_scan_depth={"chat-1": 3},
            character_scan_depth={"aria": 7},
        )
        cfg = s.scan_depth_config("chat-1", "aria")
        assert (cfg.chat_override, cfg.character_override, cfg.global_default) == (3, 7, 10)
        cfg = s.scan_depth_config("other", None)
        assert cfg.chat_override is None
        assert cfg.character_override is None
