"""Core domain models.

All detectors, the engine and the service layer operate on these types.
Pydantic is used for validation and normalisation at every data boundary:
raw entry dicts from the retrieval subsystem (camelCase wire names) are
validated into LoreEntry once per cycle, and their keys are compiled once
at that point.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
)

from lorelens.matching import MAX_KEYS, Key, MatchOptions, compile_keys

Mechanism = Literal[
    "decorator_activate",
    "suppressed",
    "constant",
    "forced_external",
    "vectorized",
    "sticky",
    "global_context",
    "character_repository",
    "tag_library",
    "keyword_match",
    "keyword_with_secondary",
    "cross_entry",
    "character_via_entry",
    "reported",
    "databank",
    "generation_type",
    "recursion_delayed",
    "unknown",
]

ACTIVATE_DECORATOR = "@@activate"
SUPPRESS_DECORATOR = "@@dont_activate"

# (field name, display label) for the global-context match flags
GLOBAL_CONTEXT_FIELDS = [
    ("match_persona_description", "Persona Description"),
    ("match_character_description", "Character Description"),
    ("match_character_personality", "Character Personality"),
    ("match_character_depth_prompt", "Character Depth Prompt"),
    ("match_scenario", "Scenario"),
    ("match_creator_notes", "Creator Notes"),
]


class SelectiveLogic(IntEnum):
    """How secondary keys combine with an already-matched primary key."""

    AND_ANY = 0
    AND_ALL = 1
    NOT_ANY = 2
    NOT_ALL = 3


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class LoreEntry(BaseModel):
    """A lore entry as selected by the retrieval subsystem.

    Read-only for the duration of a cycle. Accepts both the Python field
    names and the retrieval subsystem's wire names (``uid``, ``key``,
    ``keysecondary``, ``selectiveLogic``...). Unknown fields are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", validation_alias=_alias("uid", "id"))
    keys: list[str] = Field(default_factory=list, validation_alias=_alias("key", "keys"))
    secondary_keys: list[str] = Field(
        default_factory=list, validation_alias=_alias("keysecondary", "secondary_keys"),
    )
    constant: bool = False
    vectorized: bool = False
    selective: bool = False
    selective_logic: SelectiveLogic = Field(
        default=SelectiveLogic.AND_ANY,
        validation_alias=_alias("selectiveLogic", "selective_logic"),
    )
    sticky: int | None = None
    sticky_remaining: int | None = Field(
        default=None, validation_alias=_alias("stickyRemaining", "sticky_remaining"),
    )
    decorators: list[str] = Field(default_factory=list)

    match_persona_description: bool = Field(
        default=False,
        validation_alias=_alias("matchPersonaDescription", "match_persona_description"),
    )
    match_character_description: bool = Field(
        default=False,
        validation_alias=_alias("matchCharacterDescription", "match_character_description"),
    )
    match_character_personality: bool = Field(
        default=False,
        validation_alias=_alias("matchCharacterPersonality", "match_character_personality"),
    )
    match_character_depth_prompt: bool = Field(
        default=False,
        validation_alias=_alias("matchCharacterDepthPrompt", "match_character_depth_prompt"),
    )
    match_scenario: bool = Field(
        default=False, validation_alias=_alias("matchScenario", "match_scenario"),
    )
    match_creator_notes: bool = Field(
        default=False, validation_alias=_alias("matchCreatorNotes", "match_creator_notes"),
    )

    case_sensitive: bool | None = Field(
        default=None, validation_alias=_alias("caseSensitive", "case_sensitive"),
    )
    match_whole_words: bool | None = Field(
        default=None, validation_alias=_alias("matchWholeWords", "match_whole_words"),
    )
    scan_depth: int | None = Field(
        default=None, validation_alias=_alias("scanDepth", "scan_depth"),
    )
    content: str = ""
    comment: str = ""
    world: str | None = None
    probability: int | None = None
    use_probability: bool = Field(
        default=False, validation_alias=_alias("useProbability", "use_probability"),
    )

    character_tag: bool = Field(
        default=False,
        validation_alias=_alias("bunnymo_character", "characterTag", "character_tag"),
    )
    triggers: list[str] = Field(default_factory=list)
    delay_until_recursion: int | None = Field(
        default=None, validation_alias=_alias("delayUntilRecursion", "delay_until_recursion"),
    )
    cooldown: int | None = None
    delay: int | None = None
    source: str | None = None
    reported_reason: str | None = Field(
        default=None,
        validation_alias=_alias("triggerReason", "activationReason", "reported_reason"),
    )
    matched_text: str | None = Field(
        default=None, validation_alias=_alias("matchedText", "contextUsed", "matched_text"),
    )

    _primary: list[Key] = PrivateAttr(default_factory=list)
    _secondary: list[Key] = PrivateAttr(default_factory=list)
    _truncated: dict[str, int] = PrivateAttr(default_factory=dict)

    # ------------------------------------------------------------------
    # Normalisation
    # ------------------------------------------------------------------

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("keys", "secondary_keys", "decorators", "triggers", mode="before")
    @classmethod
    def _coerce_str_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value else []
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"expected a list of strings, got {type(value).__name__}")
        items: list[str] = []
        for item in value:
            if item is None or item == "":
                continue
            if isinstance(item, bool) or not isinstance(item, (str, int, float)):
                raise ValueError(f"unsupported key type {type(item).__name__}")
            items.append(str(item))
        return items

    @field_validator(
        "constant", "vectorized", "selective", "use_probability", "character_tag",
        "match_persona_description", "match_character_description",
        "match_character_personality", "match_character_depth_prompt",
        "match_scenario", "match_creator_notes",
        mode="before",
    )
    @classmethod
    def _none_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("content", "comment", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("selective_logic", mode="before")
    @classmethod
    def _default_logic(cls, value: Any) -> Any:
        return SelectiveLogic.AND_ANY if value is None else value

    def model_post_init(self, __context: Any) -> None:
        self._primary, dropped = compile_keys(self.keys)
        self._secondary, dropped_secondary = compile_keys(self.secondary_keys)
        if len(self.keys) > MAX_KEYS:
            self._truncated["keys"] = len(self.keys)
        if len(self.secondary_keys) > MAX_KEYS:
            self._truncated["secondary_keys"] = len(self.secondary_keys)
        if dropped or dropped_secondary:
            self._truncated["oversized_keys"] = dropped + dropped_secondary

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def primary_keys(self) -> list[Key]:
        """Compiled primary keys, capped at MAX_KEYS."""
        return self._primary

    @property
    def compiled_secondary_keys(self) -> list[Key]:
        return self._secondary

    @property
    def truncated(self) -> dict[str, int]:
        return dict(self._truncated)

    @property
    def options(self) -> MatchOptions:
        return MatchOptions(
            case_sensitive=bool(self.case_sensitive),
            match_whole_words=bool(self.match_whole_words),
        )

    @property
    def title(self) -> str:
        return self.comment or (self.keys[0] if self.keys else "") or self.id or "Unknown entry"

    @property
    def global_context_matches(self) -> list[str]:
        return [label for field, label in GLOBAL_CONTEXT_FIELDS if getattr(self, field)]


class ConversationMessage(BaseModel):
    """One chat message. Supplied in order, most recent last."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: str = ""
    is_user: bool = False
    is_system: bool = False
    text: str = Field(default="", validation_alias=_alias("mes", "text"))
    index: int | None = None

    @field_validator("name", "text", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("is_user", "is_system", mode="before")
    @classmethod
    def _none_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def sender(self) -> str:
        if self.is_user:
            return "user"
        return self.name or "Character"


class ScanDepthConfig(BaseModel):
    """The override layers consulted by the scan-depth resolver."""

    chat_override: int | None = None
    character_override: int | None = None
    global_default: int | None = None


class TriggeringMessage(BaseModel):
    """A message inside the scan window that contains at least one key."""

    sender: str
    index: int
    is_last: bool
    is_system: bool = False
    excerpt: str
    keys: list[str] = Field(default_factory=list)
    fragments: list[str] = Field(default_factory=list)


class Evidence(BaseModel):
    matched_keys: list[str] = Field(default_factory=list)
    secondary_keys: list[str] = Field(default_factory=list)
    secondary_logic: str | None = None
    triggering_messages: list[TriggeringMessage] = Field(default_factory=list)
    global_matches: list[str] = Field(default_factory=list)
    probability_note: str | None = None
    scan_depth: int | None = None
    triggering_entry: str | None = None
    truncated: dict[str, int] = Field(default_factory=dict)
    details: dict[str, Any] = Field(default_factory=dict)


class AttributionReport(BaseModel):
    """Why one entry was activated. Exactly one mechanism per entry."""

    entry_id: str
    title: str
    mechanism: Mechanism
    reason: str
    summary: str
    explanation: str = ""
    high_confidence: bool = False
    category: str = "General"
    evidence: Evidence = Field(default_factory=Evidence)


class BatchResult(BaseModel):
    """All reports produced for one "entries activated" event."""

    cycle_id: str
    generation_type: str | None = None
    total_entries: int
    processed_entries: int
    truncated: bool = False
    reports: list[AttributionReport] = Field(default_factory=list)


class EngineSettings(BaseModel):
    """External configuration consumed by the engine."""

    global_scan_depth: int | None = None
    chat_scan_depth: dict[str, int] = Field(default_factory=dict)
    character_scan_depth: dict[str, int] = Field(default_factory=dict)
    character_repositories: list[str] = Field(default_factory=list)
    tag_libraries: list[str] = Field(default_factory=list)
    debug: bool = False
    digest_template: str = ""

    def scan_depth_config(
        self, chat_id: str | None = None, character_id: str | None = None
    ) -> ScanDepthConfig:
        return ScanDepthConfig(
            chat_override=self.chat_scan_depth.get(chat_id) if chat_id else None,
            character_override=(
                self.character_scan_depth.get(character_id) if character_id else None
            ),
            global_default=self.global_scan_depth,
        )
