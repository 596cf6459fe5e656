"""LoreLens: explains why lore entries were activated during a generation cycle."""

from lorelens.engine import AttributionEngine  # noqa: F401
from lorelens.models import (  # noqa: F401
    AttributionReport,
    BatchResult,
    ConversationMessage,
    EngineSettings,
    LoreEntry,
    ScanDepthConfig,
    SelectiveLogic,
)
