"""FastMCP server exposing trigger attribution as MCP tools.

Tools:
  - explain_entries(entries, messages, generation_type)  run one full cycle
  - classify_entries(entries)                            display categories only

The server owns one engine session. set_settings() replaces its settings
(used in tests); when run as __main__ settings are loaded from the data dir.

Usage:
    uv run python -m backend.mcp_server
"""

from typing import Any

from mcp.server.fastmcp import FastMCP

from lorelens.engine import AttributionEngine
from lorelens.models import EngineSettings

mcp = FastMCP("lorelens")

_engine = AttributionEngine()


def set_settings(settings: EngineSettings) -> None:
    """Replace the engine settings (used in tests)."""
    _engine.settings = settings


def get_engine() -> AttributionEngine:
    """Return the server's engine session (used in tests to inspect state)."""
    return _engine


@mcp.tool()
def explain_entries(
    entries: list[dict[str, Any]],
    messages: list[dict[str, Any]],
    generation_type: str = "normal",
) -> dict:
    """Explain why each activated lore entry was selected for this generation."""
    _engine.on_generation_start(generation_type)
    batch = _engine.on_entries_activated(entries, messages)
    return batch.model_dump(mode="json")


@mcp.tool()
def classify_entries(entries: list[dict[str, Any]]) -> dict:
    """Return the display category of each lore entry."""
    return {"entries": _engine.categorize(entries)}


if __name__ == "__main__":
    import os
    from pathlib import Path

    from backend import storage

    storage.init_storage(Path(os.getenv("DATA_DIR", "data")))
    set_settings(storage.get_settings())
    mcp.run()
