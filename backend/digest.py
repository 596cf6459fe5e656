"""Handlebars rendering of attribution reports into a plain-text digest.

The digest groups one cycle's reports by display category. The template is
user-configurable (settings.digest_template); an empty setting uses
DEFAULT_DIGEST_TEMPLATE. Context shape:

  cycle_id, generation_type, total, processed, truncated
  groups: [{name, count, reports: [AttributionReport as dict]}]
"""

from collections.abc import Callable
from functools import lru_cache
from typing import Any

import pybars

from lorelens.categories import group_by_category
from lorelens.models import BatchResult


_compiler = pybars.Compiler()

MAX_CACHED_TEMPLATES = 16

DEFAULT_DIGEST_TEMPLATE = (
    "Cycle {{{cycle_id}}}: {{processed}} of {{total}} entries"
    "{{#if truncated}} (truncated){{/if}}\n"
    "{{#each groups}}"
    "\n== {{{name}}} ({{count}}) ==\n"
    "{{#each reports}}"
    "- {{{title}}}: {{{summary}}}\n"
    "{{#if evidence.matched_keys}}  keys: {{{join evidence.matched_keys \", \"}}}\n{{/if}}"
    "{{#take evidence.triggering_messages 2}}  > [{{{sender}}}] {{{excerpt}}}\n{{/take}}"
    "{{/each}}"
    "{{/each}}"
)


class DigestError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_take(this, options, items, count):
    """{{#take array N}}...{{/take}}: iterate over the first N items."""
    result = []
    for item in list(items or [])[:int(count)]:
        result.extend(options["fn"](item))
    return result


def _helper_join(this, items, separator=", "):
    """{{{join array ", "}}}: join scalar items into one string."""
    return str(separator).join(str(item) for item in (items or []))


_HELPERS: dict[str, Callable] = {
    "take": _helper_take,
    "join": _helper_join,
}


@lru_cache(maxsize=MAX_CACHED_TEMPLATES)
def _compile(template_str: str) -> Callable:
    return _compiler.compile(template_str)


def render_template(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Compiled templates are cached by source string, keeping the
    MAX_CACHED_TEMPLATES most recently used.
    """
    try:
        compiled = _compile(template_str)
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise DigestError(f"Template error: {e}") from e


def build_digest_context(batch: BatchResult) -> dict[str, Any]:
    groups = [
        {
            "name": name,
            "count": len(items),
            "reports": [r.model_dump(mode="json") for r in items],
        }
        for name, items in group_by_category(batch.reports).items()
    ]
    return {
        "cycle_id": batch.cycle_id,
        "generation_type": batch.generation_type or "",
        "total": batch.total_entries,
        "processed": batch.processed_entries,
        "truncated": batch.truncated,
        "groups": groups,
    }


def render_digest(batch: BatchResult, template_str: str | None = None) -> str:
    """Render a batch as text with the given (or default) template."""
    return render_template(template_str or DEFAULT_DIGEST_TEMPLATE, build_digest_context(batch))
