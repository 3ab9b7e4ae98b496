"""Story context - the mapping threaded through a decorator chain."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

type StoryContext = dict[str, Any]

# fixed when a render starts; decorators may read but never replace them
CORE_FIELDS: frozenset[str] = frozenset(
    {
        "id",
        "component_id",
        "title",
        "kind",
        "name",
        "story",
        "view_mode",
        "parameters",
        "initial_args",
        "arg_types",
    }
)


def sanitize_update(update: Mapping[str, Any] | None = None) -> StoryContext:
    """Drop core fields from a decorator's context update."""
    if not update:
        return {}
    return {key: value for key, value in update.items() if key not in CORE_FIELDS}


def merge_context(
    base: Mapping[str, Any] | None,
    update: Mapping[str, Any] | None = None,
) -> StoryContext:
    """Return a new context with the extension fields of `update` laid over `base`.

    The merge is shallow: a key present in `update` replaces the value in
    `base` wholesale, keys absent from `update` are kept. Neither argument
    is modified.
    """
    merged: StoryContext = dict(base) if base else {}
    merged.update(sanitize_update(update))
    return merged
