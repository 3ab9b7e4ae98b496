"""Workspace - stories accumulated from declaration data, keyed by story id."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any, overload

from . import hcl
from .decorator import lookup_decorator, lookup_renderer
from .stories import Component, PreparedStory, Preview, Story, sanitize

logger = logging.getLogger(__name__)


def _decode_annotations(data: dict[str, Any]) -> dict[str, Any]:
    """Resolve decorator and renderer names shared by all annotation blocks."""
    kwargs: dict[str, Any] = {
        "decorators": [lookup_decorator(name) for name in data.get("decorators", [])],
        "parameters": data.get("parameters", {}),
    }
    if data.get("render") is not None:
        kwargs["render"] = lookup_renderer(data["render"])
    return kwargs


def _decode_preview(data: dict[str, Any]) -> Preview:
    return Preview(globals=data.get("globals", {}), **_decode_annotations(data))


def _decode_story(name: str, data: dict[str, Any]) -> Story:
    return Story(
        name=name,
        args=data.get("args", {}),
        arg_types=data.get("arg_types", {}),
        **_decode_annotations(data),
    )


def _decode_component(title: str, data: dict[str, Any]) -> Component:
    """Build a Component from a parsed ``component`` block.

    Parsed structure for nested stories:
        {"story": [{"Primary": {"args": {...}}}, ...], ...}
    """
    logger.debug("Decoding component '%s'", title)
    stories = [
        _decode_story(name, story_data)
        for story_block in data.get("story", [])
        for name, story_data in story_block.items()
    ]
    return Component(
        title=title,
        id=data.get("id"),
        args=data.get("args", {}),
        arg_types=data.get("arg_types", {}),
        stories=stories,
        **_decode_annotations(data),
    )


class Workspace(Mapping[str, PreparedStory]):
    """Stories loaded from declaration files, prepared on first access.

    Prepared stories are cached so each keeps a single pipeline; loading more
    data discards the cache.
    """

    def __init__(self, context: dict[str, Any] | None = None) -> None:
        self._context = context
        self._preview_data: dict[str, Any] | None = None
        self._pending_components: dict[str, dict[str, Any]] = {}
        self._prepared: dict[str, PreparedStory] | None = None

    def load(self, path: str | Path) -> None:
        """Parse a single .hcl file and add its blocks to the workspace."""
        self.load_data(hcl.load(Path(path), context=self._context))

    def load_data(self, data: dict[str, Any]) -> None:
        """Extract preview and component blocks from a parsed data dict.

        Raises ValueError for a second preview block or a component title
        that is already loaded; nothing from `data` is added in that case.
        """
        previews = data.get("preview", [])
        if len(previews) + (self._preview_data is not None) > 1:
            raise ValueError("Duplicate preview block")

        components: dict[str, dict[str, Any]] = {}
        for comp_block in data.get("component", []):
            for title, comp_data in comp_block.items():
                if title in self._pending_components or title in components:
                    raise ValueError(f"Duplicate component: '{title}'")
                logger.debug("Found component '%s'", title)
                components[title] = comp_data

        if previews:
            logger.debug("Found preview")
            self._preview_data = previews[0]
        self._pending_components.update(components)
        self._prepared = None

    def scan(self, path: str | Path, *, recurse: bool = True) -> None:
        """Load every .hcl file under `path` in sorted order."""
        root = Path(path)
        if not root.is_dir():
            logger.debug("Skipping scan of missing directory %s", root)
            return
        pattern = "**/*.hcl" if recurse else "*.hcl"
        for file in sorted(root.glob(pattern)):
            self.load(file)

    @property
    def preview(self) -> Preview:
        if self._preview_data is None:
            return Preview()
        return _decode_preview(self._preview_data)

    @property
    def components(self) -> dict[str, Component]:
        return {
            title: _decode_component(title, data)
            for title, data in self._pending_components.items()
        }

    def _resolve(self) -> dict[str, PreparedStory]:
        if self._prepared is not None:
            return self._prepared

        logger.debug("Preparing stories of %d component(s)", len(self._pending_components))
        preview = self.preview
        prepared: dict[str, PreparedStory] = {}
        for component in self.components.values():
            for story in component.prepare(preview):
                if story.id in prepared:
                    raise ValueError(f"Duplicate story id: '{story.id}'")
                prepared[story.id] = story

        self._prepared = prepared
        return prepared

    def render(self, story_id: str, **kwargs) -> Any:
        """Render a story by id. kwargs are passed to PreparedStory.render."""
        logger.info("Rendering story '%s'", story_id)
        return self[story_id].render(**kwargs)

    def __getitem__(self, story_id: str) -> PreparedStory:
        return self._resolve()[story_id]

    def __contains__(self, story_id: object) -> bool:
        return story_id in self._pending_story_ids()

    def _pending_story_ids(self) -> set[str]:
        """Story ids declared so far, without resolving decorators or renderers."""
        ids: set[str] = set()
        for title, data in self._pending_components.items():
            component_id = data.get("id") or sanitize(title)
            for story_block in data.get("story", []):
                ids.update(f"{sanitize(component_id)}--{sanitize(name)}" for name in story_block)
        return ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._resolve())

    def __len__(self) -> int:
        return len(self._resolve())

    @overload
    def get(self, story_id: str) -> PreparedStory | None: ...
    @overload
    def get(self, story_id: str, default: PreparedStory) -> PreparedStory: ...
    @overload
    def get(self, story_id: str, default: None) -> PreparedStory | None: ...
    def get(self, story_id: str, default: Any = None) -> PreparedStory | None:
        return self._resolve().get(story_id, default)

    def filter(self, story_ids: Iterable[str]) -> list[PreparedStory]:
        """Return stories matching the given ids, preserving input order."""
        resolved = self._resolve()
        return [s for i in story_ids if (s := resolved.get(i)) is not None]

    def __repr__(self) -> str:
        comp_count = len(self._pending_components)
        has_preview = self._preview_data is not None
        return f"Workspace(components={comp_count}, preview={has_preview})"
