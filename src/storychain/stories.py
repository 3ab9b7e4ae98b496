"""Story models - previews, components and the stories grouped under them."""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr

from .context import StoryContext
from .pipeline import Pipeline, build

logger = logging.getLogger(__name__)

_SEPARATOR_PATTERN = re.compile(r"[\W_]+")


def sanitize(text: str) -> str:
    """Lowercase `text` and collapse every run of non-alphanumerics into a dash."""
    return _SEPARATOR_PATTERN.sub("-", text.lower()).strip("-")


def to_id(title: str, name: str) -> str:
    """Return the story id for `name` under the component `title`."""
    title_part = sanitize(title)
    name_part = sanitize(name)
    if not title_part or not name_part:
        raise ValueError(f"Invalid story id for '{title}' / '{name}'")
    return f"{title_part}--{name_part}"


def combine_parameters(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Deep-merge parameter layers; nested dicts merge, anything else is replaced."""
    combined: dict[str, Any] = {}
    for layer in layers:
        for key, value in (layer or {}).items():
            current = combined.get(key)
            if isinstance(current, dict) and isinstance(value, Mapping):
                combined[key] = combine_parameters(current, value)
            elif isinstance(value, Mapping):
                combined[key] = combine_parameters(value)
            else:
                combined[key] = value
    return combined


class Annotations(BaseModel):
    """Settings shared by previews, components and stories."""

    model_config = {"arbitrary_types_allowed": True}

    decorators: list[Callable[..., Any]] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)
    render: Callable[..., Any] | None = None


class Preview(Annotations):
    """Project-wide annotations; its decorators wrap every story."""

    globals: dict[str, Any] = Field(default_factory=dict)


class Story(Annotations):
    """A single named state of a component."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    arg_types: dict[str, Any] = Field(default_factory=dict)


class Component(Annotations):
    """A titled group of stories."""

    title: str
    id: str | None = None
    args: dict[str, Any] = Field(default_factory=dict)
    arg_types: dict[str, Any] = Field(default_factory=dict)
    stories: list[Story] = Field(default_factory=list)

    @property
    def component_id(self) -> str:
        return self.id or sanitize(self.title)

    def __iter__(self) -> Iterator[Story]:
        return iter(self.stories)

    def prepare(self, preview: Preview | None = None) -> list[PreparedStory]:
        """Prepare every story of this component."""
        logger.debug("Preparing %d story(ies) of '%s'", len(self.stories), self.title)
        return [prepare_story(story, self, preview) for story in self.stories]


class PreparedStory(BaseModel):
    """A story with its annotations combined and its pipeline built."""

    model_config = {"arbitrary_types_allowed": True}

    id: str
    name: str
    title: str
    component_id: str
    render_fn: Callable[..., Any]
    decorators: list[Callable[..., Any]] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)
    initial_args: dict[str, Any] = Field(default_factory=dict)
    arg_types: dict[str, Any] = Field(default_factory=dict)
    globals: dict[str, Any] = Field(default_factory=dict)

    _pipeline: Pipeline[Any] = PrivateAttr()

    def model_post_init(self, __context: Any) -> None:
        self._pipeline = build(self.render_fn, self.decorators)

    @property
    def pipeline(self) -> Pipeline[Any]:
        return self._pipeline

    def make_context(
        self,
        view_mode: str = "story",
        args: Mapping[str, Any] | None = None,
        globals: Mapping[str, Any] | None = None,
    ) -> StoryContext:
        """Build the context a render of this story starts from."""
        return {
            "id": self.id,
            "component_id": self.component_id,
            "title": self.title,
            "kind": self.title,
            "name": self.name,
            "story": self.name,
            "view_mode": view_mode,
            "parameters": copy.deepcopy(self.parameters),
            "initial_args": copy.deepcopy(self.initial_args),
            "arg_types": copy.deepcopy(self.arg_types),
            "args": {**copy.deepcopy(self.initial_args), **(args or {})},
            "globals": {**copy.deepcopy(self.globals), **(globals or {})},
        }

    def render(
        self,
        view_mode: str = "story",
        args: Mapping[str, Any] | None = None,
        globals: Mapping[str, Any] | None = None,
    ) -> Any:
        """Run the decorated story and return what the render function returns."""
        logger.debug("Rendering story '%s' (%s)", self.id, view_mode)
        return self._pipeline(self.make_context(view_mode, args=args, globals=globals))

    def fork(self) -> PreparedStory:
        """Return a copy with its own pipeline, for renders that overlap this one."""
        forked = self.model_copy()
        forked._pipeline = build(self.render_fn, self.decorators)
        return forked


def prepare_story(
    story: Story,
    component: Component,
    preview: Preview | None = None,
) -> PreparedStory:
    """Combine story, component and preview annotations into a PreparedStory.

    Story decorators are innermost and preview decorators outermost.
    Parameters are deep-merged preview -> component -> story; args and arg
    types are merged component -> story.
    """
    if preview is None:
        preview = Preview()
    render_fn = story.render or component.render or preview.render
    if render_fn is None:
        raise ValueError(f"No render function for story '{story.name}' of '{component.title}'")

    story_id = to_id(component.component_id, story.name)
    logger.debug("Preparing story '%s'", story_id)
    return PreparedStory(
        id=story_id,
        name=story.name,
        title=component.title,
        component_id=component.component_id,
        render_fn=render_fn,
        decorators=[*story.decorators, *component.decorators, *preview.decorators],
        parameters=combine_parameters(preview.parameters, component.parameters, story.parameters),
        initial_args={**component.args, **story.args},
        arg_types={**component.arg_types, **story.arg_types},
        globals=dict(preview.globals),
    )
