"""Tests for storychain.stories."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from storychain.stories import (
    Component,
    PreparedStory,
    Preview,
    Story,
    combine_parameters,
    prepare_story,
    sanitize,
    to_id,
)


def _render(ctx):
    return ctx


def _tagging(tag, order):
    def deco(next_fn, ctx):
        order.append(tag)
        return next_fn()

    return deco


class TestIds:
    def test_sanitize_lowercases_and_dashes(self):
        assert sanitize("Example/Button") == "example-button"

    def test_sanitize_collapses_and_trims(self):
        assert sanitize("  Hello,  World!! ") == "hello-world"

    def test_sanitize_underscores(self):
        assert sanitize("with_underscore") == "with-underscore"

    def test_to_id(self):
        assert to_id("Example/Button", "Primary Large") == "example-button--primary-large"

    def test_to_id_empty_part_raises(self):
        with pytest.raises(ValueError, match="Invalid story id"):
            to_id("Example", "!!!")


class TestCombineParameters:
    def test_nested_dicts_merge(self):
        combined = combine_parameters({"backgrounds": {"default": "light"}}, {"backgrounds": {"grid": True}})
        assert combined == {"backgrounds": {"default": "light", "grid": True}}

    def test_scalars_replace(self):
        assert combine_parameters({"layout": "padded"}, {"layout": "centered"}) == {
            "layout": "centered"
        }

    def test_none_layers_skipped(self):
        assert combine_parameters(None, {"a": 1}, None) == {"a": 1}

    def test_layers_not_mutated(self):
        first = {"nested": {"a": 1}}
        combine_parameters(first, {"nested": {"b": 2}})
        assert first == {"nested": {"a": 1}}


class TestModels:
    def test_story_defaults(self):
        story = Story(name="Primary")
        assert story.decorators == []
        assert story.args == {}
        assert story.render is None

    def test_non_callable_decorator_rejected(self):
        with pytest.raises(ValidationError):
            Story(name="Primary", decorators=["nope"])

    def test_component_id_from_title(self):
        assert Component(title="Example/Button").component_id == "example-button"

    def test_component_id_override(self):
        assert Component(title="Example/Button", id="btn").component_id == "btn"

    def test_component_iterable(self):
        comp = Component(title="C", stories=[Story(name="A"), Story(name="B")])
        assert [s.name for s in comp] == ["A", "B"]


class TestPrepareStory:
    def test_builds_id_and_identity_fields(self):
        prepared = prepare_story(Story(name="Primary"), Component(title="Example/Button", render=_render))
        assert prepared.id == "example-button--primary"
        assert prepared.title == "Example/Button"
        assert prepared.component_id == "example-button"

    def test_story_render_wins(self):
        def story_render(ctx):
            return "story"

        prepared = prepare_story(
            Story(name="S", render=story_render),
            Component(title="C", render=_render),
            Preview(render=_render),
        )
        assert prepared.render_fn is story_render

    def test_falls_back_to_preview_render(self):
        prepared = prepare_story(Story(name="S"), Component(title="C"), Preview(render=_render))
        assert prepared.render_fn is _render

    def test_missing_render_raises(self):
        with pytest.raises(ValueError, match="No render function"):
            prepare_story(Story(name="S"), Component(title="C"))

    def test_decorators_story_inner_preview_outer(self):
        order = []
        prepared = prepare_story(
            Story(name="S", decorators=[_tagging("story", order)]),
            Component(title="C", render=_render, decorators=[_tagging("component", order)]),
            Preview(decorators=[_tagging("preview", order)]),
        )
        prepared.render()
        assert order == ["preview", "component", "story"]

    def test_parameters_layered(self):
        prepared = prepare_story(
            Story(name="S", parameters={"layout": "fullscreen", "docs": {"source": "code"}}),
            Component(title="C", render=_render, parameters={"docs": {"description": "d"}}),
            Preview(parameters={"layout": "padded", "docs": {"source": "auto"}}),
        )
        assert prepared.parameters == {
            "layout": "fullscreen",
            "docs": {"source": "code", "description": "d"},
        }

    def test_args_and_arg_types_merged(self):
        prepared = prepare_story(
            Story(name="S", args={"primary": True}, arg_types={"size": {"control": "radio"}}),
            Component(
                title="C",
                render=_render,
                args={"primary": False, "label": "Button"},
                arg_types={"label": {"control": "text"}},
            ),
        )
        assert prepared.initial_args == {"primary": True, "label": "Button"}
        assert set(prepared.arg_types) == {"size", "label"}

    def test_component_prepare(self):
        comp = Component(title="C", render=_render, stories=[Story(name="A"), Story(name="B")])
        prepared = comp.prepare()
        assert [p.id for p in prepared] == ["c--a", "c--b"]


class TestPreparedStory:
    def _prepared(self, **kwargs) -> PreparedStory:
        return prepare_story(
            Story(name="Primary", args={"label": "Button"}),
            Component(title="Example/Button", render=_render, **kwargs),
            Preview(globals={"theme": "light"}),
        )

    def test_make_context_core_fields(self):
        ctx = self._prepared().make_context()
        assert ctx["id"] == "example-button--primary"
        assert ctx["kind"] == ctx["title"] == "Example/Button"
        assert ctx["name"] == ctx["story"] == "Primary"
        assert ctx["view_mode"] == "story"
        assert ctx["initial_args"] == {"label": "Button"}

    def test_make_context_overrides(self):
        ctx = self._prepared().make_context("docs", args={"label": "Hi"}, globals={"locale": "en"})
        assert ctx["view_mode"] == "docs"
        assert ctx["args"] == {"label": "Hi"}
        assert ctx["globals"] == {"theme": "light", "locale": "en"}
        assert ctx["initial_args"] == {"label": "Button"}

    def test_render_passes_context(self):
        result = self._prepared().render(args={"size": "large"})
        assert result["args"] == {"label": "Button", "size": "large"}

    def test_pipeline_built_once(self):
        prepared = self._prepared()
        pipeline = prepared.pipeline
        prepared.render()
        prepared.render()
        assert prepared.pipeline is pipeline

    def test_decorator_cannot_change_identity(self):
        def spoof(next_fn, ctx):
            return next_fn({"id": "other", "title": "Other", "args": {"label": "Spoofed"}})

        result = self._prepared(decorators=[spoof]).render()
        assert result["id"] == "example-button--primary"
        assert result["title"] == "Example/Button"
        assert result["args"] == {"label": "Spoofed"}

    def test_decorator_mutation_does_not_leak_into_story(self):
        def mutating(next_fn, ctx):
            ctx["parameters"]["docs"]["source"] = "changed"
            ctx["initial_args"]["label"] = "changed"
            ctx["args"]["label"] = "changed"
            ctx["globals"]["theme"] = "changed"
            return next_fn()

        prepared = prepare_story(
            Story(name="Primary", args={"label": "Button"}, parameters={"docs": {"source": "code"}}),
            Component(title="Example/Button", render=_render, decorators=[mutating]),
            Preview(globals={"theme": "light"}),
        )
        prepared.render()

        assert prepared.parameters == {"docs": {"source": "code"}}
        assert prepared.initial_args == {"label": "Button"}
        assert prepared.globals == {"theme": "light"}
        second = prepared.make_context()
        assert second["parameters"]["docs"]["source"] == "code"
        assert second["args"] == {"label": "Button"}

    def test_fork_has_independent_pipeline(self):
        prepared = self._prepared()
        forked = prepared.fork()
        assert forked.pipeline is not prepared.pipeline
        assert forked.id == prepared.id

    def test_fork_isolates_concurrent_renders(self):
        rendered = []

        async def wait(next_fn, ctx):
            await asyncio.sleep(0)
            return next_fn()

        prepared = prepare_story(
            Story(name="S"),
            Component(title="C", render=lambda ctx: rendered.append(ctx["args"]["n"]), decorators=[wait]),
        )
        forked = prepared.fork()

        async def scenario():
            await asyncio.gather(prepared.render(args={"n": 1}), forked.render(args={"n": 2}))

        asyncio.run(scenario())
        assert sorted(rendered) == [1, 2]
