"""Pipeline - a render function wrapped once by an ordered list of decorators."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from functools import reduce
from typing import Any

from .context import StoryContext, merge_context
from .decorator import Decorator, NextFn, RenderFn

logger = logging.getLogger(__name__)


def _describe(fn: Any) -> str:
    return getattr(fn, "__qualname__", None) or type(fn).__name__


class Pipeline[R]:
    """Composed entry point for a render function and its decorators.

    The first decorator is the innermost wrapper and the last one is called
    first: declaring ``[a, b, c]`` runs ``c``, ``b``, ``a`` and then the
    render function. The chain is folded once, when the pipeline is built,
    and reused for every call.

    Each pipeline owns a single current-context cell. Calling the pipeline
    resets the cell to the supplied context; every ``next(update)`` merges
    the update into the cell and hands the result to the next frame inward.

    Decorators may suspend (``async def``) before calling ``next``. Separate
    pipelines never share a cell, so overlapping suspensions in different
    pipelines do not mix contexts. Calling the *same* pipeline again before
    an earlier call has finished shares the cell between both calls; build
    one pipeline per concurrent render, or serialize the calls.
    """

    def __init__(
        self,
        render_fn: RenderFn[R],
        decorators: Iterable[Decorator[R]] = (),
    ) -> None:
        if not callable(render_fn):
            raise TypeError(f"Render function is not callable: {render_fn!r}")
        decorators = tuple(decorators)
        for index, deco in enumerate(decorators):
            if not callable(deco):
                raise TypeError(f"Decorator at position {index} is not callable: {deco!r}")

        self.render_fn = render_fn
        self.decorators = decorators
        self._current: StoryContext | None = None

        logger.debug(
            "Composing %d decorator(s) around %s",
            len(decorators),
            _describe(render_fn),
        )
        self._entry: RenderFn[R] = reduce(self._wrap, decorators, render_fn)

    def _bind(self, inner: RenderFn[R]) -> NextFn[R]:
        """Return the continuation a decorator calls to reach `inner`."""

        def next_fn(update: Mapping[str, Any] | None = None) -> R:
            self._current = merge_context(self._current, update)
            return inner(self._current)

        return next_fn

    def _wrap(self, inner: RenderFn[R], deco: Decorator[R]) -> RenderFn[R]:
        bound = self._bind(inner)

        def frame(context: StoryContext) -> R:
            return deco(bound, context)

        return frame

    def __call__(self, context: StoryContext) -> R:
        self._current = context
        return self._entry(context)

    def __repr__(self) -> str:
        return f"Pipeline(render={_describe(self.render_fn)}, decorators={len(self.decorators)})"


def build[R](
    render_fn: Callable[[StoryContext], R],
    decorators: Iterable[Decorator[R]] = (),
) -> Pipeline[R]:
    """Wrap `render_fn` with `decorators` and return the reusable entry point."""
    return Pipeline(render_fn, decorators)
