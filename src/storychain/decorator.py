"""Decorator protocol and the name registries used by declaration files."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol

from .context import StoryContext

_decorator_registry: dict[str, Callable[..., Any]] = {}
_renderer_registry: dict[str, Callable[..., Any]] = {}


class NextFn[R](Protocol):
    """Continue the chain, optionally extending the context."""

    def __call__(self, update: Mapping[str, Any] | None = None, /) -> R: ...


class Decorator[R](Protocol):
    """Wraps the rest of the chain; receives the continuation and the current context."""

    def __call__(self, next: NextFn[R], context: StoryContext, /) -> R: ...


type RenderFn[R] = Callable[[StoryContext], R]


def decorator(name: str):
    """Register a function as a named story decorator."""

    def register(fn):
        _decorator_registry[name] = fn
        return fn

    return register


def renderer(name: str):
    """Register a function as a named render function."""

    def register(fn):
        _renderer_registry[name] = fn
        return fn

    return register


def lookup_decorator(name: str) -> Callable[..., Any]:
    if name not in _decorator_registry:
        raise ValueError(f"Unknown decorator: '{name}'")
    return _decorator_registry[name]


def lookup_renderer(name: str) -> Callable[..., Any]:
    if name not in _renderer_registry:
        raise ValueError(f"Unknown renderer: '{name}'")
    return _renderer_registry[name]
