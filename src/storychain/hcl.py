"""HCL story declarations - template, parse and expand .hcl story files."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .workspace import Workspace

import hcl2
import jinja2

logger = logging.getLogger(__name__)

# attributes holding story data; names of decorators and renderers are left alone
VALUE_KEYS = ("args", "arg_types", "parameters", "globals")

_REF_PATTERN = re.compile(r"\$\{(env\.)?(\w+)\}")


def scan(
    path: str | Path,
    *,
    recurse: bool = True,
    context: dict[str, Any] | None = None,
) -> Workspace:
    """Return a Workspace holding every story file found under `path`."""
    from .workspace import Workspace

    ws = Workspace(context=context)
    ws.scan(path, recurse=recurse)
    return ws


def _render_template(file: Path, context: dict[str, Any] | None) -> str:
    env = jinja2.Environment(undefined=jinja2.StrictUndefined, keep_trailing_newline=True)
    try:
        return env.from_string(file.read_text()).render(context or {})
    except jinja2.TemplateError as exc:
        raise ValueError(f"{file}: {exc}") from exc


def load(
    file: str | Path,
    *,
    context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Parse a story file into ``preview`` and ``component`` block lists.

    The file is rendered as a Jinja2 template with `context` first. After
    parsing, ``${env.NAME}`` and ``${CWD}`` references are expanded inside
    args, arg types, parameters and globals of every block.
    """
    file = Path(file)
    data = hcl2.loads(_render_template(file, context))

    previews = data.get("preview", [])
    for preview in previews:
        _expand_values(preview)

    components = data.get("component", [])
    for comp_block in components:
        for comp_data in comp_block.values():
            _expand_values(comp_data)
            for story_block in comp_data.get("story", []):
                for story_data in story_block.values():
                    _expand_values(story_data)

    logger.debug(
        "Loaded %s: %d preview and %d component block(s)",
        file,
        len(previews),
        sum(len(block) for block in components),
    )
    return data


def _expand_values(block: dict[str, Any]) -> None:
    for key in VALUE_KEYS:
        if key in block:
            block[key] = interpolate(block[key])


def _substitute(match: re.Match) -> str:
    from_env, name = match.group(1), match.group(2)
    if from_env:
        value = os.environ.get(name)
        if value is None:
            logger.warning("Environment variable '%s' is not set", name)
            return ""
        return value
    if name == "CWD":
        return str(Path.cwd())
    logger.warning("Unknown variable '%s'", name)
    return match.group(0)


def interpolate(value: Any) -> Any:
    """Expand ${env.VAR} and ${CWD} references in strings, recursing into dicts and lists."""
    if isinstance(value, dict):
        return {k: interpolate(v) for k, v in value.items()}
    if isinstance(value, list):
        return [interpolate(item) for item in value]
    if isinstance(value, str) and "${" in value:
        return _REF_PATTERN.sub(_substitute, value)
    return value
