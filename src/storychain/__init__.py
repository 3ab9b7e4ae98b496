"""storychain - Compose story render functions with context-passing decorators."""

from .context import CORE_FIELDS as CORE_FIELDS
from .context import merge_context as merge_context
from .context import sanitize_update as sanitize_update
from .decorator import Decorator as Decorator
from .decorator import decorator as decorator
from .decorator import renderer as renderer
from .pipeline import Pipeline as Pipeline
from .pipeline import build as build
from .stories import Component as Component
from .stories import PreparedStory as PreparedStory
from .stories import Preview as Preview
from .stories import Story as Story
from .stories import prepare_story as prepare_story
from .stories import to_id as to_id
from .workspace import Workspace as Workspace
