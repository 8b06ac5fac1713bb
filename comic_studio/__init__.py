# comic_studio/__init__.py
from .config import config
from .logger import get_logger
from .errors import ConfigurationError, PanelRenderError
from .schemas import (
    AspectRatio,
    CaptionPlacement,
    CharacterReference,
    GenerationProgress,
    GenerationService,
    PanelRecord,
    PanelSpec,
    StoryOptions,
)
from .features.generation.context import RunContext
from .features.generation.service import run_generation
from .main import app


__all__ = ["app",
           "config",
           "get_logger",
           "ConfigurationError",
           "PanelRenderError",
           "AspectRatio",
           "CaptionPlacement",
           "CharacterReference",
           "GenerationProgress",
           "GenerationService",
           "PanelRecord",
           "PanelSpec",
           "StoryOptions",
           "RunContext",
           "run_generation",
           ]
