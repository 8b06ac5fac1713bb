"""
Backend variants, selected by the `service` field of StoryOptions.

Each variant carries capability tags and the same three calls:
request_scenes, describe_character, render_image. The orchestrator and the
engines dispatch through these records instead of branching on the service.
"""
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from comic_studio.config import config
from comic_studio.schemas import GenerationService, StoryOptions

from . import open_media, structured
from .schemas import ImageRequest, SceneRequest


@dataclass(frozen=True)
class Backend:
    service: GenerationService
    label: str
    requires_credential: bool        # every call needs the caller's key
    inline_canon: bool               # decomposition can take reference images + return a canon
    prompt_aspect_hint: bool         # image model reads framing from prompt text
    image_seed: bool                 # image call accepts a fixed seed
    default_text_model: str
    default_image_model: str
    request_scenes: Callable[[SceneRequest], Awaitable[str]]
    describe_character: Callable[..., Awaitable[str]]
    render_image: Callable[[ImageRequest], Awaitable[str]]
    list_text_models: Callable[[], List[str]]
    list_image_models: Callable[[], List[str]]

    def text_model(self, options: StoryOptions) -> str:
        return options.text_model or self.default_text_model

    def image_model(self, options: StoryOptions) -> str:
        return options.image_model or self.default_image_model

    def supports_inline_canon(self, options: StoryOptions) -> bool:
        return self.inline_canon and structured.is_vision_model(self.text_model(options))

    def supports_reference_images(self, options: StoryOptions) -> bool:
        return self.service is GenerationService.STRUCTURED and structured.accepts_reference_images(
            self.image_model(options)
        )


STRUCTURED = Backend(
    service=GenerationService.STRUCTURED,
    label="Structured LLM",
    requires_credential=True,
    inline_canon=True,
    prompt_aspect_hint=False,
    image_seed=False,
    default_text_model=config.openai_text_model,
    default_image_model=config.openai_image_model,
    request_scenes=structured.request_scenes,
    describe_character=structured.describe_character,
    render_image=structured.render_image,
    list_text_models=structured.list_text_models,
    list_image_models=structured.list_image_models,
)

# The open service takes no image input, so character descriptions come from the
# structured vision model; that is why a pre-pass needs the caller's key.
OPEN = Backend(
    service=GenerationService.OPEN,
    label="Open text/image",
    requires_credential=False,
    inline_canon=False,
    prompt_aspect_hint=True,
    image_seed=True,
    default_text_model=config.pollinations_text_model,
    default_image_model=config.pollinations_image_model,
    request_scenes=open_media.request_scenes,
    describe_character=structured.describe_character,
    render_image=open_media.render_image,
    list_text_models=open_media.list_text_models,
    list_image_models=open_media.list_image_models,
)

BACKENDS: Dict[GenerationService, Backend] = {
    GenerationService.STRUCTURED: STRUCTURED,
    GenerationService.OPEN: OPEN,
}

def get_backend(service: Optional[GenerationService]) -> Backend:
    return BACKENDS[GenerationService(service or GenerationService.STRUCTURED)]
