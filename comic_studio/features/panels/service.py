# comic_studio/features/panels/service.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from comic_studio.config import config
from comic_studio.errors import PanelRenderError, RetriesExhausted
from comic_studio.features.backends.registry import Backend
from comic_studio.features.backends.schemas import ImageRequest
from comic_studio.features.characters.service import CharacterCanon, participating
from comic_studio.lib.retry import CancelToken, call_with_retries
from comic_studio.logger import get_logger
from comic_studio.schemas import PanelSpec, StoryOptions

from .prompt import build_final_prompt

log = get_logger(__name__)


@dataclass(frozen=True)
class RenderedPanel:
    final_prompt: str
    image_url: str


def _reference_images(spec: PanelSpec, options: StoryOptions) -> List[Tuple[str, str]]:
    text = spec.image_prompt.lower()
    return [
        (r.name.strip(), r.image_data_url)
        for r in participating(options.character_references)
        if r.name.strip().lower() in text
    ]

def build_image_request(
    spec: PanelSpec,
    options: StoryOptions,
    backend: Backend,
    canon: Optional[CharacterCanon] = None,
    *,
    api_key: Optional[str] = None,
) -> ImageRequest:
    refs = _reference_images(spec, options) if backend.supports_reference_images(options) else []
    return ImageRequest(
        model=backend.image_model(options),
        prompt=build_final_prompt(spec, options, backend, canon),
        aspect_ratio=options.aspect_ratio,
        seed=config.fixed_image_seed if backend.image_seed else None,
        reference_images=refs,
        api_key=api_key,
    )

async def render_panel(
    spec: PanelSpec,
    options: StoryOptions,
    backend: Backend,
    canon: Optional[CharacterCanon] = None,
    *,
    api_key: Optional[str] = None,
    cancel: Optional[CancelToken] = None,
    retries: Optional[int] = None,
    backoff: Optional[float] = None,
) -> RenderedPanel:
    """
    Render one panel image. Every attempt sends the same request: prompt, model,
    size, and the fixed seed where the backend takes one. Raises PanelRenderError
    once all attempts are used up.
    """
    req = build_image_request(spec, options, backend, canon, api_key=api_key)
    log.debug(f"panel {spec.scene_number} prompt is: {req.prompt}")

    async def _attempt() -> str:
        return await backend.render_image(req)

    try:
        image_url = await call_with_retries(
            _attempt,
            retries=config.render_retries if retries is None else retries,
            backoff=config.retry_backoff_seconds if backoff is None else backoff,
            label=f"panel {spec.scene_number}",
            cancel=cancel,
        )
    except RetriesExhausted as e:
        raise PanelRenderError(
            f"Failed to generate image after {e.attempts} attempts: {e.last_error}",
            attempts=e.attempts,
            last_error=str(e.last_error),
            final_prompt=req.prompt,
        ) from e
    return RenderedPanel(final_prompt=req.prompt, image_url=image_url)
