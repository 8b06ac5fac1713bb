# comic_studio/features/panels/prompt.py
from typing import Optional

from comic_studio.features.backends.aspect import aspect_hint
from comic_studio.features.backends.registry import Backend
from comic_studio.features.characters.service import CharacterCanon
from comic_studio.features.decomposition.schemas import CaptionPolicy
from comic_studio.schemas import PanelSpec, StoryOptions

def style_suffix(options: StoryOptions) -> str:
    return f", in the art style of {options.style}, {options.era} era"

def with_style(prompt: str, options: StoryOptions) -> str:
    """Append the style/era suffix once."""
    suffix = style_suffix(options)
    if suffix.lstrip(", ").lower() in prompt.lower():
        return prompt
    return prompt.rstrip(" .,") + suffix

def build_final_prompt(
    spec: PanelSpec,
    options: StoryOptions,
    backend: Backend,
    canon: Optional[CharacterCanon] = None,
) -> str:
    """
    Character descriptions first, then the scene prompt with style/era, then the
    in-image caption and, for prompt-only image models, the framing hint.
    """
    prompt = canon.apply(spec.image_prompt) if canon else spec.image_prompt
    prompt = with_style(prompt, options)
    if CaptionPolicy.for_options(options) == CaptionPolicy.CAPTION_ONLY and spec.caption:
        prompt += f'. Include a comic caption box with the text: "{spec.caption}"'
    if backend.prompt_aspect_hint:
        prompt += f". {aspect_hint(options.aspect_ratio)}"
    return prompt
