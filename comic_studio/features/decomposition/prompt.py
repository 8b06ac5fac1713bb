# comic_studio/features/decomposition/prompt.py
from typing import Optional

from comic_studio.features.backends.aspect import aspect_hint
from comic_studio.schemas import StoryOptions

from .schemas import CaptionPolicy

_CAPTION_CLAUSES = {
    CaptionPolicy.FULL: (
        '- "caption": a short narration caption for the panel (string).\n'
        '- "dialogues": spoken lines in order, each formatted as "Name: line" (array of strings, may be empty).'
    ),
    CaptionPolicy.CAPTION_ONLY: (
        '- "caption": a short caption that will be lettered INSIDE the artwork (string, max ~12 words).\n'
        '- "dialogues": always an empty array.'
    ),
    CaptionPolicy.OMIT: (
        '- "caption": always null.\n'
        '- "dialogues": always an empty array.\n'
        "- The images carry the story on their own; do not plan any text in the artwork."
    ),
}

JSON_SHAPE = '{ "scene_number": number, "image_prompt": "string", "caption": "string | null", "dialogues": ["string"] }'

def build_decomposition_prompt(
    options: StoryOptions,
    policy: CaptionPolicy,
    *,
    character_clause: Optional[str] = None,
    with_canon: bool = False,
) -> str:
    canon_line = (
        '"character_canon": { "<character name>": "<visual description>" }, '
        if with_canon else ""
    )
    characters = f"\n{character_clause}\n" if character_clause else ""
    return f"""
You are an expert comic book writer. Break the story below into exactly {options.num_panels} sequential comic panels.

STYLE: {options.style}, {options.era} era.
FRAMING: every panel is a {aspect_hint(options.aspect_ratio)}.

EACH PANEL OBJECT:
- "scene_number": 1-based position of the panel in reading order.
- "image_prompt": a self-contained, detailed illustration prompt (setting, characters, action, camera, lighting, mood). Name every character who appears.
{_CAPTION_CLAUSES[policy]}
{characters}
OUTPUT (CRITICAL):
- Respond with ONLY a JSON object of the form {{ {canon_line}"scenes": [ ... ] }}
- Each entry of "scenes" matches: {JSON_SHAPE}
- Exactly {options.num_panels} entries, no commentary, no markdown.

Story: \"\"\"{options.story}\"\"\"
""".strip()
