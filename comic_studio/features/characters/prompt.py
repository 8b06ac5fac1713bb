# comic_studio/features/characters/prompt.py
from typing import Iterable, List

from comic_studio.schemas import CharacterDescription

DESCRIBE_PROMPT = (
    "For the following image, provide a concise but detailed visual description of the person shown. "
    "Focus on immutable features an artist can use for consistency: face shape, eye color, "
    "hair style and color, skin tone, and any distinct marks (scars, tattoos, glasses). "
    "Answer in one short paragraph with no preamble."
)

def inline_canon_clause(names: List[str]) -> str:
    listed = ", ".join(f'"{n}"' for n in names)
    return f"""
CHARACTER CONSISTENCY (CRITICAL):
- Reference images follow for these characters: {listed}.
- For each character image, identify their key visual features (face shape, eye color, hair, skin tone, distinct marks).
- Return them in "character_canon": an object mapping each character name exactly as given to a one-paragraph visual description.
- When a character appears in a scene, you MUST INJECT their description verbatim into that scene's "image_prompt" and mention the character by name.
""".strip()

def prepass_canon_clause(descriptions: Iterable[CharacterDescription]) -> str:
    lines = "\n".join(f"- {d.name}: {d.description}" for d in descriptions)
    return f"""
ESSENTIAL INSTRUCTION FOR CHARACTER CONSISTENCY:
You have been provided with descriptions of characters. You MUST use these exact descriptions in the "image_prompt" for any scene featuring them, and mention the character by name.
CHARACTER DESCRIPTIONS:
{lines}
""".strip()
