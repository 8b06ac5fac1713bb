# comic_studio/features/characters/service.py
from __future__ import annotations

import asyncio
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from comic_studio.config import config
from comic_studio.features.backends.registry import Backend
from comic_studio.logger import get_logger
from comic_studio.schemas import CharacterDescription, CharacterReference, StoryOptions

from .prompt import DESCRIBE_PROMPT

log = get_logger(__name__)


class ConsistencyStrategy(str, Enum):
    NONE = "none"
    INLINE = "inline"      # references ride along with decomposition, canon comes back with scenes
    PREPASS = "prepass"    # one description request per character before decomposition


def participating(references: Iterable[CharacterReference]) -> List[CharacterReference]:
    return [r for r in references if r.participates]

def choose_strategy(options: StoryOptions, backend: Backend) -> ConsistencyStrategy:
    if not participating(options.character_references):
        return ConsistencyStrategy.NONE
    if backend.supports_inline_canon(options):
        return ConsistencyStrategy.INLINE
    return ConsistencyStrategy.PREPASS

def _clean(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


class CharacterCanon:
    """
    Name -> description lookup for one run, in character-list order.
    Built once, then only read while panels are rendered.
    """

    def __init__(self, descriptions: Iterable[CharacterDescription] = ()):
        self._by_key: Dict[str, CharacterDescription] = {}
        for d in descriptions:
            key = d.name.strip().lower()
            if key and d.description.strip() and key not in self._by_key:
                self._by_key[key] = d

    @classmethod
    def from_response(cls, raw: Any, references: Iterable[CharacterReference]) -> "CharacterCanon":
        """
        Accepts {"Name": "desc"}, {"Name": {"description": "desc"}} or
        [{"name": ..., "description": ...}]. Only names matching a participating
        reference are kept, under the reference's own spelling.
        """
        found: Dict[str, str] = {}
        if isinstance(raw, dict):
            for name, value in raw.items():
                if isinstance(value, dict):
                    value = value.get("description") or value.get("visual_description")
                if isinstance(name, str) and isinstance(value, str):
                    found[name.strip().lower()] = value
        elif isinstance(raw, list):
            for item in raw:
                if isinstance(item, dict) and isinstance(item.get("name"), str) and isinstance(item.get("description"), str):
                    found[item["name"].strip().lower()] = item["description"]

        out: List[CharacterDescription] = []
        for ref in participating(references):
            desc = _clean(found.get(ref.name.strip().lower(), ""))
            if desc:
                out.append(CharacterDescription(name=ref.name.strip(), description=desc))
        return cls(out)

    def merge(self, other: "CharacterCanon", order: Iterable[CharacterReference] = ()) -> "CharacterCanon":
        combined = {**other._by_key, **self._by_key}
        ordered: List[CharacterDescription] = []
        for ref in order:
            d = combined.pop(ref.name.strip().lower(), None)
            if d:
                ordered.append(d)
        ordered.extend(combined.values())
        return CharacterCanon(ordered)

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, name: str) -> bool:
        return name.strip().lower() in self._by_key

    @property
    def descriptions(self) -> List[CharacterDescription]:
        return list(self._by_key.values())

    def get(self, name: str) -> Optional[CharacterDescription]:
        return self._by_key.get(name.strip().lower())

    def missing(self, references: Iterable[CharacterReference]) -> List[CharacterReference]:
        return [r for r in participating(references) if r.name not in self]

    def matches(self, prompt: str) -> List[CharacterDescription]:
        text = (prompt or "").lower()
        return [d for key, d in self._by_key.items() if key in text]

    def apply(self, prompt: str) -> str:
        """Prepend the description of every named character not already described in the prompt."""
        lowered = (prompt or "").lower()
        prefix = [
            f"{d.name}: {d.description}"
            for d in self.matches(prompt)
            if d.description.lower() not in lowered
        ]
        if not prefix:
            return prompt
        return ". ".join(prefix).rstrip(".") + ". " + prompt


async def _describe_one(ref: CharacterReference, *, backend: Backend, api_key: str, model: str) -> Optional[CharacterDescription]:
    try:
        text = await backend.describe_character(ref.image_data_url, DESCRIBE_PROMPT, model=model, api_key=api_key)
    except Exception as e:
        log.error(f"Could not generate description for {ref.name}: {e}")
        return None
    desc = _clean(text)
    if not desc:
        log.error(f"Empty description returned for {ref.name}")
        return None
    log.debug(f"described {ref.name}: {desc}")
    return CharacterDescription(name=ref.name.strip(), description=desc)

async def describe_characters(
    references: Iterable[CharacterReference],
    *,
    backend: Backend,
    api_key: str,
    model: Optional[str] = None,
) -> CharacterCanon:
    """
    Pre-pass: one independent description request per participating reference,
    issued concurrently. A failed character is left out; the others are kept.
    """
    refs = participating(references)
    if not refs:
        return CharacterCanon()
    model = model or config.openai_describe_model
    results = await asyncio.gather(
        *(_describe_one(r, backend=backend, api_key=api_key, model=model) for r in refs)
    )
    described = [d for d in results if d is not None]
    log.info(f"described {len(described)}/{len(refs)} characters")
    return CharacterCanon(described)
