# comic_studio/features/decomposition/service.py
from __future__ import annotations

from typing import Any, List, Optional, Tuple

from comic_studio.config import config
from comic_studio.errors import BackendError, RetriesExhausted
from comic_studio.features.backends.registry import Backend
from comic_studio.features.backends.schemas import ContentPart, SceneRequest
from comic_studio.features.characters.prompt import inline_canon_clause, prepass_canon_clause
from comic_studio.features.characters.service import CharacterCanon, ConsistencyStrategy, participating
from comic_studio.lib.json_tools import loads_lenient
from comic_studio.lib.retry import CancelToken, call_with_retries
from comic_studio.logger import get_logger
from comic_studio.schemas import PanelSpec, StoryOptions

from .prompt import build_decomposition_prompt
from .schemas import CaptionPolicy, DecompositionResult

log = get_logger(__name__)

_PROMPT_KEYS = ("image_prompt", "prompt", "description")

# -------- parsing & repair --------

def parse_scenes(text: str) -> Optional[Tuple[List[Any], Any]]:
    """
    Returns (entries, raw_canon) for a bare array, an object with "scenes",
    fenced JSON or JSON inside prose. None when no scenes array can be decoded.
    """
    data = loads_lenient(text)
    if isinstance(data, list):
        return data, None
    if isinstance(data, dict):
        scenes = data.get("scenes")
        if scenes is None:
            scenes = data.get("panels")
        if isinstance(scenes, list):
            return scenes, data.get("character_canon")
    return None

def _positive_int(v: Any) -> Optional[int]:
    if isinstance(v, bool):
        return None
    try:
        n = int(v)
    except (TypeError, ValueError):
        return None
    return n if n >= 1 else None

def _caption(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None

def _dialogues(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [v.strip()] if v.strip() else []
    if not isinstance(v, list):
        return []
    out: List[str] = []
    for d in v:
        if isinstance(d, dict):
            speaker = str(d.get("character") or d.get("speaker") or "").strip()
            line = str(d.get("line") or d.get("text") or d.get("dialogue") or "").strip()
            if line:
                out.append(f"{speaker}: {line}" if speaker else line)
        elif d is not None and str(d).strip():
            out.append(str(d).strip())
    return out

def _image_prompt(entry: dict) -> str:
    for key in _PROMPT_KEYS:
        v = entry.get(key)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return ""

def repair_scenes(entries: List[Any], policy: CaptionPolicy) -> List[PanelSpec]:
    """
    Coerce backend entries into PanelSpecs. Entries that are not objects or carry
    no usable prompt are dropped. Scene numbers follow response position whenever
    the backend's own numbers are missing, duplicated or out of order.
    """
    kept: List[Tuple[int, dict, str]] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            log.debug(f"dropping non-object scene entry: {entry!r}")
            continue
        prompt = _image_prompt(entry)
        if not prompt:
            log.debug(f"dropping scene entry without an image prompt: {entry!r}")
            continue
        # a missing number is the entry's 1-based position in the response array
        number = _positive_int(entry.get("scene_number"))
        kept.append((number if number is not None else index + 1, entry, prompt))

    numbers = [n for n, _, _ in kept]
    ascending = all(a < b for a, b in zip(numbers, numbers[1:]))
    if not ascending:
        log.info(f"re-deriving scene numbers from response order (got {numbers})")
        numbers = list(range(1, len(kept) + 1))

    scenes: List[PanelSpec] = []
    for number, (_, entry, prompt) in zip(numbers, kept):
        caption = _caption(entry.get("caption"))
        dialogues = _dialogues(entry.get("dialogues", entry.get("dialogue")))
        if policy == CaptionPolicy.OMIT:
            caption, dialogues = None, []
        elif policy == CaptionPolicy.CAPTION_ONLY:
            dialogues = []
        scenes.append(PanelSpec(scene_number=number, image_prompt=prompt, caption=caption, dialogues=dialogues))
    return scenes

# -------- request building --------

def build_scene_request(
    options: StoryOptions,
    backend: Backend,
    *,
    api_key: Optional[str],
    strategy: ConsistencyStrategy,
    canon: Optional[CharacterCanon] = None,
) -> SceneRequest:
    policy = CaptionPolicy.for_options(options)
    refs = participating(options.character_references)

    clause = None
    if strategy == ConsistencyStrategy.INLINE and refs:
        clause = inline_canon_clause([r.name.strip() for r in refs])
    elif canon:
        clause = prepass_canon_clause(canon.descriptions)

    prompt = build_decomposition_prompt(
        options,
        policy,
        character_clause=clause,
        with_canon=strategy == ConsistencyStrategy.INLINE,
    )
    parts = [ContentPart(text=prompt)]
    if strategy == ConsistencyStrategy.INLINE:
        for ref in refs:
            parts.append(ContentPart(text=f'--- Reference image for character: "{ref.name.strip()}" ---'))
            parts.append(ContentPart(image_data_url=ref.image_data_url))

    return SceneRequest(
        model=backend.text_model(options),
        parts=parts,
        seed=config.fixed_image_seed,
        api_key=api_key,
    )

# -------- public entry --------

async def decompose(
    options: StoryOptions,
    backend: Backend,
    *,
    api_key: Optional[str] = None,
    strategy: ConsistencyStrategy = ConsistencyStrategy.NONE,
    canon: Optional[CharacterCanon] = None,
    cancel: Optional[CancelToken] = None,
    retries: Optional[int] = None,
    backoff: Optional[float] = None,
) -> DecompositionResult:
    """
    Split the story into ordered PanelSpecs. Never raises for backend trouble:
    an empty result means the caller should fall back to a single panel.
    """
    policy = CaptionPolicy.for_options(options)
    req = build_scene_request(options, backend, api_key=api_key, strategy=strategy, canon=canon)
    log.debug(f"decomposition prompt is: {req.instruction}")

    async def _attempt() -> DecompositionResult:
        raw = await backend.request_scenes(req)
        parsed = parse_scenes(raw)
        if parsed is None:
            raise BackendError("AI response did not contain a valid scenes array.")
        entries, raw_canon = parsed
        scenes = repair_scenes(entries, policy)
        if not scenes:
            raise BackendError("AI response contained no usable scenes.")
        if len(scenes) > options.num_panels:
            log.info(f"backend returned {len(scenes)} scenes; keeping the first {options.num_panels}")
            scenes = scenes[: options.num_panels]
        elif len(scenes) < options.num_panels:
            log.info(f"backend returned {len(scenes)} of {options.num_panels} requested scenes")
        return DecompositionResult(scenes=scenes, canon=raw_canon)

    try:
        return await call_with_retries(
            _attempt,
            retries=config.decompose_retries if retries is None else retries,
            backoff=config.retry_backoff_seconds if backoff is None else backoff,
            label=f"decompose/{backend.service.value}",
            cancel=cancel,
        )
    except RetriesExhausted as e:
        log.error(f"Error generating scenes with {backend.label}: {e}")
        return DecompositionResult()
