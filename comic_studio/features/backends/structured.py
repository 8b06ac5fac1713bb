# comic_studio/features/backends/structured.py
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Tuple

from openai import APIError

from comic_studio.config import config
from comic_studio.errors import BackendError
from comic_studio.lib.imaging import b64_to_data_url, parse_data_url, sniff_media_type
from comic_studio.lib.openai_client import make_client
from comic_studio.logger import get_logger

from .aspect import size_token
from .schemas import ImageRequest, SceneRequest

log = get_logger(__name__)

SYSTEM_MSG = (
    "You are an expert comic book writer and storyboard artist. "
    "Return ONLY a single JSON object. No commentary, no markdown."
)

def is_vision_model(model: str) -> bool:
    m = (model or "").lower()
    return any(m.startswith(p.lower()) for p in config.vision_text_models)

def accepts_reference_images(model: str) -> bool:
    m = (model or "").lower()
    return any(m.startswith(p.lower()) for p in config.reference_image_models)

def _content_parts(req: SceneRequest) -> List[Dict[str, Any]]:
    content: List[Dict[str, Any]] = []
    for part in req.parts:
        if part.text:
            content.append({"type": "text", "text": part.text})
        elif part.image_data_url:
            content.append({"type": "image_url", "image_url": {"url": part.image_data_url}})
    return content

def _first_text(resp) -> str:
    choices = getattr(resp, "choices", None) or []
    if not choices:
        return ""
    return (choices[0].message.content or "").strip()

async def request_scenes(req: SceneRequest) -> str:
    client = make_client(req.api_key or "")
    try:
        resp = await asyncio.to_thread(
            client.chat.completions.create,
            model=req.model,
            temperature=0.7,
            seed=req.seed,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_MSG},
                {"role": "user", "content": _content_parts(req)},
            ],
        )
    except APIError as e:
        raise BackendError(f"structured text API error: {e}", status_code=getattr(e, "status_code", None)) from e
    text = _first_text(resp)
    if not text:
        raise BackendError("structured text API returned an empty response")
    return text

async def describe_character(image_data_url: str, instruction: str, *, model: str, api_key: str) -> str:
    client = make_client(api_key)
    try:
        resp = await asyncio.to_thread(
            client.chat.completions.create,
            model=model,
            temperature=0.2,
            messages=[{
                "role": "user",
                "content": [
                    {"type": "text", "text": instruction},
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                ],
            }],
        )
    except APIError as e:
        raise BackendError(f"character description API error: {e}", status_code=getattr(e, "status_code", None)) from e
    text = _first_text(resp)
    if not text:
        raise BackendError("character description API returned an empty response")
    return text

def _reference_files(refs: List[Tuple[str, str]]) -> List[Tuple[str, bytes, str]]:
    files: List[Tuple[str, bytes, str]] = []
    for i, (name, data_url) in enumerate(refs):
        parsed = parse_data_url(data_url)
        if parsed is None:
            continue
        mime, data = parsed
        mime = sniff_media_type(data) or mime
        ext = mime.split("/", 1)[1].replace("jpeg", "jpg")
        safe = "".join(ch for ch in name.lower() if ch.isalnum()) or "ref"
        files.append((f"{i + 1}_{safe}.{ext}", data, mime))
    return files

async def render_image(req: ImageRequest) -> str:
    """
    One image attempt. Uses images.edit with the matched characters' images when the
    model accepts references, else images.generate. The Images API takes no seed, so
    repeat attempts send an identical request without one.
    """
    client = make_client(req.api_key or "")
    kwargs: Dict[str, Any] = {
        "model": req.model,
        "prompt": req.prompt,
        "size": size_token(req.aspect_ratio, req.model),
        "n": 1,
    }
    if req.model.startswith("dall-e"):
        kwargs["response_format"] = "b64_json"

    files = _reference_files(req.reference_images) if accepts_reference_images(req.model) else []
    try:
        if files:
            resp = await asyncio.to_thread(client.images.edit, image=files, **kwargs)
        else:
            resp = await asyncio.to_thread(client.images.generate, **kwargs)
    except APIError as e:
        raise BackendError(f"structured image API error: {e}", status_code=getattr(e, "status_code", None)) from e

    data = getattr(resp, "data", None) or []
    b64 = getattr(data[0], "b64_json", None) if data else None
    if not b64:
        raise BackendError("Image generation returned no image data.")
    return b64_to_data_url(b64)

def list_text_models() -> List[str]:
    return list(dict.fromkeys([config.openai_text_model, "gpt-4o-mini", "gpt-4o", "gpt-4.1-mini"]))

def list_image_models() -> List[str]:
    return list(dict.fromkeys([config.openai_image_model, "dall-e-3", "gpt-image-1"]))
