# comic_studio/features/backends/open_media.py
"""
Adapter for a Pollinations-compatible open text/image service.

Both calls are GET requests with the prompt URL-encoded into the path:
  text : {text_url}/{instruction}?model=..&seed=..&json=true  -> free-form text
  image: {image_url}/prompt/{prompt}?model=..&seed=..&width=..&height=..  -> raw image bytes
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List
from urllib.parse import quote

import requests

from comic_studio.config import config
from comic_studio.errors import BackendError
from comic_studio.lib.imaging import to_data_url
from comic_studio.logger import get_logger

from .aspect import pixel_size
from .schemas import ImageRequest, SceneRequest

log = get_logger(__name__)

DEFAULT_TEXT_MODELS = ["openai"]
DEFAULT_IMAGE_MODELS = ["flux"]

def _get(url: str, params: Dict[str, Any] | None = None) -> requests.Response:
    return requests.get(url, params=params, timeout=config.http_timeout_seconds)

async def _fetch(url: str, params: Dict[str, Any] | None, what: str) -> requests.Response:
    try:
        resp = await asyncio.to_thread(_get, url, params)
    except requests.RequestException as e:
        raise BackendError(f"open {what} API request failed: {e}") from e
    if not resp.ok:
        raise BackendError(f"open {what} API returned {resp.status_code}", status_code=resp.status_code)
    return resp

async def request_scenes(req: SceneRequest) -> str:
    # images cannot travel in a GET target; only text parts are sent
    url = f"{config.pollinations_text_url.rstrip('/')}/{quote(req.instruction, safe='')}"
    params = {"model": req.model, "seed": req.seed, "json": "true"}
    resp = await _fetch(url, params, "text")
    text = (resp.text or "").strip()
    if not text:
        raise BackendError("open text API returned an empty response")
    return text

async def render_image(req: ImageRequest) -> str:
    w, h = pixel_size(req.aspect_ratio)
    url = f"{config.pollinations_image_url.rstrip('/')}/prompt/{quote(req.prompt, safe='')}"
    params = {
        "model": req.model,
        "seed": req.seed,
        "width": w,
        "height": h,
        "nologo": "true",
    }
    resp = await _fetch(url, params, "image")
    content_type = (resp.headers.get("content-type") or "").split(";", 1)[0].strip().lower()
    if not content_type.startswith("image/"):
        raise BackendError(f"open image API did not return a valid image (content-type: {content_type or 'missing'})")
    if not resp.content:
        raise BackendError("open image API returned an empty image")
    return to_data_url(resp.content, content_type)

def list_text_models() -> List[str]:
    try:
        r = _get(f"{config.pollinations_text_url.rstrip('/')}/models")
        r.raise_for_status()
        names = [m["name"] if isinstance(m, dict) else str(m) for m in r.json()]
        return [n for n in names if n] or DEFAULT_TEXT_MODELS
    except (requests.RequestException, ValueError, KeyError, TypeError) as e:
        log.warning(f"could not list open text models: {e}")
        return DEFAULT_TEXT_MODELS

def list_image_models() -> List[str]:
    try:
        r = _get(f"{config.pollinations_image_url.rstrip('/')}/models")
        r.raise_for_status()
        names = [str(m) for m in r.json()]
        return [n for n in names if n] or DEFAULT_IMAGE_MODELS
    except (requests.RequestException, ValueError, TypeError) as e:
        log.warning(f"could not list open image models: {e}")
        return DEFAULT_IMAGE_MODELS
