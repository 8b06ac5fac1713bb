from __future__ import annotations
import base64
import binascii
import io
import re
from typing import Optional, Tuple

from PIL import Image

_DATAURL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<b64>.+)$", re.DOTALL)

def sniff_media_type(data: bytes) -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    # GIF87a / GIF89a
    if data.startswith(b"GIF87a") or data.startswith(b"GIF89a"):
        return "image/gif"
    # WEBP: RIFF....WEBP
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return ""  # unknown

def parse_data_url(data_url: Optional[str]) -> Optional[Tuple[str, bytes]]:
    """
    Split a base64 data URL into (media_type, raw bytes).
    Returns None for anything that is not an image data URL or does not decode.
    """
    if not data_url:
        return None
    m = _DATAURL_RE.match(data_url.strip())
    if not m:
        return None
    mime = m.group("mime").lower()
    if not mime.startswith("image/"):
        return None
    try:
        data = base64.b64decode(m.group("b64"), validate=False)
    except (binascii.Error, ValueError):
        return None
    if not data:
        return None
    return mime, data

def to_data_url(data: bytes, media_type: Optional[str] = None) -> str:
    mime = media_type or sniff_media_type(data) or "image/png"
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"

def b64_to_data_url(b64: str) -> str:
    # the images API returns bare base64; trust the bytes over any declared type
    data = base64.b64decode(b64)
    return to_data_url(data)

def open_data_url(data_url: str) -> Image.Image:
    parsed = parse_data_url(data_url)
    if parsed is None:
        raise ValueError("not an image data URL")
    _, data = parsed
    img = Image.open(io.BytesIO(data))
    img.load()
    return img
