from typing import Dict, Tuple

from comic_studio.schemas import AspectRatio

PIXEL_SIZES: Dict[AspectRatio, Tuple[int, int]] = {
    AspectRatio.SQUARE: (1024, 1024),
    AspectRatio.PORTRAIT: (1024, 1792),
    AspectRatio.LANDSCAPE: (1792, 1024),
}

RATIO_TOKENS: Dict[AspectRatio, str] = {
    AspectRatio.SQUARE: "1:1",
    AspectRatio.PORTRAIT: "9:16",
    AspectRatio.LANDSCAPE: "16:9",
}

_HINTS: Dict[AspectRatio, str] = {
    AspectRatio.SQUARE: "square composition",
    AspectRatio.PORTRAIT: "tall vertical portrait composition",
    AspectRatio.LANDSCAPE: "wide horizontal landscape composition",
}

def pixel_size(aspect_ratio: AspectRatio) -> Tuple[int, int]:
    return PIXEL_SIZES[AspectRatio(aspect_ratio)]

# OpenAI image models that reject the dall-e-3 tall/wide sizes.
# gpt-image: 1024x1024, 1024x1536, 1536x1024, auto. dall-e-2: squares only.
MODEL_SIZE_TOKENS: Dict[str, Dict[AspectRatio, str]] = {
    "gpt-image": {
        AspectRatio.SQUARE: "1024x1024",
        AspectRatio.PORTRAIT: "1024x1536",
        AspectRatio.LANDSCAPE: "1536x1024",
    },
    "dall-e-2": {
        AspectRatio.SQUARE: "1024x1024",
        AspectRatio.PORTRAIT: "1024x1024",
        AspectRatio.LANDSCAPE: "1024x1024",
    },
}

def size_token(aspect_ratio: AspectRatio, model: str = "") -> str:
    """Size token (WxH) for an image API call, limited to what the model accepts."""
    m = (model or "").lower()
    for prefix, sizes in MODEL_SIZE_TOKENS.items():
        if m.startswith(prefix):
            return sizes[AspectRatio(aspect_ratio)]
    w, h = pixel_size(aspect_ratio)
    return f"{w}x{h}"

def ratio_token(aspect_ratio: AspectRatio) -> str:
    return RATIO_TOKENS[AspectRatio(aspect_ratio)]

def aspect_hint(aspect_ratio: AspectRatio) -> str:
    """Natural-language framing for backends that only read the prompt text."""
    ar = AspectRatio(aspect_ratio)
    return f"{_HINTS[ar]}, {RATIO_TOKENS[ar]} aspect ratio"
