# comic_studio/config.py
import os
from dataclasses import dataclass
from typing import List

def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}

def _env_csv(name: str, default: str = "*") -> List[str]:
    raw = os.getenv(name, default)
    return [x.strip() for x in raw.split(",") if x.strip()]

@dataclass(frozen=True)
class Config:
    # OpenAI (structured backend)
    openai_text_model: str
    openai_image_model: str
    openai_describe_model: str
    vision_text_models: List[str]        # prefixes of chat models that accept image parts
    reference_image_models: List[str]    # image models that accept reference images (images.edit)
    # Pollinations-compatible (open backend)
    pollinations_text_url: str
    pollinations_image_url: str
    pollinations_text_model: str
    pollinations_image_model: str
    http_timeout_seconds: float
    # Generation policy
    fixed_image_seed: int
    render_retries: int                  # retries after the first attempt
    decompose_retries: int
    retry_backoff_seconds: float         # linear: delay * attempt
    max_panels: int
    max_story_chars: int
    # API / runs
    allowed_origins: List[str]
    max_tracked_runs: int
    # Logging
    log_level: str

def load_config() -> Config:
    return Config(
        openai_text_model = os.getenv("OPENAI_TEXT_MODEL", "gpt-4o-mini"),
        openai_image_model = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3"),
        openai_describe_model = os.getenv("OPENAI_DESCRIBE_MODEL", "gpt-4o-mini"),
        vision_text_models = _env_csv("VISION_TEXT_MODELS", "gpt-4o,gpt-4.1,gpt-5,o3,o4"),
        reference_image_models = _env_csv("REFERENCE_IMAGE_MODELS", "gpt-image-1"),
        pollinations_text_url = os.getenv("POLLINATIONS_TEXT_URL", "https://text.pollinations.ai"),
        pollinations_image_url = os.getenv("POLLINATIONS_IMAGE_URL", "https://image.pollinations.ai"),
        pollinations_text_model = os.getenv("POLLINATIONS_TEXT_MODEL", "openai"),
        pollinations_image_model = os.getenv("POLLINATIONS_IMAGE_MODEL", "flux"),
        http_timeout_seconds = float(os.getenv("HTTP_TIMEOUT_SECONDS", "120")),
        fixed_image_seed = int(os.getenv("FIXED_IMAGE_SEED", "42")),
        render_retries = int(os.getenv("RENDER_RETRIES", "2")),
        decompose_retries = int(os.getenv("DECOMPOSE_RETRIES", "2")),
        retry_backoff_seconds = float(os.getenv("RETRY_BACKOFF_SECONDS", "2.0")),
        max_panels = int(os.getenv("MAX_PANELS", "20")),
        max_story_chars = int(os.getenv("MAX_STORY_CHARS", "10000")),
        allowed_origins = _env_csv("ALLOWED_ORIGINS", "*"),
        max_tracked_runs = int(os.getenv("MAX_TRACKED_RUNS", "50")),
        log_level = os.getenv("LOG_LEVEL", "INFO"),
    )

# Load once
config = load_config()
