from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from comic_studio.schemas import AspectRatio


class ContentPart(BaseModel):
    """One ordered segment of a text request: either text or an inline image."""
    text: Optional[str] = None
    image_data_url: Optional[str] = None


class SceneRequest(BaseModel):
    model: str
    parts: List[ContentPart]
    seed: int
    api_key: Optional[str] = Field(None, repr=False)

    @property
    def instruction(self) -> str:
        return "\n".join(p.text for p in self.parts if p.text)


class ImageRequest(BaseModel):
    model: str
    prompt: str
    aspect_ratio: AspectRatio
    seed: Optional[int] = None   # only set for image services that accept one
    # (name, data URL) pairs for image models that take references directly
    reference_images: List[Tuple[str, str]] = Field(default_factory=list)
    api_key: Optional[str] = Field(None, repr=False)
