# comic_studio/schemas.py
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from comic_studio.config import config
from comic_studio.lib.imaging import parse_data_url


class AspectRatio(str, Enum):
    SQUARE = "square"
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class CaptionPlacement(str, Enum):
    BELOW = "below"          # shown under the panel by the caller
    IN_IMAGE = "in_image"    # drawn into the artwork by the image model


class GenerationService(str, Enum):
    STRUCTURED = "structured"
    OPEN = "open"


class PanelStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class RunState(str, Enum):
    IDLE = "idle"
    DECOMPOSING = "decomposing"
    RENDERING = "rendering"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


class CharacterReference(BaseModel):
    id: str = Field(..., description="Caller-side identifier")
    name: str = ""
    image_data_url: str = Field("", description="data:<media type>;base64,<payload>")

    @property
    def participates(self) -> bool:
        """Only references with both a name and a decodable image take part in consistency."""
        return bool(self.name.strip()) and parse_data_url(self.image_data_url) is not None


class CharacterDescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str


class StoryOptions(BaseModel):
    story: str = Field(..., min_length=1, max_length=config.max_story_chars)
    num_panels: int = Field(6, ge=1, le=config.max_panels)
    style: str = "Modern American comic book"
    era: str = "Contemporary"
    aspect_ratio: AspectRatio = AspectRatio.SQUARE
    include_captions: bool = True
    caption_placement: CaptionPlacement = CaptionPlacement.BELOW
    service: GenerationService = GenerationService.STRUCTURED
    text_model: Optional[str] = Field(None, description="Defaults to the backend's configured text model")
    image_model: Optional[str] = Field(None, description="Defaults to the backend's configured image model")
    character_references: List[CharacterReference] = Field(default_factory=list)

    @field_validator("story")
    @classmethod
    def story_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("story must not be blank")
        return v.strip()

    def participating_characters(self) -> List[CharacterReference]:
        return [c for c in self.character_references if c.participates]


class PanelSpec(BaseModel):
    scene_number: int = Field(..., ge=1)
    image_prompt: str = Field(..., min_length=1)
    caption: Optional[str] = None
    dialogues: List[str] = Field(default_factory=list)


class PanelRecord(PanelSpec):
    status: PanelStatus = PanelStatus.PENDING
    image_url: Optional[str] = Field(None, description="data URL once resolved")
    final_prompt: Optional[str] = None
    error: Optional[str] = None


class GenerationProgress(BaseModel):
    current_step: str
    percentage: float = Field(0.0, ge=0.0, le=100.0)
    current_panel: Optional[int] = None
    total_panels: Optional[int] = None


class RunSnapshot(BaseModel):
    run_id: str
    state: RunState
    progress: Optional[GenerationProgress] = None
    panels: List[PanelRecord] = Field(default_factory=list)
    messages: List[str] = Field(default_factory=list)


class RunCreatedResponse(BaseModel):
    run_id: str
    status_url: str
    pdf_url: str
    cancel_url: str


class ModelChoice(BaseModel):
    value: str
    label: str


class ModelListResponse(BaseModel):
    service: GenerationService
    text_models: List[ModelChoice]
    image_models: List[ModelChoice]
