from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List

from comic_studio.schemas import CaptionPlacement, PanelSpec, StoryOptions


class CaptionPolicy(str, Enum):
    FULL = "full"                  # caption + dialogues
    CAPTION_ONLY = "caption_only"  # caption drawn in the image, no dialogues
    OMIT = "omit"                  # caption null, dialogues empty

    @classmethod
    def for_options(cls, options: StoryOptions) -> "CaptionPolicy":
        if not options.include_captions:
            return cls.OMIT
        if options.caption_placement == CaptionPlacement.IN_IMAGE:
            return cls.CAPTION_ONLY
        return cls.FULL


@dataclass
class DecompositionResult:
    scenes: List[PanelSpec] = field(default_factory=list)
    canon: Any = None   # raw character_canon from the response, if any

    @property
    def empty(self) -> bool:
        return not self.scenes
