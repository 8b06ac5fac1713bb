# comic_studio/features/models/router.py
import asyncio

from fastapi import APIRouter

from comic_studio.features.backends.registry import get_backend
from comic_studio.schemas import GenerationService, ModelChoice, ModelListResponse

router = APIRouter(prefix="/api/v1", tags=["models"])

@router.get("/models/{service}", response_model=ModelListResponse)
async def list_models(service: GenerationService) -> ModelListResponse:
    backend = get_backend(service)
    text_models, image_models = await asyncio.gather(
        asyncio.to_thread(backend.list_text_models),
        asyncio.to_thread(backend.list_image_models),
    )
    return ModelListResponse(
        service=service,
        text_models=[ModelChoice(value=m, label=m) for m in text_models],
        image_models=[ModelChoice(value=m, label=m) for m in image_models],
    )
