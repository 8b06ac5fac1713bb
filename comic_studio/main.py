from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from comic_studio.config import config
from comic_studio.features.generation.context import runs
from comic_studio.features.generation.router import router as generation_router
from comic_studio.features.models.router import router as models_router
from comic_studio.logger import get_logger

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("comic studio starting")
    yield
    # stop in-flight runs between panels on shutdown
    runs.clear()


app = FastAPI(title="Comic Studio API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    allow_credentials=False,           # the API key travels in a header, not cookies
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],  # for PDF downloads
)

app.include_router(generation_router)
app.include_router(models_router)


@app.get("/healthz")
async def healthz() -> dict:
    return {"ok": True}
