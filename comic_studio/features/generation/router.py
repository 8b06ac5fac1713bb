# comic_studio/features/generation/router.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException
from fastapi.responses import Response

from comic_studio.errors import ConfigurationError
from comic_studio.lib.pdf import make_pdf
from comic_studio.logger import get_logger
from comic_studio.schemas import PanelStatus, RunCreatedResponse, RunSnapshot, StoryOptions

from .context import RunContext, runs
from .service import check_configuration, run_generation

router = APIRouter(prefix="/api/v1", tags=["comics"])
log = get_logger(__name__)


async def _execute(ctx: RunContext, api_key: Optional[str]) -> None:
    try:
        await run_generation(ctx.options, api_key=api_key, ctx=ctx)
    except ConfigurationError:
        # run_generation records it on the context before re-raising
        pass
    except Exception as e:
        ctx.log.exception("run crashed")
        ctx.fail(f"Comic generation failed: {e}", keep_records=True)

def _get_run(run_id: str) -> RunContext:
    ctx = runs.get(run_id)
    if ctx is None:
        raise HTTPException(404, f"unknown run_id {run_id}")
    return ctx


@router.post("/comics/runs", status_code=202, response_model=RunCreatedResponse)
async def create_run(
    options: StoryOptions,
    background_tasks: BackgroundTasks,
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> RunCreatedResponse:
    """
    Start a generation run in the background and return where to poll it.
    A missing credential is reported here, before anything is generated.
    """
    try:
        check_configuration(options, x_api_key)
    except ConfigurationError as e:
        raise HTTPException(400, str(e))

    ctx = runs.add(RunContext(options))
    log.info(f"queued run {ctx.run_id} ({options.num_panels} panels, service={options.service.value})")
    background_tasks.add_task(_execute, ctx, x_api_key)
    return RunCreatedResponse(
        run_id=ctx.run_id,
        status_url=f"/api/v1/comics/runs/{ctx.run_id}",
        pdf_url=f"/api/v1/comics/runs/{ctx.run_id}/pdf",
        cancel_url=f"/api/v1/comics/runs/{ctx.run_id}/cancel",
    )

@router.get("/comics/runs/{run_id}", response_model=RunSnapshot)
async def get_run(run_id: str) -> RunSnapshot:
    return _get_run(run_id).snapshot()

@router.post("/comics/runs/{run_id}/cancel")
async def cancel_run(run_id: str) -> dict:
    ctx = _get_run(run_id)
    ctx.cancel_token.cancel()
    return {"run_id": run_id, "cancelled": True, "state": ctx.state.value}

@router.get("/comics/runs/{run_id}/pdf")
async def download_pdf(run_id: str) -> Response:
    ctx = _get_run(run_id)
    records = list(ctx.records)
    if not any(r.status == PanelStatus.RESOLVED for r in records):
        raise HTTPException(409, "no panel images are available yet")
    pdf = make_pdf(records, title="AI Comic")
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="comic_{run_id}.pdf"'},
    )
