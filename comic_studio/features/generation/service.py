# comic_studio/features/generation/service.py
from __future__ import annotations

from typing import Optional

from comic_studio.errors import ConfigurationError, PanelRenderError, RunCancelled
from comic_studio.features.backends.registry import Backend, get_backend
from comic_studio.features.characters.service import (
    CharacterCanon,
    ConsistencyStrategy,
    choose_strategy,
    describe_characters,
    participating,
)
from comic_studio.features.decomposition.service import decompose
from comic_studio.features.panels.prompt import with_style
from comic_studio.features.panels.service import render_panel
from comic_studio.schemas import PanelSpec, RunState, StoryOptions

from .context import RunContext

FALLBACK_WARNING = (
    "Warning: The AI could not break the story into scenes. "
    "Generating a single image from the full story text instead."
)

# progress milestones (percent)
P_CHARACTERS = 5
P_DECOMPOSE = 10
P_PROMPTS_READY = 25

def check_configuration(options: StoryOptions, api_key: Optional[str], backend: Optional[Backend] = None) -> ConsistencyStrategy:
    """
    Fail fast, before anything is generated, when the run would need a credential
    that was not supplied. Returns the character consistency strategy for the run.
    """
    backend = backend or get_backend(options.service)
    has_key = bool(api_key and api_key.strip())
    if backend.requires_credential and not has_key:
        raise ConfigurationError(f"An API key is required to use the {backend.label} service.")
    strategy = choose_strategy(options, backend)
    if strategy == ConsistencyStrategy.PREPASS and not has_key:
        raise ConfigurationError("An API key is required for the Character Reference feature.")
    return strategy

def fallback_panel(options: StoryOptions) -> PanelSpec:
    return PanelSpec(
        scene_number=1,
        image_prompt=with_style(options.story, options),
        caption="Fallback: Full Story",
        dialogues=["Scene generation failed."],
    )

async def _resolve_canon(
    ctx: RunContext,
    backend: Backend,
    strategy: ConsistencyStrategy,
    raw_canon,
    prepass: CharacterCanon,
    api_key: Optional[str],
) -> CharacterCanon:
    if strategy != ConsistencyStrategy.INLINE:
        return prepass
    refs = participating(ctx.options.character_references)
    canon = CharacterCanon.from_response(raw_canon, refs)
    missing = canon.missing(refs)
    if missing:
        # the backend skipped some characters; describe those directly
        ctx.log.info(f"canon missing {[r.name for r in missing]}; describing separately")
        extra = await describe_characters(missing, backend=backend, api_key=api_key or "")
        canon = canon.merge(extra, order=refs)
    return canon

async def _run(ctx: RunContext, backend: Backend, strategy: ConsistencyStrategy, api_key: Optional[str]) -> None:
    options = ctx.options
    token = ctx.cancel_token
    ctx.set_state(RunState.DECOMPOSING)

    prepass = CharacterCanon()
    if strategy == ConsistencyStrategy.PREPASS:
        ctx.set_progress("Analyzing character references...", P_CHARACTERS)
        prepass = await describe_characters(options.character_references, backend=backend, api_key=api_key or "")
        token.raise_if_cancelled()

    ctx.set_progress("Analyzing story & generating scene prompts...", P_DECOMPOSE)
    result = await decompose(
        options,
        backend,
        api_key=api_key,
        strategy=strategy,
        canon=prepass if strategy == ConsistencyStrategy.PREPASS else None,
        cancel=token,
    )
    canon = await _resolve_canon(ctx, backend, strategy, result.canon, prepass, api_key)

    scenes = result.scenes
    if result.empty:
        ctx.log.warning("decomposition returned no scenes; using a single fallback panel")
        ctx.add_message(FALLBACK_WARNING)
        scenes = [fallback_panel(options)]

    ctx.set_records(scenes)
    total = len(scenes)
    ctx.set_state(RunState.RENDERING)
    ctx.set_progress(
        f"Generated {total} prompts. Starting image generation...",
        P_PROMPTS_READY,
        total_panels=total,
    )

    span = 100 - P_PROMPTS_READY
    for i, spec in enumerate(scenes):
        token.raise_if_cancelled()
        ctx.set_progress(
            f"Generating image for panel {i + 1}...",
            P_PROMPTS_READY + span * i / total,
            current_panel=i + 1,
            total_panels=total,
        )
        try:
            rendered = await render_panel(spec, options, backend, canon, api_key=api_key, cancel=token)
            ctx.resolve_panel(i, rendered.final_prompt, rendered.image_url)
        except PanelRenderError as e:
            ctx.log.error(f"Error generating image for panel {spec.scene_number}: {e}")
            ctx.fail_panel(i, e.final_prompt, e.last_error)
        ctx.set_progress(
            f"Finished panel {i + 1} of {total}",
            P_PROMPTS_READY + span * (i + 1) / total,
            current_panel=i + 1,
            total_panels=total,
        )

    ctx.state = RunState.COMPLETE
    ctx.set_progress("Comic generation complete!", 100, current_panel=total, total_panels=total)

async def run_generation(
    options: StoryOptions,
    *,
    api_key: Optional[str] = None,
    ctx: Optional[RunContext] = None,
    backend: Optional[Backend] = None,
) -> RunContext:
    """
    One complete run: credential check, optional character pre-pass, a single
    decomposition, then sequential panel rendering. Only a ConfigurationError
    escapes; panel and decomposition failures end up in ctx.messages.
    """
    ctx = ctx or RunContext(options)
    backend = backend or get_backend(options.service)
    ctx.reset()
    ctx.log.info(f"starting run: service={backend.service.value} panels={options.num_panels}")

    try:
        strategy = check_configuration(options, api_key, backend)
    except ConfigurationError as e:
        ctx.log.error(f"configuration error: {e}")
        ctx.fail(str(e))
        raise

    try:
        await _run(ctx, backend, strategy, api_key)
    except ConfigurationError as e:
        # raised after rendering may have started; panels already drawn stay
        ctx.log.error(f"configuration error mid-run: {e}")
        ctx.fail(str(e), keep_records=True)
        raise
    except RunCancelled:
        ctx.log.info("run cancelled")
        ctx.state = RunState.CANCELLED
        ctx.add_message("Generation cancelled.")
    return ctx
