from dataclasses import replace

import pytest

from comic_studio.config import config
from comic_studio.errors import PanelRenderError
from comic_studio.features.backends.registry import OPEN, STRUCTURED
from comic_studio.features.characters.service import CharacterCanon
from comic_studio.features.panels.prompt import build_final_prompt, with_style
from comic_studio.features.panels.service import build_image_request, render_panel
from comic_studio.schemas import AspectRatio, CaptionPlacement, CharacterDescription, PanelSpec

from tests.conftest import FakeResponse, png_bytes

ZARA_D = "green eyes, silver braid, scar over the left brow"

def _spec(prompt="Zara sprints across the rooftops", **kw):
    return PanelSpec(scene_number=kw.pop("scene_number", 3), image_prompt=prompt, **kw)

# -------- prompt building --------

def test_style_suffix_is_appended_once(make_options):
    options = make_options()
    once = with_style("A quiet street.", options)
    assert once == "A quiet street, in the art style of Manga, Cyberpunk era"
    assert with_style(once, options) == once

def test_final_prompt_prepends_character_description(make_options):
    canon = CharacterCanon([CharacterDescription(name="Zara", description=ZARA_D)])
    prompt = build_final_prompt(_spec(), make_options(), STRUCTURED, canon)
    assert prompt.startswith(f"Zara: {ZARA_D}. Zara sprints")
    assert prompt.endswith("in the art style of Manga, Cyberpunk era")

def test_final_prompt_without_character_mention_has_no_description(make_options):
    canon = CharacterCanon([CharacterDescription(name="Zara", description=ZARA_D)])
    prompt = build_final_prompt(_spec("An empty train platform"), make_options(), STRUCTURED, canon)
    assert ZARA_D not in prompt

def test_open_backend_gets_aspect_hint(make_options):
    options = make_options(aspect_ratio=AspectRatio.PORTRAIT)
    assert "9:16" in build_final_prompt(_spec(), options, OPEN)
    assert "9:16" not in build_final_prompt(_spec(), options, STRUCTURED)

def test_caption_in_image_is_lettered_into_prompt(make_options):
    options = make_options(caption_placement=CaptionPlacement.IN_IMAGE)
    prompt = build_final_prompt(_spec(caption="Meanwhile..."), options, STRUCTURED)
    assert 'caption box with the text: "Meanwhile..."' in prompt

def test_reference_images_only_for_models_that_take_them(make_options, zara):
    options = make_options(character_references=[zara])
    assert build_image_request(_spec(), options, STRUCTURED).reference_images == []
    req = build_image_request(_spec(), options.model_copy(update={"image_model": "gpt-image-1"}), STRUCTURED)
    assert req.reference_images == [("Zara", zara.image_data_url)]
    none = build_image_request(_spec("A quiet street"), options.model_copy(update={"image_model": "gpt-image-1"}), STRUCTURED)
    assert none.reference_images == []

# -------- structured wire --------

@pytest.mark.asyncio
async def test_structured_render_maps_size_and_sends_no_seed(make_options, fake_openai):
    rendered = await render_panel(_spec(), make_options(aspect_ratio=AspectRatio.LANDSCAPE), STRUCTURED, api_key="sk-test")
    assert rendered.image_url.startswith("data:image/png;base64,")
    kind, kwargs = fake_openai.images.calls[0]
    assert kind == "generate"
    assert kwargs["size"] == "1792x1024"
    assert "seed" not in kwargs and "extra_body" not in kwargs
    assert kwargs["prompt"] == rendered.final_prompt

@pytest.mark.asyncio
async def test_structured_render_uses_edit_with_references(make_options, fake_openai, zara):
    options = make_options(character_references=[zara], image_model="gpt-image-1")
    await render_panel(_spec(), options, STRUCTURED, api_key="sk-test")
    kind, kwargs = fake_openai.images.calls[0]
    assert kind == "edit"
    assert len(kwargs["image"]) == 1
    filename, data, mime = kwargs["image"][0]
    assert mime == "image/png" and data.startswith(b"\x89PNG")
    assert kwargs["size"] == "1024x1024"

@pytest.mark.asyncio
@pytest.mark.parametrize("aspect, size", [
    (AspectRatio.PORTRAIT, "1024x1536"),
    (AspectRatio.LANDSCAPE, "1536x1024"),
])
async def test_gpt_image_edit_uses_its_own_tall_and_wide_sizes(make_options, fake_openai, zara, aspect, size):
    options = make_options(character_references=[zara], image_model="gpt-image-1", aspect_ratio=aspect)
    rendered = await render_panel(_spec(), options, STRUCTURED, api_key="sk-test")
    kind, kwargs = fake_openai.images.calls[0]
    assert kind == "edit"
    assert kwargs["size"] == size
    assert "response_format" not in kwargs
    assert rendered.image_url.startswith("data:image/png;base64,")

def test_seed_only_set_for_services_that_take_one(make_options):
    options = make_options()
    assert build_image_request(_spec(), options, STRUCTURED).seed is None
    assert build_image_request(_spec(), options.model_copy(update={"service": "open"}), OPEN).seed == config.fixed_image_seed

@pytest.mark.asyncio
async def test_failing_panel_is_attempted_exactly_three_times(make_options, fake_openai, no_sleep):
    def _boom(**kwargs):
        raise RuntimeError("content policy")
    fake_openai.images.handler = _boom

    with pytest.raises(PanelRenderError) as exc:
        await render_panel(_spec(), make_options(), STRUCTURED, api_key="sk-test")
    assert exc.value.attempts == 3
    assert "content policy" in exc.value.last_error
    assert len(fake_openai.images.calls) == 3
    # linear backoff between attempts
    assert no_sleep == [config.retry_backoff_seconds * 1, config.retry_backoff_seconds * 2]
    # every attempt sends the identical request
    first = fake_openai.images.calls[0][1]
    assert all(kw == first for _, kw in fake_openai.images.calls)

@pytest.mark.asyncio
async def test_empty_payload_counts_as_failure(make_options, fake_openai):
    fake_openai.images.handler = lambda **kwargs: None
    with pytest.raises(PanelRenderError):
        await render_panel(_spec(), make_options(), STRUCTURED, api_key="sk-test")
    assert len(fake_openai.images.calls) == 3

@pytest.mark.asyncio
async def test_succeeds_after_transient_failure(make_options):
    attempts = []

    async def _render(req):
        attempts.append(req)
        if len(attempts) < 2:
            raise RuntimeError("timeout")
        return "data:image/png;base64,AAAA"

    rendered = await render_panel(_spec(), make_options(), replace(STRUCTURED, render_image=_render), api_key="k")
    assert rendered.image_url == "data:image/png;base64,AAAA"
    assert len(attempts) == 2
    assert attempts[0] is attempts[1]

# -------- open wire --------

@pytest.mark.asyncio
async def test_open_render_sends_seed_and_dimensions(make_options, fake_http):
    options = make_options(service="open", aspect_ratio=AspectRatio.PORTRAIT)
    rendered = await render_panel(_spec(), options, OPEN)
    url, params = fake_http.calls[0]
    assert "/prompt/" in url
    assert params["seed"] == config.fixed_image_seed
    assert (params["width"], params["height"]) == (1024, 1792)
    assert params["model"] == OPEN.default_image_model
    assert rendered.image_url.startswith("data:image/png;base64,")

@pytest.mark.asyncio
async def test_open_render_rejects_non_image_content(make_options, fake_http):
    fake_http.handler = lambda url, params: FakeResponse(200, b"<html>rate limited</html>", {"Content-Type": "text/html"})
    with pytest.raises(PanelRenderError) as exc:
        await render_panel(_spec(), make_options(service="open"), OPEN)
    assert "did not return a valid image" in exc.value.last_error
    assert len(fake_http.calls) == 3
    assert len({tuple(sorted(p.items())) for _, p in fake_http.calls}) == 1

@pytest.mark.asyncio
async def test_open_render_rejects_error_status(make_options, fake_http):
    fake_http.handler = lambda url, params: FakeResponse(500, png_bytes(), {"Content-Type": "image/png"})
    with pytest.raises(PanelRenderError) as exc:
        await render_panel(_spec(), make_options(service="open"), OPEN)
    assert "500" in str(exc.value)
