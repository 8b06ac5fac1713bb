# tests/conftest.py
import base64
import json
from io import BytesIO

import pytest
import requests
from fastapi.testclient import TestClient
from PIL import Image
from requests.structures import CaseInsensitiveDict

from comic_studio.features.backends import open_media, structured
from comic_studio.features.generation.context import runs
from comic_studio.lib import retry
from comic_studio.main import app
from comic_studio.schemas import CharacterReference, StoryOptions

# -------- Utilities --------

def png_bytes(w=8, h=8, color=(123, 45, 67)) -> bytes:
    im = Image.new("RGB", (w, h), color)
    buf = BytesIO()
    im.save(buf, format="PNG")
    return buf.getvalue()

def png_b64(w=8, h=8) -> str:
    return base64.b64encode(png_bytes(w, h)).decode("ascii")

def png_data_url(w=8, h=8) -> str:
    return f"data:image/png;base64,{png_b64(w, h)}"

def scenes_json(n=3, **extra) -> str:
    return json.dumps({
        "scenes": [
            {
                "scene_number": i,
                "image_prompt": f"Scene {i}: the hero walks through the city",
                "caption": f"Caption {i}",
                "dialogues": [f"Hero: line {i}"],
                **extra,
            }
            for i in range(1, n + 1)
        ]
    })

# -------- Mocks for OpenAI --------

class _MockImageData:
    def __init__(self, b64_json):
        self.b64_json = b64_json

class _MockImagesResponse:
    def __init__(self, b64_json):
        self.data = [_MockImageData(b64_json)] if b64_json is not None else []

class _MockMessage:
    def __init__(self, content: str):
        self.content = content

class _MockChoice:
    def __init__(self, content: str):
        self.message = _MockMessage(content)

class _MockChatResponse:
    def __init__(self, content: str):
        self.choices = [_MockChoice(content)]

DEFAULT_DESCRIPTION = "A wiry teenager with short black hair, brown eyes and a chipped front tooth."

def _default_chat(**kwargs):
    messages = kwargs["messages"]
    if messages[0]["role"] == "system":
        return scenes_json(3)
    return DEFAULT_DESCRIPTION

class FakeChatCompletions:
    def __init__(self):
        self.calls = []
        self.handler = _default_chat

    def create(self, **kwargs):
        self.calls.append(kwargs)
        content = self.handler(**kwargs)
        return _MockChatResponse(content)

class FakeImages:
    def __init__(self):
        self.calls = []
        self.handler = lambda **kwargs: png_b64()

    def generate(self, **kwargs):
        self.calls.append(("generate", kwargs))
        return _MockImagesResponse(self.handler(**kwargs))

    def edit(self, **kwargs):
        self.calls.append(("edit", kwargs))
        return _MockImagesResponse(self.handler(**kwargs))

class _FakeChat:
    def __init__(self):
        self.completions = FakeChatCompletions()

class FakeOpenAIClient:
    def __init__(self):
        self.chat = _FakeChat()
        self.images = FakeImages()
        self.api_keys = []

@pytest.fixture(autouse=True)
def fake_openai(monkeypatch):
    """
    Auto-mock the OpenAI client factory so tests never hit the network.
    """
    fake = FakeOpenAIClient()

    def _make_client(api_key):
        fake.api_keys.append(api_key)
        return fake

    monkeypatch.setattr(structured, "make_client", _make_client)
    yield fake

# -------- Mocks for the open text/image service --------

class FakeResponse:
    def __init__(self, status_code=200, content=b"", headers=None, text=None):
        self.status_code = status_code
        self.content = content
        self.headers = CaseInsensitiveDict(headers or {})
        self.text = text if text is not None else content.decode("utf-8", errors="replace")

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")

def _default_http(url, params):
    if "/prompt/" in url:
        return FakeResponse(200, png_bytes(), {"Content-Type": "image/png"})
    if url.endswith("/models"):
        return FakeResponse(500, b"down")
    return FakeResponse(200, text=f"Sure! Here you go:\n```json\n{json.dumps(json.loads(scenes_json(3))['scenes'])}\n```")

class FakeHttp:
    def __init__(self):
        self.calls = []
        self.handler = _default_http

    def __call__(self, url, params=None):
        self.calls.append((url, dict(params or {})))
        return self.handler(url, params or {})

@pytest.fixture(autouse=True)
def fake_http(monkeypatch):
    fake = FakeHttp()
    monkeypatch.setattr(open_media, "_get", fake)
    yield fake

# -------- Retry timing --------

@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Record backoff delays instead of sleeping."""
    delays = []

    async def _pause(seconds):
        delays.append(seconds)

    monkeypatch.setattr(retry, "_pause", _pause)
    yield delays

@pytest.fixture(autouse=True)
def _clear_runs():
    yield
    runs.clear()

# -------- Builders --------

@pytest.fixture
def make_options():
    def _make(**overrides) -> StoryOptions:
        data = {
            "story": "A young hero named Zara explores a neon city and finds a lost robot.",
            "num_panels": 3,
            "style": "Manga",
            "era": "Cyberpunk",
        }
        data.update(overrides)
        return StoryOptions(**data)
    return _make

@pytest.fixture
def zara():
    return CharacterReference(id="c1", name="Zara", image_data_url=png_data_url())

# -------- Test client --------

@pytest.fixture
def client():
    return TestClient(app)
