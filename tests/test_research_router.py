import io

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image

from part_research.routers import research
from part_research.services.intent_parser import IntentParser
from part_research.services.research_engine import ResearchEngine

VALID = (
    '{"name": "NE555 Timer", "category": "IC", "confidence": 0.8, '
    '"image_urls": ["https://www.ti.com/ne555.png"], "model_3d_urls": []}'
)


@pytest.fixture
def build_client(settings, make_provider):
    def _build(perplexity_replies, anthropic_replies, intent_replies=()):
        providers = {
            "perplexity": make_provider("perplexity", perplexity_replies, web_search=True, max_retries=1),
            "anthropic": make_provider("anthropic", anthropic_replies, supports_images=True, max_retries=1),
        }
        app = FastAPI()
        app.include_router(research.router)
        app.state.engine = ResearchEngine(settings, providers=providers)
        app.state.intent_parser = IntentParser(make_provider("anthropic", list(intent_replies), max_retries=1))
        return TestClient(app), providers

    return _build


def test_research_success(build_client):
    client, _ = build_client([VALID], [])

    resp = client.post("/api/research", json={"description": "555 timer"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["research"]["name"] == "NE555 Timer"
    assert body["research"]["image_urls"] == ["https://www.ti.com/ne555.png"]
    assert body["research"]["provenance"]["provider"] == "perplexity"


def test_quick_mode_returns_subset(build_client):
    client, _ = build_client([VALID], [])

    body = client.post("/api/research", json={"description": "555", "mode": "quick"}).json()

    assert body["success"] is True
    assert "image_urls" not in body["research"]
    assert body["research"]["typical_quantity"] == 1


def test_failure_returns_fallback(build_client):
    client, _ = build_client(["nothing useful"], ["still nothing"])

    body = client.post("/api/research", json={"description": "weird blue box"}).json()

    assert body["success"] is False
    assert "Failed to research part information" in body["error"]
    assert body["fallback"]["confidence"] == 0.3
    assert body["fallback"]["description"] == "weird blue box"


def test_missing_description(build_client):
    client, _ = build_client([], [])

    resp = client.post("/api/research", json={"description": "  "})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Description is required"}


def test_invalid_mode(build_client):
    client, _ = build_client([], [])
    assert client.post("/api/research", json={"description": "x", "mode": "bulk"}).status_code == 422


def test_parse_mode(build_client):
    reply = '{"action": "identify_part", "part_description": "mystery IC"}'
    client, _ = build_client([], [], intent_replies=[reply])

    body = client.post("/api/research", json={"description": "what is this IC", "mode": "parse"}).json()

    assert body == {
        "success": True,
        "parsed": {
            "action": "identify_part",
            "part_description": "mystery IC",
            "quantity": None,
            "location": None,
            "additional_context": None,
        },
    }


def test_image_upload_uses_vision_provider(build_client):
    client, providers = build_client([VALID], [VALID])
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), "green").save(buf, format="PNG")

    resp = client.post(
        "/api/research/image",
        files={"file": ("part.png", buf.getvalue(), "image/png")},
        data={"description": "from a radio"},
    )

    body = resp.json()
    assert body["success"] is True
    assert body["research"]["provenance"]["provider"] == "anthropic"
    assert providers["perplexity"].client.calls == []


def test_find_images(build_client):
    client, _ = build_client([VALID], [])

    resp = client.get("/api/research/images", params={"name": "NE555", "manufacturer": "TI"})

    assert resp.json() == {"image_urls": ["https://www.ti.com/ne555.png"]}
