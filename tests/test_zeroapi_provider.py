import base64
import json

import httpx
import pytest

from app.services.providers.base import ProviderError
from app.services.providers.zeroapi import ZeroapiProvider, resolution_for_ratio
from app.tasks import run_async


def _provider(handler, tmp_path=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ZeroapiProvider(
        "https://api.test/",
        media_volume=str(tmp_path) if tmp_path else "media_volume",
        public_base_url="https://studio.test",
        http_client=client,
    )


def test_generate_video_posts_sora_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "video_123"})

    result = run_async(_provider(handler).generate_video(
        {"prompt": "rain", "duration": "10", "aspect_ratio": "9:16", "images": ["https://x/ref.png"], "model": "sora-2"},
        "sk-1",
    ))

    assert result == {"task_id": "video_123"}
    assert seen["url"] == "https://api.test/v1/video/create"
    assert seen["auth"] == "Bearer sk-1"
    assert seen["body"] == {
        "model": "sora-2",
        "prompt": "rain",
        "orientation": "portrait",
        "duration": 10,
        "size": "small",
        "watermark": False,
        "images": ["https://x/ref.png"],
    }


def test_query_task_maps_fields():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["id"] == "video_123"
        return httpx.Response(200, json={"status": "completed", "video_url": "https://cdn/v.mp4"})

    result = run_async(_provider(handler).query_task("video_123", "sk-1"))

    assert result["status"] == "completed"
    assert result["url"] == "https://cdn/v.mp4"
    assert result["fail_reason"] is None


def test_query_failed_without_reason():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "failed"})

    result = run_async(_provider(handler).query_task("video_123", "sk-1"))

    assert result["fail_reason"] == "Unknown error"


@pytest.mark.parametrize("body, message", [
    ({"error": {"message": "quota exceeded"}}, "quota exceeded"),
    ({"error": "invalid key"}, "invalid key"),
    ({"message": "bad prompt"}, "bad prompt"),
])
def test_error_body_becomes_provider_error(body, message):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json=body)

    with pytest.raises(ProviderError, match=message):
        run_async(_provider(handler).generate_video({"prompt": "x"}, "sk-1"))


def test_generate_image_returns_urls():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"url": "https://cdn/1.png"}, {"url": "https://cdn/2.png"}]})

    result = run_async(_provider(handler).generate_image(
        {"prompt": "lantern", "ratio": "16:9", "model": "doubao-seedream-4-0-250828"}, "sk-1",
    ))

    assert result == {"url": "https://cdn/1.png", "urls": ["https://cdn/1.png", "https://cdn/2.png"]}
    assert seen["body"]["size"] == "2560x1440"


def test_generate_image_without_data_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": []})

    with pytest.raises(ProviderError):
        run_async(_provider(handler).generate_image({"prompt": "x"}, "sk-1"))


def test_gemini_inline_image_is_saved(tmp_path):
    png = b"\x89PNG fake bytes"

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1beta/models/gemini-2.5-flash-image:generateContent"
        return httpx.Response(200, json={
            "candidates": [{"content": {"parts": [
                {"text": "here you go"},
                {"inlineData": {"mimeType": "image/png", "data": base64.b64encode(png).decode()}},
            ]}}],
        })

    result = run_async(_provider(handler, tmp_path).generate_image(
        {"prompt": "lantern", "model": "gemini-2.5-flash-image"}, "sk-1",
    ))

    filename = result["url"].rsplit("/", 1)[-1]
    assert result["url"] == f"https://studio.test/media/generated/{filename}"
    assert filename.endswith(".png")
    assert (tmp_path / "generated" / filename).read_bytes() == png


def test_resolution_for_ratio():
    assert resolution_for_ratio("9:16") == "1440x2560"
    assert resolution_for_ratio(None) == "2048x2048"
