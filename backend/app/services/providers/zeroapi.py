"""Zeroapi aggregation provider — Sora video, Seedream and Gemini images.

Endpoints:
- POST /v1/video/create            → create video task, returns {"id"}
- GET  /v1/video/query?id=<id>     → {"status", "video_url", "fail_reason"}
- POST /v1/images/generations      → synchronous {"data": [{"url"}]}
- POST /v1beta/models/<m>:generateContent → Gemini inline image bytes, stored
  under the media volume and served from /media
"""

from __future__ import annotations

import base64
import logging
import os
import uuid
from typing import Any

import httpx

from app.services.providers.base import ImageProvider, ProviderError, VideoProvider

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://zeroapi.cn"

GEMINI_IMAGE_MODELS = ("gemini-2.5-flash-image", "gemini-3-pro-image-preview")

_RATIO_RESOLUTIONS = {
    "16:9": "2560x1440",
    "9:16": "1440x2560",
    "4:3": "2048x1536",
    "3:4": "1536x2048",
    "3:2": "2160x1440",
    "2:3": "1440x2160",
    "1:1": "2048x2048",
}

_MIME_EXTENSIONS = {"image/png": ".png", "image/webp": ".webp"}


def resolution_for_ratio(ratio: str | None) -> str:
    """Pixel size requested for an aspect ratio; square by default."""
    return _RATIO_RESOLUTIONS.get(ratio or "", "2048x2048")


def _error_message(response: httpx.Response) -> str:
    """Pull the most specific message out of an error body."""
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"

    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, str):
            return err
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(data.get("message"), str):
            return data["message"]
    return f"HTTP {response.status_code}"


class ZeroapiProvider(VideoProvider, ImageProvider):
    """Zeroapi client implementing both the video and image contracts."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = 60.0,
        media_volume: str = "media_volume",
        public_base_url: str = "",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.media_volume = media_volume
        self.public_base_url = public_base_url.rstrip("/")
        self._http_client = http_client

    async def _request(
        self,
        api_key: str,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.base_url}{endpoint}"

        client = self._http_client or httpx.AsyncClient(timeout=self.timeout)
        own_client = self._http_client is None
        try:
            response = await client.request(method, url, headers=headers, json=json, params=params)
        finally:
            if own_client:
                await client.aclose()

        if response.is_error:
            message = _error_message(response)
            logger.error("Zeroapi error (%s): %s", endpoint, message)
            raise ProviderError(message)
        return response.json()

    # ──────── Video ────────

    async def generate_video(self, params: dict[str, Any], api_key: str) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": params.get("model") or "sora-2",
            "prompt": params.get("prompt"),
            "orientation": "landscape" if params.get("aspect_ratio") == "16:9" else "portrait",
            "duration": int(params.get("duration") or 10),
            "size": "small",  # 720p
            "watermark": False,
        }
        if params.get("images"):
            body["images"] = params["images"]

        result = await self._request(api_key, "POST", "/v1/video/create", json=body)
        task_id = result.get("id") if isinstance(result, dict) else None
        if not task_id:
            raise ProviderError("Invalid response from video generation API")

        logger.info("Zeroapi video task created: %s (model=%s)", task_id, body["model"])
        return {"task_id": str(task_id)}

    async def query_task(self, external_task_id: str, api_key: str) -> dict[str, Any]:
        result = await self._request(
            api_key, "GET", "/v1/video/query", params={"id": external_task_id},
        )
        status = result.get("status")
        return {
            "status": status,
            "url": result.get("video_url"),
            "video_url": result.get("video_url"),
            "fail_reason": result.get("fail_reason") or ("Unknown error" if status == "failed" else None),
        }

    # ──────── Image ────────

    async def generate_image(self, params: dict[str, Any], api_key: str) -> dict[str, Any]:
        if params.get("model") in GEMINI_IMAGE_MODELS:
            return await self._generate_gemini_image(params, api_key)

        body: dict[str, Any] = {
            "model": params.get("model") or "doubao-seedream-4-0-250828",
            "prompt": params.get("prompt"),
            "size": resolution_for_ratio(params.get("ratio")),
        }
        if params.get("image"):
            body["image"] = params["image"]

        result = await self._request(api_key, "POST", "/v1/images/generations", json=body)
        urls = [item["url"] for item in result.get("data") or [] if item.get("url")]
        if not urls:
            raise ProviderError("No image URL in response")
        return {"url": urls[0], "urls": urls}

    async def _generate_gemini_image(self, params: dict[str, Any], api_key: str) -> dict[str, Any]:
        model = params["model"]
        parts: list[dict[str, Any]] = [{"text": params.get("prompt") or ""}]
        for ref_url in params.get("image") or []:
            try:
                parts.append({
                    "inline_data": {
                        "mime_type": "image/jpeg",
                        "data": await self._url_to_base64(ref_url),
                    }
                })
            except httpx.HTTPError as e:
                logger.warning("Skipping reference image %s: %s", ref_url, e)

        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": params.get("ratio") or "1:1"},
            },
        }
        result = await self._request(
            api_key, "POST", f"/v1beta/models/{model}:generateContent",
            json=body, params={"key": api_key},
        )

        candidates = result.get("candidates") or []
        content_parts = (candidates[0].get("content") or {}).get("parts", []) if candidates else []
        for part in content_parts:
            inline = part.get("inlineData") or part.get("inline_data")
            if not inline:
                continue
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/jpeg"
            url = self._save_image(base64.b64decode(inline["data"]), _MIME_EXTENSIONS.get(mime_type, ".jpg"))
            return {"url": url, "urls": [url]}

        raise ProviderError("No image data in Gemini response")

    async def _url_to_base64(self, url: str) -> str:
        client = self._http_client or httpx.AsyncClient(timeout=self.timeout)
        own_client = self._http_client is None
        try:
            response = await client.get(url)
            response.raise_for_status()
        finally:
            if own_client:
                await client.aclose()
        return base64.b64encode(response.content).decode("utf-8")

    def _save_image(self, data: bytes, ext: str) -> str:
        """Write image bytes under media_volume/generated and return the public URL."""
        dir_path = os.path.join(self.media_volume, "generated")
        os.makedirs(dir_path, exist_ok=True)

        filename = f"{uuid.uuid4().hex}{ext}"
        with open(os.path.join(dir_path, filename), "wb") as f:
            f.write(data)
        return f"{self.public_base_url}/media/generated/{filename}"
