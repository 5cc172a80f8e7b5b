"""Provider contracts for asynchronous image/video generation.

Every call takes the API key explicitly; providers hold no credentials.

Result shapes (plain dicts, as returned by the HTTP APIs they wrap):
- ``generate_video`` -> ``{"task_id": str}``
- ``generate_image`` -> ``{"url": str, "urls": [str, ...]}`` for a direct result,
  or ``{"task_id": str}`` when the provider works asynchronously
- ``query_task`` -> ``{"status": str, "url": str | None, "video_url": ...,
  "image_url": ..., "fail_reason": str | None}`` with the provider's own status
  vocabulary; callers normalize it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ProviderError(RuntimeError):
    """An upstream API rejected a request; the message is the provider's own."""


class VideoProvider(ABC):
    """Asynchronous video generation: submit, then poll by handle."""

    @abstractmethod
    async def generate_video(self, params: dict[str, Any], api_key: str) -> dict[str, Any]:
        ...

    @abstractmethod
    async def query_task(self, external_task_id: str, api_key: str) -> dict[str, Any]:
        ...


class ImageProvider(ABC):
    """Image generation; providers that answer with a handle also implement ``query_task``."""

    @abstractmethod
    async def generate_image(self, params: dict[str, Any], api_key: str) -> dict[str, Any]:
        ...
