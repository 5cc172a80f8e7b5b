"""Redis Pub/Sub bridge for task status notifications.

The orchestrator (API process or Celery worker) publishes a message after every
committed task transition. FastAPI's WebSocket handler subscribes and relays to
connected clients.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis
import redis.asyncio as aioredis

from app.config import get_settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "shortdrama:ws:"

_async_client: aioredis.Redis | None = None
_sync_pool: redis.ConnectionPool | None = None


def _get_sync_pool() -> redis.ConnectionPool:
    """Lazy-init a shared sync connection pool (Celery workers)."""
    global _sync_pool
    if _sync_pool is None:
        _sync_pool = redis.ConnectionPool.from_url(get_settings().REDIS_URL)
    return _sync_pool


def _get_async_client() -> aioredis.Redis:
    """Lazy-init a module-level async Redis client (singleton)."""
    global _async_client
    if _async_client is None:
        settings = get_settings()
        _async_client = aioredis.from_url(settings.REDIS_URL)
    return _async_client


def channel_for(project_id: str) -> str:
    return f"{CHANNEL_PREFIX}{project_id}"


# ──────── Publisher ────────

async def publish_task_update(project_id: str, message: dict[str, Any]) -> None:
    """Publish a task update on the project's channel.

    Raises on connection errors; the orchestrator treats publishing as best-effort.
    """
    r = _get_async_client()
    await r.publish(channel_for(project_id), json.dumps(message))


# ──────── Subscriber (used by FastAPI) ────────

async def subscribe_project(project_id: str) -> tuple[aioredis.Redis, aioredis.client.PubSub]:
    """Create an async Redis PubSub subscription for a project channel.

    Returns the shared client and a new pubsub instance.
    Caller should close the pubsub when done, but NOT the client.
    """
    r = _get_async_client()
    pubsub = r.pubsub()
    await pubsub.subscribe(channel_for(project_id))
    return r, pubsub


async def listen_pubsub(pubsub: aioredis.client.PubSub):
    """Async generator that yields parsed messages from a PubSub subscription."""
    async for raw_message in pubsub.listen():
        if raw_message["type"] == "message":
            try:
                data = json.loads(raw_message["data"])
                yield data
            except (json.JSONDecodeError, TypeError):
                continue
