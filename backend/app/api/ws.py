"""WebSocket endpoint for real-time task updates.

Task transitions are published on Redis Pub/Sub by whichever process applied
them (API or Celery worker); this endpoint relays them to browser clients.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.pubsub import listen_pubsub, subscribe_project

router = APIRouter()
logger = logging.getLogger(__name__)

# In-process registry: project_id -> set of active WebSocket connections
_project_connections: dict[str, set[WebSocket]] = {}


@router.websocket("/ws/{project_id}")
async def ws_project(ws: WebSocket, project_id: str):
    """Relay a project's task updates; answers "ping" with a pong."""
    await ws.accept()

    _project_connections.setdefault(project_id, set()).add(ws)
    logger.info("WS connected: project=%s (total=%d)", project_id, len(_project_connections[project_id]))

    pubsub = None
    listener_task = None
    try:
        _, pubsub = await subscribe_project(project_id)
        listener_task = asyncio.create_task(_relay_pubsub_to_ws(pubsub, ws, project_id))

        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WS disconnected: project=%s", project_id)
    except Exception as exc:
        logger.warning("WS error for project=%s: %s", project_id, exc)
    finally:
        _project_connections.get(project_id, set()).discard(ws)
        if not _project_connections.get(project_id):
            _project_connections.pop(project_id, None)
        if listener_task:
            listener_task.cancel()
        if pubsub:
            await pubsub.unsubscribe()
            await pubsub.close()
        # NOTE: the redis client is a shared singleton from pubsub.py, never closed here


async def _relay_pubsub_to_ws(pubsub, ws: WebSocket, project_id: str):
    """Background task: read from Redis Pub/Sub and forward to the WebSocket client."""
    try:
        async for message in listen_pubsub(pubsub):
            try:
                await ws.send_json(message)
            except Exception:
                break  # WebSocket closed
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logger.warning("Pub/Sub relay error for project=%s: %s", project_id, exc)
