"""Model catalog API — list configured image/video models and their providers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_registry
from app.services.provider_registry import ProviderRegistry

router = APIRouter()


@router.get("")
async def list_models(registry: ProviderRegistry = Depends(get_registry)) -> dict[str, Any]:
    """All catalog models grouped by kind."""
    return registry.catalog.to_dict()


@router.get("/{kind}")
async def list_models_of_kind(
    kind: str,
    registry: ProviderRegistry = Depends(get_registry),
) -> dict[str, Any]:
    if kind not in ("image", "video"):
        raise HTTPException(status_code=404, detail=f"Unknown model kind: {kind}")
    models = registry.catalog.to_dict().get(kind, [])
    return {"models": models, "total": len(models)}
