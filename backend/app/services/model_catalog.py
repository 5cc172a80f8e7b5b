"""Declarative image/video model catalog.

Each catalog entry names a user-facing model id, the providers able to serve
it and the provider-specific model value sent over the wire.

Usage:
    from app.services.model_catalog import build_catalog
    catalog = build_catalog()
    entry = catalog.get("video", "sora-2")
    entry.providers["zeroapi"].model_value
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


MEDIA_KINDS = ("image", "video")


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderModel:
    """How one provider exposes a catalog model."""
    name: str
    model_value: str
    endpoint: str | None = None


@dataclass(frozen=True)
class ModelEntry:
    """Catalog descriptor for a single model."""
    model_id: str
    name: str
    kind: str                          # image | video
    default_provider: str
    providers: dict[str, ProviderModel]
    capabilities: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Catalog class
# ---------------------------------------------------------------------------

class ModelCatalog:
    """In-memory catalog of image and video models, keyed by kind then model id."""

    def __init__(self) -> None:
        self._models: dict[str, dict[str, ModelEntry]] = {kind: {} for kind in MEDIA_KINDS}

    def register(self, entry: ModelEntry) -> None:
        if entry.kind not in self._models:
            raise ValueError(f"Unknown model kind: {entry.kind}")
        self._models[entry.kind][entry.model_id] = entry

    def get(self, kind: str, model_id: str | None) -> ModelEntry | None:
        if not model_id:
            return None
        return self._models.get(kind, {}).get(model_id)

    def first(self, kind: str) -> ModelEntry | None:
        """First registered model of a kind, the system-wide default."""
        return next(iter(self._models.get(kind, {}).values()), None)

    def list_models(self, kind: str | None = None) -> list[ModelEntry]:
        if kind:
            return list(self._models.get(kind, {}).values())
        return [entry for entries in self._models.values() for entry in entries.values()]

    def load_file(self, kind: str, path: str) -> int:
        """Register every model from a JSON file shaped like
        ``{"<model_id>": {"name", "default_provider", "providers": {"<id>": {"name", "model_value"}}}}``.

        Entries replace built-in models with the same id. Returns the number loaded.
        """
        with open(path, encoding="utf-8") as f:
            raw: dict[str, Any] = json.load(f)

        for model_id, cfg in raw.items():
            providers = {
                pid: ProviderModel(
                    name=p.get("name", pid),
                    model_value=p["model_value"],
                    endpoint=p.get("endpoint"),
                )
                for pid, p in cfg.get("providers", {}).items()
            }
            self.register(ModelEntry(
                model_id=model_id,
                name=cfg.get("name", model_id),
                kind=kind,
                default_provider=cfg.get("default_provider") or next(iter(providers), ""),
                providers=providers,
                capabilities=tuple(cfg.get("capabilities", [])),
            ))
        return len(raw)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        """Serialize the catalog for API response."""
        return {
            kind: [
                {
                    "id": entry.model_id,
                    "name": entry.name,
                    "default_provider": entry.default_provider,
                    "providers": sorted(entry.providers),
                    "capabilities": list(entry.capabilities),
                }
                for entry in entries.values()
            ]
            for kind, entries in self._models.items()
        }


# ---------------------------------------------------------------------------
# Helper to reduce boilerplate
# ---------------------------------------------------------------------------

def _entry(
    kind: str,
    model_id: str,
    name: str,
    values: dict[str, str],
    capabilities: list[str] | None = None,
) -> ModelEntry:
    """Shorthand factory: first provider in `values` is the default."""
    return ModelEntry(
        model_id=model_id,
        name=name,
        kind=kind,
        default_provider=next(iter(values)),
        providers={pid: ProviderModel(name=pid, model_value=v) for pid, v in values.items()},
        capabilities=tuple(capabilities or []),
    )


def _register_builtin(catalog: ModelCatalog) -> None:
    # ================== Image ==================
    catalog.register(_entry(
        "image", "doubao-seedream-4-0", "Seedream 4.0",
        {"zeroapi": "doubao-seedream-4-0-250828"},
        ["text2image", "image2image"],
    ))
    catalog.register(_entry(
        "image", "doubao-seedream-4-5", "Seedream 4.5",
        {"zeroapi": "doubao-seedream-4-5-251128"},
        ["text2image", "image2image"],
    ))
    catalog.register(_entry(
        "image", "gemini-2.5-flash-image", "Nano Banana",
        {"zeroapi": "gemini-2.5-flash-image"},
        ["text2image", "image2image"],
    ))
    catalog.register(_entry(
        "image", "gemini-3-pro-image-preview", "Nano Banana Pro",
        {"zeroapi": "gemini-3-pro-image-preview"},
        ["text2image", "image2image"],
    ))

    # ================== Video ==================
    catalog.register(_entry(
        "video", "sora-2", "Sora 2",
        {"zeroapi": "sora-2"},
        ["text2video", "image2video"],
    ))
    catalog.register(_entry(
        "video", "sora-2-pro", "Sora 2 Pro",
        {"zeroapi": "sora-2-pro"},
        ["text2video", "image2video"],
    ))
    catalog.register(_entry(
        "video", "flash_vsr", "FlashVSR upscale",
        {"zeroapi": "flash_vsr"},
        ["video2video"],
    ))


def build_catalog(models_dir: str | None = None) -> ModelCatalog:
    """Built-in catalog, overlaid with ``image.json`` / ``video.json`` from `models_dir`."""
    catalog = ModelCatalog()
    _register_builtin(catalog)

    if models_dir:
        for kind in MEDIA_KINDS:
            path = os.path.join(models_dir, f"{kind}.json")
            if not os.path.exists(path):
                continue
            try:
                count = catalog.load_file(kind, path)
                logger.info("Loaded %d %s models from %s", count, kind, path)
            except (OSError, ValueError, KeyError) as e:
                logger.error("Failed to load model catalog %s: %s", path, e)

    logger.info(
        "Model catalog initialized: %d image, %d video models",
        len(catalog.list_models("image")),
        len(catalog.list_models("video")),
    )
    return catalog
