"""Provider registry — resolves (kind, model, provider) to a provider instance and credentials.

Resolution order:
1. requested model id, else the configured default, else the first catalog model
2. requested provider id, else the model's default provider, else its first provider
3. API key from the per-user credential lookup, else the configured key

Any failure raises; a wrong provider is never substituted silently.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from app.config import Settings
from app.services.model_catalog import ModelCatalog, build_catalog
from app.services.providers.base import ImageProvider, VideoProvider
from app.services.providers.zeroapi import ZeroapiProvider

logger = logging.getLogger(__name__)

CredentialLookup = Callable[[str | None, str], Awaitable[str | None]]


class ModelNotFoundError(LookupError):
    pass


class ProviderNotFoundError(LookupError):
    pass


class MissingCredentialsError(LookupError):
    pass


@dataclass
class ResolvedProvider:
    """A provider ready to call for one model."""
    provider: Any
    api_key: str
    model_value: str
    provider_id: str
    model_id: str


class ProviderRegistry:
    """Maps provider ids to instances and resolves catalog models onto them."""

    def __init__(
        self,
        catalog: ModelCatalog,
        providers: dict[str, Any],
        api_keys: dict[str, str] | None = None,
        credential_lookup: CredentialLookup | None = None,
        default_models: dict[str, str] | None = None,
    ) -> None:
        self.catalog = catalog
        self._default_models = default_models or {}
        self._providers = providers
        self._api_keys = api_keys or {}
        self._credential_lookup = credential_lookup

    async def resolve(
        self,
        kind: str,
        user_id: str | None,
        model_id: str | None = None,
        provider_id: str | None = None,
    ) -> ResolvedProvider:
        entry = self.catalog.get(kind, model_id)
        if entry is None:
            entry = self.catalog.get(kind, self._default_models.get(kind)) or self.catalog.first(kind)
            if entry is None:
                raise ModelNotFoundError(f"Model configuration for {kind} not found")
            if model_id:
                logger.warning("Unknown %s model %s, falling back to %s", kind, model_id, entry.model_id)

        if not provider_id or provider_id not in entry.providers:
            provider_id = entry.default_provider
        if provider_id not in entry.providers:
            if not entry.providers:
                raise ProviderNotFoundError(f"Provider configuration for {entry.model_id} not found")
            provider_id = next(iter(entry.providers))

        provider = self._providers.get(provider_id)
        required = VideoProvider if kind == "video" else ImageProvider
        if provider is None or not isinstance(provider, required):
            raise ProviderNotFoundError(f"Provider {provider_id} not found or does not support {kind}")

        api_key = None
        if self._credential_lookup is not None:
            api_key = await self._credential_lookup(user_id, provider_id)
        api_key = api_key or self._api_keys.get(provider_id)
        if not api_key:
            raise MissingCredentialsError(f"No API key configured for provider {provider_id}")

        return ResolvedProvider(
            provider=provider,
            api_key=api_key,
            model_value=entry.providers[provider_id].model_value,
            provider_id=provider_id,
            model_id=entry.model_id,
        )

    async def video(self, user_id: str | None, model_id: str | None = None, provider_id: str | None = None) -> ResolvedProvider:
        return await self.resolve("video", user_id, model_id, provider_id)

    async def image(self, user_id: str | None, model_id: str | None = None, provider_id: str | None = None) -> ResolvedProvider:
        return await self.resolve("image", user_id, model_id, provider_id)


def build_provider_registry(
    settings: Settings,
    credential_lookup: CredentialLookup | None = None,
) -> ProviderRegistry:
    """Build the registry once at startup from settings."""
    zeroapi = ZeroapiProvider(
        settings.ZEROAPI_BASE_URL,
        timeout=settings.PROVIDER_TIMEOUT,
        media_volume=settings.MEDIA_VOLUME,
        public_base_url=settings.PUBLIC_BASE_URL,
    )
    return ProviderRegistry(
        catalog=build_catalog(settings.AI_MODELS_DIR or None),
        providers={"zeroapi": zeroapi},
        api_keys={"zeroapi": settings.ZEROAPI_API_KEY},
        credential_lookup=credential_lookup,
        default_models={"image": settings.DEFAULT_IMAGE_MODEL, "video": settings.DEFAULT_VIDEO_MODEL},
    )
