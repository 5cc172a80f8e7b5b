"""Asset store — find-or-create media records and per-entity history.

Every write goes through the caller's session so that asset creation commits
(or rolls back) together with the task transition that produced it.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.asset import Asset, AssetSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetCreate:
    """Full dedup key of an asset; every field takes part in the match."""
    user_id: str
    url: str
    type: str
    project_id: str | None = None
    task_id: str | None = None
    usage: str | None = None
    related_id: str | None = None
    source: str = AssetSource.GENERATED.value


async def create_asset(session: AsyncSession, params: AssetCreate) -> Asset:
    """Return the asset matching every field of `params`, inserting it if absent."""
    # `column == None` renders IS NULL, so optional fields match exactly
    result = await session.execute(
        select(Asset)
        .where(
            Asset.user_id == params.user_id,
            Asset.project_id == params.project_id,
            Asset.task_id == params.task_id,
            Asset.type == params.type,
            Asset.usage == params.usage,
            Asset.related_id == params.related_id,
            Asset.source == params.source,
            Asset.url == params.url,
        )
        .limit(1)
    )
    existing = result.scalars().first()
    if existing is not None:
        logger.debug("Asset already recorded: %s", existing.id)
        return existing

    asset = Asset(**asdict(params))
    session.add(asset)
    await session.flush()
    return asset


async def create_assets(session: AsyncSession, params_list: list[AssetCreate]) -> list[Asset]:
    """Create assets one by one so each item keeps its own dedup check."""
    return [await create_asset(session, params) for params in params_list]


async def get_history(
    session: AsyncSession,
    user_id: str,
    usage: str,
    related_id: str,
    asset_type: str | None = None,
) -> list[Asset]:
    """List a user's assets for one entity, newest first."""
    query = select(Asset).where(
        Asset.user_id == user_id,
        Asset.usage == usage,
        Asset.related_id == related_id,
    )
    if asset_type:
        query = query.where(Asset.type == asset_type)
    result = await session.execute(query.order_by(Asset.created_at.desc(), Asset.id.desc()))
    return list(result.scalars().all())
