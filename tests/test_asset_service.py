from datetime import datetime, timedelta

from app.models import Asset
from app.services.asset_service import AssetCreate, create_asset, create_assets, get_history
from app.tasks import run_async

from fakes import USER_ID, count_rows


def _params(**overrides):
    values = dict(
        user_id=USER_ID,
        url="https://x/a.png",
        type="image",
        project_id=None,
        task_id=None,
        usage="character",
        related_id="char-1",
    )
    values.update(overrides)
    return AssetCreate(**values)


async def _create(session_factory, params):
    async with session_factory() as session:
        async with session.begin():
            asset = await create_asset(session, params)
    return asset


def test_identical_tuple_creates_one_row(session_factory):
    first = run_async(_create(session_factory, _params()))
    second = run_async(_create(session_factory, _params()))

    assert first.id == second.id
    assert run_async(count_rows(session_factory, Asset)) == 1


def test_null_fields_take_part_in_match(session_factory):
    run_async(_create(session_factory, _params()))
    run_async(_create(session_factory, _params(usage=None)))
    run_async(_create(session_factory, _params(source="upload")))

    assert run_async(count_rows(session_factory, Asset)) == 3


def test_create_assets_dedups_per_item(session_factory):
    async def scenario():
        async with session_factory() as session:
            async with session.begin():
                return await create_assets(session, [
                    _params(url="https://x/1.png"),
                    _params(url="https://x/2.png"),
                    _params(url="https://x/1.png"),
                ])

    assets = run_async(scenario())

    assert len(assets) == 3
    assert assets[0].id == assets[2].id
    assert run_async(count_rows(session_factory, Asset)) == 2


def test_history_is_newest_first_and_filters_type(session_factory):
    base = datetime(2026, 1, 1, 12, 0, 0)

    async def scenario():
        async with session_factory() as session:
            async with session.begin():
                session.add_all([
                    Asset(user_id=USER_ID, url="https://x/old.png", type="image", usage="character",
                          related_id="char-1", source="generated", created_at=base),
                    Asset(user_id=USER_ID, url="https://x/new.png", type="image", usage="character",
                          related_id="char-1", source="upload", created_at=base + timedelta(minutes=5)),
                    Asset(user_id=USER_ID, url="https://x/clip.mp4", type="video", usage="character",
                          related_id="char-1", source="generated", created_at=base + timedelta(minutes=9)),
                    Asset(user_id="someone-else", url="https://x/other.png", type="image", usage="character",
                          related_id="char-1", source="generated", created_at=base),
                    Asset(user_id=USER_ID, url="https://x/scene.png", type="image", usage="scene",
                          related_id="char-1", source="generated", created_at=base),
                ])
        async with session_factory() as session:
            everything = await get_history(session, USER_ID, "character", "char-1")
            images = await get_history(session, USER_ID, "character", "char-1", asset_type="image")
        return everything, images

    everything, images = run_async(scenario())

    assert [a.url for a in everything] == ["https://x/clip.mp4", "https://x/new.png", "https://x/old.png"]
    assert [a.url for a in images] == ["https://x/new.png", "https://x/old.png"]
