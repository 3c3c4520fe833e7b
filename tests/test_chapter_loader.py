import asyncio

import pytest
from conftest import GatedCatalog, chapter_entries, run

from mangalink_app.errors import NotFoundError
from mangalink_app.reader.loader import ChapterLoader
from mangalink_app.reader.models import SourceInstance, Work
from sources import ProviderRegistry

WORK = Work(title="Solo Leveling", id="solo-leveling")


def gated_registry():
    provider = GatedCatalog({
        "id": "gamma",
        "works": [
            {"id": "sl", "title": "Solo Leveling", "chapters": chapter_entries([3, 1, 2], "g")},
            {"id": "empty", "title": "Empty", "chapters": []},
        ],
    })
    registry = ProviderRegistry()
    registry.register(provider)
    return registry, provider


def test_load_builds_session_with_indexed_chapters():
    registry, _ = gated_registry()
    loader = ChapterLoader(registry)
    instance = SourceInstance(provider_name="gamma", provider_id="sl")

    session = run(loader.load(WORK, instance, 2))

    assert session.chapter.number == 2
    assert [c.number for c in session.chapters] == [1, 2, 3]
    assert [p.url for p in session.pages] == ["g/ch/2/1.jpg", "g/ch/2/2.jpg", "g/ch/2/3.jpg"]
    assert session.total_pages == 3
    assert session.load_sequence == loader.sequence(WORK)
    assert session.next_chapter().number == 3
    assert session.previous_chapter().number == 1


def test_navigation_opens_neighbouring_chapter():
    registry, _ = gated_registry()
    loader = ChapterLoader(registry)
    instance = SourceInstance(provider_name="gamma", provider_id="sl")

    async def scenario():
        session = await loader.load(WORK, instance, 3)
        assert session.next_chapter() is None
        return await loader.open_chapter(session, session.previous_chapter())

    previous = run(scenario())
    assert previous.chapter.number == 2
    assert previous.pages[0].url == "g/ch/2/1.jpg"


def test_stale_load_is_discarded():
    registry, provider = gated_registry()
    loader = ChapterLoader(registry)
    instance = SourceInstance(provider_name="gamma", provider_id="sl")

    async def scenario():
        gate = asyncio.Event()
        provider.gates["g/ch/1"] = gate

        first = asyncio.ensure_future(loader.load(WORK, instance, 1))
        await asyncio.sleep(0)
        second = await loader.load(WORK, instance, 2)
        gate.set()
        return await first, second

    stale, current = run(scenario())
    assert stale is None
    assert current.chapter.number == 2


def test_cancel_invalidates_in_flight_load():
    registry, provider = gated_registry()
    loader = ChapterLoader(registry)
    instance = SourceInstance(provider_name="gamma", provider_id="sl")

    async def scenario():
        gate = asyncio.Event()
        provider.gates["g/ch/1"] = gate
        pending = asyncio.ensure_future(loader.load(WORK, instance, 1))
        await asyncio.sleep(0)
        loader.cancel(WORK)
        gate.set()
        return await pending

    assert run(scenario()) is None


def test_empty_chapter_list_raises():
    registry, _ = gated_registry()
    loader = ChapterLoader(registry)

    with pytest.raises(NotFoundError):
        run(loader.load(WORK, SourceInstance(provider_name="gamma", provider_id="empty"), 1))


def test_unknown_provider_raises():
    registry, _ = gated_registry()
    loader = ChapterLoader(registry)

    with pytest.raises(NotFoundError):
        run(loader.load(WORK, SourceInstance(provider_name="nope", provider_id="sl"), 1))


def test_loads_of_different_works_do_not_supersede_each_other():
    registry, provider = gated_registry()
    loader = ChapterLoader(registry)
    other = Work(title="Empty", id="empty")

    async def scenario():
        gate = asyncio.Event()
        provider.gates["g/ch/1"] = gate

        first = asyncio.ensure_future(
            loader.load(WORK, SourceInstance(provider_name="gamma", provider_id="sl"), 1)
        )
        await asyncio.sleep(0)
        second = await loader.load(
            other, SourceInstance(provider_name="gamma", provider_id="sl"), 2
        )
        gate.set()
        return await first, second

    solo, other_session = run(scenario())
    assert solo is not None
    assert solo.chapter.number == 1
    assert other_session.chapter.number == 2
    assert loader.sequence(WORK) == 1
    assert loader.sequence(other) == 1


def test_cancel_only_affects_its_own_work():
    registry, provider = gated_registry()
    loader = ChapterLoader(registry)
    instance = SourceInstance(provider_name="gamma", provider_id="sl")

    async def scenario():
        gate = asyncio.Event()
        provider.gates["g/ch/1"] = gate
        pending = asyncio.ensure_future(loader.load(WORK, instance, 1))
        await asyncio.sleep(0)
        loader.cancel(Work(title="Someone Else"))
        gate.set()
        return await pending

    assert run(scenario()).chapter.number == 1
