import pytest
from conftest import PagelessCatalog, chapter_entries, make_catalog, run

from mangalink_app.config import ReaderConfig
from mangalink_app.errors import MatchNotFound, NotFoundError
from mangalink_app.progress_store import MemoryProgressStore
from mangalink_app.reader.models import ReadingProgress, Work
from mangalink_app.reader.progress import PageBox, Viewport
from mangalink_app.services import ReaderService
from sources import CatalogProvider, ProviderRegistry
from sources.base import ProviderError

WORK = Work(title="Solo Leveling", alt_titles=("Na Honjaman Level Up",), id="solo-leveling")


@pytest.fixture
def store():
    return MemoryProgressStore()


@pytest.fixture
def service(registry, store):
    return ReaderService(registry, store=store, config=ReaderConfig())


def test_search_runs_full_pipeline(service):
    results = run(service.search("solo"))
    assert [r.title for r in results] == ["Solo Leveling"]


def test_imported_chapter_prefers_exact_provider(service):
    # alpha stops at 5, beta has 6
    session = run(service.continue_reading(WORK, imported_chapter=6))
    assert session.provider_name == "beta"
    assert session.chapter.number == 6


def test_imported_chapter_on_first_provider(service):
    session = run(service.continue_reading(WORK, imported_chapter=3))
    assert session.provider_name == "alpha"
    assert session.chapter.number == 3
    assert session.progress is None


def test_without_progress_starts_at_first_chapter(service):
    session = run(service.continue_reading(WORK))
    assert (session.provider_name, session.chapter.number) == ("alpha", 1)


def test_import_outside_window_falls_back_to_nearest(service):
    session = run(service.continue_reading(WORK, imported_chapter=40))
    assert (session.provider_name, session.chapter.number) == ("alpha", 5)


def test_completed_progress_moves_to_next_chapter(service, store):
    run(store.put("solo-leveling", "alpha", ReadingProgress(
        work_id="solo-leveling", provider_name="alpha", chapter_number=2,
        page_number=3, scroll_fraction=1.0, total_pages=3, completed=True,
    )))

    session = run(service.continue_reading(WORK, imported_chapter=6))

    assert (session.provider_name, session.chapter.number) == ("alpha", 3)


def test_unfinished_progress_resumes_position(service, store):
    run(store.put("solo-leveling", "beta", ReadingProgress(
        work_id="solo-leveling", provider_name="beta", chapter_number=4,
        page_number=2, scroll_fraction=0.5, total_pages=3,
    )))

    session = run(service.continue_reading(WORK))

    assert (session.provider_name, session.chapter.number) == ("beta", 4)
    assert session.progress.page_number == 2
    assert session.progress.scroll_fraction == 0.5


def test_unknown_work_raises(service):
    with pytest.raises(MatchNotFound):
        run(service.continue_reading(Work(title="Vagabond")))


def test_no_chapters_anywhere_raises(store):
    registry = ProviderRegistry()
    registry.register(make_catalog("gamma", [{"id": "v", "title": "Vagabond", "chapters": []}]))
    service = ReaderService(registry, store=store, config=ReaderConfig())

    with pytest.raises(NotFoundError):
        run(service.continue_reading(Work(title="Vagabond")))


def test_tracker_writes_through_store(service, store):
    async def scenario():
        session = await service.continue_reading(WORK, imported_chapter=3)
        tracker = service.make_tracker(session)
        pages = [PageBox(top=i * 1000, height=1000) for i in range(session.total_pages)]
        progress = await tracker.update(pages, Viewport(scroll_top=2600, height=800))
        return session.with_progress(progress)

    session = run(scenario())
    stored = run(store.get("solo-leveling", "alpha"))

    assert session.progress.completed
    assert stored.completed
    assert stored.chapter_number == 3


def test_save_position_reports_completion_once(service):
    def save(page, fraction):
        return run(service.save_position("solo-leveling", "alpha", 5, 3, page, fraction))

    tracker, completed_now = save(3, 0.95)
    assert completed_now
    assert tracker.is_persisted

    tracker, completed_now = save(3, 1.0)
    assert not completed_now
    assert tracker.progress.completed

    stored = run(service.get_progress("solo-leveling", "alpha"))
    assert stored.scroll_fraction == 1.0


def test_enrich_work_merges_provider_metadata(service):
    work = Work(title="Solo Leveling")
    instances = run(service.resolve_sources(WORK))

    enriched = service.enrich_work(work, instances)

    assert enriched.alt_titles == ("Na Honjaman Level Up",)
    assert enriched.cover_url == "https://alpha.example/covers/sl.jpg"
    assert work.alt_titles == ()


def solo_catalog(provider_cls, provider_id):
    return provider_cls({
        "id": provider_id,
        "works": [{
            "id": "sl",
            "title": "Solo Leveling",
            "chapters": chapter_entries([1, 2, 3], provider_id),
        }],
    })


def test_failed_page_load_moves_to_next_provider(store):
    registry = ProviderRegistry()
    registry.register(solo_catalog(PagelessCatalog, "alpha"))
    registry.register(solo_catalog(CatalogProvider, "beta"))
    service = ReaderService(registry, store=store, config=ReaderConfig())

    session = run(service.continue_reading(Work(title="Solo Leveling"), imported_chapter=1))

    assert (session.provider_name, session.chapter.number) == ("beta", 1)
    assert registry.get_provider("alpha").get_health_info()["failure_count"] == 1


def test_failed_page_load_on_stored_provider_falls_back(store):
    registry = ProviderRegistry()
    registry.register(solo_catalog(CatalogProvider, "alpha"))
    registry.register(solo_catalog(PagelessCatalog, "beta"))
    service = ReaderService(registry, store=store, config=ReaderConfig())
    run(store.put("Solo Leveling", "beta", ReadingProgress(
        work_id="Solo Leveling", provider_name="beta", chapter_number=2,
        page_number=1, scroll_fraction=0.2, total_pages=3,
    )))

    session = run(service.continue_reading(Work(title="Solo Leveling")))

    assert (session.provider_name, session.chapter.number) == ("alpha", 2)


def test_every_provider_failing_raises_provider_error(store):
    registry = ProviderRegistry()
    registry.register(solo_catalog(PagelessCatalog, "alpha"))
    registry.register(solo_catalog(PagelessCatalog, "beta"))
    service = ReaderService(registry, store=store, config=ReaderConfig())

    with pytest.raises(ProviderError):
        run(service.continue_reading(Work(title="Solo Leveling"), imported_chapter=1))
