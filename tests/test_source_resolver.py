import pytest
from conftest import CountingCatalog, FailingProvider, run

from mangalink_app.errors import MatchNotFound
from mangalink_app.matching.source_resolver import SourceResolver
from mangalink_app.reader.models import Work
from sources import ProviderRegistry


def test_title_and_alt_title_resolution(registry):
    work = Work(title="Solo Leveling", alt_titles=("Na Honjaman Level Up",))

    instances = run(SourceResolver(registry).resolve(work))

    assert list(instances) == ["alpha", "beta"]
    assert instances["alpha"].provider_id == "sl-1"
    assert instances["alpha"].matched_by == "title"
    assert instances["beta"].provider_id == "nhlu"
    assert instances["beta"].matched_by == "alt_title"
    assert instances["beta"].match_score == 100.0


def test_failing_provider_is_skipped(registry):
    registry.register(FailingProvider())
    work = Work(title="Solo Leveling", alt_titles=("Na Honjaman Level Up",))

    instances = run(SourceResolver(registry).resolve(work))

    assert "broken" not in instances
    assert set(instances) == {"alpha", "beta"}
    assert registry.get_provider("broken").get_health_info()["failure_count"] == 1


def test_id_lookup_wins_over_title(registry):
    # The title would find nothing; the canonical id still resolves
    work = Work(title="Unknown Title", provider_ids={"alpha": "sl-1"})

    instances = run(SourceResolver(registry).resolve(work))

    assert list(instances) == ["alpha"]
    assert instances["alpha"].matched_by == "id"
    assert instances["alpha"].provider_url == "https://alpha.example/title/sl-1"


def test_url_lookup_uses_provider_patterns(registry):
    work = Work(title="Something Else", url="https://alpha.example/title/op-1")

    instances = run(SourceResolver(registry).resolve(work))

    assert instances["alpha"].provider_id == "op-1"
    assert instances["alpha"].matched_by == "id"


def test_nothing_found_raises(registry):
    with pytest.raises(MatchNotFound) as exc:
        run(SourceResolver(registry).resolve(Work(title="Vagabond")))
    assert exc.value.providers_tried == 2


def test_alt_titles_are_capped_and_deduplicated():
    provider = CountingCatalog({"id": "gamma", "works": []})
    registry = ProviderRegistry()
    registry.register(provider)
    work = Work(title="Main", alt_titles=("main", "Alt One", "Alt One", "Alt Two", "Alt Three", "Alt Four"))

    with pytest.raises(MatchNotFound):
        run(SourceResolver(registry, max_alt_titles=3).resolve(work))

    assert provider.queries == ["Main", "Alt One", "Alt Two", "Alt Three"]


def test_similarity_floor_skips_unrelated_candidates():
    provider = CountingCatalog({"id": "gamma", "works": [
        {"id": "x", "title": "Isekai Solo Levelingverse Chronicles"},
        {"id": "y", "title": "Solo Leveling"},
    ]})
    registry = ProviderRegistry()
    registry.register(provider)
    work = Work(title="Solo Leveling")

    first = run(SourceResolver(registry).resolve(work))
    assert first["gamma"].provider_id == "x"

    strict = run(SourceResolver(registry, min_title_similarity=95).resolve(work))
    assert strict["gamma"].provider_id == "y"


def test_resolution_is_deterministic(registry):
    work = Work(title="Solo Leveling", alt_titles=("Na Honjaman Level Up",))
    resolver = SourceResolver(registry)

    first = run(resolver.resolve(work))
    second = run(resolver.resolve(work))

    assert first == second
    assert list(first) == list(second)
