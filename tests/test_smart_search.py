import threading

from conftest import CountingCatalog, FailingProvider, run

from mangalink_app.search.cache import SearchCache
from mangalink_app.search.smart_search import SmartSearch
from sources import ProviderRegistry


def counting(provider_id, works):
    return CountingCatalog({"id": provider_id, "works": works})


def build_registry(*providers):
    registry = ProviderRegistry()
    for provider in providers:
        registry.register(provider)
    return registry


def test_results_are_ranked_and_deduplicated_across_providers():
    alpha = counting("alpha", [
        {"id": "1", "title": "Naruto Shippuden"},
        {"id": "2", "title": "Naruto"},
    ])
    beta = counting("beta", [
        {"id": "n", "title": "Naruto", "cover_url": "https://beta.example/n.jpg"},
    ])
    search = SmartSearch(build_registry(alpha, beta))

    results = run(search.search("naruto"))

    assert [(r.title, r.provider_name) for r in results] == [
        ("Naruto", "beta"),
        ("Naruto Shippuden", "alpha"),
    ]


def test_failing_provider_is_skipped_and_recorded():
    alpha = counting("alpha", [{"id": "1", "title": "Berserk"}])
    broken = FailingProvider()
    search = SmartSearch(build_registry(broken, alpha))

    results = run(search.search("berserk"))

    assert [r.provider_name for r in results] == ["alpha"]
    assert broken.get_health_info()["failure_count"] == 1
    assert "connection refused" in broken.get_health_info()["last_error"]


def test_repeated_query_is_served_from_cache():
    alpha = counting("alpha", [{"id": "1", "title": "Berserk"}])
    search = SmartSearch(build_registry(alpha))

    first = run(search.search("Berserk"))
    second = run(search.search("berserk "))

    assert [r.id for r in first] == [r.id for r in second]
    assert alpha.queries == ["Berserk"]
    assert search.cache.stats()["hits"] == 1


def test_provider_filter_and_empty_query():
    alpha = counting("alpha", [{"id": "1", "title": "Berserk"}])
    beta = counting("beta", [{"id": "2", "title": "Berserk"}])
    search = SmartSearch(build_registry(alpha, beta))

    results = run(search.search("berserk", providers=["beta"]))
    assert [r.provider_name for r in results] == ["beta"]
    assert alpha.queries == []

    assert run(search.search("   ")) == []


def test_cache_expires_after_ttl():
    now = [1000.0]
    cache = SearchCache(ttl=60, clock=lambda: now[0])
    cache.set("naruto", ["a"], ["alpha"])

    assert cache.get("naruto", ["alpha"]) == ["a"]
    now[0] += 61
    assert cache.get("naruto", ["alpha"]) is None


def test_cache_key_depends_on_provider_order():
    cache = SearchCache()
    cache.set("naruto", ["a"], ["alpha", "beta"])
    assert cache.get("naruto", ["beta", "alpha"]) is None


def test_cache_evicts_least_recently_used():
    cache = SearchCache(max_size=2)
    cache.set("one", [1])
    cache.set("two", [2])
    cache.get("one")
    cache.set("three", [3])

    assert cache.get("two") is None
    assert cache.get("one") == [1]
    assert cache.get("three") == [3]

    cache.clear()
    assert cache.stats()["size"] == 0


def test_cache_survives_concurrent_eviction():
    cache = SearchCache(max_size=4)
    errors = []

    def hammer(offset):
        try:
            for i in range(2000):
                query = f"q{(i + offset) % 8}"
                cache.set(query, [i])
                cache.get(query)
                cache.get(f"q{(i + offset + 3) % 8}")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=hammer, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert cache.stats()["size"] <= 4
