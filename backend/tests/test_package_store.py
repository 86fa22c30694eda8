"""Package cache: generation tickets, failure handling, async refresh."""

import asyncio

import pytest

from conftest import FakeUpstream, make_package
from tripsee.services.package_store import PackageStore
from tripsee.services.upstream import UpstreamError


@pytest.fixture
def store():
    upstream = FakeUpstream({"bali": [make_package(id="fresh")]})
    return PackageStore(upstream, ["bali", "vietnam"])


def test_stale_fetch_is_dropped(store):
    slow = store.begin_fetch("bali")
    fast = store.begin_fetch("bali")

    assert store.commit("bali", fast, [make_package(id="new")]) is True
    assert store.commit("bali", slow, [make_package(id="old")]) is False
    assert [p.id for p in store.packages("bali")] == ["new"]
    assert store.generation("bali") == fast


def test_refresh_is_a_full_replace(store):
    store.commit("bali", store.begin_fetch("bali"), [make_package(id="a"), make_package(id="b")])
    assert store.refresh("bali") is True
    assert [p.id for p in store.packages("bali")] == ["fresh"]


def test_failed_refresh_keeps_cache(store):
    store.commit("bali", store.begin_fetch("bali"), [make_package(id="cached")])
    store.client.fail_with = UpstreamError("Upstream unavailable: timeout")

    assert store.refresh("bali") is False
    assert [p.id for p in store.packages("bali")] == ["cached"]
    assert store.status()["bali"]["last_error"] == "Upstream unavailable: timeout"


def test_failed_first_load_is_empty_but_loaded(store):
    store.client.fail_with = UpstreamError("boom", 500)
    assert store.refresh("vietnam") is False
    assert store.packages("vietnam") == []
    assert store.is_loaded("vietnam")


def test_unknown_destination(store):
    with pytest.raises(KeyError):
        store.packages("atlantis")


def test_ensure_loaded_fetches_once(store):
    asyncio.run(store.ensure_loaded("bali"))
    asyncio.run(store.ensure_loaded("bali"))
    assert store.client.calls.count(("list_packages", "bali")) == 1


def test_refresh_all(store):
    results = asyncio.run(store.refresh_all())
    assert results == {"bali": True, "vietnam": True}
    assert store.packages("vietnam") == []


def test_destination_route_used_when_shared_list_fails(store):
    store.client.shared_list_fails["vietnam"] = UpstreamError("Package not found", 404)
    store.client.destination_packages["vietnam"] = [make_package(id="v1", location="Hanoi")]

    assert store.refresh("vietnam") is True
    assert [p.id for p in store.packages("vietnam")] == ["v1"]
    assert store.client.calls[-2:] == [("list_packages", "vietnam"), ("list_destination_packages", "vietnam")]


def test_both_routes_failing_reports_shared_error(store):
    store.commit("vietnam", store.begin_fetch("vietnam"), [make_package(id="cached")])
    store.client.shared_list_fails["vietnam"] = UpstreamError("Upstream unavailable: timeout")

    assert store.refresh("vietnam") is False
    assert [p.id for p in store.packages("vietnam")] == ["cached"]
    assert store.status()["vietnam"]["last_error"] == "Upstream unavailable: timeout"
