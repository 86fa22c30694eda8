"""HTTP surface with the upstream, package store and database swapped out."""

from __future__ import annotations

import pytest

from conftest import make_package
from tripsee.core.config import settings
from tripsee.db.repositories import CityFilterRepository
from tripsee.schemas import Itinerary
from tripsee.services.destinations import PROFILES
from tripsee.services.upstream import UpstreamError

API = settings.api_prefix


def _admin_headers() -> dict:
    return {"X-API-Key": settings.admin_api_key}


def _itinerary_body(**overrides) -> dict:
    body = {
        "destination": "bali",
        "packageId": "b2",
        "title": "Bali Honeymoon",
        "duration": "5 Nights 6 Days",
        "overview": "Villas and rice terraces",
        "hotelImages": [{"src": ""}],
        "days": [
            {"day": 1, "title": "Arrival", "activities": ["Check in", ""]},
            {"day": 2, "title": "", "accommodation": ""},
            {"day": 3, "title": "Ubud"},
        ],
        "inclusions": ["Breakfast", " "],
    }
    body.update(overrides)
    return body


# ============================================================================
# CATALOG
# ============================================================================

def test_destinations(api) -> None:
    response = api.get(f"{API}/destinations")
    assert response.status_code == 200
    slugs = [d["slug"] for d in response.json()["items"]]
    assert slugs == list(PROFILES)


def test_catalog_page_filters_and_facets(api) -> None:
    response = api.get(f"{API}/destinations/bali/packages", params={"rating": 4, "sort": "price-low"})

    assert response.status_code == 200
    body = response.json()
    assert [p["id"] for p in body["items"]] == ["b2"]
    assert body["total"] == 1
    assert body["price_bounds"] == {"min": 45000, "max": 98000}
    ratings = {r["stars"]: r["count"] for r in body["facets"]["ratings"]}
    assert ratings == {3: 1, 4: 1, 5: 1}
    assert response.headers["Cache-Control"] == "no-store"


def test_catalog_repeatable_filters(api) -> None:
    response = api.get(
        f"{API}/destinations/bali/packages",
        params=[("city", "Kuta"), ("city", "Seminyak"), ("duration", "6 Nights"), ("sort", "price-high")],
    )
    assert [p["id"] for p in response.json()["items"]] == ["b3", "b4"]


def test_catalog_uses_registry_cities(api, db_session) -> None:
    CityFilterRepository(db_session).add_city("bali", "Gili T")
    body = api.get(f"{API}/destinations/bali/packages").json()
    assert body["facets"]["cities"] == [{"name": "Gili T", "count": 1}]


def test_unknown_destination_is_404(api) -> None:
    assert api.get(f"{API}/destinations/atlantis/packages").status_code == 404


def test_bad_sort_is_422(api) -> None:
    assert api.get(f"{API}/destinations/bali/packages", params={"sort": "cheapest"}).status_code == 422


def test_upstream_down_serves_empty_catalog(api, fake_upstream) -> None:
    fake_upstream.fail_with = UpstreamError("Upstream unavailable: refused")
    response = api.get(f"{API}/destinations/vietnam/packages")
    assert response.status_code == 200
    assert response.json()["items"] == []


def test_refresh_replaces_packages(api, fake_upstream) -> None:
    api.get(f"{API}/destinations/bali/packages")
    fake_upstream.packages["bali"] = [make_package(id="n1", price=1000)]

    response = api.post(f"{API}/destinations/bali/refresh")

    assert response.json()["refreshed"] is True
    assert response.json()["packages"] == 1
    assert [p["id"] for p in api.get(f"{API}/destinations/bali/packages").json()["items"]] == ["n1"]


def test_itinerary_lookup(api, fake_upstream) -> None:
    fake_upstream.itineraries.append(Itinerary.model_validate({"_id": "it1", "packageId": "b2", "title": "Plan"}))

    found = api.get(f"{API}/destinations/bali/packages/b2/itinerary")
    assert found.status_code == 200
    assert found.json()["packageId"] == "b2"
    assert api.get(f"{API}/destinations/bali/packages/b1/itinerary").status_code == 404

    fake_upstream.fail_with = UpstreamError("boom", 500)
    assert api.get(f"{API}/destinations/bali/packages/b2/itinerary").status_code == 404


# ============================================================================
# BROWSE SESSIONS
# ============================================================================

def _act(api, sid, action, value=None):
    return api.post(f"{API}/browse/sessions/{sid}/actions", json={"action": action, "value": value})


def test_browse_session_flow(api) -> None:
    started = api.post(f"{API}/browse/bali").json()
    sid = started["session_id"]
    assert started["catalog"]["total"] == 4
    assert started["state"]["max_price"] == 98000

    body = _act(api, sid, "toggle_city", "Kuta").json()
    assert body["state"]["cities"] == ["Kuta"]
    assert body["state"]["has_active_filters"] is True
    assert [p["id"] for p in body["catalog"]["items"]] == ["b1", "b4"]

    body = _act(api, sid, "set_sort", "price-high").json()
    assert [p["id"] for p in body["catalog"]["items"]] == ["b4", "b1"]

    body = _act(api, sid, "next_page").json()
    assert body["state"]["page"] == 0

    body = _act(api, sid, "reset").json()
    assert body["state"]["cities"] == []
    assert body["state"]["sort"] == "price-low"

    assert api.get(f"{API}/browse/sessions/{sid}").json()["catalog"]["total"] == 4


def test_browse_action_errors(api) -> None:
    sid = api.post(f"{API}/browse/bali").json()["session_id"]
    assert _act(api, sid, "toggle_city").status_code == 422
    assert _act(api, sid, "set_sort", "cheapest").status_code == 422
    assert _act(api, sid, "teleport").status_code == 422
    assert _act(api, "missing", "next_page").status_code == 404


def test_browse_session_follows_refresh(api, fake_upstream) -> None:
    sid = api.post(f"{API}/browse/bali").json()["session_id"]
    _act(api, sid, "set_max_price", 60000)
    fake_upstream.packages["bali"] = [make_package(id="n1", price=20000), make_package(id="n2", price=30000)]
    api.post(f"{API}/destinations/bali/refresh")

    body = api.get(f"{API}/browse/sessions/{sid}").json()

    assert body["page_reset"] is True
    assert body["state"]["max_price"] == 30000
    assert [p["id"] for p in body["catalog"]["items"]] == ["n1", "n2"]


# ============================================================================
# CITY FILTERS
# ============================================================================

def test_public_city_filters_with_counts(api, db_session) -> None:
    repo = CityFilterRepository(db_session)
    repo.seed_defaults([PROFILES["bali"]])
    kuta = repo.get_cities("bali")[0]
    repo.toggle_city("bali", repo.get_cities("bali")[1].id)

    items = api.get(f"{API}/city-filters", params={"destination": "bali"}).json()["items"]

    assert items[0] == {"id": kuta.id, "name": "Kuta", "count": 2, "order": 1}
    assert "Ubud" not in [i["name"] for i in items]


def test_admin_city_filters_need_key(api) -> None:
    assert api.get(f"{API}/admin/city-filters/bali").status_code == 403
    assert api.get(f"{API}/admin/city-filters/bali", headers={"X-API-Key": "wrong"}).status_code == 403


def test_admin_city_filter_crud(api) -> None:
    base = f"{API}/admin/city-filters/bali"
    created = api.post(base, json={"name": "Canggu"}, headers=_admin_headers())
    assert created.status_code == 201
    city_id = created.json()["id"]

    assert api.post(base, json={"name": "Canggu"}, headers=_admin_headers()).status_code == 409

    patched = api.patch(f"{base}/{city_id}", json={"name": "Canggu Beach", "order": 3}, headers=_admin_headers())
    assert (patched.json()["name"], patched.json()["order"]) == ("Canggu Beach", 3)

    toggled = api.post(f"{base}/{city_id}/toggle", headers=_admin_headers())
    assert toggled.json()["isActive"] is False

    listed = api.get(base, headers=_admin_headers()).json()["items"]
    assert [(c["name"], c["isActive"]) for c in listed] == [("Canggu Beach", False)]

    assert api.delete(f"{base}/{city_id}", headers=_admin_headers()).json() == {"deleted": city_id, "name": "Canggu Beach"}
    assert api.delete(f"{base}/{city_id}", headers=_admin_headers()).status_code == 404


# ============================================================================
# ADMIN MUTATIONS
# ============================================================================

def test_admin_routes_need_key(api) -> None:
    assert api.post(f"{API}/admin/itineraries", json=_itinerary_body()).status_code == 403
    assert api.delete(f"{API}/admin/packages/b1").status_code == 403


def test_create_itinerary_cleans_payload(api, fake_upstream) -> None:
    response = api.post(f"{API}/admin/itineraries", json=_itinerary_body(), headers=_admin_headers())

    assert response.status_code == 201
    _, destination, payload = fake_upstream.calls[-1]
    assert destination is None
    assert [(d["day"], d["title"]) for d in payload["days"]] == [(1, "Arrival"), (2, "Ubud")]
    assert payload["days"][0]["activities"] == ["Check in"]
    assert payload["inclusions"] == ["Breakfast"]
    assert payload["hotelImages"] == []
    assert response.json()["id"] == "it1"


def test_create_itinerary_per_destination_route(api, fake_upstream) -> None:
    body = _itinerary_body(destination="vietnam", packageId=None)
    response = api.post(f"{API}/admin/itineraries", json=body, headers=_admin_headers())
    assert response.status_code == 201
    assert fake_upstream.calls[-1][1] == "vietnam"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"title": "  "}, "Please enter an itinerary title"),
        ({"duration": ""}, "Please enter the duration"),
        ({"overview": ""}, "Please enter an overview"),
        ({"packageId": None}, "Please select a package to link this itinerary to"),
    ],
)
def test_create_itinerary_required_fields(api, fake_upstream, overrides, message) -> None:
    response = api.post(f"{API}/admin/itineraries", json=_itinerary_body(**overrides), headers=_admin_headers())
    assert response.status_code == 422
    assert response.json()["detail"] == message
    assert not any(call[0] == "create_itinerary" for call in fake_upstream.calls)


def test_create_itinerary_unknown_destination(api) -> None:
    body = _itinerary_body(destination="atlantis")
    assert api.post(f"{API}/admin/itineraries", json=body, headers=_admin_headers()).status_code == 404


def test_upstream_error_message_is_surfaced(api, fake_upstream) -> None:
    fake_upstream.fail_with = UpstreamError("Itinerary already exists for this package", 409)
    response = api.post(f"{API}/admin/itineraries", json=_itinerary_body(), headers=_admin_headers())
    assert response.status_code == 502
    assert response.json()["detail"] == "Itinerary already exists for this package"


def test_update_and_delete_itinerary(api, fake_upstream) -> None:
    updated = api.put(f"{API}/admin/itineraries/it7", json=_itinerary_body(), headers=_admin_headers())
    assert updated.status_code == 200
    assert fake_upstream.calls[-1][:2] == ("update_itinerary", "it7")

    deleted = api.delete(f"{API}/admin/itineraries/it7", headers=_admin_headers())
    assert deleted.json() == {"deleted": "it7"}


def test_delete_package_refreshes_destination(api, fake_upstream) -> None:
    response = api.delete(f"{API}/admin/packages/b1", params={"destination": "bali"}, headers=_admin_headers())
    assert response.json() == {"deleted": "b1", "refreshed": True}
    assert ("delete_package", "b1") in fake_upstream.calls
    assert fake_upstream.calls[-1] == ("list_packages", "bali")


# ============================================================================
# HEALTH
# ============================================================================

def test_health(api) -> None:
    api.get(f"{API}/destinations/bali/packages")
    body = api.get(f"{API}/health/").json()
    assert body["status"] == "healthy"
    assert body["database"] == "available"
    assert body["destinations"]["bali"]["packages"] == 4
    assert api.get(f"{API}/health/live").json()["alive"] is True
    assert api.get(f"{API}/health/ready").json()["ready"] is True


def test_public_city_filters_fall_back_to_profile_defaults(api) -> None:
    items = api.get(f"{API}/city-filters", params={"destination": "bali"}).json()["items"]

    assert [i["name"] for i in items] == list(PROFILES["bali"].default_cities)
    assert items[0] == {"id": None, "name": "Kuta", "count": 2, "order": 1}
    facets = api.get(f"{API}/destinations/bali/packages").json()["facets"]["cities"]
    assert [c["name"] for c in facets] == [i["name"] for i in items]


def test_browse_session_picks_up_registry_cities(api, db_session) -> None:
    sid = api.post(f"{API}/browse/bali").json()["session_id"]
    CityFilterRepository(db_session).add_city("bali", "Gili T")

    body = api.get(f"{API}/browse/sessions/{sid}").json()

    assert body["page_reset"] is False
    assert body["catalog"]["facets"]["cities"] == [{"name": "Gili T", "count": 1}]


# ============================================================================
# CONTACT PROMPT
# ============================================================================

def _make_prompt_due(sid: str) -> None:
    from tripsee.api import routes_browse

    prompt = routes_browse.browse_sessions[sid]["prompt"]
    prompt.started_at -= prompt.interval_seconds
    if prompt.last_closed_at is not None:
        prompt.last_closed_at -= prompt.interval_seconds


def test_contact_prompt_rides_on_browse_session(api) -> None:
    started = api.post(f"{API}/browse/bali").json()
    sid = started["session_id"]
    assert started["contact_prompt"]["visible"] is False
    assert started["contact_prompt"]["next_due_at"] is not None

    _make_prompt_due(sid)
    assert api.get(f"{API}/browse/sessions/{sid}").json()["contact_prompt"]["visible"] is True

    closed = _act(api, sid, "close_prompt").json()["contact_prompt"]
    assert closed["visible"] is False
    assert closed["next_due_at"] is not None

    _make_prompt_due(sid)
    assert api.get(f"{API}/browse/sessions/{sid}").json()["contact_prompt"]["visible"] is True


def test_contact_prompt_dont_show_again(api) -> None:
    sid = api.post(f"{API}/browse/bali").json()["session_id"]
    silenced = _act(api, sid, "dont_show_prompt").json()["contact_prompt"]
    assert silenced == {"visible": False, "next_due_at": None, "suppressed": True}

    _make_prompt_due(sid)
    assert api.get(f"{API}/browse/sessions/{sid}").json()["contact_prompt"]["visible"] is False


# ============================================================================
# BACKGROUND TASKS
# ============================================================================

def test_refresh_pass_keeps_cache_of_failing_destination(fake_upstream, package_store) -> None:
    import asyncio

    from tripsee.main import _refresh_once

    package_store.commit("vietnam", package_store.begin_fetch("vietnam"), [make_package(id="v-cached")])
    fake_upstream.packages["bali"] = [make_package(id="b-new")]
    fake_upstream.shared_list_fails["vietnam"] = UpstreamError("Upstream unavailable: timeout")

    results = asyncio.run(_refresh_once(package_store))

    assert results["bali"] is True
    assert results["vietnam"] is False
    assert [p.id for p in package_store.packages("bali")] == ["b-new"]
    assert [p.id for p in package_store.packages("vietnam")] == ["v-cached"]
    assert package_store.status()["vietnam"]["last_error"] == "Upstream unavailable: timeout"


def test_session_cleanup_evicts_only_expired() -> None:
    from tripsee.main import _evict_expired

    ttl = settings.browse_session_ttl_minutes * 60
    now = 10_000.0
    sessions = {
        "stale": {"_ts": now - ttl - 1},
        "fresh": {"_ts": now - 5},
        "edge": {"_ts": now - ttl},
    }

    assert _evict_expired(sessions, now, ttl) == 1
    assert set(sessions) == {"fresh", "edge"}
