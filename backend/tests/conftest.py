"""Shared fixtures: package factory, in-memory registry database, fake upstream, API client."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tripsee.db.models import Base
from tripsee.schemas import Itinerary, Package
from tripsee.services.upstream import UpstreamError


def make_package(**fields: Any) -> Package:
    base = {"_id": fields.pop("id", "p1"), "name": "Package", "location": "Kuta", "duration": "5 Nights 6 Days"}
    base.update(fields)
    return Package.model_validate(base)


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class FakeUpstream:
    """Stands in for AdminApiClient; records mutations, serves canned lists."""

    def __init__(self, packages: Optional[Dict[str, List[Package]]] = None):
        self.packages = packages or {}
        self.itineraries: List[Itinerary] = []
        self.calls: List[tuple] = []
        self.fail_with: Optional[UpstreamError] = None
        # Fails only the shared package list, per destination
        self.shared_list_fails: Dict[str, UpstreamError] = {}
        self.destination_packages: Dict[str, List[Package]] = {}

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def list_packages(self, destination: str) -> List[Package]:
        self.calls.append(("list_packages", destination))
        self._maybe_fail()
        if destination in self.shared_list_fails:
            raise self.shared_list_fails[destination]
        return list(self.packages.get(destination, []))

    def list_destination_packages(self, destination: str) -> List[Package]:
        self.calls.append(("list_destination_packages", destination))
        self._maybe_fail()
        if destination not in self.destination_packages:
            raise UpstreamError("Package not found", 404)
        return list(self.destination_packages[destination])

    def find_itinerary(self, destination: str, package_id: str) -> Optional[Itinerary]:
        self._maybe_fail()
        for itinerary in self.itineraries:
            if itinerary.package_id == package_id:
                return itinerary
        return None

    def create_itinerary(self, payload: Dict[str, Any], destination: Optional[str] = None) -> Itinerary:
        self.calls.append(("create_itinerary", destination, payload))
        self._maybe_fail()
        created = Itinerary.model_validate({**payload, "_id": f"it{len(self.itineraries) + 1}"})
        self.itineraries.append(created)
        return created

    def update_itinerary(self, itinerary_id: str, payload: Dict[str, Any]) -> Itinerary:
        self.calls.append(("update_itinerary", itinerary_id, payload))
        self._maybe_fail()
        return Itinerary.model_validate({**payload, "_id": itinerary_id})

    def delete_itinerary(self, itinerary_id: str) -> None:
        self.calls.append(("delete_itinerary", itinerary_id))
        self._maybe_fail()

    def delete_package(self, package_id: str) -> None:
        self.calls.append(("delete_package", package_id))
        self._maybe_fail()


@pytest.fixture
def bali_packages() -> List[Package]:
    return [
        make_package(id="b1", name="Bali Basic", location="Kuta & Ubud", duration="4 Nights 5 Days",
                     price="₹45,000/-", hotelRating=3, category="Basic"),
        make_package(id="b2", name="Bali Honeymoon", location="Ubud, Seminyak", duration="5 Nights 6 Days",
                     price=62000, hotelRating=4, category="Honeymoon"),
        make_package(id="b3", name="Bali Premium", location="Seminyak", duration="6 Nights 7 Days",
                     price="INR 98000", hotelRating=5, category="Premium"),
        make_package(id="b4", name="Bali With Gili T", location="Kuta, Gili T", duration="7",
                     price="₹75,500/-", category="With Gili T"),
    ]


@pytest.fixture
def fake_upstream(bali_packages) -> FakeUpstream:
    return FakeUpstream({"bali": bali_packages})


@pytest.fixture
def package_store(fake_upstream):
    from tripsee.services.destinations import PROFILES
    from tripsee.services.package_store import PackageStore

    return PackageStore(fake_upstream, PROFILES.keys())


@pytest.fixture
def api(monkeypatch, db_session, fake_upstream, package_store):
    """TestClient over the app with the upstream, store and database swapped out."""
    from tripsee.api import routes_browse
    from tripsee.api.dependencies import get_client, get_store
    from tripsee.core.rate_limiting import limiter
    from tripsee.db.database import get_db
    from tripsee.main import app

    monkeypatch.setattr(limiter, "enabled", False)
    monkeypatch.setattr(routes_browse, "browse_sessions", {})

    def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_client] = lambda: fake_upstream
    app.dependency_overrides[get_store] = lambda: package_store

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
