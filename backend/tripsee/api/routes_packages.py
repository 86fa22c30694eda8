"""
Public catalog routes: destination list, filtered package pages, refresh
and the "is this package bookable" itinerary lookup.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import List, Optional
import asyncio
import logging

from tripsee.api.dependencies import get_client, get_store, require_profile
from tripsee.core.rate_limiting import limiter, CATALOG_LIMIT, REFRESH_LIMIT
from tripsee.db.database import get_db
from tripsee.db.repositories import CityFilterRepository
from tripsee.services.catalog import CatalogQuery, SortKey, run_catalog
from tripsee.services.destinations import DestinationProfile, all_profiles
from tripsee.services.package_store import PackageStore
from tripsee.services.upstream import AdminApiClient, UpstreamError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["packages"])


@router.get("/destinations")
@limiter.limit(CATALOG_LIMIT)
async def list_destinations(request: Request):
    """Destination profiles with their default facets."""
    return {"items": [p.summary() for p in all_profiles()]}


@router.get("/destinations/{destination}/packages")
@limiter.limit(CATALOG_LIMIT)
async def list_destination_packages(
    request: Request,
    city: List[str] = Query(default=[], description="City facet, repeatable"),
    rating: List[int] = Query(default=[], description="Hotel star rating, repeatable"),
    duration: List[str] = Query(default=[], description='Nights bucket such as "5 Nights"'),
    max_price: Optional[int] = Query(None, ge=0, description="Price ceiling"),
    sort: SortKey = Query(SortKey.PRICE_LOW, description="Sort order"),
    page: int = Query(0, ge=0, description="Zero-based page index"),
    profile: DestinationProfile = Depends(require_profile),
    store: PackageStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    """
    One page of a destination catalog.
    Facet counts and price bounds are computed over the whole package list.
    """
    packages = await store.ensure_loaded(profile.slug)
    query = CatalogQuery(
        cities=frozenset(city),
        hotel_ratings=frozenset(rating),
        durations=frozenset(duration),
        max_price=max_price,
        sort_by=sort,
        page=page,
    )
    cities = CityFilterRepository(db).active_names(profile)
    result = run_catalog(packages, query, profile, cities)
    body = result.to_dict(profile)
    body["generation"] = store.generation(profile.slug)
    return body


@router.post("/destinations/{destination}/refresh")
@limiter.limit(REFRESH_LIMIT)
async def refresh_destination(
    request: Request,
    profile: DestinationProfile = Depends(require_profile),
    store: PackageStore = Depends(get_store),
):
    """Refetch a destination's packages (page focus, tab visible, manual refresh)."""
    committed = await store.refresh_async(profile.slug)
    status = store.status()[profile.slug]
    return {
        "destination": profile.slug,
        "refreshed": committed,
        "generation": status["generation"],
        "packages": status["packages"],
        "last_error": status["last_error"],
    }


@router.get("/destinations/{destination}/packages/{package_id}/itinerary")
@limiter.limit(CATALOG_LIMIT)
async def get_package_itinerary(
    request: Request,
    package_id: str,
    profile: DestinationProfile = Depends(require_profile),
    client: AdminApiClient = Depends(get_client),
):
    """The itinerary bound to a package; 404 means the package is not bookable yet."""
    try:
        itinerary = await asyncio.to_thread(client.find_itinerary, profile.slug, package_id)
    except UpstreamError as e:
        logger.warning(f"Itinerary lookup for {profile.slug}/{package_id} failed: {e.message}")
        itinerary = None
    if itinerary is None:
        raise HTTPException(status_code=404, detail="Itinerary not found")
    return itinerary.to_public()
