"""
City filter registry routes.
Public read with live package counts, admin CRUD behind the X-API-Key header.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
import logging

from tripsee.api.dependencies import get_store, require_admin_key, require_profile
from tripsee.core.rate_limiting import limiter, ADMIN_LIMIT, CATALOG_LIMIT
from tripsee.db.database import get_db
from tripsee.db.repositories import CityFilterNotFound, CityFilterRepository, city_counts
from tripsee.services.destinations import DestinationProfile
from tripsee.services.package_store import PackageStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["city-filters"])


class CityFilterCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    order: Optional[int] = Field(None, ge=0)


class CityFilterUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1, max_length=128)
    is_active: Optional[bool] = None
    order: Optional[int] = Field(None, ge=0)


@router.get("/city-filters")
@limiter.limit(CATALOG_LIMIT)
async def list_city_filters(
    request: Request,
    destination: str = Query(..., description="Destination slug"),
    store: PackageStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    """Active cities of a destination with the number of packages in each (the catalog's facet cities)."""
    profile = require_profile(destination)
    packages = await store.ensure_loaded(profile.slug)
    cities = CityFilterRepository(db).active_cities(profile)
    return {"items": city_counts(cities, packages, profile)}


# ============================================================================
# ADMIN
# ============================================================================

def _admin_item(city, count: int = 0) -> dict:
    item = city.to_dict(count)
    item["isActive"] = city.is_active
    return item


@router.get("/admin/city-filters/{destination}", dependencies=[Depends(require_admin_key)])
@limiter.limit(ADMIN_LIMIT)
async def admin_list_city_filters(
    request: Request,
    profile: DestinationProfile = Depends(require_profile),
    store: PackageStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    cities = CityFilterRepository(db).get_cities(profile.slug)
    counted = city_counts(cities, await store.ensure_loaded(profile.slug), profile)
    return {"items": [_admin_item(c, row["count"]) for c, row in zip(cities, counted)]}


@router.post("/admin/city-filters/{destination}", status_code=201, dependencies=[Depends(require_admin_key)])
@limiter.limit(ADMIN_LIMIT)
async def admin_add_city_filter(
    request: Request,
    body: CityFilterCreate,
    profile: DestinationProfile = Depends(require_profile),
    db: Session = Depends(get_db),
):
    repo = CityFilterRepository(db)
    try:
        city = repo.add_city(profile.slug, body.name, body.order)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"City '{body.name}' already exists for {profile.slug}")
    return _admin_item(city)


@router.patch("/admin/city-filters/{destination}/{city_id}", dependencies=[Depends(require_admin_key)])
@limiter.limit(ADMIN_LIMIT)
async def admin_update_city_filter(
    request: Request,
    city_id: int,
    body: CityFilterUpdate,
    profile: DestinationProfile = Depends(require_profile),
    db: Session = Depends(get_db),
):
    repo = CityFilterRepository(db)
    try:
        city = repo.update_city(profile.slug, city_id, name=body.name, is_active=body.is_active, order=body.order)
    except CityFilterNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"City '{body.name}' already exists for {profile.slug}")
    return _admin_item(city)


@router.delete("/admin/city-filters/{destination}/{city_id}", dependencies=[Depends(require_admin_key)])
@limiter.limit(ADMIN_LIMIT)
async def admin_delete_city_filter(
    request: Request,
    city_id: int,
    profile: DestinationProfile = Depends(require_profile),
    db: Session = Depends(get_db),
):
    try:
        city = CityFilterRepository(db).delete_city(profile.slug, city_id)
    except CityFilterNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"deleted": city["id"], "name": city["name"]}


@router.post("/admin/city-filters/{destination}/{city_id}/toggle", dependencies=[Depends(require_admin_key)])
@limiter.limit(ADMIN_LIMIT)
async def admin_toggle_city_filter(
    request: Request,
    city_id: int,
    profile: DestinationProfile = Depends(require_profile),
    db: Session = Depends(get_db),
):
    try:
        city = CityFilterRepository(db).toggle_city(profile.slug, city_id)
    except CityFilterNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _admin_item(city)
