"""
Admin mutation routes for itineraries and packages.
All routes require the X-API-Key header. Upstream failures come back as
502 with the upstream's own error message.
"""

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from pydantic import ValidationError
from typing import Any, Dict, Optional
import asyncio
import logging

from tripsee.api.dependencies import get_client, get_store, require_admin_key
from tripsee.core.rate_limiting import limiter, ADMIN_LIMIT
from tripsee.services.destinations import DestinationProfile, get_profile
from tripsee.services.itinerary_editor import DraftValidationError, ItineraryDraft
from tripsee.services.package_store import PackageStore
from tripsee.services.upstream import AdminApiClient, UpstreamError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])


def _draft_from(body: Dict[str, Any]) -> ItineraryDraft:
    try:
        return ItineraryDraft.model_validate(body)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        )


def _draft_profile(draft: ItineraryDraft) -> DestinationProfile:
    profile = get_profile(draft.destination)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Unknown destination: {draft.destination or '(none)'}")
    return profile


def _prepared_payload(draft: ItineraryDraft, profile: DestinationProfile) -> Dict[str, Any]:
    """Validate required fields, then strip blanks and renumber days."""
    try:
        draft.validate_required(require_package=profile.shared_itinerary_route)
    except DraftValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return draft.cleaned(profile.slug).to_payload()


def _upstream_failed(action: str, e: UpstreamError) -> HTTPException:
    logger.error(f"Admin {action} failed upstream: {e.message}")
    return HTTPException(status_code=502, detail=e.message)


@router.post("/itineraries", status_code=201)
@limiter.limit(ADMIN_LIMIT)
async def create_itinerary(
    request: Request,
    body: Dict[str, Any] = Body(...),
    client: AdminApiClient = Depends(get_client),
):
    """
    Create an itinerary. The body carries the destination; destinations that
    link itineraries to packages post to the shared route, the rest to their own.
    """
    draft = _draft_from(body)
    profile = _draft_profile(draft)
    payload = _prepared_payload(draft, profile)
    destination = None if profile.shared_itinerary_route else profile.slug
    try:
        created = await asyncio.to_thread(client.create_itinerary, payload, destination)
    except UpstreamError as e:
        raise _upstream_failed("create itinerary", e)
    return created.to_public() if created is not None else payload


@router.put("/itineraries/{itinerary_id}")
@limiter.limit(ADMIN_LIMIT)
async def update_itinerary(
    request: Request,
    itinerary_id: str,
    body: Dict[str, Any] = Body(...),
    client: AdminApiClient = Depends(get_client),
):
    """Full-replace update of an itinerary."""
    draft = _draft_from(body)
    profile = _draft_profile(draft)
    payload = _prepared_payload(draft, profile)
    try:
        updated = await asyncio.to_thread(client.update_itinerary, itinerary_id, payload)
    except UpstreamError as e:
        raise _upstream_failed("update itinerary", e)
    return updated.to_public() if updated is not None else {**payload, "_id": itinerary_id}


@router.delete("/itineraries/{itinerary_id}")
@limiter.limit(ADMIN_LIMIT)
async def delete_itinerary(
    request: Request,
    itinerary_id: str,
    client: AdminApiClient = Depends(get_client),
):
    """Delete an itinerary; its package stays."""
    try:
        await asyncio.to_thread(client.delete_itinerary, itinerary_id)
    except UpstreamError as e:
        raise _upstream_failed("delete itinerary", e)
    return {"deleted": itinerary_id}


@router.delete("/packages/{package_id}")
@limiter.limit(ADMIN_LIMIT)
async def delete_package(
    request: Request,
    package_id: str,
    destination: Optional[str] = Query(None, description="Refresh this destination's cache afterwards"),
    client: AdminApiClient = Depends(get_client),
    store: PackageStore = Depends(get_store),
):
    try:
        await asyncio.to_thread(client.delete_package, package_id)
    except UpstreamError as e:
        raise _upstream_failed("delete package", e)

    refreshed = False
    profile = get_profile(destination) if destination else None
    if profile is not None:
        refreshed = await store.refresh_async(profile.slug)
    return {"deleted": package_id, "refreshed": refreshed}
