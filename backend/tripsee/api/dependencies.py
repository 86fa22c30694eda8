"""
Shared FastAPI dependencies: the upstream client, the package store,
destination lookup and the admin API key check.
"""

from fastapi import HTTPException, Request
from typing import Optional
import logging

from tripsee.core.config import settings
from tripsee.services.destinations import PROFILES, DestinationProfile, get_profile
from tripsee.services.package_store import PackageStore
from tripsee.services.upstream import AdminApiClient

logger = logging.getLogger(__name__)

_client: Optional[AdminApiClient] = None
_store: Optional[PackageStore] = None


def get_client() -> AdminApiClient:
    global _client
    if _client is None:
        _client = AdminApiClient(settings.upstream_base_url, timeout=settings.upstream_timeout_seconds)
        logger.info(f"Upstream admin API: {settings.upstream_base_url}")
    return _client


def get_store() -> PackageStore:
    """Process-wide package cache, shared by routes and the refresh task."""
    global _store
    if _store is None:
        _store = PackageStore(get_client(), PROFILES.keys())
    return _store


def require_profile(destination: str) -> DestinationProfile:
    profile = get_profile(destination)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Unknown destination: {destination}")
    return profile


def require_admin_key(request: Request) -> None:
    api_key = request.headers.get("X-API-Key", "")
    if api_key != settings.admin_api_key:
        raise HTTPException(status_code=403, detail="Invalid or missing API key")
