"""
Client for the upstream admin API (packages and itineraries).

Blocking ``requests`` calls; async callers wrap them in asyncio.to_thread.
Every failure surfaces as UpstreamError carrying a user-facing message taken
from the response body's ``error``/``message``/``details`` field.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from tripsee.core.monitoring import track_performance
from tripsee.schemas import Itinerary, Package

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"

_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class UpstreamError(Exception):
    """Transport failure, non-OK status or malformed body from the upstream API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return UNKNOWN_ERROR
    if isinstance(body, dict):
        for key in ("error", "message", "details"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return UNKNOWN_ERROR


def unwrap_items(payload: Any, key: str, allow_bare: bool = False) -> List[Any]:
    """Read a list response: canonical {"items": [...]}, the endpoint's own key, or a bare list."""
    if isinstance(payload, dict):
        for name in ("items", key):
            value = payload.get(name)
            if isinstance(value, list):
                return value
    elif isinstance(payload, list) and allow_bare:
        return payload
    raise UpstreamError(f"Malformed response: expected a list of {key}")


class AdminApiClient:
    """Thin wrapper over the upstream /api/admin endpoints."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json"}
        if method == "GET":
            headers.update(_NO_CACHE_HEADERS)
            # cache buster, mirrors what the destination pages send
            params = {**(params or {}), "t": int(time.time() * 1000)}

        try:
            response = requests.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Upstream {method} {path} failed: {e}")
            raise UpstreamError(f"Upstream unavailable: {e}") from e

        if not response.ok:
            message = error_message(response)
            logger.warning(f"Upstream {method} {path} -> {response.status_code}: {message}")
            raise UpstreamError(message, status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("Malformed response: body is not JSON", response.status_code) from e

    # ------------------------------------------------------------------
    # Packages
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_packages(raw: List[Any]) -> List[Package]:
        packages = []
        for item in raw:
            try:
                packages.append(Package.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed package record: {e.error_count()} errors")
        return packages

    @track_performance("upstream.list_packages")
    def list_packages(self, destination: str) -> List[Package]:
        payload = self._request("GET", "/api/admin/packages", params={"destination": destination})
        return self._parse_packages(unwrap_items(payload, "packages"))

    @track_performance("upstream.list_destination_packages")
    def list_destination_packages(self, destination: str) -> List[Package]:
        payload = self._request("GET", f"/api/admin/destinations/{destination}/packages")
        return self._parse_packages(unwrap_items(payload, "packages", allow_bare=True))

    def delete_package(self, package_id: str) -> None:
        self._request("DELETE", f"/api/admin/packages/{package_id}")
        logger.info(f"Deleted package {package_id} upstream")

    # ------------------------------------------------------------------
    # Itineraries
    # ------------------------------------------------------------------

    @track_performance("upstream.list_itineraries")
    def list_itineraries(self, destination: str, package_id: Optional[str] = None) -> List[Itinerary]:
        params = {"packageId": package_id} if package_id else None
        payload = self._request("GET", f"/api/admin/destinations/{destination}/itineraries", params=params)
        itineraries = []
        for item in unwrap_items(payload, "itineraries", allow_bare=True):
            try:
                itineraries.append(Itinerary.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed itinerary record: {e.error_count()} errors")
        return itineraries

    def find_itinerary(self, destination: str, package_id: str) -> Optional[Itinerary]:
        """The itinerary bound to a package, if the package is bookable."""
        for itinerary in self.list_itineraries(destination, package_id):
            if itinerary.package_id == package_id:
                return itinerary
        return None

    def create_itinerary(self, payload: Dict[str, Any], destination: Optional[str] = None) -> Optional[Itinerary]:
        """POST to the per-destination route when ``destination`` is given, else the shared one."""
        path = f"/api/admin/{destination}/itineraries" if destination else "/api/admin/itineraries"
        body = self._request("POST", path, json_body=payload)
        logger.info(f"Created itinerary '{payload.get('title', '')}' via {path}")
        return self._itinerary_from(body)

    def update_itinerary(self, itinerary_id: str, payload: Dict[str, Any]) -> Optional[Itinerary]:
        body = self._request("PUT", f"/api/admin/itineraries/{itinerary_id}", json_body=payload)
        logger.info(f"Updated itinerary {itinerary_id}")
        return self._itinerary_from(body)

    def delete_itinerary(self, itinerary_id: str) -> None:
        self._request("DELETE", f"/api/admin/itineraries/{itinerary_id}")
        logger.info(f"Deleted itinerary {itinerary_id} upstream")

    @staticmethod
    def _itinerary_from(body: Any) -> Optional[Itinerary]:
        if not isinstance(body, dict):
            return None
        record = body.get("itinerary", body)
        try:
            return Itinerary.model_validate(record)
        except ValidationError:
            return None
