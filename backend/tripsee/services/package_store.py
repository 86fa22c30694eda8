"""
Per-destination cache of the upstream package list.

Each fetch takes a generation ticket before it goes out. A result is only
committed if no fetch with a newer ticket has already committed, so a slow
response can never overwrite fresher data. Refreshes are full replaces.
A failed refresh keeps whatever was cached (an empty list on first load).
When the shared package list fails, the per-destination route is tried
before the refresh counts as failed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Dict, Iterable, List, Optional

from tripsee.schemas import Package
from tripsee.services.upstream import AdminApiClient, UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    packages: List[Package] = field(default_factory=list)
    issued: int = 0
    committed: int = 0
    loaded: bool = False
    refreshed_at: Optional[float] = None
    last_error: Optional[str] = None


class PackageStore:

    def __init__(self, client: AdminApiClient, destinations: Iterable[str]):
        self.client = client
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {slug: _Entry() for slug in destinations}

    def _entry(self, destination: str) -> _Entry:
        try:
            return self._entries[destination]
        except KeyError:
            raise KeyError(f"Unknown destination: {destination}") from None

    # ------------------------------------------------------------------
    # Generation tickets
    # ------------------------------------------------------------------

    def begin_fetch(self, destination: str) -> int:
        with self._lock:
            entry = self._entry(destination)
            entry.issued += 1
            return entry.issued

    def commit(self, destination: str, ticket: int, packages: List[Package]) -> bool:
        """Store a fetch result unless a newer fetch already landed."""
        with self._lock:
            entry = self._entry(destination)
            if ticket <= entry.committed:
                logger.info(
                    f"Dropping stale package fetch for {destination}: "
                    f"ticket {ticket} <= committed {entry.committed}",
                    extra={"destination": destination, "generation": ticket},
                )
                return False
            entry.packages = list(packages)
            entry.committed = ticket
            entry.loaded = True
            entry.refreshed_at = time.time()
            entry.last_error = None
            return True

    def fail(self, destination: str, ticket: int, message: str) -> None:
        with self._lock:
            entry = self._entry(destination)
            entry.last_error = message
            if not entry.loaded and ticket > entry.committed:
                entry.loaded = True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def packages(self, destination: str) -> List[Package]:
        with self._lock:
            return list(self._entry(destination).packages)

    def generation(self, destination: str) -> int:
        with self._lock:
            return self._entry(destination).committed

    def is_loaded(self, destination: str) -> bool:
        with self._lock:
            return self._entry(destination).loaded

    def status(self) -> Dict[str, Dict[str, object]]:
        with self._lock:
            return {
                slug: {
                    "packages": len(entry.packages),
                    "generation": entry.committed,
                    "loaded": entry.loaded,
                    "refreshed_at": entry.refreshed_at,
                    "last_error": entry.last_error,
                }
                for slug, entry in self._entries.items()
            }

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _fetch(self, destination: str) -> List[Package]:
        """Shared package list first, then the per-destination route."""
        try:
            return self.client.list_packages(destination)
        except UpstreamError as e:
            logger.warning(f"Shared package list for {destination} failed ({e.message}), "
                           f"trying the destination route")
            try:
                return self.client.list_destination_packages(destination)
            except UpstreamError:
                raise e from None

    def refresh(self, destination: str) -> bool:
        """Fetch and commit. Returns True when the result was committed."""
        ticket = self.begin_fetch(destination)
        try:
            packages = self._fetch(destination)
        except UpstreamError as e:
            logger.error(f"Package refresh for {destination} failed: {e.message}")
            self.fail(destination, ticket, e.message)
            return False
        committed = self.commit(destination, ticket, packages)
        if committed:
            logger.info(f"Loaded {len(packages)} {destination} packages (generation {ticket})")
        return committed

    async def refresh_async(self, destination: str) -> bool:
        return await asyncio.to_thread(self.refresh, destination)

    async def ensure_loaded(self, destination: str) -> List[Package]:
        """First read of a destination triggers its initial load."""
        if not self.is_loaded(destination):
            await self.refresh_async(destination)
        return self.packages(destination)

    async def refresh_all(self) -> Dict[str, bool]:
        slugs = list(self._entries)
        results = await asyncio.gather(*(self.refresh_async(slug) for slug in slugs))
        return dict(zip(slugs, results))
