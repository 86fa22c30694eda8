"""
Browse sessions: server-held catalog browser state for one visitor on one
destination page. Each session follows the package store; when a newer
package generation lands the browser gets a full replace. The session also
carries the contact prompt schedule for that page.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Literal, Optional, Union
import time
import uuid
import logging

from tripsee.api.dependencies import get_store, require_profile
from tripsee.core.config import settings
from tripsee.core.rate_limiting import limiter, BROWSE_LIMIT
from tripsee.db.database import get_db
from tripsee.db.repositories import CityFilterRepository
from tripsee.services.browser import CatalogBrowser
from tripsee.services.contact_prompt import ContactPromptSchedule
from tripsee.services.destinations import DestinationProfile
from tripsee.services.package_store import PackageStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/browse", tags=["browse"])

# In-memory browse sessions, evicted by TTL in main._session_cleanup_task
browse_sessions: Dict[str, Dict[str, Any]] = {}


class BrowseAction(BaseModel):
    action: Literal[
        "toggle_city",
        "toggle_rating",
        "toggle_duration",
        "set_max_price",
        "set_sort",
        "next_page",
        "prev_page",
        "reset",
        "close_prompt",
        "dont_show_prompt",
    ]
    value: Optional[Union[int, str]] = None


_NEEDS_VALUE = {"toggle_city", "toggle_rating", "toggle_duration", "set_max_price", "set_sort"}


def _new_session(profile: DestinationProfile, browser: CatalogBrowser, generation: int) -> dict:
    now = time.time()
    prompt = ContactPromptSchedule()
    prompt.start(now)
    return {
        "_ts": now,
        "destination": profile.slug,
        "profile": profile,
        "browser": browser,
        "generation": generation,
        "prompt": prompt,
    }


def _sync(session: dict, store: PackageStore, cities: List[str]) -> bool:
    """
    Pull a newer package generation and the current registry cities into the
    browser. Returns True if the page was reset.
    """
    destination = session["destination"]
    browser: CatalogBrowser = session["browser"]
    generation = store.generation(destination)
    if generation == session["generation"]:
        if cities != browser.cities:
            browser.cities = list(cities)
        return False
    session["generation"] = generation
    return browser.replace_packages(store.packages(destination), cities)


def _prompt_state(session: dict, now: float) -> dict:
    prompt: ContactPromptSchedule = session["prompt"]
    visible = prompt.tick(now, path=f"/destination/{session['destination']}")
    return {
        "visible": visible,
        "next_due_at": prompt.next_due_at(),
        "suppressed": prompt.suppressed,
    }


def _render(session_id: str, session: dict, page_reset: bool = False) -> dict:
    browser: CatalogBrowser = session["browser"]
    return {
        "session_id": session_id,
        "destination": session["destination"],
        "state": {
            "cities": list(browser.selected_cities),
            "ratings": list(browser.selected_ratings),
            "durations": list(browser.selected_durations),
            "max_price": browser.max_price,
            "sort": browser.sort_by.value,
            "page": browser.page,
            "has_active_filters": browser.has_active_filters,
        },
        "page_reset": page_reset,
        "catalog": browser.view().to_dict(session["profile"]),
        "contact_prompt": _prompt_state(session, time.time()),
    }


def _apply(session: dict, action: BrowseAction) -> None:
    browser: CatalogBrowser = session["browser"]
    if action.action in _NEEDS_VALUE and action.value is None:
        raise ValueError(f"'{action.action}' needs a value")
    if action.action == "toggle_city":
        browser.toggle_city(str(action.value))
    elif action.action == "toggle_rating":
        browser.toggle_rating(int(action.value))
    elif action.action == "toggle_duration":
        browser.toggle_duration(str(action.value))
    elif action.action == "set_max_price":
        browser.set_max_price(int(action.value))
    elif action.action == "set_sort":
        browser.set_sort(str(action.value))
    elif action.action == "next_page":
        browser.next_page()
    elif action.action == "prev_page":
        browser.prev_page()
    elif action.action == "reset":
        browser.reset_filters()
    elif action.action == "close_prompt":
        session["prompt"].close(time.time())
    elif action.action == "dont_show_prompt":
        session["prompt"].dont_show_again()


def _get_session(session_id: str) -> dict:
    session = browse_sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Browse session not found or expired")
    session["_ts"] = time.time()
    return session


@router.post("/{destination}")
@limiter.limit(BROWSE_LIMIT)
async def start_browse_session(
    request: Request,
    profile: DestinationProfile = Depends(require_profile),
    store: PackageStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    """Open a browse session on a destination page (first visit loads the packages)."""
    packages = await store.ensure_loaded(profile.slug)
    cities = CityFilterRepository(db).active_names(profile)

    if len(browse_sessions) >= settings.max_browse_sessions:
        oldest = min(browse_sessions, key=lambda k: browse_sessions[k].get("_ts", 0))
        del browse_sessions[oldest]

    session_id = str(uuid.uuid4())
    browser = CatalogBrowser(profile, packages, cities)
    browse_sessions[session_id] = _new_session(profile, browser, store.generation(profile.slug))
    logger.info(f"Browse session {session_id[:8]} opened on {profile.slug}")
    return _render(session_id, browse_sessions[session_id])


@router.get("/sessions/{session_id}")
@limiter.limit(BROWSE_LIMIT)
async def get_browse_session(
    request: Request,
    session_id: str,
    store: PackageStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    session = _get_session(session_id)
    cities = CityFilterRepository(db).active_names(session["profile"])
    page_reset = _sync(session, store, cities)
    return _render(session_id, session, page_reset)


@router.post("/sessions/{session_id}/actions")
@limiter.limit(BROWSE_LIMIT)
async def apply_browse_action(
    request: Request,
    session_id: str,
    action: BrowseAction,
    store: PackageStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    """
    Apply one action: a filter toggle, price ceiling, sort, page step or reset,
    or closing / silencing the contact prompt.
    """
    session = _get_session(session_id)
    cities = CityFilterRepository(db).active_names(session["profile"])
    page_reset = _sync(session, store, cities)
    try:
        _apply(session, action)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _render(session_id, session, page_reset)
