"""
Package catalog pipeline: filter -> sort -> paginate, plus facet counts.

Pure functions over an in-memory package list. Destination specific
behaviour comes in through a DestinationProfile; nothing here talks to the
network or keeps state between calls.
"""

from dataclasses import dataclass, field
from enum import Enum
import math
import re
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from tripsee.schemas import Package
from tripsee.services.destinations import DURATION_BUCKETS, STAR_RATINGS, DestinationProfile
from tripsee.services.duration import extract_nights, nights_count

_LOCATION_SPLIT = re.compile(r"[&,]")


class SortKey(str, Enum):
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    DURATION = "duration"
    RATING = "rating"
    POPULARITY = "popularity"


@dataclass(frozen=True)
class CatalogQuery:
    cities: FrozenSet[str] = frozenset()
    hotel_ratings: FrozenSet[int] = frozenset()
    durations: FrozenSet[str] = frozenset()
    max_price: Optional[int] = None
    sort_by: SortKey = SortKey.PRICE_LOW
    page: int = 0


@dataclass(frozen=True)
class PriceBounds:
    min: int
    max: int

    def to_dict(self) -> Dict[str, int]:
        return {"min": self.min, "max": self.max}


@dataclass
class FacetCounts:
    cities: Dict[str, int] = field(default_factory=dict)
    ratings: Dict[int, int] = field(default_factory=dict)
    durations: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cities": [{"name": k, "count": v} for k, v in self.cities.items()],
            "ratings": [{"stars": k, "count": v} for k, v in self.ratings.items()],
            "durations": [{"label": k, "count": v} for k, v in self.durations.items()],
        }


@dataclass
class CatalogPage:
    items: List[Package]
    page: int
    page_size: int
    total: int
    total_pages: int
    facets: FacetCounts
    price_bounds: PriceBounds

    def to_dict(self, profile: DestinationProfile) -> Dict[str, Any]:
        return {
            "items": [p.to_public(profile.display_hotel_rating) for p in self.items],
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "total_pages": self.total_pages,
            "facets": self.facets.to_dict(),
            "price_bounds": self.price_bounds.to_dict(),
        }


# ============================================================================
# FILTERS
# ============================================================================

def location_tokens(location: str, profile: DestinationProfile) -> List[str]:
    """Split a "Kuta & Ubud, Seminyak" location into city tokens."""
    if not location:
        return []
    tokens: List[str] = []
    for raw in _LOCATION_SPLIT.split(location):
        city = raw.strip()
        if not city:
            continue
        tokens.extend(profile.location_rewrites.get(city, (city,)))
    return tokens


def matches_city(package: Package, cities: Iterable[str], profile: DestinationProfile) -> bool:
    if profile.substring_city_match:
        haystack = (package.location or "").lower()
        return any(city.lower() in haystack for city in cities if city)
    tokens = set(location_tokens(package.location, profile))
    if not tokens:
        return False
    return any(alias in tokens for city in cities for alias in profile.aliases_for(city))


def effective_rating(package: Package, profile: DestinationProfile) -> Optional[int]:
    """Rating used for matching; the display default only counts when the profile says so."""
    if package.hotel_rating is not None:
        return package.hotel_rating
    if profile.match_default_rating:
        return profile.display_hotel_rating
    return None


def matches_filters(package: Package, query: CatalogQuery, profile: DestinationProfile) -> bool:
    if query.cities and not matches_city(package, query.cities, profile):
        return False

    if query.hotel_ratings and effective_rating(package, profile) not in query.hotel_ratings:
        return False

    if query.durations and extract_nights(package.days) not in query.durations:
        return False

    if query.max_price is not None and package.price_value > query.max_price:
        return False

    return True


def filter_packages(
    packages: Sequence[Package], query: CatalogQuery, profile: DestinationProfile
) -> List[Package]:
    return [p for p in packages if matches_filters(p, query, profile)]


# ============================================================================
# SORTING
# ============================================================================

def sort_packages(
    packages: Sequence[Package], sort_by: SortKey, profile: DestinationProfile
) -> List[Package]:
    """Stable sort; ties keep upstream order."""
    if sort_by == SortKey.PRICE_LOW:
        return sorted(packages, key=lambda p: p.price_value)
    if sort_by == SortKey.PRICE_HIGH:
        return sorted(packages, key=lambda p: p.price_value, reverse=True)
    if sort_by == SortKey.DURATION:
        return sorted(packages, key=lambda p: nights_count(p.days) or 0)
    if sort_by == SortKey.RATING:
        return sorted(packages, key=lambda p: p.hotel_rating or 0, reverse=True)
    if sort_by == SortKey.POPULARITY:
        return sorted(packages, key=lambda p: profile.popularity_rank(p.type))
    return list(packages)


# ============================================================================
# PAGINATION
# ============================================================================

def total_pages_for(count: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return math.ceil(count / page_size)


def paginate(items: Sequence[Package], page: int, page_size: int) -> Tuple[List[Package], int]:
    """Return (page slice, total pages). Pages past the end are empty."""
    total_pages = total_pages_for(len(items), page_size)
    if page < 0:
        return [], total_pages
    start = page * page_size
    return list(items[start:start + page_size]), total_pages


def wrap_page(page: int, step: int, total_pages: int) -> int:
    """Circular next/prev navigation; a catalog with no pages stays put."""
    if total_pages <= 0:
        return page
    return (page + step) % total_pages


# ============================================================================
# FACETS & PRICE RANGE
# ============================================================================

def facet_counts(
    packages: Sequence[Package],
    profile: DestinationProfile,
    cities: Optional[Iterable[str]] = None,
) -> FacetCounts:
    """Per-facet counts over the whole package list, ignoring active filters."""
    city_names = list(cities) if cities is not None else list(profile.default_cities)
    counts = FacetCounts()
    for city in city_names:
        counts.cities[city] = sum(1 for p in packages if matches_city(p, (city,), profile))
    for stars in STAR_RATINGS:
        counts.ratings[stars] = sum(1 for p in packages if effective_rating(p, profile) == stars)
    for bucket in DURATION_BUCKETS:
        counts.durations[bucket] = sum(1 for p in packages if extract_nights(p.days) == bucket)
    return counts


def price_bounds(packages: Sequence[Package], profile: DestinationProfile) -> PriceBounds:
    prices = [p.price_value for p in packages if p.price_value > 0]
    if not prices:
        low, high = profile.default_price_range
        return PriceBounds(low, high)
    return PriceBounds(min(prices), max(prices))


# ============================================================================
# FULL PIPELINE
# ============================================================================

def run_catalog(
    packages: Sequence[Package],
    query: CatalogQuery,
    profile: DestinationProfile,
    cities: Optional[Iterable[str]] = None,
) -> CatalogPage:
    matched = filter_packages(packages, query, profile)
    ordered = sort_packages(matched, query.sort_by, profile)
    items, total_pages = paginate(ordered, query.page, profile.page_size)
    return CatalogPage(
        items=items,
        page=query.page,
        page_size=profile.page_size,
        total=len(ordered),
        total_pages=total_pages,
        facets=facet_counts(packages, profile, cities),
        price_bounds=price_bounds(packages, profile),
    )
