"""
Catalog browser: the filter/sort/page state of one visitor on one destination.

Every selection change resets the page to the first one. Page navigation
wraps around. A package refresh replaces the whole list; when the refreshed
prices move the price bounds, the price ceiling and the page are reset.
"""

from typing import Iterable, List, Optional, Sequence

from tripsee.schemas import Package
from tripsee.services.catalog import (
    CatalogPage,
    CatalogQuery,
    PriceBounds,
    SortKey,
    filter_packages,
    price_bounds,
    run_catalog,
    total_pages_for,
    wrap_page,
)
from tripsee.services.destinations import DestinationProfile


class CatalogBrowser:

    def __init__(
        self,
        profile: DestinationProfile,
        packages: Sequence[Package] = (),
        cities: Optional[Iterable[str]] = None,
    ):
        self.profile = profile
        self.cities: List[str] = list(cities) if cities is not None else list(profile.default_cities)
        self.packages: List[Package] = list(packages)
        self.selected_cities: List[str] = []
        self.selected_ratings: List[int] = []
        self.selected_durations: List[str] = []
        self.sort_by = SortKey.PRICE_LOW
        self.page = 0
        self.bounds: PriceBounds = price_bounds(self.packages, profile)
        self.max_price: int = self.bounds.max

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def query(self) -> CatalogQuery:
        return CatalogQuery(
            cities=frozenset(self.selected_cities),
            hotel_ratings=frozenset(self.selected_ratings),
            durations=frozenset(self.selected_durations),
            max_price=self.max_price,
            sort_by=self.sort_by,
            page=self.page,
        )

    @property
    def total_pages(self) -> int:
        matched = filter_packages(self.packages, self.query, self.profile)
        return total_pages_for(len(matched), self.profile.page_size)

    @property
    def has_active_filters(self) -> bool:
        return bool(
            self.selected_cities
            or self.selected_ratings
            or self.selected_durations
            or self.max_price < self.bounds.max
        )

    def view(self) -> CatalogPage:
        return run_catalog(self.packages, self.query, self.profile, self.cities)

    # ------------------------------------------------------------------
    # Selection changes
    # ------------------------------------------------------------------

    @staticmethod
    def _toggled(values: list, value) -> list:
        return [v for v in values if v != value] if value in values else values + [value]

    def toggle_city(self, city: str) -> None:
        self.selected_cities = self._toggled(self.selected_cities, city)
        self.page = 0

    def toggle_rating(self, rating: int) -> None:
        self.selected_ratings = self._toggled(self.selected_ratings, int(rating))
        self.page = 0

    def toggle_duration(self, duration: str) -> None:
        self.selected_durations = self._toggled(self.selected_durations, duration)
        self.page = 0

    def set_max_price(self, value: int) -> None:
        self.max_price = max(self.bounds.min, min(self.bounds.max, int(value)))
        self.page = 0

    def set_sort(self, sort_by) -> None:
        self.sort_by = SortKey(sort_by)
        self.page = 0

    def reset_filters(self) -> None:
        self.selected_cities = []
        self.selected_ratings = []
        self.selected_durations = []
        self.max_price = self.bounds.max
        self.sort_by = SortKey.PRICE_LOW
        self.page = 0

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def next_page(self) -> None:
        self.page = wrap_page(self.page, 1, self.total_pages)

    def prev_page(self) -> None:
        self.page = wrap_page(self.page, -1, self.total_pages)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def replace_packages(self, packages: Sequence[Package], cities: Optional[Iterable[str]] = None) -> bool:
        """Full replace of the package list. Returns True if the page was reset."""
        self.packages = list(packages)
        if cities is not None:
            self.cities = list(cities)
        new_bounds = price_bounds(self.packages, self.profile)
        if new_bounds != self.bounds:
            self.bounds = new_bounds
            self.max_price = new_bounds.max
            self.page = 0
            return True
        return False
