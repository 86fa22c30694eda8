"""
Repository pattern for data access.
City filter registry: the city facets offered on each destination page.
"""

from typing import Dict, Iterable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from tripsee.db.models import CityFilter
from tripsee.schemas import Package
from tripsee.services.catalog import matches_city
from tripsee.services.destinations import DestinationProfile, all_profiles

logger = logging.getLogger(__name__)


class CityFilterNotFound(LookupError):
    pass


class CityFilterRepository:
    """
    Repository for CityFilter data access (city_filters table).
    Destinations are validated by the caller against the profile table.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_cities(self, destination: str, active_only: bool = False) -> List[CityFilter]:
        """Cities for a destination, by display order then id."""
        query = self.db.query(CityFilter).filter(CityFilter.destination == destination)
        if active_only:
            query = query.filter(CityFilter.is_active.is_(True))
        return query.order_by(CityFilter.order, CityFilter.id).all()

    def get_city(self, destination: str, city_id: int) -> CityFilter:
        city = self.db.query(CityFilter).filter(
            CityFilter.destination == destination,
            CityFilter.id == city_id,
        ).first()
        if city is None:
            raise CityFilterNotFound(f"City not found: {city_id}")
        return city

    def active_cities(self, profile: DestinationProfile) -> List[CityFilter]:
        """
        Active cities of a destination. Until the registry has rows, the
        profile defaults stand in as unsaved rows (id None).
        """
        cities = self.get_cities(profile.slug)
        if not cities:
            return [
                CityFilter(destination=profile.slug, name=name, is_active=True, order=i)
                for i, name in enumerate(profile.default_cities, start=1)
            ]
        return [c for c in cities if c.is_active]

    def active_names(self, profile: DestinationProfile) -> List[str]:
        """Facet city names, same source as the public city filter list."""
        return [c.name for c in self.active_cities(profile)]

    def add_city(self, destination: str, name: str, order: Optional[int] = None) -> CityFilter:
        """Append a city; without an explicit order it goes after the existing ones."""
        if order is None:
            count = self.db.query(func.count(CityFilter.id)).filter(
                CityFilter.destination == destination
            ).scalar()
            order = (count or 0) + 1
        city = CityFilter(destination=destination, name=name.strip(), is_active=True, order=order)
        self.db.add(city)
        self.db.commit()
        self.db.refresh(city)
        logger.info(f"Added city filter '{city.name}' to {destination}")
        return city

    def update_city(
        self,
        destination: str,
        city_id: int,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
        order: Optional[int] = None,
    ) -> CityFilter:
        city = self.get_city(destination, city_id)
        if name is not None:
            city.name = name.strip()
        if is_active is not None:
            city.is_active = is_active
        if order is not None:
            city.order = order
        self.db.commit()
        self.db.refresh(city)
        return city

    def delete_city(self, destination: str, city_id: int) -> Dict[str, object]:
        """Delete a city; returns a snapshot since the row is gone afterwards."""
        city = self.get_city(destination, city_id)
        snapshot = city.to_dict()
        self.db.delete(city)
        self.db.commit()
        logger.info(f"Deleted city filter {snapshot['name']!r} from {destination}")
        return snapshot

    def toggle_city(self, destination: str, city_id: int) -> CityFilter:
        city = self.get_city(destination, city_id)
        return self.update_city(destination, city_id, is_active=not city.is_active)

    def seed_defaults(self, profiles: Optional[Iterable[DestinationProfile]] = None) -> int:
        """Insert the default cities for every destination that has none yet."""
        added = 0
        for profile in profiles or all_profiles():
            exists = self.db.query(CityFilter.id).filter(
                CityFilter.destination == profile.slug
            ).first()
            if exists:
                continue
            for position, name in enumerate(profile.default_cities, start=1):
                self.db.add(CityFilter(destination=profile.slug, name=name, is_active=True, order=position))
                added += 1
        if added:
            self.db.commit()
            logger.info(f"Seeded {added} default city filters")
        return added


def city_counts(
    cities: Iterable[CityFilter], packages: List[Package], profile: DestinationProfile
) -> List[Dict[str, object]]:
    """Serialize cities with live package counts (same matching rule as the catalog filter)."""
    return [
        city.to_dict(count=sum(1 for p in packages if matches_city(p, (city.name,), profile)))
        for city in cities
    ]
